import gkbus
import pytest
import threading

from gkbus.protocol import fields
from gkbus.protocol.builder import MessageBuilder
from gkbus.transport import loopback


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):

    # The configuration directory is cached on first use; every test gets
    # its own.

    monkeypatch.setenv('GKBUS_HOME', str(tmp_path))
    monkeypatch.setattr(gkbus.config.directory, 'found', None)

    yield tmp_path


@pytest.fixture
def calls():
    return gkbus.registry.CallRegistry()


@pytest.fixture
def bus():
    return loopback.Bus()


@pytest.fixture
def outbox():
    """ A list standing in for the transport: every message handed to
        :func:`outbox.send` is sealed and kept, in order.
    """

    return Outbox()


@pytest.fixture
def dispatcher(calls, outbox):
    return gkbus.dispatch.Dispatcher(calls, gkbus.BusSelector.SYSTEM, outbox.send, 'com.glogik.Daemon')


class Outbox(list):

    def __init__(self):
        list.__init__(self)
        self.lock = threading.Lock()
        self.failing = False


    def send(self, message):

        if self.failing:
            raise gkbus.transport.TransportConnectionError('outbox is failing')

        self.lock.acquire()
        self.append(message)
        self.lock.release()


    def replies(self, call):
        return [message for message in self if message.reply_serial == call.serial]



def method_call(path, interface, member, *arguments, sender=':1.7'):
    """ Build an inbound method call; each argument is an
        (:class:`gkbus.types.ArgType`, value) pair.
    """

    builder = MessageBuilder(sender).method_call(path, interface, member).to('com.glogik.Daemon')
    return _build(builder, arguments)



def signal(path, interface, member, *arguments, sender=':1.7'):

    builder = MessageBuilder(sender).signal(path, interface, member)
    return _build(builder, arguments)



def _build(builder, arguments):

    message = builder.build()
    writer = message.writer()

    for type, value in arguments:
        gkbus.codec.append(writer, type, value)

    return message



def fields_of(message):
    """ Return the top-level values of *message*, in wire order.
    """

    return [field.value for field in message.reader()]


# Handy aliases for the tests.

SYSTEM = gkbus.BusSelector.SYSTEM
ERROR = fields.ERROR
METHOD_RETURN = fields.METHOD_RETURN

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

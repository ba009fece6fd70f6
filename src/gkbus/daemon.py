import logging

from . import config
from . import log as gklog
from . import registry
from .connection import Connection
from .registry import BusSelector, EventKind
from .transport import loopback
from .transport.base import TransportPortError
from .transport.rabbitmq import bus as amqp
from .transport.zmq import bus as zmq

log = logging.getLogger(__name__)


class Daemon:
    """ The gkbus :class:`Daemon` is a facilitator for common actions taken
        in a daemon context: loading the settings, attaching to the
        configured buses, registering handlers, and commencing routine
        operations.

        The developer is expected to subclass the :class:`Daemon` class and
        implement a :func:`setup` method, and/or a :func:`setup_final`
        method. This subclass is the gateway between gkbus functionality and
        the domain-specific custom code appropriate for the developer's
        application.

        The *settings* argument is a :class:`gkbus.config.Settings` instance,
        or a dictionary of overrides for the defaults; if it is not provided
        the settings are loaded from the configuration directory.

        The *transports* argument, if provided, is a dictionary mapping each
        :class:`gkbus.registry.BusSelector` to an unopened transport
        endpoint, overriding the transport backend named in the settings.
        With the loopback backend the in-process buses are kept in
        :attr:`loopback`, keyed by bus selector, for other endpoints to
        attach to.

        *arguments* is expected to be an :class:`argparse.ArgumentParser`
        result, though in practice it can be any Python object with specific
        named attributes of interest to a :class:`Daemon` subclass; it is
        not required, and is not inspected here.
    """

    def __init__(self, settings=None, transports=None, arguments=None):

        self.arguments = arguments

        if settings is None:
            settings = config.load()
        elif isinstance(settings, dict):
            settings = config.Settings(settings)

        self.settings = settings
        gklog.setup(settings['loglevel'])

        self.name = settings['name']
        self.calls = registry.CallRegistry()
        self.connections = dict()
        self.loopback = dict()

        if transports is None:
            transports = dict()
            for bus in settings['buses']:
                bus = BusSelector(bus)
                transports[bus] = self._transport(bus)

        for bus, transport in transports.items():
            bus = BusSelector(bus)
            self.connections[bus] = Connection(transport, self.calls, bus)

        # Local machinery is intact. Invoke the setup() method, which is the
        # hook for the developer to register their handlers.

        self.setup()

        # The promise is that setup_final() gets invoked after everything else
        # is ready, but before we go on the air.

        self.setup_final()

        # Ready to go on the air.

        for bus, connection in self.connections.items():
            self._open(bus, connection)

        log.info('%s on the air: %d handler(s) on %s', self.name, len(self.calls),
                 ', '.join(bus.value for bus in self.connections))


    def _transport(self, bus):
        """ Create the transport endpoint for *bus* from the settings.
        """

        backend = self.settings['transport']

        if backend == 'zmq':
            # Use cached port numbers when possible; let new ones be
            # auto-assigned when they are not available.
            rep, pub = config.load_ports(self._port_name(bus))
            return zmq.Server(self.name, self.settings['zmq_address'], rep, pub,
                              avoid=config.used_ports(),
                              minimum=self.settings['zmq_minimum_port'],
                              maximum=self.settings['zmq_maximum_port'])

        if backend == 'rabbitmq':
            return amqp.Endpoint(self.name, bus.value, self.settings['amqp_host'], self.settings['amqp_port'])

        if backend == 'loopback':
            if bus not in self.loopback:
                self.loopback[bus] = loopback.Bus()
            return self.loopback[bus].endpoint(self.name)

        raise ValueError('unknown transport backend: ' + repr(backend))


    def _port_name(self, bus):
        return self.name + '.' + bus.value


    def _open(self, bus, connection):

        transport = connection.transport

        try:
            connection.open()
        except TransportPortError:
            if isinstance(transport, zmq.Server):
                log.warning('cached ports for %s unavailable, choosing new ones', self._port_name(bus))
                transport.port = None
                transport.pub_port = None
                connection.open()
            else:
                raise

        if isinstance(transport, zmq.Server):
            config.save_ports(self._port_name(bus), transport.port, transport.pub_port)


    def _buses(self, bus):

        if bus is None:
            return tuple(self.connections)

        bus = BusSelector(bus)
        if bus not in self.connections:
            raise ValueError('this daemon is not attached to the %s bus' % (bus.value))

        return (bus,)


    def _register(self, path, interface, member, arguments, kind, callback, bus, introspectable, completion=None):

        handlers = list()

        for selector in self._buses(bus):
            address = registry.Address(selector, path, interface, member)
            handler = self.calls.register(address, arguments, kind, callback, introspectable, completion)
            handlers.append(handler)

        return handlers


    def add_method(self, path, interface, member, arguments, callback, bus=None, introspectable=True):
        """ Register a synchronous method. The *arguments* are the ordered
            :class:`gkbus.registry.Argument` declarations; the handler is
            registered on *bus*, or on every bus this daemon is attached to.
        """

        return self._register(path, interface, member, arguments, EventKind.METHOD, callback, bus, introspectable)


    def add_signal(self, path, interface, member, arguments, callback, bus=None, introspectable=True):
        """ Register a handler for an inbound signal.
        """

        return self._register(path, interface, member, arguments, EventKind.SIGNAL, callback, bus, introspectable)


    def add_async_method(self, path, interface, member, arguments, callback, completion, bus=None, introspectable=True):
        """ Register an asynchronous method: *callback* returns the immediate
            results, then *completion* receives the
            :class:`gkbus.completer.AsyncReplyCompleter` for the rest.
        """

        return self._register(path, interface, member, arguments, EventKind.ASYNC_METHOD, callback, bus, introspectable, completion)


    def declare_signal(self, path, interface, member, arguments=(), bus=None, introspectable=True):
        """ Declare a signal this daemon emits, for introspection.
        """

        declared = list()

        for selector in self._buses(bus):
            address = registry.Address(selector, path, interface, member)
            declared.append(self.calls.declare_signal(address, arguments, introspectable))

        return declared


    def emit_signal(self, path, interface, member, *arguments, bus=None):
        """ Broadcast a signal on *bus*, or on every bus this daemon is
            attached to. Each argument is an (ArgType, value) pair.
        """

        for selector in self._buses(bus):
            self.connections[selector].emit_signal(path, interface, member, *arguments)


    def setup(self):
        """ Subclasses should override the :func:`setup` method to invoke
            :func:`add_method` and friends, or otherwise execute custom code.
            When :func:`setup` is called the connections exist but are not
            yet open. The default implementation of this method takes no
            actions.
        """

        pass


    def setup_final(self):
        """ Subclasses should override the :func:`setup_final` method to
            execute any/all code that should occur after all handlers have
            been registered, but before the daemon goes on the air. The
            default implementation of this method takes no actions.
        """

        pass


    def shutdown(self):
        """ Disconnect from every bus, and release every handler.
        """

        for connection in self.connections.values():
            connection.close()

        self.calls.unregister_all()
        log.info('%s stopped', self.name)


# end of class Daemon


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import gkbus
import pytest

from gkbus.registry import Address, EventKind, arg_in, arg_out
from gkbus.types import ArgType


SYSTEM = gkbus.BusSelector.SYSTEM
SESSION = gkbus.BusSelector.SESSION

path = '/com/glogik/Daemon/DevicesManager'
interface = 'com.glogik.Daemon.Device1'


def nothing(*args):
    return None


def test_register_and_lookup(calls):

    address = Address(SYSTEM, path, interface, 'GetStartedDevices')
    arguments = (arg_in(ArgType.STRING, 'client_id'), arg_out(ArgType.STRING_ARRAY, 'devices'))

    handler = calls.register(address, arguments, EventKind.METHOD, nothing)

    assert len(calls) == 1
    assert address in calls
    assert calls.lookup(address) is handler
    assert calls.find((SYSTEM, path, interface, 'GetStartedDevices')) is handler

    assert handler.argument_shape() == (ArgType.STRING,)
    assert handler.result_shape() == (ArgType.STRING_ARRAY,)
    assert handler.signature() == 's'

    # Exact match only.

    assert calls.find(Address(SESSION, path, interface, 'GetStartedDevices')) is None
    assert calls.find(Address(SYSTEM, path + '/', interface, 'GetStartedDevices')) is None

    with pytest.raises(gkbus.errors.HandlerNotFound):
        calls.lookup(Address(SYSTEM, path, interface, 'getstarteddevices'))


def test_duplicate_registration(calls):

    address = Address(SYSTEM, path, interface, 'SwitchProfile')

    first = calls.register(address, (), EventKind.METHOD, nothing)

    with pytest.raises(gkbus.errors.DuplicateRegistration):
        calls.register(address, (), EventKind.SIGNAL, nothing)

    assert calls.lookup(address) is first
    assert calls.lookup(address).kind is EventKind.METHOD

    # The same address on the other bus is a different handler.

    calls.register(Address(SESSION, path, interface, 'SwitchProfile'), (), EventKind.METHOD, nothing)
    assert len(calls) == 2


def test_unregister(calls):

    address = Address(SYSTEM, path, interface, 'SwitchProfile')
    handler = calls.register(address, (), EventKind.METHOD, nothing)

    assert calls.unregister(address) is handler
    assert len(calls) == 0

    with pytest.raises(gkbus.errors.HandlerNotFound):
        calls.unregister(address)

    calls.register(address, (), EventKind.METHOD, nothing)
    calls.declare_signal(Address(SYSTEM, path, interface, 'DevicesStarted'))
    calls.unregister_all()

    assert len(calls) == 0
    assert calls.declared() == []


def test_handler_validation():

    address = Address(SYSTEM, path, interface, 'Test')

    with pytest.raises(TypeError):
        gkbus.registry.Handler(address, (arg_in('s', 'client_id'),), EventKind.METHOD, nothing)

    with pytest.raises(TypeError):
        gkbus.registry.Handler(address, (), EventKind.METHOD, None)

    with pytest.raises(ValueError):
        gkbus.registry.Handler(address, (arg_out(ArgType.BOOLEAN, 'ok'),), EventKind.SIGNAL, nothing)

    with pytest.raises(ValueError):
        gkbus.registry.Handler(address, (arg_out(ArgType.STRING, 'id', deferred=True),), EventKind.METHOD, nothing)

    with pytest.raises(TypeError):
        gkbus.registry.Handler(address, (), EventKind.ASYNC_METHOD, nothing)

    with pytest.raises(ValueError):
        gkbus.registry.Handler(address, (), EventKind.METHOD, nothing, completion=nothing)


def test_handler_is_immutable():

    address = Address(SYSTEM, path, interface, 'Test')
    handler = gkbus.registry.Handler(address, (), EventKind.METHOD, nothing)

    with pytest.raises(AttributeError):
        handler.kind = EventKind.SIGNAL

    with pytest.raises(AttributeError):
        handler.callback = print


def test_invoke():

    address = Address(SYSTEM, path, interface, 'Test')

    none = gkbus.registry.Handler(address, (), EventKind.METHOD, lambda: 'ignored')
    assert none.invoke(()) == []

    one = gkbus.registry.Handler(address, (arg_in(ArgType.BYTE, 'x'), arg_out(ArgType.BYTE, 'y')),
                                 EventKind.METHOD, lambda x: x + 1)
    assert one.invoke((1,)) == [2]

    arguments = (arg_out(ArgType.BOOLEAN, 'ok'), arg_out(ArgType.STRING, 'text'))
    two = gkbus.registry.Handler(address, arguments, EventKind.METHOD, lambda: (True, 'fine'))
    assert two.invoke(()) == [True, 'fine']

    short = gkbus.registry.Handler(address, arguments, EventKind.METHOD, lambda: (True,))
    with pytest.raises(ValueError):
        short.invoke(())


def test_deferred_shape():

    address = Address(SYSTEM, path, interface, 'RegisterClient')
    arguments = (arg_in(ArgType.STRING, 'session'),
                 arg_out(ArgType.BOOLEAN, 'ok'),
                 arg_out(ArgType.STRING, 'client_id', deferred=True))

    handler = gkbus.registry.Handler(address, arguments, EventKind.ASYNC_METHOD, nothing, completion=nothing)

    assert handler.result_shape() == (ArgType.BOOLEAN,)
    assert handler.deferred_shape() == (ArgType.STRING,)


def test_objects(calls):

    calls.register(Address(SYSTEM, path, interface, 'Test'), (), EventKind.METHOD, nothing)
    calls.register(Address(SYSTEM, '/com/glogik/Daemon/ClientsManager', interface, 'Test'), (), EventKind.METHOD, nothing)
    calls.declare_signal(Address(SYSTEM, '/com/glogik/Daemon/Other', interface, 'Changed'))
    calls.register(Address(SESSION, '/elsewhere', interface, 'Test'), (), EventKind.METHOD, nothing)

    assert calls.objects(SYSTEM) == ['/com/glogik/Daemon/ClientsManager',
                                     '/com/glogik/Daemon/DevicesManager',
                                     '/com/glogik/Daemon/Other']
    assert calls.objects(SESSION) == ['/elsewhere']

    with pytest.raises(gkbus.errors.DuplicateRegistration):
        calls.declare_signal(Address(SYSTEM, '/com/glogik/Daemon/Other', interface, 'Changed'))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

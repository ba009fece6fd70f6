import gkbus
import logging
import pytest

from conftest import SYSTEM, fields_of, method_call, signal
from gkbus.dispatch import Dispatcher, DispatchState
from gkbus.protocol import fields
from gkbus.registry import Address, EventKind, arg_in, arg_out
from gkbus.types import ArgType, GKeyID, MKeyID, MacroEvent


path = '/com/glogik/Daemon/DevicesManager'
interface = 'com.glogik.Daemon.Device1'


def register(calls, member, arguments, callback, kind=EventKind.METHOD):
    return calls.register(Address(SYSTEM, path, interface, member), arguments, kind, callback)


def test_method_reply(calls, dispatcher, outbox):

    received = list()

    def set_macro(client, device, mkey, gkey, macro):
        received.append((client, device, mkey, gkey, macro))
        return True

    register(calls, 'SetDeviceMacro',
             (arg_in(ArgType.STRING, 'client'),
              arg_in(ArgType.STRING, 'device'),
              arg_in(ArgType.MKEY_ID, 'mkey'),
              arg_in(ArgType.GKEY_ID, 'gkey'),
              arg_in(ArgType.MACRO, 'macro'),
              arg_out(ArgType.BOOLEAN, 'ok')),
             set_macro)

    macro = [MacroEvent(30, 1, 0), MacroEvent(30, 0, 40)]
    call = method_call(path, interface, 'SetDeviceMacro',
                       (ArgType.STRING, 'client-1'),
                       (ArgType.STRING, '046d:c22d'),
                       (ArgType.MKEY_ID, MKeyID.M2),
                       (ArgType.GKEY_ID, GKeyID.G7),
                       (ArgType.MACRO, macro))

    context = dispatcher.dispatch(call)

    assert received == [('client-1', '046d:c22d', MKeyID.M2, GKeyID.G7, macro)]

    assert len(outbox) == 1
    reply = outbox[0]

    assert reply.kind == fields.METHOD_RETURN
    assert reply.reply_serial == call.serial
    assert reply.destination == call.sender
    assert reply.sender == 'com.glogik.Daemon'
    assert reply.signature == 'b'
    assert fields_of(reply) == [True]

    assert context.states == [DispatchState.IDLE,
                              DispatchState.RESOLVING,
                              DispatchState.EXTRACTING_ARGS,
                              DispatchState.INVOKING,
                              DispatchState.BUILDING_REPLY,
                              DispatchState.SENDING,
                              DispatchState.IDLE]
    assert dispatcher.state == DispatchState.IDLE


def test_signal_no_reply(calls, dispatcher, outbox):

    received = list()
    register(calls, 'SomethingChanged', (arg_in(ArgType.STRING, 'client'),), received.append, EventKind.SIGNAL)

    context = dispatcher.dispatch(signal(path, interface, 'SomethingChanged', (ArgType.STRING, 'client-1')))

    assert received == ['client-1']
    assert len(outbox) == 0
    assert DispatchState.BUILDING_REPLY not in context.states
    assert context.state == DispatchState.IDLE


def test_signal_failure_no_reply(calls, dispatcher, outbox, caplog):

    def broken(client):
        raise RuntimeError('broken handler')

    register(calls, 'SomethingChanged', (arg_in(ArgType.STRING, 'client'),), broken, EventKind.SIGNAL)

    with caplog.at_level(logging.ERROR, logger='gkbus.dispatch'):
        context = dispatcher.dispatch(signal(path, interface, 'SomethingChanged', (ArgType.STRING, 'client-1')))

    assert len(outbox) == 0
    assert isinstance(context.error, RuntimeError)
    assert 'broken handler' in caplog.text

    # Missing arguments do not produce a reply either.

    context = dispatcher.dispatch(signal(path, interface, 'SomethingChanged'))
    assert len(outbox) == 0
    assert isinstance(context.error, gkbus.errors.MissingArgument)


def test_unmatched_signal_dropped(dispatcher, outbox):

    context = dispatcher.dispatch(signal(path, interface, 'NobodyListens'))

    assert context.handler is None
    assert len(outbox) == 0


def test_unknown_method(dispatcher, outbox):

    with pytest.raises(gkbus.errors.HandlerNotFound):
        dispatcher.dispatch(method_call(path, interface, 'NoSuchMethod'))

    assert len(outbox) == 0


def test_kind_mismatch(calls, dispatcher, outbox):

    register(calls, 'SomethingChanged', (), lambda: None, EventKind.SIGNAL)
    register(calls, 'SwitchProfile', (), lambda: None)

    with pytest.raises(gkbus.errors.HandlerNotFound):
        dispatcher.dispatch(method_call(path, interface, 'SomethingChanged'))

    context = dispatcher.dispatch(signal(path, interface, 'SwitchProfile'))
    assert context.handler is None
    assert len(outbox) == 0


def test_extraction_failure(calls, dispatcher, outbox):

    invoked = list()

    def get_macro(client, device, mkey, gkey):
        invoked.append(True)
        return []

    register(calls, 'GetDeviceMacro',
             (arg_in(ArgType.STRING, 'client'),
              arg_in(ArgType.STRING, 'device'),
              arg_in(ArgType.MKEY_ID, 'mkey'),
              arg_in(ArgType.GKEY_ID, 'gkey'),
              arg_out(ArgType.MACRO, 'macro')),
             get_macro)

    # The G-key is missing.

    call = method_call(path, interface, 'GetDeviceMacro',
                       (ArgType.STRING, 'client-1'),
                       (ArgType.STRING, '046d:c22d'),
                       (ArgType.MKEY_ID, MKeyID.M1))

    context = dispatcher.dispatch(call)

    assert invoked == []
    assert isinstance(context.error, gkbus.errors.ReconstructionFailed)

    assert len(outbox) == 1
    error = outbox[0]

    assert error.kind == fields.ERROR
    assert error.reply_serial == call.serial
    assert error.error_name == fields.ERROR_FAILED
    assert 'GKeyID' in error.error_text
    assert fields_of(error)[1] == 'ReconstructionFailed'
    assert context.states[-2:] == [DispatchState.ERROR_REPLY, DispatchState.IDLE]

    # An out of range M-key.

    call = method_call(path, interface, 'GetDeviceMacro',
                       (ArgType.STRING, 'client-1'),
                       (ArgType.STRING, '046d:c22d'),
                       (ArgType.BYTE, 9),
                       (ArgType.GKEY_ID, GKeyID.G1))

    context = dispatcher.dispatch(call)

    assert invoked == []
    assert isinstance(context.error, gkbus.errors.MalformedMessage)
    assert len(outbox.replies(call)) == 1
    assert outbox.replies(call)[0].kind == fields.ERROR


def test_invocation_failure(calls, dispatcher, outbox):

    def fail(client):
        raise KeyError('unknown device')

    register(calls, 'GetStartedDevices', (arg_in(ArgType.STRING, 'client'), arg_out(ArgType.STRING_ARRAY, 'devices')), fail)

    call = method_call(path, interface, 'GetStartedDevices', (ArgType.STRING, 'client-1'))
    context = dispatcher.dispatch(call)

    assert len(outbox) == 1
    assert outbox[0].kind == fields.ERROR
    assert 'unknown device' in outbox[0].error_text
    assert fields_of(outbox[0])[1] == 'KeyError'
    assert DispatchState.BUILDING_REPLY not in context.states


def test_error_text_defaults_to_class_name(calls, dispatcher, outbox):

    def fail():
        raise RuntimeError()

    register(calls, 'Fail', (), fail)
    dispatcher.dispatch(method_call(path, interface, 'Fail'))

    assert outbox[0].error_text == 'RuntimeError'


def test_bad_result(calls, dispatcher, outbox):

    # A result that cannot be encoded is reported, never half sent.

    register(calls, 'GetStartedDevices', (arg_out(ArgType.STRING_ARRAY, 'devices'),), lambda: [1, 2])

    call = method_call(path, interface, 'GetStartedDevices')
    context = dispatcher.dispatch(call)

    assert len(outbox) == 1
    assert outbox[0].kind == fields.ERROR
    assert context.reply.discarded
    assert not context.reply.sent


def test_build_failure(calls, outbox):

    dispatcher = Dispatcher(calls, SYSTEM, outbox.send, 'com.glogik.Daemon', capacity=2)

    register(calls, 'GetDeviceMKeys', (arg_out(ArgType.MKEY_ID_ARRAY, 'keys'),), lambda: [MKeyID.M0, MKeyID.M1, MKeyID.M2])
    register(calls, 'GetProfile', (arg_out(ArgType.MKEY_ID, 'key'),), lambda: MKeyID.M1)

    call = method_call(path, interface, 'GetDeviceMKeys')
    context = dispatcher.dispatch(call)

    assert isinstance(context.error, gkbus.errors.BuildFailure)
    assert context.reply.message.hosed
    assert context.reply.discarded

    assert len(outbox) == 1
    assert outbox[0].kind == fields.ERROR
    assert outbox[0].reply_serial == call.serial

    # The next dispatch is unaffected.

    call = method_call(path, interface, 'GetProfile')
    dispatcher.dispatch(call)

    assert outbox[1].kind == fields.METHOD_RETURN
    assert fields_of(outbox[1]) == [MKeyID.M1]


def test_send_failure(calls, dispatcher, outbox):

    register(calls, 'Ping', (arg_out(ArgType.BOOLEAN, 'ok'),), lambda: True)
    outbox.failing = True

    with pytest.raises(gkbus.transport.TransportError):
        dispatcher.dispatch(method_call(path, interface, 'Ping'))

    assert len(outbox) == 0
    assert dispatcher.state == DispatchState.IDLE


def test_exactly_one_reply(calls, dispatcher, outbox):

    def maybe(value):
        if value == 0:
            raise ValueError('zero')
        if value == 1:
            return 'not a bool'
        return True

    register(calls, 'Maybe', (arg_in(ArgType.BYTE, 'value'), arg_out(ArgType.BOOLEAN, 'ok')), maybe)

    sent = list()
    for value in (0, 1, 2):
        call = method_call(path, interface, 'Maybe', (ArgType.BYTE, value))
        sent.append(call)
        dispatcher.dispatch(call)

    # And one without its argument at all.

    call = method_call(path, interface, 'Maybe')
    sent.append(call)
    dispatcher.dispatch(call)

    kinds = list()
    for call in sent:
        replies = outbox.replies(call)
        assert len(replies) == 1
        kinds.append(replies[0].kind)

    assert kinds == [fields.ERROR, fields.ERROR, fields.METHOD_RETURN, fields.ERROR]
    assert len(outbox) == len(sent)


def test_residue_logged(calls, dispatcher, outbox, caplog):

    register(calls, 'Ping', (arg_out(ArgType.BOOLEAN, 'ok'),), lambda: True)

    with caplog.at_level(logging.WARNING, logger='gkbus.dispatch'):
        context = dispatcher.dispatch(method_call(path, interface, 'Ping', (ArgType.BYTE, 5)))

    assert 'left unread' in caplog.text
    assert context.buffers.residue() == dict()
    assert outbox[0].kind == fields.METHOD_RETURN


def test_introspect(calls, dispatcher, outbox):

    register(calls, 'Ping', (arg_out(ArgType.BOOLEAN, 'ok'),), lambda: True)

    call = method_call(path, fields.INTROSPECTABLE, fields.INTROSPECT)
    dispatcher.dispatch(call)

    assert len(outbox) == 1
    reply = outbox[0]

    assert reply.kind == fields.METHOD_RETURN
    assert reply.signature == 's'

    document = fields_of(reply)[0]
    assert '<method name="Ping">' in document
    assert fields.INTROSPECTABLE in document

    # The built-in handler is not registered.

    assert len(calls) == 1


def test_dispatch_rejects_replies(dispatcher):

    reply = gkbus.protocol.MessageBuilder(':1.7').reply(method_call(path, interface, 'Ping')).build()

    with pytest.raises(ValueError):
        dispatcher.dispatch(reply)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

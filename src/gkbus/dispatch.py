""" Dispatch of inbound method calls and signals to registered handlers.

    Each inbound message goes through the same sequence of states::

        IDLE -> RESOLVING -> EXTRACTING_ARGS -> INVOKING -> BUILDING_REPLY
             -> SENDING -> IDLE

    A signal leaves after INVOKING, and any failure along the way leaves
    through ERROR_REPLY for a method call, or straight back to IDLE for a
    signal. A method call always gets exactly one reply, success or error;
    a signal never gets one.
"""

import enum
import logging
import threading

from . import codec
from . import errors
from .buffers import ArgumentBuffers
from .completer import AsyncReplyCompleter
from .protocol import fields
from .protocol.builder import MessageBuilder
from .registry import Address, EventKind, Handler, arg_out
from .transport.base import TransportError
from .types import ArgType

log = logging.getLogger(__name__)


class DispatchState(enum.Enum):
    IDLE = 'idle'
    RESOLVING = 'resolving'
    EXTRACTING_ARGS = 'extracting_args'
    INVOKING = 'invoking'
    BUILDING_REPLY = 'building_reply'
    SENDING = 'sending'
    ERROR_REPLY = 'error_reply'


class Reply:
    """ The reply to one method call, accumulated field by field and sent
        at most once. A reply that failed to build is discarded, never
        sent.
    """

    def __init__(self, call, sender=None, capacity=None):

        self.call = call
        self.message = MessageBuilder(sender).reply(call).capacity(capacity).build()
        self.writer = self.message.writer()

        self.sent = False
        self.discarded = False


    def append(self, type, value):
        codec.append(self.writer, type, value)


    def append_values(self, types, values):
        codec.append_values(self.writer, types, values)


    def discard(self):

        if self.sent:
            return

        self.discarded = True
        self.writer = None


    def seal(self):
        """ Mark the reply as sent, and return the message to hand to the
            transport. Raise :class:`gkbus.errors.BuildFailure` if the reply
            was discarded or its message is hosed.
        """

        if self.sent:
            raise errors.BuildFailure('reply to #%s was already sent' % (self.call.serial))

        if self.discarded:
            raise errors.BuildFailure('reply to #%s was discarded' % (self.call.serial))

        self.message.seal()
        self.sent = True
        return self.message


# end of class Reply



class DispatchContext:
    """ Everything belonging to the dispatch of one inbound message: the
        message itself, the handler it resolved to, its argument buffers,
        its reply, and the states it went through.
    """

    def __init__(self, message):

        self.message = message
        self.handler = None
        self.buffers = None
        self.arguments = None
        self.result = None
        self.reply = None
        self.completer = None
        self.error = None
        self.states = [DispatchState.IDLE]


    @property
    def state(self):
        return self.states[-1]


    def is_signal(self):
        return self.message.kind == fields.SIGNAL


# end of class DispatchContext



class Dispatcher:
    """ Dispatch inbound messages for one bus connection. The *calls*
        registry is consulted for every message; *bus* is the bus selector
        of the connection, and *send* the thread-safe callable that hands a
        message to the transport. The *sender* is stamped on every reply.

        The optional *capacity* limits the number of fields of every
        successful reply, see :class:`gkbus.protocol.message.Message`.
    """

    def __init__(self, calls, bus, send, sender=None, capacity=None):

        self.calls = calls
        self.bus = bus
        self.send_function = send
        self.sender = sender
        self.capacity = capacity

        self.state = DispatchState.IDLE
        self._send_lock = threading.Lock()


    def _transition(self, context, state):

        context.states.append(state)
        self.state = state


    def dispatch(self, message):
        """ Dispatch one inbound method call or signal, and return the
            :class:`DispatchContext` describing what happened. A method call
            with no matching handler raises
            :class:`gkbus.errors.HandlerNotFound` without replying; every
            other outcome of a method call is exactly one reply.
        """

        if message.kind != fields.METHOD_CALL and message.kind != fields.SIGNAL:
            raise ValueError('cannot dispatch a %s message' % (message.kind))

        context = DispatchContext(message)

        try:
            self._dispatch(context)
        finally:
            if context.state != DispatchState.IDLE:
                context.states.append(DispatchState.IDLE)
            self.state = DispatchState.IDLE

        return context


    def _dispatch(self, context):

        message = context.message

        self._transition(context, DispatchState.RESOLVING)
        handler = self.resolve(message)

        if handler is None:
            if context.is_signal():
                log.debug('no handler for signal %s.%s on %s, dropped', message.interface, message.member, message.path)
                return

            raise errors.HandlerNotFound('no method %s.%s on %s' % (message.interface, message.member, message.path))

        context.handler = handler

        try:
            self._transition(context, DispatchState.EXTRACTING_ARGS)
            context.buffers = ArgumentBuffers()
            context.buffers.fill(message)
            context.arguments = codec.extract(context.buffers, handler.argument_shape())

            residue = context.buffers.residue()
            if residue:
                log.warning('%s: arguments left unread: %s', message.member, repr(residue))
                context.buffers.clear()

            self._transition(context, DispatchState.INVOKING)
            context.result = handler.invoke(context.arguments)

        except Exception as e:
            context.error = e

            if context.is_signal():
                log.error('%s signal handler failed: %s', message.member, str(e) or type(e).__name__)
                return

            log.warning('%s call failed: %s', message.member, str(e) or type(e).__name__)
            self._transition(context, DispatchState.ERROR_REPLY)
            self.send_error(message, e)
            return

        if context.is_signal():
            return

        self._transition(context, DispatchState.BUILDING_REPLY)
        reply = Reply(message, self.sender, self.capacity)
        context.reply = reply

        try:
            reply.append_values(handler.result_shape(), context.result)
        except Exception as e:
            context.error = e
            reply.discard()
            log.warning('%s reply build failed: %s', message.member, str(e) or type(e).__name__)
            self._transition(context, DispatchState.ERROR_REPLY)
            self.send_error(message, e)
            return

        if handler.kind == EventKind.ASYNC_METHOD:
            self._complete(context, reply)
            return

        self._transition(context, DispatchState.SENDING)
        if not self.send_reply(reply):
            self._transition(context, DispatchState.ERROR_REPLY)


    def _complete(self, context, reply):
        """ Hand the open reply to the completion hook of the handler. The
            hook may commit right away, or hold on to the completer and
            commit later, from any thread.
        """

        completer = AsyncReplyCompleter(reply, context.handler, self.send_reply, self.discard_reply)
        context.completer = completer

        try:
            context.handler.complete(completer)
        except Exception as e:
            context.error = e

            if completer.done:
                log.error('%s completion hook failed after its reply was finished: %s', context.message.member, e)
                return

            completer.abandon(e)
            return

        if completer.committed:
            self._transition(context, DispatchState.SENDING)


    def resolve(self, message):
        """ Return the handler for the address of *message*, or None if
            there is none of the right kind.
        """

        address = Address(self.bus, message.path, message.interface, message.member)
        handler = self.calls.find(address)

        if handler is None:
            if message.kind == fields.METHOD_CALL and message.interface == fields.INTROSPECTABLE and message.member == fields.INTROSPECT:
                return self._introspection_handler(address)
            return None

        if message.kind == fields.SIGNAL:
            matched = handler.kind == EventKind.SIGNAL
        else:
            matched = handler.kind != EventKind.SIGNAL

        if matched:
            return handler

        log.debug('%s message does not match the %s handler for %s', message.kind, handler.kind.name, message.member)
        return None


    def _introspection_handler(self, address):

        def introspect():
            return self.calls.build_introspection(self.bus, address.path)

        arguments = (arg_out(ArgType.STRING, 'xml_data'),)
        return Handler(address, arguments, EventKind.METHOD, introspect, introspectable=False)


    def _send(self, message):

        self._send_lock.acquire()
        try:
            self.send_function(message)
        finally:
            self._send_lock.release()


    def send_reply(self, reply):
        """ Send *reply*. If it cannot be sealed or sent, discard it and send
            an error reply instead. Return True if the reply itself went out.
        """

        try:
            message = reply.seal()
            self._send(message)
        except Exception as e:
            log.warning('%s reply send failed: %s', reply.call.member, str(e) or type(e).__name__)
            reply.sent = False
            reply.discard()
            self.send_error(reply.call, e)
            return False

        return True


    def discard_reply(self, reply, reason):
        reply.discard()
        self.send_error(reply.call, reason)


    def send_error(self, call, reason, name=fields.ERROR_FAILED):
        """ Send an error reply to *call*. The *reason* is an exception or a
            string; an exception contributes its class name as a second
            field. If even the error reply cannot be sent, the connection is
            presumed unusable and :class:`TransportError` is raised.
        """

        if isinstance(reason, BaseException):
            text = str(reason) or type(reason).__name__
            detail = type(reason).__name__
        else:
            text = str(reason)
            detail = None

        try:
            error = MessageBuilder(self.sender).error(call, name, text).build()
            if detail is not None:
                error.writer().append(fields.STRING, detail)

            error.seal()
            self._send(error)
        except Exception as e:
            log.error('unable to send error reply to #%s: %s', call.serial, e)
            raise TransportError('unable to send error reply to #%s: %s' % (call.serial, e)) from e


# end of class Dispatcher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

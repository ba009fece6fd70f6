""" One endpoint on one bus, with everything needed to serve handlers from
    a :class:`gkbus.registry.CallRegistry` and to call out to other
    endpoints.
"""

import logging
import queue
import threading

from . import codec
from . import errors
from .buffers import ArgumentBuffers
from .dispatch import Dispatcher
from .protocol import fields
from .protocol.builder import MessageBuilder
from .transport.base import TransportError
from .transport.session import CallSession

log = logging.getLogger(__name__)


class Connection:
    """ Bind one *transport* endpoint and one *bus* selector to a *calls*
        registry. Once :func:`open` is called a background thread receives
        every inbound message: replies are matched with outstanding remote
        calls right away, method calls and signals are queued for a single
        dispatch thread, and processed one at a time in arrival order.

        If the dispatch thread hits a :class:`TransportError`, the
        connection is presumed unusable: the exception is kept as
        :attr:`failure` and the connection stops.
    """

    poll_interval = 0.1
    timeout = 60

    def __init__(self, transport, calls, bus, capacity=None):

        self.transport = transport
        self.calls = calls
        self.bus = bus
        self.failure = None

        self.dispatcher = Dispatcher(calls, bus, self.send, transport.name, capacity)
        self.session = CallSession()

        self._inbound = queue.SimpleQueue()
        self._running = False
        self._receiver = None
        self._worker = None


    def __repr__(self):
        return 'Connection(%s on %s)' % (self.name, self.bus.value)


    @property
    def name(self):
        return self.transport.name


    @property
    def is_open(self):
        return self._running and self.transport.is_open


    def open(self):

        if self._running:
            return

        self.transport.open()
        self._running = True

        self._receiver = threading.Thread(target=self._receive, daemon=True, name='gkbus.receive.' + str(self.name))
        self._worker = threading.Thread(target=self._dispatch, daemon=True, name='gkbus.dispatch.' + str(self.name))
        self._receiver.start()
        self._worker.start()

        log.debug('%s connected to the %s bus', self.name, self.bus.value)


    def close(self):

        if not self._running:
            return

        self._running = False
        self._inbound.put(None)

        current = threading.current_thread()
        for thread in (self._receiver, self._worker):
            if thread is not None and thread is not current:
                thread.join()

        self.transport.close()
        self.session.fail_all()

        log.debug('%s disconnected from the %s bus', self.name, self.bus.value)


    def _receive(self):

        while self._running:
            message = self.transport.recv(self.poll_interval)

            if message is None:
                continue

            if message.is_reply():
                if not self.session.handle_incoming(message):
                    log.debug('%s: unexpected %s for #%s', self.name, message.kind, message.reply_serial)
                continue

            self._inbound.put(message)


    def _dispatch(self):

        while self._running:
            message = self._inbound.get()

            if message is None:
                break

            try:
                self.process(message)
            except TransportError as e:
                log.error('%s: connection is no longer usable: %s', self.name, e)
                self.failure = e
                self._running = False
                break
            except Exception:
                log.exception('%s: unable to process %s #%s', self.name, message.kind, message.serial)


    def process(self, message):
        """ Dispatch one inbound method call or signal synchronously, and
            return its :class:`gkbus.dispatch.DispatchContext`. A method call
            without a handler is answered with an UnknownMethod error reply,
            and None is returned.
        """

        try:
            return self.dispatcher.dispatch(message)
        except errors.HandlerNotFound as e:
            log.debug('%s: %s', self.name, e)
            self.dispatcher.send_error(message, e, fields.ERROR_UNKNOWN_METHOD)
            return None


    def send(self, message):
        """ Hand a message to the transport. The message is sealed first,
            if it was not already.
        """

        if not message.sealed:
            message.seal()

        self.transport.send(message)


    def _build(self, builder, arguments):

        message = builder.build()
        writer = message.writer()

        for type, value in arguments:
            codec.append(writer, type, value)

        return message


    def call(self, destination, path, interface, member, *arguments, timeout=None):
        """ Call a remote method, and wait for its reply. Every positional
            argument after *member* is a (:class:`gkbus.types.ArgType`,
            value) pair. Return the :class:`gkbus.buffers.ArgumentBuffers`
            filled from the reply; raise
            :class:`gkbus.errors.RemoteCallFailed` for an error reply or no
            reply at all.
        """

        if timeout is None:
            timeout = self.timeout

        builder = MessageBuilder(self.name).method_call(path, interface, member).to(destination)
        message = self._build(builder, arguments)

        pending = self.session.track(message)

        try:
            self.send(message)
        except Exception:
            self.session.forget(pending)
            raise

        response = pending.wait(timeout)

        if response is None:
            self.session.forget(pending)
            raise errors.RemoteCallFailed('%s: no reply from %s within %s seconds' % (member, destination, timeout))

        if response.kind == fields.ERROR:
            raise errors.RemoteCallFailed(response.error_text or response.error_name, response.error_name)

        return ArgumentBuffers(response)


    def emit_signal(self, path, interface, member, *arguments):
        """ Broadcast a signal to every other endpoint on the bus.
        """

        builder = MessageBuilder(self.name).signal(path, interface, member)
        self.send(self._build(builder, arguments))


    def send_targets_signal(self, destination, path, interface, member, *arguments):
        """ Send a signal to the single endpoint *destination*.
        """

        builder = MessageBuilder(self.name).signal(path, interface, member).to(destination)
        self.send(self._build(builder, arguments))


# end of class Connection


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

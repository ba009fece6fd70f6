"""ZeroMQ message bus.

One daemon owns the bus: its :class:`Server` binds a ROUTER socket for
calls, replies and targeted signals, and a PUB socket for broadcast
signals. Every other process attaches a :class:`Client`, which connects a
DEALER socket (identified by the client's bus name) and a SUB socket.

All socket traffic happens on one background thread per endpoint; sends
from any other thread are queued and the background thread is woken up
through an inproc PAIR socket.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Optional, Set, Tuple

import zmq

from ... import errors
from ...protocol import fields
from ...protocol.message import Message
from ..base import Transport, TransportConnectionError, TransportPortError
from .framing import from_frames, to_frames

log = logging.getLogger(__name__)


minimum_port = 10079
maximum_port = 13679
zmq_context = zmq.Context.instance()

_ids = itertools.count(1)


class _Endpoint(Transport):
    """Shared plumbing: outbound queue, wake-up signal, inbound queue, and
    the background I/O thread."""

    def __init__(self, name: str):
        self.name = name
        self.shutdown = False
        self.thread: Optional[threading.Thread] = None

        self._inbound: "queue.SimpleQueue[Optional[Message]]" = queue.SimpleQueue()
        self._outbox: "queue.SimpleQueue[Message]" = queue.SimpleQueue()
        self._signal_rx = None
        self._signal_tx = None
        self._signal_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.thread is not None and not self.shutdown

    def _sockets(self) -> Tuple[zmq.Socket, ...]:
        raise NotImplementedError

    def _bind_signal(self) -> None:
        internal = f"inproc://gkbus.{type(self).__name__}:signal:{next(_ids)}"
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)

    def _start(self) -> None:
        self.shutdown = False
        self.thread = threading.Thread(target=self.run, daemon=True, name=f"gkbus.zmq.{self.name}")
        self.thread.start()

    def _wake(self) -> None:
        with self._signal_lock:
            self._signal_tx.send(b"")

    def send(self, msg: Message) -> None:
        if not self.is_open:
            raise TransportConnectionError(f"endpoint {self.name!r} is closed")

        if msg.hosed:
            raise errors.BuildFailure(f"refusing to send hosed message #{msg.serial}")

        if msg.sender is None:
            msg.sender = self.name

        self._outbox.put(msg)
        self._wake()

    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            return self._inbound.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        if not self.is_open:
            return

        self.shutdown = True
        self._wake()
        self.thread.join()
        self._signal_tx.close()
        self._inbound.put(None)

    def _receive(self, socket: zmq.Socket) -> Optional[Tuple[Tuple[bytes, ...], Message]]:
        parts = socket.recv_multipart()

        try:
            return from_frames(parts)
        except errors.MalformedMessage as e:
            log.warning("%s: dropping malformed message: %s", self.name, e)
            return None

    def _handle_outgoing(self, msg: Message) -> None:
        raise NotImplementedError

    def _handle_incoming(self, socket: zmq.Socket) -> None:
        raise NotImplementedError

    def _drain_outbox(self) -> None:
        # Clear one signal and send one message.
        self._signal_rx.recv(flags=zmq.NOBLOCK)

        try:
            msg = self._outbox.get(block=False)
        except queue.Empty:
            return

        try:
            self._handle_outgoing(msg)
        except zmq.ZMQError as e:
            log.warning("%s: unable to send %s #%s to %s: %s", self.name, msg.kind, msg.serial, msg.destination, e)

    def run(self) -> None:
        poller = zmq.Poller()
        poller.register(self._signal_rx, zmq.POLLIN)
        for socket in self._sockets():
            poller.register(socket, zmq.POLLIN)

        while not self.shutdown:
            for active, _flag in poller.poll(10000):
                if active == self._signal_rx:
                    self._drain_outbox()
                else:
                    self._handle_incoming(active)

        for socket in self._sockets():
            socket.close()
        self._signal_rx.close()


class Server(_Endpoint):
    """The daemon end of the bus: ROUTER for directed traffic, PUB for
    broadcast signals. Both ports are chosen from the configured range if
    not given, skipping any port in *avoid*."""

    def __init__(
        self,
        name: str,
        address: str = "127.0.0.1",
        port: Optional[int] = None,
        pub: Optional[int] = None,
        avoid: Optional[Set[int]] = None,
        minimum: int = minimum_port,
        maximum: int = maximum_port,
    ):
        super().__init__(name)
        self.address = address
        self.port = int(port) if port is not None else None
        self.pub_port = int(pub) if pub is not None else None
        self.avoid = set(avoid or set())
        self.minimum = minimum
        self.maximum = maximum

        self.socket = None
        self.pub = None

    def _bind(self, socket: zmq.Socket, port: Optional[int]) -> int:
        if port is not None:
            try:
                socket.bind(f"tcp://{self.address}:{port}")
            except zmq.ZMQError as exc:
                raise TransportPortError(f"port already in use: {port}") from exc
            return port

        for candidate in range(self.minimum, self.maximum + 1):
            if candidate in self.avoid:
                continue
            try:
                socket.bind(f"tcp://{self.address}:{candidate}")
            except zmq.ZMQError:
                continue
            self.avoid.add(candidate)
            return candidate

        raise TransportPortError(f"no ports available in range {self.minimum}:{self.maximum}")

    def open(self) -> None:
        if self.is_open:
            return

        self.socket = zmq_context.socket(zmq.ROUTER)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.setsockopt(zmq.ROUTER_MANDATORY, 1)

        self.pub = zmq_context.socket(zmq.PUB)
        self.pub.setsockopt(zmq.LINGER, 0)

        try:
            self.port = self._bind(self.socket, self.port)
            self.pub_port = self._bind(self.pub, self.pub_port)
        except TransportPortError:
            self.socket.close()
            self.pub.close()
            raise

        self._bind_signal()
        self._start()
        log.info("%s listening on %s ports %d/%d", self.name, self.address, self.port, self.pub_port)

    def _sockets(self) -> Tuple[zmq.Socket, ...]:
        return (self.socket, self.pub)

    def _handle_outgoing(self, msg: Message) -> None:
        if msg.destination is None and msg.kind == fields.SIGNAL:
            self.pub.send_multipart(to_frames(msg))
            return

        if msg.destination is None:
            log.warning("%s: dropping %s #%s without a destination", self.name, msg.kind, msg.serial)
            return

        self.socket.send_multipart(to_frames(msg, (msg.destination.encode(),)))

    def _handle_incoming(self, socket: zmq.Socket) -> None:
        received = self._receive(socket)
        if received is None:
            return

        prefix, msg = received

        # The ROUTER identity is the authoritative sender name.
        msg.sender = prefix[0].decode()
        self._inbound.put(msg)


class Client(_Endpoint):
    """A non-daemon end of the bus, attached to the :class:`Server` at
    *address* on the ROUTER *port* and the PUB port *pub*."""

    def __init__(self, name: str, address: str, port: int, pub: int):
        super().__init__(name)
        self.address = address
        self.port = int(port)
        self.pub_port = int(pub)

        self.socket = None
        self.sub = None

    def open(self) -> None:
        if self.is_open:
            return

        self.socket = zmq_context.socket(zmq.DEALER)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.identity = self.name.encode()
        self.socket.connect(f"tcp://{self.address}:{self.port}")

        self.sub = zmq_context.socket(zmq.SUB)
        self.sub.setsockopt(zmq.LINGER, 0)
        self.sub.setsockopt(zmq.SUBSCRIBE, b"")
        self.sub.connect(f"tcp://{self.address}:{self.pub_port}")

        self._bind_signal()
        self._start()

    def _sockets(self) -> Tuple[zmq.Socket, ...]:
        return (self.socket, self.sub)

    def _handle_outgoing(self, msg: Message) -> None:
        # Everything goes through the server, which is the only peer.
        self.socket.send_multipart(to_frames(msg))

    def _handle_incoming(self, socket: zmq.Socket) -> None:
        received = self._receive(socket)
        if received is None:
            return

        _prefix, msg = received
        self._inbound.put(msg)

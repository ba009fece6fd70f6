"""In-process message bus.

Endpoints attached to the same :class:`Bus` exchange messages through
per-endpoint queues, with the routing rules of the network transports:
a message with a destination goes to that endpoint only, and a signal
without one goes to every endpoint but its sender.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Dict, List, Optional

from .. import errors
from ..protocol import fields
from ..protocol.message import Message
from .base import Transport, TransportConnectionError

log = logging.getLogger(__name__)


class Bus:
    """One in-process bus. Every message moved by it is also recorded, in
    order, in :attr:`sent`."""

    def __init__(self):
        self.sent: List[Message] = []
        self._endpoints: Dict[str, Endpoint] = {}
        self._lock = threading.Lock()
        self._names = itertools.count(1)

    def endpoint(self, name: Optional[str] = None) -> "Endpoint":
        if name is None:
            name = ':1.%d' % (next(self._names))
        return Endpoint(self, name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._endpoints)

    def _attach(self, endpoint: "Endpoint") -> None:
        with self._lock:
            if endpoint.name in self._endpoints:
                raise TransportConnectionError(f"name already taken on the bus: {endpoint.name!r}")
            self._endpoints[endpoint.name] = endpoint

    def _detach(self, endpoint: "Endpoint") -> None:
        with self._lock:
            if self._endpoints.get(endpoint.name) is endpoint:
                del self._endpoints[endpoint.name]

    def deliver(self, msg: Message) -> None:

        with self._lock:
            self.sent.append(msg)
            endpoints = dict(self._endpoints)

        if msg.destination is None:
            if msg.kind != fields.SIGNAL:
                raise TransportConnectionError(f"{msg.kind} message without a destination")

            for name, endpoint in endpoints.items():
                if name != msg.sender:
                    endpoint._inbound.put(msg)
            return

        endpoint = endpoints.get(msg.destination)

        if endpoint is None:
            if msg.kind == fields.METHOD_CALL:
                raise TransportConnectionError(f"no endpoint named {msg.destination!r} on the bus")
            log.debug("dropping %s for vanished endpoint %s", msg.kind, msg.destination)
            return

        endpoint._inbound.put(msg)


class Endpoint(Transport):
    """A named endpoint on a loopback :class:`Bus`."""

    def __init__(self, bus: Bus, name: str):
        self.bus = bus
        self.name = name
        self._inbound: "queue.Queue[Optional[Message]]" = queue.Queue()
        self._open = False

    def open(self) -> None:
        if self._open:
            return
        self.bus._attach(self)
        self._open = True

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.bus._detach(self)
        # Wake up any blocked recv().
        self._inbound.put(None)

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, msg: Message) -> None:
        if not self._open:
            raise TransportConnectionError(f"endpoint {self.name!r} is closed")

        if msg.hosed:
            raise errors.BuildFailure(f"refusing to send hosed message #{msg.serial}")

        if msg.sender is None:
            msg.sender = self.name

        self.bus.deliver(msg)

    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            return self._inbound.get(timeout=timeout)
        except queue.Empty:
            return None

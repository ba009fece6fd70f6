"""Transport interface.

Every bus backend moves :class:`gkbus.protocol.message.Message` objects
between named endpoints. It lives outside :mod:`gkbus.protocol` so the
message model remains transport-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..protocol.message import Message


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors, including a connection
    that can no longer deliver even an error reply."""


class TransportTimeout(TransportError):
    """A remote call did not receive a timely reply."""


class TransportConnectionError(TransportError):
    """The bus could not be reached, or the endpoint was closed."""


class TransportPortError(TransportError):
    """No port in the configured range could be bound."""


class Transport(ABC):
    """One endpoint on a message bus.

    An endpoint has a unique *name* on its bus; messages with that name as
    their destination are delivered to it, and broadcast signals are
    delivered to every endpoint but the sender.
    """

    name: Optional[str] = None

    @abstractmethod
    def open(self) -> None:
        """Attach this endpoint to the bus."""

    @abstractmethod
    def close(self) -> None:
        """Detach this endpoint from the bus."""

    @abstractmethod
    def send(self, msg: Message) -> None:
        """Send a sealed Message. Thread-safe."""

    @abstractmethod
    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        """Return the next inbound Message, or None on timeout."""

    @property
    def is_open(self) -> bool:
        """Whether the endpoint is currently attached."""
        return False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()

"""Correlation of remote method calls with their replies."""

from __future__ import annotations

import threading
from typing import Dict, Optional

from ..protocol.message import Message


class PendingCall:
    """Client-side helper waiting for the reply to one method call."""

    def __init__(self, call: Message):
        self.call = call
        self.response: Optional[Message] = None
        self.rep_event = threading.Event()

    @property
    def serial(self) -> int:
        return self.call.serial

    def wait(self, timeout: Optional[float] = 60) -> Optional[Message]:
        self.rep_event.wait(timeout)
        return self.response

    def _complete(self, response: Message) -> None:
        self.response = response
        self.rep_event.set()


class CallSession:
    """Outstanding calls of one endpoint, keyed by call serial."""

    def __init__(self):
        self._pending: Dict[int, PendingCall] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._pending)

    def track(self, call: Message) -> PendingCall:
        pending = PendingCall(call)
        with self._lock:
            self._pending[pending.serial] = pending
        return pending

    def forget(self, pending: PendingCall) -> None:
        with self._lock:
            self._pending.pop(pending.serial, None)

    def handle_incoming(self, msg: Message) -> bool:
        """Complete the PendingCall answered by *msg*. Return False if
        nothing was waiting for it."""

        with self._lock:
            pending = self._pending.pop(msg.reply_serial, None)

        if pending is None:
            return False

        pending._complete(msg)
        return True

    def fail_all(self) -> None:
        """Release every waiter; they see no response."""

        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()

        for waiting in pending:
            waiting.rep_event.set()

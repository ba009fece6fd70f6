"""ZMQ multipart framing for gkbus messages.

ROUTER <-> DEALER (calls, replies, errors, targeted signals)
    (optional routing prefix...), version, frame

PUB -> SUB (broadcast signals)
    version, frame

The frame itself is produced by :func:`gkbus.protocol.wire.pack_frame`.
"""

from __future__ import annotations

from typing import Sequence, Tuple

from ... import errors
from ...protocol.message import Message
from ...protocol.wire import VERSION, pack_frame, unpack_frame


_VERSION_BYTES = ("gk%d" % VERSION).encode()


def to_frames(msg: Message, prefix: Tuple[bytes, ...] = ()) -> Tuple[bytes, ...]:
    """Encode a Message as multipart frames, behind an optional ROUTER
    identity *prefix*."""

    return tuple(prefix) + (_VERSION_BYTES, pack_frame(msg))


def from_frames(parts: Sequence[bytes]) -> Tuple[Tuple[bytes, ...], Message]:
    """Decode multipart frames into (prefix, Message).

    ROUTER sockets prepend the identity of the peer; we expect either
        [version, frame]
    or
        [ident, version, frame]
    """

    parts = tuple(parts)

    if len(parts) == 2:
        prefix: Tuple[bytes, ...] = ()
    elif len(parts) == 3:
        prefix = parts[:1]
    else:
        raise errors.MalformedMessage(f"unexpected number of frames: {len(parts)}")

    their_version, frame = parts[-2:]

    if their_version != _VERSION_BYTES:
        raise errors.MalformedMessage(
            f"message is gkbus protocol {their_version!r}, recipient expects {_VERSION_BYTES!r}"
        )

    return prefix, unpack_frame(frame)

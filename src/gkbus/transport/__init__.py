"""Transport layer implementations."""

import os

from .base import (
    TransportError,
    TransportTimeout,
    TransportConnectionError,
    TransportPortError,
)
from . import loopback

_BACKEND = os.environ.get("GKBUS_TRANSPORT", "zmq")

if _BACKEND == "zmq":
    from .zmq import bus
elif _BACKEND == "rabbitmq":
    from .rabbitmq import bus
elif _BACKEND == "loopback":
    bus = loopback
else:
    raise ImportError(f"unknown GKBUS_TRANSPORT backend: {_BACKEND!r}")

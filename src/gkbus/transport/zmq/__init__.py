"""ZeroMQ bus backend."""

from . import framing
from . import bus

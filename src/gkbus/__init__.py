""" Python implementation of gkbus, the bus facade of a gaming keyboard
    daemon. This includes the typed argument codec and dispatch engine used
    to serve method calls and signals, the transports that move messages
    between processes, and the device-control service built on top of them.
"""

# Utility components.

from . import json
from . import errors
from . import log

# Submodules used by multiple other components.

from . import protocol
from . import types
from . import config
home = config.directory

from . import buffers
from . import codec
from . import registry
from . import introspect
from . import completer
from . import dispatch
from . import transport

# Primary public-facing interfaces.

from .types import ArgType, EventValue, GKeyID, MKeyID, MacroEvent
from .registry import BusSelector, CallRegistry, EventKind
from .connection import Connection
from .daemon import Daemon
from . import service

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

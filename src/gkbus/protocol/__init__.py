from . import fields
from . import message
from . import builder
from . import wire

from .message import Field, Message, Writer
from .builder import MessageBuilder


"""
gkbus Protocol Layer
====================

This package defines the transport-agnostic message model used by gkbus:
what a message is, how its typed body is written and read, and how it is
mapped to and from bytes for the network transports.

The protocol layer MUST NOT depend on any transport implementation
(e.g. ZeroMQ, RabbitMQ, etc).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Daemon / Service
    │
    ▼
Connection (connection.py)
    Receive loop, remote calls, signal emission
    │
    ▼
Dispatcher (dispatch.py) + Call Registry (registry.py)
    Handler resolution, argument extraction, reply building
    │
    ▼
Argument Codec (codec.py) + Argument Buffers (buffers.py)
    Typed values <-> message fields
    │
    ▼
Message Model (message.py, builder.py)
    Message, Field, Writer
    Defines semantic meaning only
    │
    ▼
Field Vocabulary (fields.py)
    Message kinds, wire type codes, well-known names

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Framing (wire.py)
    Maps Message <-> bytes

Transport Layer (gkbus.transport)
    Moves messages
    - in-process loopback
    - ZeroMQ
    - RabbitMQ

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Exception classes raised by the marshaling and dispatch layers. Transport
    specific failures live in :mod:`gkbus.transport.base`, so that the
    protocol code does not need to know which transport is in use.
"""


class GKBusError(Exception):
    """ Base class for every error raised by gkbus itself.
    """


class MalformedMessage(GKBusError):
    """ The wire data does not match an expected primitive type or composite
        structure: an unsupported wire type, an enumerated byte out of range,
        leftover values after a self-delimited sequence, and so on.
    """


class MissingArgument(GKBusError):
    """ A typed getter found its bucket empty. This always indicates either
        a mismatch between the caller and the handler declaration, or a
        malformed inbound message.
    """


class EmptyBuffer(MissingArgument):
    """ Raised by the primitive getters of :class:`gkbus.buffers.ArgumentBuffers`.
    """


class ReconstructionFailed(MissingArgument):
    """ Raised by the composite getters in :mod:`gkbus.codec` when one of
        the primitive values they are built from is missing. The original
        :class:`EmptyBuffer` is chained as the cause.
    """


class BuildFailure(GKBusError):
    """ Appending to an outgoing message, or opening or closing a container
        within it, was rejected. The message is marked as hosed and cannot
        be sent.
    """


class HandlerNotFound(GKBusError, LookupError):
    """ No registered handler matches the address of an inbound message.
    """


class DuplicateRegistration(GKBusError):
    """ A handler is already registered for the requested address. This
        only happens at start-up, and is fatal.
    """


class UsageError(GKBusError):
    """ An :class:`gkbus.completer.AsyncReplyCompleter` was used after its
        reply was committed or abandoned.
    """


class RemoteCallFailed(GKBusError):
    """ An outgoing remote method call was answered with an error reply, or
        was not answered at all. The *name* attribute carries the error name
        from the reply, if any.
    """

    def __init__(self, text, name=None):
        GKBusError.__init__(self, text)
        self.name = name


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

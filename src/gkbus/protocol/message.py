""" A class representation of a gkbus message, the unit moved around by
    every transport. The core never looks inside a message other than
    through the read cursor (:func:`Message.reader`) and the write cursor
    (:func:`Message.writer`) defined here.
"""

import itertools
import logging
import threading

from .. import errors
from . import fields

log = logging.getLogger(__name__)


class Field:
    """ One typed value in the body of a :class:`Message`. The *signature*
        is the full D-Bus style signature of the value: a single character
        for the basic types, ``'as'`` for a string array, ``'a'`` plus the
        element signature for any other array, and a parenthesized list of
        member signatures for a struct. For the basic types and string
        arrays the *value* is the Python value; for containers it is a list
        of :class:`Field` instances.
    """

    __slots__ = ('signature', 'value')

    def __init__(self, signature, value):
        self.signature = signature
        self.value = value


    def __eq__(self, other):
        if isinstance(other, Field):
            return self.signature == other.signature and self.value == other.value
        return NotImplemented


    def __repr__(self):
        return 'Field(%s, %s)' % (repr(self.signature), repr(self.value))


    @property
    def type(self):
        """ The wire type code of this field: the full signature for basic
            types and string arrays, :data:`fields.ARRAY` or
            :data:`fields.STRUCT` for containers.
        """

        signature = self.signature

        if signature == fields.STRING_ARRAY:
            return signature

        return signature[0]


    def is_container(self):
        return self.type in (fields.ARRAY, fields.STRUCT)


# end of class Field



def check_value(type, value):
    """ Confirm that *value* can be represented as the primitive wire *type*.
        Raise TypeError or ValueError if it cannot; return the value in its
        normalized form (plain int for enumerated values, tuple for string
        arrays) otherwise.
    """

    if type == fields.BOOLEAN:
        if isinstance(value, bool):
            return value
        raise TypeError('boolean field requires a bool, got ' + repr(value))

    if type == fields.STRING:
        if isinstance(value, str):
            return value
        raise TypeError('string field requires a str, got ' + repr(value))

    if type == fields.STRING_ARRAY:
        value = tuple(value)
        for string in value:
            if isinstance(string, str):
                continue
            raise TypeError('string array field requires str elements, got ' + repr(string))
        return value

    try:
        maximum = fields.MAXIMUM[type]
    except KeyError:
        raise TypeError('unsupported wire type: ' + repr(type))

    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("'%s' field requires an int, got %s" % (type, repr(value)))

    if value < 0 or value > maximum:
        raise ValueError("value %d out of range for '%s' field" % (value, type))

    return int(value)



class Writer:
    """ Write cursor over the body of a :class:`Message`, or over one
        container within it. Containers are opened with
        :func:`open_container`, which returns a new :class:`Writer` for the
        container contents; the container only becomes part of the message
        once it is closed with :func:`close_container`. A container that
        cannot be completed must be released with :func:`abandon_container`.

        Any rejected append marks the whole message as hosed; every further
        append, open, or close on any writer for that message will fail.
    """

    def __init__(self, message, container=None, element=None):

        self.message = message
        self.container = container
        self.element = element
        self.closed = False
        self.abandoned = False

        if container is None:
            self.fields = message.fields
        else:
            self.fields = list()


    def append(self, type, value):
        """ Append a single primitive *value* of wire *type*.
        """

        value = check_value(type, value)

        self._check_open()
        self._check_element(type)
        self.message._reserve()

        self.fields.append(Field(type, value))


    def open_container(self, container, element=None):
        """ Open a sub-container. *container* is :data:`fields.ARRAY`, in
            which case the *element* signature is required, or
            :data:`fields.STRUCT`.
        """

        if container == fields.ARRAY:
            if not element:
                raise ValueError('an array container requires an element signature')
            self._check_open()
            self._check_element(fields.ARRAY + element)

        elif container == fields.STRUCT:
            if element is not None:
                raise ValueError('a struct container has no element signature')
            self._check_open()

        else:
            raise ValueError('unsupported container type: ' + repr(container))

        self.message._reserve()
        return Writer(self.message, container, element)


    def close_container(self, child):
        """ Attach the contents of the *child* writer to this one.
        """

        if child.closed or child.abandoned:
            raise errors.BuildFailure('container already closed or abandoned')

        self._check_open()
        self.message._check_usable()

        if child.container == fields.ARRAY:
            signature = fields.ARRAY + child.element
        else:
            if len(child.fields) == 0:
                self.message._hose('cannot close an empty struct container')

            signature = fields.STRUCT
            for field in child.fields:
                signature += field.signature
            signature += fields.STRUCT_END

        self._check_element(signature)

        self.fields.append(Field(signature, child.fields))
        child.closed = True


    def abandon_container(self, child):
        """ Release an open *child* container without attaching it. This is
            always safe to call, including on a hosed message.
        """

        if child.closed:
            return

        child.abandoned = True
        child.fields = list()


    def _check_open(self):

        if self.closed or self.abandoned:
            raise errors.BuildFailure('writer is no longer open')

        self.message._check_usable()


    def _check_element(self, signature):
        """ Within an array container every element must share the declared
            element signature; anything else is rejected the same way the
            transport would reject it.
        """

        if self.container != fields.ARRAY:
            return

        if signature != self.element:
            self.message._hose("'%s' element in an array of '%s'" % (signature, self.element))


# end of class Writer



class Message:
    """ The :class:`Message` is a thin encapsulation of what it means to be
        a message on the bus: a *kind* (method call, method return, error,
        or signal), an address (*path*, *interface*, *member*), routing
        information (*destination*, *sender*), a *serial* number unique to
        this process, and an ordered body of typed :class:`Field` values.

        Replies and errors carry the serial of the call they answer as the
        *reply_serial*; errors additionally carry an *error_name*, and by
        convention a single string field with the error text.

        The optional *capacity* is the maximum number of fields (containers
        included) the message will accept. Exceeding it is how resource
        exhaustion on the transport side is represented: the append is
        rejected and the message is hosed.

        :ivar hosed: True once an append was rejected.
        :ivar sealed: True once the message was handed to a transport.
    """

    valid_kinds = fields.KINDS

    def __init__(self, kind, path=None, interface=None, member=None,
                 destination=None, sender=None, serial=None,
                 reply_serial=None, error_name=None, capacity=None):

        if kind in self.valid_kinds:
            pass
        else:
            raise ValueError('invalid message kind: ' + repr(kind))

        if serial is None:
            serial = _serial_next()

        self.kind = kind
        self.path = path
        self.interface = interface
        self.member = member
        self.destination = destination
        self.sender = sender
        self.serial = serial
        self.reply_serial = reply_serial
        self.error_name = error_name
        self.capacity = capacity

        self.fields = list()
        self.hosed = False
        self.sealed = False

        self._count = 0


    def __repr__(self):
        address = '%s %s.%s' % (self.path, self.interface, self.member)
        return 'Message(%s #%s %s %s)' % (self.kind, self.serial, address, repr(self.fields))


    @property
    def address(self):
        return (self.path, self.interface, self.member)


    @property
    def signature(self):
        signature = ''
        for field in self.fields:
            signature += field.signature
        return signature


    @property
    def error_text(self):
        """ The human readable text of an error message, if any.
        """

        for field in self.fields:
            if field.signature == fields.STRING:
                return field.value

        return None


    def expects_reply(self):
        return self.kind == fields.METHOD_CALL


    def is_reply(self):
        return self.kind == fields.METHOD_RETURN or self.kind == fields.ERROR


    def reader(self):
        """ Return an iterator over the top-level fields of this message, in
            wire order.
        """

        return iter(tuple(self.fields))


    def writer(self):
        """ Return a write cursor appending to the body of this message.
        """

        return Writer(self)


    def seal(self):
        """ Mark this message as handed off to a transport. A sealed message
            cannot be appended to, and cannot be sent a second time.
        """

        if self.hosed:
            raise errors.BuildFailure('refusing to seal a hosed message')

        if self.sealed:
            raise errors.BuildFailure('message #%s was already sent' % (self.serial))

        self.sealed = True


    def _check_usable(self):

        if self.hosed:
            raise errors.BuildFailure('message is hosed, no further fields can be appended')

        if self.sealed:
            raise errors.BuildFailure('message #%s was already sent' % (self.serial))


    def _hose(self, reason):
        self.hosed = True
        log.error('%s build failure: %s', self.kind, reason)
        raise errors.BuildFailure(reason)


    def _reserve(self):
        """ Account for one more field. This is the one place an append can
            be rejected for lack of room.
        """

        self._check_usable()

        count = self._count + 1

        if self.capacity is not None and count > self.capacity:
            self._hose('append failure, not enough memory')

        self._count = count


# end of class Message


_serial_min = 1
_serial_max = 0xFFFFFFFF
_serial_lock = threading.Lock()
_serial_ticker = itertools.count(_serial_min)


def _serial_next():
    """ Return the next message serial number. Serial numbers are never zero,
        and wrap around after 32 bits.
    """

    global _serial_ticker
    _serial_lock.acquire()
    serial = next(_serial_ticker)

    if serial >= _serial_max:
        _serial_ticker = itertools.count(_serial_min)

        if serial > _serial_max:
            # This shouldn't happen, but here we are...
            serial = next(_serial_ticker)

    _serial_lock.release()
    return serial


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Per-primitive-type staging of the values carried by one inbound message.

    An inbound message is drained, in wire order, into one bucket per
    primitive wire type; the typed getters then pop from the front of the
    matching bucket. Nothing re-validates the position of a value within
    the message, only its type: the getters must be called in the same
    relative order the values were written.
"""

import collections
import logging

from . import errors
from .protocol import fields

log = logging.getLogger(__name__)


class ArgumentBuffers:
    """ The buckets for one dispatch. An instance is created for each
        inbound message and passed explicitly to whatever needs to extract
        arguments from it; it is never shared between two dispatches.
    """

    names = {
        fields.BOOLEAN: 'boolean',
        fields.BYTE: 'byte',
        fields.UINT16: 'uint16',
        fields.UINT32: 'uint32',
        fields.UINT64: 'uint64',
        fields.STRING: 'string',
        fields.STRING_ARRAY: 'string array',
    }

    def __init__(self, message=None):

        self.buckets = dict()
        for type in fields.PRIMITIVE:
            self.buckets[type] = collections.deque()

        if message is not None:
            self.fill(message)


    def __repr__(self):
        return 'ArgumentBuffers(%s)' % (repr(self.residue()))


    def fill(self, message):
        """ Drain every field of *message* into the buckets. Containers are
            descended into, so that the values of an array or struct land in
            the buckets of their element types. Any wire type other than the
            primitive types and the two container types raises
            :class:`gkbus.errors.MalformedMessage`, and leaves the buckets
            empty.

            Values left over from a previous fill are discarded, with a
            warning.
        """

        residue = self.residue()
        if residue:
            log.warning('discarding %s left over from a previous message', self._describe(residue))
            self.clear()

        try:
            self._drain(message.reader())
        except errors.MalformedMessage:
            self.clear()
            raise


    def _drain(self, body):

        buckets = self.buckets

        for field in body:
            type = field.type

            if type == fields.ARRAY or type == fields.STRUCT:
                self._drain(field.value)

            elif type == fields.STRING:
                # A string always carries its length in the uint64 bucket;
                # the empty string takes no string slot at all.
                value = field.value
                buckets[fields.UINT64].append(len(value))
                if value:
                    buckets[fields.STRING].append(value)

            elif type in fields.PRIMITIVE:
                buckets[type].append(field.value)

            else:
                raise errors.MalformedMessage('unsupported wire type: ' + repr(field.signature))


    def clear(self):
        for bucket in self.buckets.values():
            bucket.clear()


    def empty(self, type):
        """ Return True if the bucket for the primitive wire *type* holds no
            further values.
        """

        return len(self.buckets[type]) == 0


    def residue(self):
        """ Return a dictionary of the values not yet consumed, keyed by
            wire type. Empty buckets are not included.
        """

        residue = dict()
        for type, bucket in self.buckets.items():
            if bucket:
                residue[type] = tuple(bucket)

        return residue


    def _describe(self, residue):

        described = list()
        for type, values in sorted(residue.items()):
            described.append('%d %s' % (len(values), self.names[type]))

        return ', '.join(described) + ' value(s)'


    def _pop(self, type):

        try:
            return self.buckets[type].popleft()
        except IndexError:
            raise errors.EmptyBuffer('no %s argument' % (self.names[type])) from None


    def get_next_boolean(self):
        return self._pop(fields.BOOLEAN)


    def get_next_byte(self):
        return self._pop(fields.BYTE)


    def get_next_uint16(self):
        return self._pop(fields.UINT16)


    def get_next_uint32(self):
        return self._pop(fields.UINT32)


    def get_next_uint64(self):
        return self._pop(fields.UINT64)


    def get_next_string(self):
        """ Pop the length of the next string from the uint64 bucket, and,
            only if it is not zero, the string itself. A mismatch between
            the two is logged but not fatal.
        """

        length = self._pop(fields.UINT64)

        if length == 0:
            return ''

        value = self._pop(fields.STRING)

        if len(value) != length:
            log.warning('string argument length mismatch: expected %d, got %d', length, len(value))

        return value


    def get_next_string_array(self):
        return list(self._pop(fields.STRING_ARRAY))


# end of class ArgumentBuffers


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import gkbus
import logging
import pytest

from gkbus.buffers import ArgumentBuffers
from gkbus.protocol import fields
from gkbus.protocol.message import Field, Message


def message(*values):

    message = Message(fields.METHOD_CALL, '/test', 'com.glogik.Test', 'Test')
    writer = message.writer()

    for type, value in values:
        writer.append(type, value)

    return message


def test_primitives():

    sent = message((fields.BOOLEAN, True),
                   (fields.BYTE, 0xFF),
                   (fields.UINT16, 0xFFFF),
                   (fields.UINT32, 0xFFFFFFFF),
                   (fields.UINT64, 0xFFFFFFFFFFFFFFFF),
                   (fields.STRING, 'G510'),
                   (fields.STRING_ARRAY, ['one', 'two']))

    buffers = ArgumentBuffers(sent)

    assert buffers.get_next_boolean() is True
    assert buffers.get_next_byte() == 0xFF
    assert buffers.get_next_uint16() == 0xFFFF
    assert buffers.get_next_uint32() == 0xFFFFFFFF
    assert buffers.get_next_uint64() == 0xFFFFFFFFFFFFFFFF
    assert buffers.get_next_string() == 'G510'
    assert buffers.get_next_string_array() == ['one', 'two']

    assert buffers.residue() == dict()


def test_string_length():

    # The length of every string lands in the uint64 bucket, ahead of any
    # uint64 that follows it on the wire.

    buffers = ArgumentBuffers(message((fields.STRING, 'abc'), (fields.UINT64, 7)))

    assert buffers.residue() == {fields.UINT64: (3, 7), fields.STRING: ('abc',)}
    assert buffers.get_next_string() == 'abc'
    assert buffers.get_next_uint64() == 7


def test_empty_string():

    buffers = ArgumentBuffers(message((fields.STRING, ''), (fields.STRING, 'x')))

    assert buffers.residue() == {fields.UINT64: (0, 1), fields.STRING: ('x',)}
    assert buffers.get_next_string() == ''
    assert buffers.get_next_string() == 'x'


def test_string_length_mismatch(caplog):

    buffers = ArgumentBuffers()
    buffers.buckets[fields.UINT64].append(5)
    buffers.buckets[fields.STRING].append('abc')

    with caplog.at_level(logging.WARNING, logger='gkbus.buffers'):
        assert buffers.get_next_string() == 'abc'

    assert 'length mismatch' in caplog.text


def test_empty_buffer():

    buffers = ArgumentBuffers(message((fields.BYTE, 1)))

    assert buffers.get_next_byte() == 1

    with pytest.raises(gkbus.errors.EmptyBuffer):
        buffers.get_next_byte()

    with pytest.raises(gkbus.errors.MissingArgument):
        buffers.get_next_string()

    assert buffers.empty(fields.BYTE)


def test_buckets_are_per_type():

    sent = message((fields.BYTE, 1), (fields.UINT16, 2), (fields.BYTE, 3))
    buffers = ArgumentBuffers(sent)

    # Only the relative order within one type is preserved.

    assert buffers.get_next_byte() == 1
    assert buffers.get_next_byte() == 3
    assert buffers.get_next_uint16() == 2


def test_containers():

    sent = Message(fields.METHOD_CALL, '/test', 'com.glogik.Test', 'Test')
    writer = sent.writer()

    array = writer.open_container(fields.ARRAY, fields.BYTE)
    array.append(fields.BYTE, 4)
    array.append(fields.BYTE, 5)
    writer.close_container(array)

    struct = writer.open_container(fields.STRUCT)
    struct.append(fields.UINT16, 6)
    struct.append(fields.STRING, 'seven')
    writer.close_container(struct)

    assert sent.signature == 'ay(qs)'

    buffers = ArgumentBuffers(sent)

    assert buffers.get_next_byte() == 4
    assert buffers.get_next_byte() == 5
    assert buffers.get_next_uint16() == 6
    assert buffers.get_next_string() == 'seven'


def test_unsupported_type():

    sent = message((fields.BYTE, 1))
    sent.fields.append(Field('d', 1.5))

    buffers = ArgumentBuffers()

    with pytest.raises(gkbus.errors.MalformedMessage):
        buffers.fill(sent)

    assert buffers.residue() == dict()


def test_refill_discards_residue(caplog):

    buffers = ArgumentBuffers(message((fields.BYTE, 1), (fields.BYTE, 2)))
    buffers.get_next_byte()

    with caplog.at_level(logging.WARNING, logger='gkbus.buffers'):
        buffers.fill(message((fields.BYTE, 3)))

    assert 'left over' in caplog.text
    assert buffers.get_next_byte() == 3
    assert buffers.empty(fields.BYTE)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

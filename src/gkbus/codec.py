""" Append typed values to an outgoing message, and rebuild typed values
    from the :class:`gkbus.buffers.ArgumentBuffers` of an inbound one.

    The primitive appenders are one wire field each. The composite types
    are built purely out of primitive fields and containers:

    ============== ================== =====================================
    Type           Signature          Layout
    ============== ================== =====================================
    MKeyID         ``y``              the enumerated ordinal
    GKeyID         ``y``              the enumerated ordinal, never zero
    MKeyID array   ``yay``            count N, then an array of N bytes
    GKeyID array   ``yay``            count N, then an array of N bytes
    Macro          ``a(yyq)``         array of (code, event, interval)
    Macros bank    ``ya(yya(yyq))``   count N, then N of (G-key, size, macro)
    Devices map    ``as``             six strings per device, ID first
    LCD plugins    ``ta(tss)``        count N, then N of (id, name, desc)
    ============== ================== =====================================

    The composite getters translate a missing primitive value into a single
    :class:`gkbus.errors.ReconstructionFailed`, and an enumerated byte out
    of range into :class:`gkbus.errors.MalformedMessage`.
"""

import contextlib
import logging

from . import errors
from .buffers import ArgumentBuffers
from .protocol import fields
from .types import ArgType, DeviceProperties, EventValue, GKeyID, LCDPluginProperties, MKeyID, MacroEvent, maximum

log = logging.getLogger(__name__)


@contextlib.contextmanager
def container(writer, type, element=None):
    """ Open a container on *writer* for the duration of a with-block. The
        container is closed if the block completes, and abandoned if it
        raises an exception.
    """

    child = writer.open_container(type, element)

    try:
        yield child
    except BaseException:
        writer.abandon_container(child)
        raise

    writer.close_container(child)


def append_boolean(writer, value):
    writer.append(fields.BOOLEAN, value)


def append_byte(writer, value):
    writer.append(fields.BYTE, value)


def append_uint16(writer, value):
    writer.append(fields.UINT16, value)


def append_uint32(writer, value):
    writer.append(fields.UINT32, value)


def append_uint64(writer, value):
    writer.append(fields.UINT64, value)


def append_string(writer, value):
    writer.append(fields.STRING, value)


def append_string_array(writer, values):
    writer.append(fields.STRING_ARRAY, values)


def append_mkey_id(writer, key):
    writer.append(fields.BYTE, MKeyID(key))


def append_gkey_id(writer, key):

    key = GKeyID(key)
    if key == GKeyID.GKEY_INV:
        raise ValueError('refusing to send the invalid G-key identifier')

    writer.append(fields.BYTE, key)


def append_mkey_id_array(writer, keys):

    keys = [MKeyID(key) for key in keys]
    writer.append(fields.BYTE, len(keys))

    with container(writer, fields.ARRAY, fields.BYTE) as array:
        for key in keys:
            array.append(fields.BYTE, key)


def append_gkey_id_array(writer, keys):

    keys = [GKeyID(key) for key in keys]

    if GKeyID.GKEY_INV in keys:
        raise ValueError('refusing to send the invalid G-key identifier')

    writer.append(fields.BYTE, len(keys))

    with container(writer, fields.ARRAY, fields.BYTE) as array:
        for key in keys:
            array.append(fields.BYTE, key)


def _append_macro_event(writer, event):

    code, value, interval = event

    with container(writer, fields.STRUCT) as struct:
        struct.append(fields.BYTE, code)
        struct.append(fields.BYTE, EventValue(value))
        struct.append(fields.UINT16, interval)


def append_macro(writer, macro):

    with container(writer, fields.ARRAY, '(yyq)') as array:
        for event in macro:
            _append_macro_event(array, event)


def append_macros_bank(writer, bank):
    """ Append a macros bank: a mapping of :class:`gkbus.types.GKeyID` to
        macro. Entries go out sorted by G-key.
    """

    writer.append(fields.BYTE, len(bank))

    with container(writer, fields.ARRAY, '(yya(yyq))') as array:
        for key in sorted(bank):
            macro = bank[key]

            with container(array, fields.STRUCT) as entry:
                append_gkey_id(entry, key)
                entry.append(fields.BYTE, len(macro))
                append_macro(entry, macro)


def append_devices_map(writer, devices):
    """ Append a devices map: a mapping of device ID to
        :class:`gkbus.types.DeviceProperties`. It goes out as one flat
        string array, six strings per device, sorted by device ID.
    """

    strings = list()

    for id in sorted(devices):
        properties = DeviceProperties(*devices[id])
        strings.append(id)
        strings.extend(properties)

    writer.append(fields.STRING_ARRAY, strings)


def append_lcd_plugins_array(writer, plugins):

    plugins = [LCDPluginProperties(*plugin) for plugin in plugins]
    writer.append(fields.UINT64, len(plugins))

    with container(writer, fields.ARRAY, '(tss)') as array:
        for plugin in plugins:
            with container(array, fields.STRUCT) as struct:
                struct.append(fields.UINT64, plugin.id)
                struct.append(fields.STRING, plugin.name)
                struct.append(fields.STRING, plugin.description)


def _enumerated(enumeration, value):

    if value > maximum(enumeration):
        raise errors.MalformedMessage('wrong %s value: %d' % (enumeration.__name__, value))

    return enumeration(value)


def _reconstruct(name, getter, *args):

    try:
        return getter(*args)
    except errors.EmptyBuffer as e:
        log.warning('missing argument: %s', e)
        raise errors.ReconstructionFailed('rebuilding %s failed: %s' % (name, e)) from e


def _mkey_id(buffers):
    return _enumerated(MKeyID, buffers.get_next_byte())


def _gkey_id(buffers):

    key = _enumerated(GKeyID, buffers.get_next_byte())

    if key == GKeyID.GKEY_INV:
        raise errors.MalformedMessage('invalid GKeyID value: 0')

    return key


def _mkey_id_array(buffers):

    count = buffers.get_next_byte()

    keys = list()
    for index in range(count):
        keys.append(_mkey_id(buffers))

    return keys


def _gkey_id_array(buffers):

    count = buffers.get_next_byte()

    keys = list()
    for index in range(count):
        keys.append(_gkey_id(buffers))

    return keys


def _macro_event(buffers):

    code = buffers.get_next_byte()
    event = _enumerated(EventValue, buffers.get_next_byte())
    interval = buffers.get_next_uint16()

    return MacroEvent(code, event, interval)


def _macro(buffers, size=None):

    macro = list()

    if size is None:
        while not buffers.empty(fields.BYTE):
            macro.append(_macro_event(buffers))

        if not buffers.empty(fields.UINT16):
            raise errors.MalformedMessage('uint16 values left over after a self-delimited macro')
    else:
        for index in range(size):
            macro.append(_macro_event(buffers))

    return macro


def _macros_bank(buffers):

    count = buffers.get_next_byte()

    bank = dict()
    for index in range(count):
        key = _gkey_id(buffers)
        size = buffers.get_next_byte()

        if key in bank:
            raise errors.MalformedMessage('duplicate %s in macros bank' % (key.name))

        bank[key] = _macro(buffers, size)

    return bank


def _devices_map(buffers):

    strings = buffers.get_next_string_array()
    width = len(DeviceProperties._fields) + 1

    if len(strings) % width != 0:
        raise errors.MalformedMessage('devices map of %d strings, expected a multiple of %d' % (len(strings), width))

    devices = dict()
    for index in range(0, len(strings), width):
        id = strings[index]

        if id in devices:
            raise errors.MalformedMessage('duplicate device %s in devices map' % (repr(id)))

        devices[id] = DeviceProperties(*strings[index + 1:index + width])

    return devices


def _lcd_plugins_array(buffers):

    count = buffers.get_next_uint64()

    plugins = list()
    for index in range(count):
        id = buffers.get_next_uint64()
        name = buffers.get_next_string()
        description = buffers.get_next_string()
        plugins.append(LCDPluginProperties(id, name, description))

    return plugins


def get_next_mkey_id(buffers):
    return _reconstruct('MKeyID', _mkey_id, buffers)


def get_next_gkey_id(buffers):
    return _reconstruct('GKeyID', _gkey_id, buffers)


def get_next_mkey_id_array(buffers):
    return _reconstruct('MKeyID array', _mkey_id_array, buffers)


def get_next_gkey_id_array(buffers):
    return _reconstruct('GKeyID array', _gkey_id_array, buffers)


def get_next_macro(buffers, size=None):
    """ Rebuild a macro. With a *size*, exactly that many events are read;
        without one the macro is self-delimited, and consumes every
        remaining byte value. A self-delimited macro must therefore be the
        last byte-typed argument of its message.
    """

    return _reconstruct('macro', _macro, buffers, size)


def get_next_macros_bank(buffers):
    return _reconstruct('macros bank', _macros_bank, buffers)


def get_next_devices_map(buffers):
    return _reconstruct('devices map', _devices_map, buffers)


def get_next_lcd_plugins_array(buffers):
    return _reconstruct('LCD plugins array', _lcd_plugins_array, buffers)


APPENDERS = {
    ArgType.BOOLEAN: append_boolean,
    ArgType.BYTE: append_byte,
    ArgType.UINT16: append_uint16,
    ArgType.UINT32: append_uint32,
    ArgType.UINT64: append_uint64,
    ArgType.STRING: append_string,
    ArgType.STRING_ARRAY: append_string_array,
    ArgType.MKEY_ID: append_mkey_id,
    ArgType.GKEY_ID: append_gkey_id,
    ArgType.MKEY_ID_ARRAY: append_mkey_id_array,
    ArgType.GKEY_ID_ARRAY: append_gkey_id_array,
    ArgType.MACRO: append_macro,
    ArgType.MACROS_BANK: append_macros_bank,
    ArgType.DEVICES_MAP: append_devices_map,
    ArgType.LCD_PLUGINS_ARRAY: append_lcd_plugins_array,
}

GETTERS = {
    ArgType.BOOLEAN: ArgumentBuffers.get_next_boolean,
    ArgType.BYTE: ArgumentBuffers.get_next_byte,
    ArgType.UINT16: ArgumentBuffers.get_next_uint16,
    ArgType.UINT32: ArgumentBuffers.get_next_uint32,
    ArgType.UINT64: ArgumentBuffers.get_next_uint64,
    ArgType.STRING: ArgumentBuffers.get_next_string,
    ArgType.STRING_ARRAY: ArgumentBuffers.get_next_string_array,
    ArgType.MKEY_ID: get_next_mkey_id,
    ArgType.GKEY_ID: get_next_gkey_id,
    ArgType.MKEY_ID_ARRAY: get_next_mkey_id_array,
    ArgType.GKEY_ID_ARRAY: get_next_gkey_id_array,
    ArgType.MACRO: get_next_macro,
    ArgType.MACROS_BANK: get_next_macros_bank,
    ArgType.DEVICES_MAP: get_next_devices_map,
    ArgType.LCD_PLUGINS_ARRAY: get_next_lcd_plugins_array,
}


def append(writer, type, value):
    """ Append one *value* of the :class:`gkbus.types.ArgType` *type*.
    """

    APPENDERS[type](writer, value)


def get_next(buffers, type):
    """ Extract one value of the :class:`gkbus.types.ArgType` *type*.
    """

    return GETTERS[type](buffers)


def extract(buffers, types):
    """ Extract one value for each entry in *types*, strictly in that order.
    """

    values = list()
    for type in types:
        values.append(get_next(buffers, type))

    return values


def append_values(writer, types, values):
    """ Append each of *values* as the corresponding entry in *types*.
    """

    if len(types) != len(values):
        raise ValueError('expected %d values, got %d' % (len(types), len(values)))

    for type, value in zip(types, values):
        append(writer, type, value)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

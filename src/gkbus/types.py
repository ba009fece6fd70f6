""" Domain types carried across the bus: the enumerated key identifiers,
    macro events, and the table of argument types a handler can declare.
    Every one of these is encoded using only the primitive wire types; see
    :mod:`gkbus.codec` for how.
"""

import collections
import enum


class MKeyID(enum.IntEnum):
    """ Identifier of one M-key (macro bank selector). One byte on the wire.
    """

    M0 = 0
    M1 = 1
    M2 = 2
    M3 = 3


class GKeyID(enum.IntEnum):
    """ Identifier of one G-key (macro key). One byte on the wire; the
        ordinal zero is reserved as the invalid key and never accepted
        from the bus.
    """

    GKEY_INV = 0
    G1 = 1
    G2 = 2
    G3 = 3
    G4 = 4
    G5 = 5
    G6 = 6
    G7 = 7
    G8 = 8
    G9 = 9
    G10 = 10
    G11 = 11
    G12 = 12
    G13 = 13
    G14 = 14
    G15 = 15
    G16 = 16
    G17 = 17
    G18 = 18


class EventValue(enum.IntEnum):
    """ Whether a macro event is a key press or a key release.
    """

    RELEASE = 0
    PRESS = 1
    UNKNOWN = 2


def maximum(enumeration):
    """ Return the largest valid ordinal of an enumeration.
    """

    return max(member.value for member in enumeration)


MacroEvent = collections.namedtuple('MacroEvent', ('code', 'event', 'interval'))
MacroEvent.__doc__ = """ One key event within a macro: the key *code*, the
    :class:`EventValue` *event*, and the *interval* in milliseconds since
    the previous event. A struct of (byte, byte, uint16) on the wire.
    """


DeviceProperties = collections.namedtuple('DeviceProperties', ('status', 'vendor', 'product', 'name', 'config_file'))
DeviceProperties.__doc__ = """ What a devices map carries for one device: its *status*, started or
    stopped, its *vendor*, *product* and *name*, and the path of its
    configuration file. Every one of them is a string.
    """


LCDPluginProperties = collections.namedtuple('LCDPluginProperties', ('id', 'name', 'description'))
LCDPluginProperties.__doc__ = """ One LCD screen plugin of a device: the uint64 *id*, which is also
    its bit in the plugins mask, then its *name* and *description*.
    """


class ArgType(enum.Enum):
    """ Every argument type a handler may declare. The :attr:`signature` of
        each member is its D-Bus style wire signature, which is also what
        appears in the introspection document.
    """

    BOOLEAN = 'boolean'
    BYTE = 'byte'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'
    STRING = 'string'
    STRING_ARRAY = 'string_array'
    MKEY_ID = 'mkey_id'
    GKEY_ID = 'gkey_id'
    MKEY_ID_ARRAY = 'mkey_id_array'
    GKEY_ID_ARRAY = 'gkey_id_array'
    MACRO = 'macro'
    MACROS_BANK = 'macros_bank'
    DEVICES_MAP = 'devices_map'
    LCD_PLUGINS_ARRAY = 'lcd_plugins_array'

    @property
    def signature(self):
        return SIGNATURES[self]


    def is_composite(self):
        return self in COMPOSITE


SIGNATURES = {
    ArgType.BOOLEAN: 'b',
    ArgType.BYTE: 'y',
    ArgType.UINT16: 'q',
    ArgType.UINT32: 'u',
    ArgType.UINT64: 't',
    ArgType.STRING: 's',
    ArgType.STRING_ARRAY: 'as',
    ArgType.MKEY_ID: 'y',
    ArgType.GKEY_ID: 'y',
    ArgType.MKEY_ID_ARRAY: 'yay',
    ArgType.GKEY_ID_ARRAY: 'yay',
    ArgType.MACRO: 'a(yyq)',
    ArgType.MACROS_BANK: 'ya(yya(yyq))',
    ArgType.DEVICES_MAP: 'as',
    ArgType.LCD_PLUGINS_ARRAY: 'ta(tss)',
}


COMPOSITE = frozenset((
    ArgType.MKEY_ID,
    ArgType.GKEY_ID,
    ArgType.MKEY_ID_ARRAY,
    ArgType.GKEY_ID_ARRAY,
    ArgType.MACRO,
    ArgType.MACROS_BANK,
    ArgType.DEVICES_MAP,
    ArgType.LCD_PLUGINS_ARRAY,
))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

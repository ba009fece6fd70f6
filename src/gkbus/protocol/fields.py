"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

# Message kinds.

METHOD_CALL = "METHOD_CALL"
METHOD_RETURN = "METHOD_RETURN"
ERROR = "ERROR"
SIGNAL = "SIGNAL"

KINDS = frozenset((METHOD_CALL, METHOD_RETURN, ERROR, SIGNAL))

# Wire type codes, using the D-Bus signature characters.

BOOLEAN = "b"
BYTE = "y"
UINT16 = "q"
UINT32 = "u"
UINT64 = "t"
STRING = "s"
STRING_ARRAY = "as"

ARRAY = "a"
STRUCT = "("
STRUCT_END = ")"

BASIC = frozenset((BOOLEAN, BYTE, UINT16, UINT32, UINT64, STRING))
PRIMITIVE = BASIC | frozenset((STRING_ARRAY,))

# Inclusive upper bounds for the unsigned integer types.

MAXIMUM = {
    BYTE: 0xFF,
    UINT16: 0xFFFF,
    UINT32: 0xFFFFFFFF,
    UINT64: 0xFFFFFFFFFFFFFFFF,
}

# Well-known interface and error names.

INTROSPECTABLE = "org.freedesktop.DBus.Introspectable"
INTROSPECT = "Introspect"

ERROR_FAILED = "org.freedesktop.DBus.Error.Failed"
ERROR_UNKNOWN_METHOD = "org.freedesktop.DBus.Error.UnknownMethod"

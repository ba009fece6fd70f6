from __future__ import annotations

from typing import Any, List

from .. import errors
from .. import json
from . import fields
from .message import Field, Message, check_value


VERSION = 1


def _pack_fields(body: List[Field]) -> List[Any]:

    packed = list()

    for field in body:
        if field.is_container():
            value = _pack_fields(field.value)
        elif field.signature == fields.STRING_ARRAY:
            value = list(field.value)
        else:
            value = field.value

        packed.append((field.signature, value))

    return packed


def _unpack_fields(packed: List[Any]) -> List[Field]:

    body = list()

    for entry in packed:
        try:
            signature, value = entry
        except (TypeError, ValueError):
            raise errors.MalformedMessage('field is not a (signature, value) pair: ' + repr(entry))

        if not isinstance(signature, str) or signature == '':
            raise errors.MalformedMessage('invalid field signature: ' + repr(signature))

        if signature != fields.STRING_ARRAY and signature[0] in (fields.ARRAY, fields.STRUCT):
            if not isinstance(value, list):
                raise errors.MalformedMessage('container field without contents: ' + repr(entry))
            value = _unpack_fields(value)
        else:
            try:
                value = check_value(signature, value)
            except (TypeError, ValueError) as e:
                raise errors.MalformedMessage(str(e))

        body.append(Field(signature, value))

    return body


def pack_frame(msg: Message) -> bytes:
    """
    Serialize Message -> bytes

    Layout:
        compact JSON object; the body is a list of [signature, value]
        pairs, with nested pairs for container fields.
    """

    header = {
        "version":      VERSION,
        "kind":         msg.kind,
        "serial":       msg.serial,
        "reply_serial": msg.reply_serial,
        "path":         msg.path,
        "interface":    msg.interface,
        "member":       msg.member,
        "error_name":   msg.error_name,
        "destination":  msg.destination,
        "sender":       msg.sender,
        "body":         _pack_fields(msg.fields),
    }

    return json.dumps(header)


def unpack_frame(frame: bytes) -> Message:
    """
    Deserialize bytes -> Message
    """

    try:
        env = json.loads(frame)
    except json.DecodeError as e:
        raise errors.MalformedMessage('frame is not valid JSON: ' + str(e))

    if not isinstance(env, dict):
        raise errors.MalformedMessage('frame is not a JSON object')

    version = env.get("version", VERSION)
    if version != VERSION:
        raise errors.MalformedMessage('unsupported frame version: ' + repr(version))

    try:
        message = Message(
            env["kind"],
            path=env.get("path"),
            interface=env.get("interface"),
            member=env.get("member"),
            destination=env.get("destination"),
            sender=env.get("sender"),
            serial=env["serial"],
            reply_serial=env.get("reply_serial"),
            error_name=env.get("error_name"),
        )
    except (KeyError, ValueError) as e:
        raise errors.MalformedMessage('invalid frame header: ' + str(e))

    message.fields.extend(_unpack_fields(env.get("body", ())))
    return message

from __future__ import annotations

from typing import Optional

from . import fields
from .message import Message


class MessageBuilder:
    """ Fluent construction of :class:`Message` headers. The body is
        written separately, through :func:`Message.writer`.
    """

    def __init__(self, sender: Optional[str] = None):
        self._sender = sender

        self._kind: Optional[str] = None
        self._dest: Optional[str] = None
        self._path: Optional[str] = None
        self._interface: Optional[str] = None
        self._member: Optional[str] = None
        self._reply_serial: Optional[int] = None
        self._error_name: Optional[str] = None
        self._error_text: Optional[str] = None
        self._capacity: Optional[int] = None

    # Semantic kind setters
    def method_call(self, path: str, interface: str, member: str):
        self._kind = fields.METHOD_CALL
        self._address(path, interface, member)
        return self

    def signal(self, path: str, interface: str, member: str):
        self._kind = fields.SIGNAL
        self._address(path, interface, member)
        return self

    def reply(self, call: Message):
        self._kind = fields.METHOD_RETURN
        self._answer(call)
        return self

    def error(self, call: Message, name: str, text: Optional[str] = None):
        self._kind = fields.ERROR
        self._answer(call)
        self._error_name = name
        self._error_text = text
        return self

    # Routing
    def to(self, destination: Optional[str]):
        self._dest = destination
        return self

    # Resources
    def capacity(self, count: Optional[int]):
        self._capacity = count
        return self

    def _address(self, path, interface, member):
        self._path = path
        self._interface = interface
        self._member = member

    def _answer(self, call):
        self._address(call.path, call.interface, call.member)
        self._dest = call.sender
        self._reply_serial = call.serial

    # Finalize
    def build(self) -> Message:

        if self._kind is None:
            raise ValueError("Message kind not specified")

        message = Message(
            self._kind,
            path=self._path,
            interface=self._interface,
            member=self._member,
            destination=self._dest,
            sender=self._sender,
            reply_serial=self._reply_serial,
            error_name=self._error_name,
            capacity=self._capacity,
        )

        if self._error_text is not None:
            message.writer().append(fields.STRING, self._error_text)

        return message

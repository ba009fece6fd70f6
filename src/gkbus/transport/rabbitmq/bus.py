"""RabbitMQ message bus.

Every endpoint consumes from its own named queue, ``gkbus.<bus>.<name>``,
for directed traffic (calls, replies, errors, targeted signals), and from
an exclusive queue bound to the fanout exchange ``gkbus.<bus>.signals``
for broadcast signals. Unlike the ZeroMQ bus there is no server: every
endpoint is symmetric, and the broker does the routing.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

import pika
import pika.exceptions

from ... import errors
from ...protocol import fields
from ...protocol.message import Message
from ...protocol.wire import pack_frame, unpack_frame
from ..base import Transport, TransportConnectionError

log = logging.getLogger(__name__)


def _broker_params(host: str, port: int) -> pika.ConnectionParameters:
    return pika.ConnectionParameters(
        host=host,
        port=port,
        heartbeat=600,
        blocked_connection_timeout=300,
    )


def queue_name(bus: str, name: str) -> str:
    return f"gkbus.{bus}.{name}"


def exchange_name(bus: str) -> str:
    return f"gkbus.{bus}.signals"


class Endpoint(Transport):
    """A named endpoint on the bus called *bus*, through the AMQP broker at
    *host*:*port*."""

    timeout = 10

    def __init__(self, name: str, bus: str = "system", host: str = "localhost", port: int = 5672):
        self.name = name
        self.bus = bus
        self.host = host
        self.port = int(port)

        self._inbound: "queue.Queue[Optional[Message]]" = queue.Queue()
        self._outbox: "queue.Queue[Message]" = queue.Queue()
        self._ready = threading.Event()
        self._connection = None
        self._channel = None
        self._thread: Optional[threading.Thread] = None
        self._failure: Optional[BaseException] = None

    @property
    def is_open(self) -> bool:
        return self._ready.is_set() and self._connection is not None and self._connection.is_open

    def open(self) -> None:
        if self.is_open:
            return

        self._thread = threading.Thread(target=self._run, daemon=True, name=f"gkbus.amqp.{self.name}")
        self._thread.start()
        self._ready.wait(timeout=self.timeout)

        if not self._ready.is_set():
            raise TransportConnectionError(
                f"not connected to AMQP broker at {self.host}:{self.port}: {self._failure}"
            )

    def close(self) -> None:
        if not self.is_open:
            return

        self._connection.add_callback_threadsafe(self._channel.stop_consuming)
        self._thread.join()
        self._ready.clear()
        self._inbound.put(None)

    def send(self, msg: Message) -> None:
        if not self.is_open:
            raise TransportConnectionError(f"endpoint {self.name!r} is not connected")

        if msg.hosed:
            raise errors.BuildFailure(f"refusing to send hosed message #{msg.serial}")

        if msg.sender is None:
            msg.sender = self.name

        self._outbox.put(msg)
        self._connection.add_callback_threadsafe(self._flush_outbox)

    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        try:
            return self._inbound.get(timeout=timeout)
        except queue.Empty:
            return None

    def _run(self) -> None:
        try:
            self._connection = pika.BlockingConnection(_broker_params(self.host, self.port))
        except pika.exceptions.AMQPConnectionError as e:
            self._failure = e
            log.error("unable to reach AMQP broker at %s:%d: %s", self.host, self.port, e)
            return

        self._channel = self._connection.channel()

        own = queue_name(self.bus, self.name)
        self._channel.queue_declare(queue=own, exclusive=True, auto_delete=True)
        self._channel.basic_consume(queue=own, on_message_callback=self._on_message, auto_ack=True)

        exchange = exchange_name(self.bus)
        self._channel.exchange_declare(exchange=exchange, exchange_type="fanout")
        result = self._channel.queue_declare(queue="", exclusive=True)
        signals = result.method.queue
        self._channel.queue_bind(queue=signals, exchange=exchange)
        self._channel.basic_consume(queue=signals, on_message_callback=self._on_message, auto_ack=True)

        self._ready.set()

        try:
            self._channel.start_consuming()
        finally:
            self._connection.close()

    def _on_message(self, _ch, _method, _properties, body: bytes) -> None:
        try:
            msg = unpack_frame(body)
        except errors.MalformedMessage as e:
            log.warning("%s: dropping malformed message: %s", self.name, e)
            return

        if msg.destination is None and msg.sender == self.name:
            # Our own broadcast signal, looped back by the exchange.
            return

        self._inbound.put(msg)

    def _flush_outbox(self) -> None:
        """Drain all queued outgoing messages (called on the connection
        thread via add_callback_threadsafe)."""

        while True:
            try:
                msg = self._outbox.get_nowait()
            except queue.Empty:
                break

            if msg.destination is None and msg.kind == fields.SIGNAL:
                exchange = exchange_name(self.bus)
                routing_key = ""
            elif msg.destination is None:
                log.warning("%s: dropping %s #%s without a destination", self.name, msg.kind, msg.serial)
                continue
            else:
                exchange = ""
                routing_key = queue_name(self.bus, msg.destination)

            self._channel.basic_publish(
                exchange=exchange,
                routing_key=routing_key,
                properties=pika.BasicProperties(correlation_id=str(msg.reply_serial or msg.serial)),
                body=pack_frame(msg),
            )

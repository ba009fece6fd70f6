"""RabbitMQ bus backend."""

from . import bus

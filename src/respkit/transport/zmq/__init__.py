"""ZeroMQ transport backend."""

from .stream import ZmqStreamTransport

"""Transport layer implementations."""

import os

from .base import (
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
)
from .stream import StreamTransport
from .zmq import ZmqStreamTransport


_BACKEND = os.environ.get("RESPKIT_TRANSPORT", "zmq")

backends = {
    "stream": StreamTransport,
    "zmq": ZmqStreamTransport,
}


def backend(name=None):
    """Return the transport class registered as *name*, or the default
    backend selected by the ``RESPKIT_TRANSPORT`` environment variable.
    """

    if name is None:
        name = _BACKEND

    try:
        return backends[name]
    except KeyError:
        raise ValueError(f"unknown transport backend: {name!r}") from None


def create(info):
    """Return an unopened transport for a
    :class:`~respkit.connection.ConnectionInfo`. Local socket paths always
    use the plain stream backend; ZeroMQ only speaks TCP to foreign peers.
    """

    if info.path is not None:
        return StreamTransport(info.path, timeout=info.timeout)

    cls = backend(info.transport)
    return cls((info.host, info.port), timeout=info.timeout)

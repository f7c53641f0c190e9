"""Plain socket transport, TCP or a local (unix domain) socket path."""

from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple, Union

from .base import Transport, TransportConnectionError, TransportError, TransportTimeout


log = logging.getLogger(__name__)


class StreamTransport(Transport):
    """Blocking socket connected to a single server.

    The *address* is either a ``(host, port)`` tuple or a filesystem path.
    The *timeout* is the default deadline, in seconds, for every read and
    write; None blocks indefinitely.
    """

    def __init__(self, address: Union[Tuple[str, int], str], timeout: Optional[float] = None,
                 connect_timeout: Optional[float] = 5.0):
        self.address = address
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.socket: Optional[socket.socket] = None

    def __repr__(self):
        return 'StreamTransport(%r)' % (self.address,)

    @property
    def is_open(self) -> bool:
        return self.socket is not None

    def open(self) -> None:
        if self.socket is not None:
            return

        address = self.address

        try:
            if isinstance(address, str):
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                sock.settimeout(self.connect_timeout)
                try:
                    sock.connect(address)
                except OSError:
                    sock.close()
                    raise
            else:
                sock = socket.create_connection(address, timeout=self.connect_timeout)
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as exc:
            raise TransportConnectionError(f"cannot connect to {address!r}: {exc}") from exc

        sock.settimeout(self.timeout)
        self.socket = sock
        log.debug("connected to %r", address)

    def close(self) -> None:
        sock = self.socket
        if sock is None:
            return

        self.socket = None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected by the peer.
            pass
        sock.close()
        log.debug("closed connection to %r", self.address)

    def _require(self) -> socket.socket:
        if self.socket is None:
            raise TransportConnectionError(f"transport to {self.address!r} is not open")
        return self.socket

    def write(self, data: bytes) -> None:
        sock = self._require()
        try:
            sock.sendall(data)
        except socket.timeout as exc:
            raise TransportTimeout(f"write to {self.address!r} timed out") from exc
        except OSError as exc:
            raise TransportError(f"write to {self.address!r} failed: {exc}") from exc

    def read_some(self, size: Optional[int] = None, timeout: Optional[float] = None) -> bytes:
        sock = self._require()
        if size is None:
            size = self.default_read_size

        if timeout is not None:
            sock.settimeout(timeout)

        try:
            return sock.recv(size)
        except socket.timeout as exc:
            raise TransportTimeout(f"no data from {self.address!r} in time") from exc
        except OSError as exc:
            raise TransportError(f"read from {self.address!r} failed: {exc}") from exc
        finally:
            if timeout is not None:
                sock.settimeout(self.timeout)

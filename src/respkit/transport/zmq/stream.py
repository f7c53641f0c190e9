"""ZeroMQ raw TCP transport.

A ZeroMQ ``STREAM`` socket speaks plain TCP to a non-ZeroMQ peer. Every
inbound message is two frames, the peer routing id and a chunk of bytes;
an empty chunk announces a connect or a disconnect. Outbound data is sent
the same way, prefixed with the routing id of the peer.
"""

from __future__ import annotations

import atexit
import logging
from typing import Optional, Tuple

import zmq

from ..base import Transport, TransportConnectionError, TransportError, TransportTimeout


log = logging.getLogger(__name__)

zmq_context = zmq.Context()


class ZmqStreamTransport(Transport):
    """Connect a ZeroMQ STREAM socket to a single RESP server."""

    def __init__(self, address: Tuple[str, int], timeout: Optional[float] = None,
                 connect_timeout: Optional[float] = 5.0):
        host, port = address
        self.address = (host, int(port))
        self.server = f"tcp://{host}:{int(port)}"
        self.timeout = timeout
        self.connect_timeout = connect_timeout

        self.socket = None
        self.peer: Optional[bytes] = None
        self._leftover = b""

    def __repr__(self):
        return f"ZmqStreamTransport({self.server!r})"

    @property
    def is_open(self) -> bool:
        return self.peer is not None

    def _poll(self, timeout: Optional[float]) -> bool:
        if timeout is None:
            milliseconds = -1
        else:
            milliseconds = int(timeout * 1000)

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        return bool(poller.poll(milliseconds))

    def open(self) -> None:
        if self.peer is not None:
            return

        self.socket = zmq_context.socket(zmq.STREAM)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.connect(self.server)

        # Nothing can be sent until the connect notification names the peer;
        # a STREAM socket silently drops data addressed to an unknown peer.

        try:
            ready = self._poll(self.connect_timeout)
        except zmq.ZMQError as exc:
            self._teardown()
            raise TransportConnectionError(f"cannot connect to {self.server}: {exc}") from exc

        if not ready:
            self._teardown()
            raise TransportConnectionError(
                f"cannot connect to {self.server}: no connection in {self.connect_timeout} sec"
            )

        peer, data = self.socket.recv_multipart()
        self.peer = peer
        self._leftover = data
        log.debug("connected to %s", self.server)

    def _teardown(self) -> None:
        if self.socket is not None:
            self.socket.close(linger=0)
        self.socket = None
        self.peer = None
        self._leftover = b""

    def close(self) -> None:
        if self.socket is None:
            return

        if self.peer is not None:
            # An empty frame addressed to the peer closes the TCP connection.
            try:
                self.socket.send_multipart((self.peer, b""), flags=zmq.NOBLOCK)
            except zmq.ZMQError:
                pass

        self._teardown()
        log.debug("closed connection to %s", self.server)

    def _require(self) -> None:
        if self.peer is None:
            raise TransportConnectionError(f"transport to {self.server} is not open")

    def write(self, data: bytes) -> None:
        self._require()
        try:
            self.socket.send_multipart((self.peer, data))
        except zmq.ZMQError as exc:
            raise TransportError(f"write to {self.server} failed: {exc}") from exc

    def read_some(self, size: Optional[int] = None, timeout: Optional[float] = None) -> bytes:
        self._require()
        if size is None:
            size = self.default_read_size

        if not self._leftover:
            if timeout is None:
                timeout = self.timeout

            try:
                if not self._poll(timeout):
                    raise TransportTimeout(f"no data from {self.server} in {timeout} sec")
                peer, data = self.socket.recv_multipart()
            except zmq.ZMQError as exc:
                raise TransportError(f"read from {self.server} failed: {exc}") from exc

            if not data:
                # Disconnect notification.
                self.peer = None
                return b""

            self._leftover = data

        chunk = self._leftover[:size]
        self._leftover = self._leftover[size:]
        return chunk


def _cleanup() -> None:
    try:
        zmq_context.destroy(linger=0)
    except Exception:
        pass


atexit.register(_cleanup)

"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`respkit.protocol` so the codec remains transport-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..errors import IoError


# Transport agnostic exceptions

class TransportError(IoError):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """A read did not complete before the transport deadline."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class Transport(ABC):
    """Minimal contract for a byte-stream transport."""

    default_read_size = 65536

    @abstractmethod
    def open(self) -> None:
        """Establish the underlying connection/socket."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Send all of *data*."""

    @abstractmethod
    def read_some(self, size: Optional[int] = None, timeout: Optional[float] = None) -> bytes:
        """Return up to *size* bytes, blocking until at least one byte is
        available. An empty result means the peer closed the connection.
        A *timeout* overrides the transport's default deadline for this
        read only.
        """

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False

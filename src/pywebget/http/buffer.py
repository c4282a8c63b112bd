"""In-memory sink for streamed response bodies."""

import logging
from typing import Optional

from pywebget.errors import ResourceExhaustionError

logger = logging.getLogger(__name__)


class ResponseBuffer:
    """Growable byte buffer accumulating a response body chunk by chunk.

    Data is kept in a ``bytearray`` (amortized growth). A NUL-terminated copy
    is only produced on request via :meth:`terminated`, so consumers that want
    C-string semantics still get them.

    Attributes:
        max_size: Optional upper bound on the buffer length in bytes
    """

    def __init__(self, max_size: Optional[int] = None):
        """Initialize an empty buffer.

        Args:
            max_size: Maximum number of bytes to accept (None is unlimited)
        """
        self.max_size = max_size
        self._data = bytearray()

    def append(self, chunk: bytes) -> int:
        """Append a chunk to the end of the buffer.

        Args:
            chunk: Bytes received from the transport

        Returns:
            Number of bytes consumed (always ``len(chunk)``)

        Raises:
            ResourceExhaustionError: If the buffer cannot grow to hold the chunk
        """
        size = len(chunk)
        if self.max_size is not None and len(self._data) + size > self.max_size:
            raise ResourceExhaustionError(
                f"Response body exceeds limit of {self.max_size} bytes"
            )

        try:
            self._data += chunk
        except MemoryError as e:
            raise ResourceExhaustionError(
                f"Not enough memory to grow response buffer past {len(self._data)} bytes"
            ) from e

        return size

    def read(self, encoding: str = "utf-8") -> str:
        """Return the buffer content decoded as text.

        Undecodable bytes are replaced rather than raising.
        """
        return self._data.decode(encoding, errors="replace")

    def content(self) -> bytes:
        """Return the raw buffer content."""
        return bytes(self._data)

    def terminated(self) -> bytes:
        """Return the content followed by a single NUL byte."""
        return bytes(self._data) + b"\x00"

    def reset(self) -> None:
        """Discard all content."""
        self._data = bytearray()

    def __len__(self) -> int:
        return len(self._data)

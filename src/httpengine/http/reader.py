"""
=============================================================================
BOUNDED READER
=============================================================================

A keep-alive connection carries request after request on one byte stream:

    POST /files/a HTTP/1.1\r\n
    Content-Length: 5\r\n
    \r\n
    hello                      ← body: exactly 5 bytes
    GET /echo/x HTTP/1.1\r\n   ← next request starts at byte 6

Reading the body with a plain stream.read() risks consuming bytes that
belong to the next request line. BoundedReader clamps every read to the
remaining budget, so the underlying stream stops EXACTLY at the declared
length:

    ┌──────────────────────────────────────────────────────────────────┐
    │  read(size)                                                      │
    │                                                                  │
    │     remaining <= 0 ?  ──yes──►  return b""   (end of body)       │
    │          │                                                       │
    │          no                                                      │
    │          ▼                                                       │
    │     size = min(size, remaining)      ← never ask for more        │
    │     data = stream.read(size)                                     │
    │     remaining -= len(data)                                       │
    │     return data                                                  │
    │                                                                  │
    └──────────────────────────────────────────────────────────────────┘

The check happens BEFORE delegating, so once the budget is spent the
underlying stream is not touched at all, even if the client keeps
sending.

=============================================================================
"""

from typing import BinaryIO, Optional


class BoundedReader:
    """
    Read wrapper that refuses to deliver more than a fixed number of bytes.

    Args:
        stream: Underlying buffered byte stream (anything with read(n)).
        limit: Number of bytes this reader may deliver.
    """

    def __init__(self, stream: BinaryIO, limit: int):
        self._stream = stream
        self._remaining = limit

    @property
    def remaining(self) -> int:
        """Bytes still allowed before the reader reports end of stream."""
        return self._remaining

    def read(self, size: Optional[int] = -1) -> bytes:
        """
        Read at most `size` bytes, never past the budget.

        A negative or None size means "everything that is left".
        """
        if self._remaining <= 0:
            return b""

        if size is None or size < 0 or size > self._remaining:
            size = self._remaining

        data = self._stream.read(size)
        self._remaining -= len(data)
        return data

    def read_exactly(self, size: int) -> bytes:
        """
        Collect up to `size` bytes, looping over short reads.

        Stops early only at end of stream; callers compare the length of
        the result with what they asked for.
        """
        chunks = []
        needed = size
        while needed > 0:
            chunk = self.read(needed)
            if not chunk:
                break
            chunks.append(chunk)
            needed -= len(chunk)
        return b"".join(chunks)

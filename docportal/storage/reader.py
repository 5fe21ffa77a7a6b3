"""File-like adapter over the chunk iterators returned by storage SDK downloads."""
import io
from typing import Callable, Iterable, Iterator, Optional


class ChunkReader(io.RawIOBase):
    """Forward-only reader over an iterable of byte chunks.

    The Azure and S3 SDKs both stream downloads as chunk iterators. This
    wraps them in a regular binary file object that reports itself as
    non-seekable, which is the truthful answer for a network download.
    Like any raw stream, read(n) returns at most one chunk and may be short;
    read() with no size drains the rest.
    """

    def __init__(self, chunks: Iterable[bytes], on_close: Optional[Callable[[], None]] = None):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._pending = b""
        self._on_close = on_close

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed reader")
        while not self._pending:
            chunk = next(self._chunks, None)
            if chunk is None:
                return 0
            self._pending = chunk
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed and self._on_close is not None:
            self._on_close()
        super().close()

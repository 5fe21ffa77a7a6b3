"""Make download streams rewindable so failed analysis attempts can resend them."""
import io
import os
from typing import BinaryIO, Optional

from docportal.exceptions import StreamTooLargeError

DEFAULT_MAX_DOCUMENT_BYTES = 50 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024


class StreamNormalizer:
    """Buffers non-seekable streams in memory under a size ceiling."""

    def __init__(self, max_bytes: Optional[int] = None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if max_bytes is None:
            max_bytes = int(os.getenv("MAX_DOCUMENT_BYTES", str(DEFAULT_MAX_DOCUMENT_BYTES)))
        if max_bytes <= 0:
            raise ValueError("max_bytes must be positive")
        self.max_bytes = max_bytes
        self.chunk_size = chunk_size

    def normalize(self, source: BinaryIO) -> BinaryIO:
        """
        Return a seekable stream positioned at 0 with the same bytes as source.

        A seekable source is handed back unchanged (not rewound; the invoker
        rewinds before every attempt). Otherwise source is drained into a
        BytesIO. The source itself is never closed here.

        Raises:
            StreamTooLargeError: As soon as more than max_bytes have been read
        """
        if _is_seekable(source):
            return source

        buffer = io.BytesIO()
        size = 0
        while True:
            chunk = source.read(self.chunk_size)
            if not chunk:
                break
            size += len(chunk)
            if size > self.max_bytes:
                buffer.close()
                raise StreamTooLargeError(self.max_bytes)
            buffer.write(chunk)

        buffer.seek(0)
        return buffer


def _is_seekable(source: BinaryIO) -> bool:
    seekable = getattr(source, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except ValueError:
        # closed file
        return False

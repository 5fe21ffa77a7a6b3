"""Sort analysis failures into transient (retry) and fatal (stop).

Pure: no I/O, no logging. The reasons returned here are what end users see,
so they are fixed strings and never contain exception text.
"""
import io
from dataclasses import dataclass
from enum import Enum

from docportal.analysis.models import FatalKind
from docportal.exceptions import (
    BadRequestError,
    DocumentTooLargeError,
    RateLimitedError,
    StreamTooLargeError,
    TransientAnalysisError,
)


class FailureClass(str, Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class Classification:
    failure_class: FailureClass
    reason: str
    kind: FatalKind = FatalKind.UNEXPECTED

    @property
    def is_transient(self) -> bool:
        return self.failure_class is FailureClass.TRANSIENT


RATE_LIMITED = Classification(FailureClass.TRANSIENT, "service is rate limiting requests")
SERVICE_UNAVAILABLE = Classification(FailureClass.TRANSIENT, "service temporarily unavailable")
TRANSIENT_IO = Classification(FailureClass.TRANSIENT, "transient network failure")
REJECTED = Classification(
    FailureClass.FATAL,
    "invalid document format or model incompatibility",
    FatalKind.REJECTED,
)
TOO_LARGE = Classification(
    FailureClass.FATAL,
    "document is too large to process, please use a smaller file",
    FatalKind.TOO_LARGE,
)
UNEXPECTED = Classification(FailureClass.FATAL, "analysis failed", FatalKind.UNEXPECTED)


def classify_failure(error: BaseException) -> Classification:
    if isinstance(error, RateLimitedError):
        return RATE_LIMITED
    if isinstance(error, TransientAnalysisError):
        return SERVICE_UNAVAILABLE
    if isinstance(error, BadRequestError):
        return REJECTED
    if isinstance(error, (DocumentTooLargeError, StreamTooLargeError, MemoryError)):
        return TOO_LARGE
    # a stream that cannot seek will fail the same way every time
    if isinstance(error, io.UnsupportedOperation):
        return UNEXPECTED
    if isinstance(error, (TimeoutError, ConnectionError, OSError)):
        return TRANSIENT_IO
    return UNEXPECTED

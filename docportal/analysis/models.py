from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, List, Tuple, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class DocumentLine:
    """A line of text with its outline polygon as flat [x0, y0, x1, y1, ...]."""

    content: str
    polygon: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentPage:
    page_number: int
    width: float = 0.0
    height: float = 0.0
    unit: str = "pixel"
    angle: float = 0.0
    lines: List[DocumentLine] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentTableCell:
    row_index: int
    column_index: int
    content: str
    row_span: int = 1
    column_span: int = 1


@dataclass(frozen=True)
class DocumentTable:
    row_count: int
    column_count: int
    cells: List[DocumentTableCell] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentKeyValuePair:
    key: str
    value: str
    confidence: float


@dataclass(frozen=True)
class NormalizedAnalysisResult:
    """Service-independent shape of one completed analysis."""

    document_id: str
    model_id: str
    content: str = ""
    status: str = "Completed"
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    pages: List[DocumentPage] = field(default_factory=list)
    tables: List[DocumentTable] = field(default_factory=list)
    key_value_pairs: List[DocumentKeyValuePair] = field(default_factory=list)


class AttemptResult(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class AnalysisAttempt:
    """Record of one call to the analysis service within a single request."""

    attempt_number: int
    delay_before_attempt: float
    result: AttemptResult
    reason: str = ""


class FatalKind(str, Enum):
    EXHAUSTED = "exhausted"
    REJECTED = "rejected"
    TOO_LARGE = "too_large"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Succeeded(Generic[T]):
    value: T
    attempts: Tuple[AnalysisAttempt, ...] = ()


@dataclass(frozen=True)
class FailedFatal:
    """Terminal failure. reason is safe to show to end users."""

    reason: str
    kind: FatalKind = FatalKind.UNEXPECTED
    attempts: Tuple[AnalysisAttempt, ...] = ()


@dataclass(frozen=True)
class Cancelled:
    attempts: Tuple[AnalysisAttempt, ...] = ()


RetryOutcome = Union[Succeeded[T], FailedFatal, Cancelled]
AnalysisOutcome = Union[Succeeded[NormalizedAnalysisResult], FailedFatal, Cancelled]

from dataclasses import dataclass, field
from typing import Tuple

from docportal.storage.base import BlobRecord

MIN_RESULTS = 1
MAX_RESULTS = 1000
DEFAULT_MAX_RESULTS = 100


@dataclass(frozen=True)
class SearchQuery:
    """One search request against a single container."""

    container_name: str
    raw_term: str
    max_results: int = DEFAULT_MAX_RESULTS


@dataclass(frozen=True)
class SearchOutcome:
    """Result of a bounded search.

    total_matches counts every match seen during the scan, including those
    past the result cap that were not materialized into matched_records.
    """

    query: SearchQuery
    matched_records: Tuple[BlobRecord, ...] = field(default_factory=tuple)
    total_matches: int = 0
    examined_count: int = 0

    @property
    def truncated(self) -> bool:
        return self.total_matches > self.query.max_results

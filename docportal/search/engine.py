"""Bounded blob search with early termination."""
import threading
from typing import List, Optional

from docportal.events import EventObserver, NullObserver
from docportal.exceptions import (
    ContainerNotFoundError,
    InvalidQueryError,
    OperationCancelledError,
    SearchUnavailableError,
)
from docportal.search.models import MAX_RESULTS, MIN_RESULTS, SearchOutcome, SearchQuery
from docportal.search.pattern import compile_pattern
from docportal.storage.base import BlobRecord, BlobStore

# Once the result list is full, keep scanning until this many multiples of
# max_results candidates have been examined, purely to improve total_matches.
# Matches beyond that window are not counted, so total_matches is a lower
# bound for large containers whose matches are spread out past the cap.
OVERSCAN_FACTOR = 2


def validate_query(query: SearchQuery) -> None:
    """Raise InvalidQueryError for unusable parameters. Does no I/O."""
    if not query.container_name or not query.container_name.strip():
        raise InvalidQueryError("Container name is required")
    if not query.raw_term or not query.raw_term.strip():
        raise InvalidQueryError("Search term is required")
    if isinstance(query.max_results, bool) or not isinstance(query.max_results, int):
        raise InvalidQueryError("max_results must be an integer")
    if not MIN_RESULTS <= query.max_results <= MAX_RESULTS:
        raise InvalidQueryError(
            f"max_results must be between {MIN_RESULTS} and {MAX_RESULTS}"
        )


def search(
    blob_source: BlobStore,
    query: SearchQuery,
    cancel: Optional[threading.Event] = None,
    observer: Optional[EventObserver] = None,
) -> SearchOutcome:
    """Search a container's blob names for a wildcard or literal term.

    Blobs are pulled from the store one at a time in its native order and
    matches are kept in that order. The scan stops early once the result list
    is full and OVERSCAN_FACTOR * max_results candidates have been examined.

    Raises:
        InvalidQueryError: bad parameters (raised before the store is touched).
        ContainerNotFoundError: the container does not exist.
        SearchUnavailableError: the store failed during enumeration.
        OperationCancelledError: cancel was set while scanning.
    """
    validate_query(query)
    observer = observer or NullObserver()
    matcher = compile_pattern(query.raw_term.strip())
    limit = query.max_results

    matched: List[BlobRecord] = []
    total_matches = 0
    examined = 0

    try:
        blobs = iter(blob_source.list_blobs(query.container_name))
        while True:
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError("Search cancelled")
            blob = next(blobs, None)
            if blob is None:
                break

            examined += 1
            if matcher.matches(blob.name):
                total_matches += 1
                if len(matched) < limit:
                    matched.append(blob)

            if len(matched) >= limit and examined >= limit * OVERSCAN_FACTOR:
                break
    except (ContainerNotFoundError, OperationCancelledError):
        raise
    except Exception as e:
        observer.emit(
            "search_failed",
            container=query.container_name,
            error_type=type(e).__name__,
            examined=examined,
        )
        raise SearchUnavailableError(
            f"Blob listing failed for container {query.container_name}"
        ) from e

    outcome = SearchOutcome(
        query=query,
        matched_records=tuple(matched),
        total_matches=total_matches,
        examined_count=examined,
    )
    observer.emit(
        "search_completed",
        container=query.container_name,
        term=query.raw_term,
        wildcard=matcher.is_wildcard,
        total_matches=total_matches,
        returned=len(matched),
        examined=examined,
        truncated=outcome.truncated,
    )
    return outcome

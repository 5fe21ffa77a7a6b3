"""Bounded retry with exponential backoff.

State machine::

    PENDING -> ATTEMPTING -> SUCCEEDED
                          -> RETRYING -> (wait) -> ATTEMPTING
                          -> FAILED_FATAL
    (cancel observed before an attempt or during a wait) -> CANCELLED

The driver knows nothing about documents: what counts as transient is decided
by the classifier it is given.
"""
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar

from docportal.analysis.classifier import Classification
from docportal.analysis.models import (
    AnalysisAttempt,
    AttemptResult,
    Cancelled,
    FailedFatal,
    FatalKind,
    RetryOutcome,
    Succeeded,
)
from docportal.events import EventObserver, NullObserver

T = TypeVar("T")

EXHAUSTED_REASON = "exhausted retries"


class RetryState(str, Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED_FATAL = "failed_fatal"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0

    def backoff_after(self, attempt_number: int) -> float:
        """Seconds to wait after a transient failure on the given attempt."""
        return self.base_delay * 2 ** (attempt_number - 1)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            max_attempts=int(os.getenv("ANALYSIS_MAX_ATTEMPTS", "3")),
            base_delay=float(os.getenv("ANALYSIS_BACKOFF_BASE_SECONDS", "1.0")),
        )


def run_with_backoff(
    operation: Callable[[int], T],
    classify: Callable[[BaseException], Classification],
    policy: Optional[RetryPolicy] = None,
    cancel: Optional[threading.Event] = None,
    observer: Optional[EventObserver] = None,
    wait: Optional[Callable[[float], bool]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> RetryOutcome[T]:
    """Call operation(attempt_number) until it succeeds or retrying stops.

    Args:
        operation: The unit of work; receives the 1-based attempt number.
        classify: Maps a raised exception to transient or fatal.
        policy: Attempt limit and backoff base.
        cancel: Set by the caller to abort before the next attempt.
        observer: Receives one ``retry_transition`` event per state change.
        wait: Sleeps for the given seconds and returns True if cancelled.
            Defaults to ``cancel.wait``.
        context: Extra fields attached to every event.

    Returns:
        Succeeded, FailedFatal or Cancelled. Exceptions from operation never
        escape; they are classified and folded into the outcome.
    """
    policy = policy or RetryPolicy()
    cancel = cancel or threading.Event()
    observer = observer or NullObserver()
    wait = wait or cancel.wait
    context = context or {}

    attempts: List[AnalysisAttempt] = []
    attempt_number = 1
    delay = 0.0

    def transition(state: RetryState, **fields: Any) -> None:
        observer.emit(
            "retry_transition",
            state=state.value,
            attempt=attempt_number,
            max_attempts=policy.max_attempts,
            **context,
            **fields,
        )

    transition(RetryState.PENDING)
    while True:
        if cancel.is_set():
            transition(RetryState.CANCELLED)
            return Cancelled(attempts=tuple(attempts))

        transition(RetryState.ATTEMPTING, delay_s=delay)
        try:
            value = operation(attempt_number)
        except Exception as error:
            verdict = classify(error)
            if verdict.is_transient and attempt_number < policy.max_attempts:
                attempts.append(AnalysisAttempt(
                    attempt_number, delay, AttemptResult.RETRYABLE_FAILURE, verdict.reason
                ))
                delay = policy.backoff_after(attempt_number)
                transition(
                    RetryState.RETRYING,
                    delay_s=delay,
                    reason=verdict.reason,
                    error_type=type(error).__name__,
                )
                if wait(delay):
                    transition(RetryState.CANCELLED)
                    return Cancelled(attempts=tuple(attempts))
                attempt_number += 1
                continue

            if verdict.is_transient:
                reason, kind = EXHAUSTED_REASON, FatalKind.EXHAUSTED
            else:
                reason, kind = verdict.reason, verdict.kind
            attempts.append(AnalysisAttempt(
                attempt_number, delay, AttemptResult.FATAL_FAILURE, verdict.reason
            ))
            transition(
                RetryState.FAILED_FATAL,
                reason=reason,
                error_type=type(error).__name__,
                error=str(error),
            )
            return FailedFatal(reason=reason, kind=kind, attempts=tuple(attempts))

        attempts.append(AnalysisAttempt(attempt_number, delay, AttemptResult.SUCCESS))
        transition(RetryState.SUCCEEDED)
        return Succeeded(value=value, attempts=tuple(attempts))

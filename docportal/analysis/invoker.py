"""Submit documents to the analysis service with bounded retries."""
import threading
from typing import BinaryIO, Callable, Optional

from docportal.analysis.classifier import Classification, classify_failure
from docportal.analysis.client import AnalysisClient
from docportal.analysis.models import AnalysisOutcome, NormalizedAnalysisResult
from docportal.analysis.retry import RetryPolicy, run_with_backoff
from docportal.events import EventObserver, LoggingObserver


class RetryableAnalysisInvoker:
    """Wraps an AnalysisClient in run_with_backoff, rewinding the stream per attempt."""

    def __init__(
        self,
        client: AnalysisClient,
        policy: Optional[RetryPolicy] = None,
        observer: Optional[EventObserver] = None,
        wait: Optional[Callable[[float], bool]] = None,
        classify: Callable[[BaseException], Classification] = classify_failure,
    ):
        self.client = client
        self.policy = policy or RetryPolicy.from_env()
        self.observer = observer or LoggingObserver()
        self.wait = wait
        self.classify = classify

    def analyze(
        self,
        stream: BinaryIO,
        model_id: str,
        document_id: str,
        high_resolution: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisOutcome:
        """
        Analyze a seekable stream.

        The stream is not closed here. Every failure, including ones raised
        while rewinding, comes back as FailedFatal rather than an exception.
        """
        def attempt(attempt_number: int) -> NormalizedAnalysisResult:
            stream.seek(0)
            return self.client.submit(
                model_id,
                stream,
                document_id=document_id,
                high_resolution=high_resolution,
            )

        return self._run(attempt, document_id, model_id, cancel)

    def analyze_url(
        self,
        url: str,
        model_id: str,
        document_id: str,
        high_resolution: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisOutcome:
        """Analyze a document the service downloads from url. Nothing to rewind."""
        def attempt(attempt_number: int) -> NormalizedAnalysisResult:
            return self.client.submit_url(
                model_id,
                url,
                document_id=document_id,
                high_resolution=high_resolution,
            )

        return self._run(attempt, document_id, model_id, cancel)

    def _run(
        self,
        attempt: Callable[[int], NormalizedAnalysisResult],
        document_id: str,
        model_id: str,
        cancel: Optional[threading.Event],
    ) -> AnalysisOutcome:
        return run_with_backoff(
            attempt,
            self.classify,
            policy=self.policy,
            cancel=cancel,
            observer=self.observer,
            wait=self.wait,
            context={"document_id": document_id, "model_id": model_id},
        )

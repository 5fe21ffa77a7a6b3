"""Document analysis orchestration: open, normalize, analyze, close."""
import os
import threading
from contextlib import ExitStack
from typing import BinaryIO, Optional

from docportal.analysis.client import DEFAULT_MODEL_ID
from docportal.analysis.invoker import RetryableAnalysisInvoker
from docportal.analysis.models import AnalysisOutcome
from docportal.analysis.stream import StreamNormalizer
from docportal.exceptions import BlobNotFoundError, EmptyDocumentError, InvalidQueryError
from docportal.logging import get_logger, stage
from docportal.storage.base import DEFAULT_CONTENT_TYPE, BlobStore

logger = get_logger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heif": "image/heif",
    ".heic": "image/heif",
}


def content_type_for(filename: str) -> str:
    """Guess a document MIME type from its extension."""
    _, ext = os.path.splitext(filename or "")
    return CONTENT_TYPES.get(ext.lower(), DEFAULT_CONTENT_TYPE)


class DocumentAnalysisService:
    def __init__(
        self,
        store: BlobStore,
        invoker: RetryableAnalysisInvoker,
        normalizer: Optional[StreamNormalizer] = None,
    ):
        self.store = store
        self.invoker = invoker
        self.normalizer = normalizer or StreamNormalizer()

    def analyze_from_storage(
        self,
        container: str,
        blob_name: str,
        model_id: str = DEFAULT_MODEL_ID,
        high_resolution: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisOutcome:
        """
        Stream a stored blob into the analysis service.

        Raises:
            InvalidQueryError: Empty container or blob name
            BlobNotFoundError: The blob does not exist
            StreamTooLargeError: The blob is over the buffering limit
        """
        _require_names(container, blob_name)

        model_id = model_id or DEFAULT_MODEL_ID
        with stage("analyze_from_storage", container=container, blob=blob_name, model_id=model_id):
            with ExitStack() as stack:
                source = stack.enter_context(self.store.open_blob(container, blob_name))
                stream = self.normalizer.normalize(source)
                if stream is not source:
                    stack.enter_context(stream)
                document_id = self.store.blob_uri(container, blob_name)
                outcome = self.invoker.analyze(
                    stream,
                    model_id,
                    document_id=document_id,
                    high_resolution=high_resolution,
                    cancel=cancel,
                )

        logger.info("analysis_finished", extra={
            "container": container,
            "blob": blob_name,
            "outcome": type(outcome).__name__,
            "attempts": len(outcome.attempts)
        })
        return outcome

    def analyze_from_uri(
        self,
        container: str,
        blob_name: str,
        model_id: str = DEFAULT_MODEL_ID,
        high_resolution: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisOutcome:
        """
        Have the analysis service fetch a stored blob by its URI.

        The service needs read access to the blob (public container, SAS or
        a storage role for its identity). No bytes pass through this process.

        Raises:
            InvalidQueryError: Empty container or blob name
            BlobNotFoundError: The blob does not exist
        """
        _require_names(container, blob_name)
        if not self.store.blob_exists(container, blob_name):
            raise BlobNotFoundError(f"Blob not found: {container}/{blob_name}")

        model_id = model_id or DEFAULT_MODEL_ID
        uri = self.store.blob_uri(container, blob_name)
        with stage("analyze_from_uri", container=container, blob=blob_name, model_id=model_id):
            outcome = self.invoker.analyze_url(
                uri,
                model_id,
                document_id=uri,
                high_resolution=high_resolution,
                cancel=cancel,
            )

        logger.info("analysis_finished", extra={
            "container": container,
            "blob": blob_name,
            "outcome": type(outcome).__name__,
            "attempts": len(outcome.attempts)
        })
        return outcome

    def analyze_stream(
        self,
        stream: BinaryIO,
        document_id: str,
        model_id: str = DEFAULT_MODEL_ID,
        high_resolution: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisOutcome:
        """
        Analyze caller-supplied bytes (uploads). The caller closes stream.

        Raises:
            EmptyDocumentError: stream has no content
            StreamTooLargeError: stream is over the buffering limit
        """
        model_id = model_id or DEFAULT_MODEL_ID
        with stage("analyze_stream", document_id=document_id, model_id=model_id):
            with ExitStack() as stack:
                normalized = self.normalizer.normalize(stream)
                if normalized is not stream:
                    stack.enter_context(normalized)
                if _is_empty(normalized):
                    raise EmptyDocumentError(f"Document {document_id} is empty")
                return self.invoker.analyze(
                    normalized,
                    model_id,
                    document_id=document_id,
                    high_resolution=high_resolution,
                    cancel=cancel,
                )


def _require_names(container: str, blob_name: str) -> None:
    if not container or not container.strip():
        raise InvalidQueryError("Container name is required")
    if not blob_name or not blob_name.strip():
        raise InvalidQueryError("Blob name is required")


def _is_empty(stream: BinaryIO) -> bool:
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size == 0

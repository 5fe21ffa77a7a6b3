"""Document analysis service adapters."""
import os
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Callable, Dict, List, Optional

from azure.ai.formrecognizer import AnalysisFeature, DocumentAnalysisClient
from azure.core.credentials import TokenCredential
from azure.core.exceptions import HttpResponseError, ServiceRequestError, ServiceResponseError

from docportal.analysis.mapper import map_analyze_result
from docportal.analysis.models import NormalizedAnalysisResult
from docportal.exceptions import (
    AnalysisError,
    BadRequestError,
    ConfigError,
    DocumentTooLargeError,
    RateLimitedError,
    TransientAnalysisError,
)
from docportal.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL_ID = "prebuilt-document"

PREBUILT_MODELS = [
    "prebuilt-document",
    "prebuilt-read",
    "prebuilt-layout",
    "prebuilt-invoice",
    "prebuilt-receipt",
    "prebuilt-idDocument",
    "prebuilt-businessCard",
    "prebuilt-tax.us.w2",
]

_TRANSIENT_STATUS = {408, 500, 502, 503, 504}


def available_models() -> List[str]:
    """Prebuilt model ids accepted by the analysis service."""
    return list(PREBUILT_MODELS)


class AnalysisClient(ABC):
    """Abstract analysis service: submit a document, wait for the result."""

    @abstractmethod
    def submit(
        self,
        model_id: str,
        stream: BinaryIO,
        document_id: str,
        high_resolution: bool = False,
    ) -> NormalizedAnalysisResult:
        """
        Analyze one document and block until the result is ready.

        Args:
            model_id: Prebuilt or custom model id
            stream: Document bytes, positioned at the start
            document_id: Identifier carried into the result
            high_resolution: Request high resolution OCR

        Raises:
            RateLimitedError: Service throttled the call
            BadRequestError: Malformed document or incompatible model
            DocumentTooLargeError: Service refused the size
            TransientAnalysisError: Recoverable service or network fault
        """
        pass

    @abstractmethod
    def submit_url(
        self,
        model_id: str,
        url: str,
        document_id: str,
        high_resolution: bool = False,
    ) -> NormalizedAnalysisResult:
        """
        Analyze a document the service fetches itself from url.

        Raises the same errors as submit.
        """
        pass


def translate_http_error(error: HttpResponseError) -> AnalysisError:
    status = error.status_code
    if status == 429:
        return RateLimitedError("Analysis service rate limited the request")
    if status in (400, 415):
        return BadRequestError(f"Analysis service rejected the request ({status})")
    if status == 413:
        return DocumentTooLargeError("Analysis service refused the document size")
    if status in _TRANSIENT_STATUS:
        return TransientAnalysisError(f"Analysis service unavailable ({status})")
    return AnalysisError(f"Analysis service returned {status}")


class FormRecognizerAnalysisClient(AnalysisClient):
    """Azure Document Intelligence via azure-ai-formrecognizer."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        credential: Optional[TokenCredential] = None,
        client: Optional[DocumentAnalysisClient] = None,
    ):
        if client is not None:
            self.client = client
            return

        self.endpoint = endpoint or os.getenv("DOCUMENT_INTELLIGENCE_ENDPOINT")
        if not self.endpoint:
            raise ConfigError("DOCUMENT_INTELLIGENCE_ENDPOINT is required")
        if credential is None:
            raise ConfigError("A credential is required for the analysis service")

        # retries belong to RetryableAnalysisInvoker; the pipeline makes one try
        self.client = DocumentAnalysisClient(
            endpoint=self.endpoint.rstrip("/"),
            credential=credential,
            retry_total=0
        )
        logger.info("analysis_client_initialized", extra={"endpoint": self.endpoint})

    def submit(
        self,
        model_id: str,
        stream: BinaryIO,
        document_id: str,
        high_resolution: bool = False,
    ) -> NormalizedAnalysisResult:
        return self._analyze(
            lambda options: self.client.begin_analyze_document(model_id, document=stream, **options),
            model_id,
            document_id,
            high_resolution,
        )

    def submit_url(
        self,
        model_id: str,
        url: str,
        document_id: str,
        high_resolution: bool = False,
    ) -> NormalizedAnalysisResult:
        return self._analyze(
            lambda options: self.client.begin_analyze_document_from_url(model_id, document_url=url, **options),
            model_id,
            document_id,
            high_resolution,
        )

    def _analyze(
        self,
        begin: Callable[[Dict[str, Any]], Any],
        model_id: str,
        document_id: str,
        high_resolution: bool,
    ) -> NormalizedAnalysisResult:
        options: Dict[str, Any] = {}
        if high_resolution:
            options["features"] = [AnalysisFeature.OCR_HIGH_RESOLUTION]
        try:
            result = begin(options).result()
        except HttpResponseError as e:
            raise translate_http_error(e) from e
        except (ServiceRequestError, ServiceResponseError) as e:
            raise TransientAnalysisError("Analysis service connection failed") from e

        logger.info("document_analyzed", extra={
            "document_id": document_id,
            "model_id": model_id,
            "pages": len(result.pages or [])
        })
        return map_analyze_result(result, document_id=document_id, model_id=model_id)

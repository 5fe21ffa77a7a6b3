"""API routes for storage browsing, search and document analysis."""
import os
import threading
from contextlib import contextmanager
from typing import BinaryIO, Iterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from docportal.analysis.client import DEFAULT_MODEL_ID, available_models
from docportal.analysis.models import AnalysisOutcome, Cancelled, FatalKind, Succeeded
from docportal.analysis.service import DocumentAnalysisService, content_type_for
from docportal.api.deps import (
    provide_analysis_service,
    provide_blob_store,
    provide_cancel_event,
    provide_observer,
)
from docportal.api.models import (
    AnalyzeDocumentResponse,
    AnalyzeFromStorageRequest,
    BlobExistsResponse,
    DocumentAnalysisResult,
    ListContainersResponse,
    ListDocumentsResponse,
    ModelsResponse,
    SearchDocumentsResponse,
    StorageDocument,
)
from docportal.events import EventObserver
from docportal.exceptions import (
    BlobNotFoundError,
    ContainerNotFoundError,
    EmptyDocumentError,
    InvalidQueryError,
    OperationCancelledError,
    SearchUnavailableError,
    StreamTooLargeError,
)
from docportal.logging import get_logger
from docportal.search.engine import search as search_blobs
from docportal.search.models import DEFAULT_MAX_RESULTS, SearchQuery
from docportal.storage.base import BlobStore

logger = get_logger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
DOWNLOAD_CHUNK_BYTES = 64 * 1024
ALLOWED_UPLOAD_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/bmp",
    "image/tiff",
    "image/heif",
}

_FATAL_STATUS = {
    FatalKind.REJECTED: 400,
    FatalKind.TOO_LARGE: 413,
    FatalKind.EXHAUSTED: 503,
    FatalKind.UNEXPECTED: 502,
}

# Create routers for different services
storage_router = APIRouter(prefix="/api/storage", tags=["storage"])
analysis_router = APIRouter(prefix="/api/documentanalysis", tags=["documentanalysis"])
health_router = APIRouter(prefix="/api/health", tags=["health"])


@contextmanager
def api_errors(operation: str):
    """Translate docportal errors to HTTP responses. Details never carry SDK text."""
    try:
        yield
    except HTTPException:
        raise
    except (InvalidQueryError, EmptyDocumentError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (ContainerNotFoundError, BlobNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StreamTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except SearchUnavailableError:
        raise HTTPException(status_code=502, detail="Storage is unavailable, please retry")
    except OperationCancelledError:
        raise HTTPException(status_code=503, detail="Service is shutting down")
    except Exception as e:
        logger.error(f"{operation}_failed", extra={
            "error_type": type(e).__name__,
            "error": str(e)
        })
        raise HTTPException(status_code=500, detail=f"Failed to {operation.replace('_', ' ')}")


async def request_validation_error(request: Request, exc: RequestValidationError):
    """Report malformed parameters as 400, naming the fields but not echoing values."""
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "Invalid request parameters", "fields": fields})


def analysis_response(outcome: AnalysisOutcome) -> AnalyzeDocumentResponse:
    if isinstance(outcome, Succeeded):
        attempts = len(outcome.attempts)
        return AnalyzeDocumentResponse(
            attempts=attempts,
            message=f"Document analyzed after {attempts} attempt(s)",
            result=DocumentAnalysisResult.model_validate(outcome.value),
        )
    if isinstance(outcome, Cancelled):
        raise HTTPException(status_code=503, detail="Analysis was cancelled")
    raise HTTPException(status_code=_FATAL_STATUS[outcome.kind], detail=outcome.reason)


# Storage endpoints
@storage_router.get("/containers", response_model=ListContainersResponse)
def list_containers(store: BlobStore = Depends(provide_blob_store)):
    """List the storage containers visible to the service identity."""
    with api_errors("list_containers"):
        return ListContainersResponse(containers=store.list_containers())


@storage_router.get("/containers/{container}/documents", response_model=ListDocumentsResponse)
def list_documents(container: str, store: BlobStore = Depends(provide_blob_store)):
    with api_errors("list_documents"):
        documents = [StorageDocument.model_validate(record) for record in store.list_blobs(container)]
        return ListDocumentsResponse(documents=documents)


@storage_router.get("/containers/{container}/search", response_model=SearchDocumentsResponse)
def search_documents(
    container: str,
    term: str = Query("", description="Literal text or wildcard pattern (* and ?)"),
    max_results: int = Query(DEFAULT_MAX_RESULTS, description="Result cap, 1-1000"),
    store: BlobStore = Depends(provide_blob_store),
    cancel: threading.Event = Depends(provide_cancel_event),
    observer: EventObserver = Depends(provide_observer),
):
    """
    Search blob names in a container.

    Matching is case-insensitive. A term without wildcards matches as a
    substring; with wildcards it must match the whole name.
    """
    with api_errors("search_documents"):
        query = SearchQuery(container_name=container, raw_term=term, max_results=max_results)
        outcome = search_blobs(store, query, cancel=cancel, observer=observer)
        return SearchDocumentsResponse(
            documents=[StorageDocument.model_validate(r) for r in outcome.matched_records],
            search_term=term,
            total_matches=outcome.total_matches,
            max_results=max_results,
            has_more_results=outcome.truncated,
            examined_count=outcome.examined_count,
        )


@storage_router.get("/containers/{container}/documents/{blob:path}/exists", response_model=BlobExistsResponse)
def document_exists(container: str, blob: str, store: BlobStore = Depends(provide_blob_store)):
    with api_errors("check_document"):
        return BlobExistsResponse(
            container_name=container,
            blob_name=blob,
            exists=store.blob_exists(container, blob),
        )


@storage_router.get("/containers/{container}/documents/{blob:path}/download")
def download_document(container: str, blob: str, store: BlobStore = Depends(provide_blob_store)):
    """Stream a stored document back to the caller as an attachment."""
    with api_errors("download_document"):
        stream = store.open_blob(container, blob)

    filename = blob.rsplit("/", 1)[-1]
    logger.info("document_download_started", extra={"container": container, "blob": blob})
    return StreamingResponse(
        _iter_stream(stream),
        media_type=content_type_for(filename),
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


def _iter_stream(stream: BinaryIO) -> Iterator[bytes]:
    with stream:
        while True:
            chunk = stream.read(DOWNLOAD_CHUNK_BYTES)
            if not chunk:
                break
            yield chunk


# Analysis endpoints
@analysis_router.post("/analyze/stream", response_model=AnalyzeDocumentResponse)
def analyze_from_storage(
    request: AnalyzeFromStorageRequest,
    service: DocumentAnalysisService = Depends(provide_analysis_service),
    cancel: threading.Event = Depends(provide_cancel_event),
):
    """
    Analyze a stored document by streaming it into the analysis service.

    Rate limited calls are retried with backoff before a response is sent.
    """
    with api_errors("analyze_document"):
        outcome = service.analyze_from_storage(
            request.container_name,
            request.blob_name,
            model_id=request.model_id,
            high_resolution=request.include_field_elements,
            cancel=cancel,
        )
        return analysis_response(outcome)


@analysis_router.post("/analyze/stream/{container}/{blob:path}", response_model=AnalyzeDocumentResponse)
def analyze_from_storage_path(
    container: str,
    blob: str,
    model_id: str = Query(DEFAULT_MODEL_ID),
    service: DocumentAnalysisService = Depends(provide_analysis_service),
    cancel: threading.Event = Depends(provide_cancel_event),
):
    with api_errors("analyze_document"):
        outcome = service.analyze_from_storage(container, blob, model_id=model_id, cancel=cancel)
        return analysis_response(outcome)


@analysis_router.post("/analyze/upload", response_model=AnalyzeDocumentResponse)
def analyze_upload(
    file: UploadFile = File(...),
    model_id: str = Query(DEFAULT_MODEL_ID),
    service: DocumentAnalysisService = Depends(provide_analysis_service),
    cancel: threading.Event = Depends(provide_cancel_event),
):
    """Analyze an uploaded file without storing it."""
    content_type = file.content_type
    if not content_type or content_type == "application/octet-stream":
        content_type = content_type_for(file.filename)
    if content_type not in ALLOWED_UPLOAD_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {content_type}")

    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    if size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File size exceeds the 50MB limit")

    logger.info("upload_received", extra={
        "upload_name": file.filename,
        "content_type": content_type,
        "size": size
    })

    with api_errors("analyze_document"):
        outcome = service.analyze_stream(
            file.file,
            document_id=file.filename or "upload",
            model_id=model_id,
            cancel=cancel,
        )
        return analysis_response(outcome)


@analysis_router.post("/analyze", response_model=AnalyzeDocumentResponse)
def analyze_from_uri(
    request: AnalyzeFromStorageRequest,
    service: DocumentAnalysisService = Depends(provide_analysis_service),
    cancel: threading.Event = Depends(provide_cancel_event),
):
    """
    Analyze a stored document by handing its URI to the analysis service.

    The analysis service downloads the blob itself, so it needs read access
    to the container.
    """
    with api_errors("analyze_document"):
        outcome = service.analyze_from_uri(
            request.container_name,
            request.blob_name,
            model_id=request.model_id,
            high_resolution=request.include_field_elements,
            cancel=cancel,
        )
        return analysis_response(outcome)


# declared after the /analyze/stream routes so "stream" is never taken as a container
@analysis_router.post("/analyze/{container}/{blob:path}", response_model=AnalyzeDocumentResponse)
def analyze_from_uri_path(
    container: str,
    blob: str,
    model_id: str = Query(DEFAULT_MODEL_ID),
    service: DocumentAnalysisService = Depends(provide_analysis_service),
    cancel: threading.Event = Depends(provide_cancel_event),
):
    with api_errors("analyze_document"):
        outcome = service.analyze_from_uri(container, blob, model_id=model_id, cancel=cancel)
        return analysis_response(outcome)


@analysis_router.get("/models", response_model=ModelsResponse)
def list_models():
    """Prebuilt analysis models."""
    return ModelsResponse(models=available_models())


# Health endpoints
@health_router.get("/ready")
def ready_check(store: BlobStore = Depends(provide_blob_store)):
    """Check if service is ready to handle requests (503 until startup has built the store)."""
    return {"status": "ready"}


@health_router.get("/live")
def liveness_check():
    """Simple liveness check."""
    return {"status": "alive"}

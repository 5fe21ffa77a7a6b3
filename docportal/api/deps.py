"""FastAPI dependencies. Components are built once in the lifespan and kept on app.state."""
import threading

from fastapi import HTTPException, Request

from docportal.analysis.service import DocumentAnalysisService
from docportal.events import EventObserver
from docportal.storage.base import BlobStore


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Service is not ready")
    return value


def provide_blob_store(request: Request) -> BlobStore:
    return _state(request, "blob_store")


def provide_analysis_service(request: Request) -> DocumentAnalysisService:
    return _state(request, "analysis_service")


def provide_observer(request: Request) -> EventObserver:
    return _state(request, "observer")


def provide_cancel_event(request: Request) -> threading.Event:
    """Process-wide shutdown signal, set when the app stops."""
    return _state(request, "shutdown_event")

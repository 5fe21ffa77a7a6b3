import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_fastapi_instrumentator import Instrumentator

from docportal.analysis.client import FormRecognizerAnalysisClient
from docportal.analysis.invoker import RetryableAnalysisInvoker
from docportal.analysis.service import DocumentAnalysisService
from docportal.analysis.stream import StreamNormalizer
from docportal.api.routes import (
    analysis_router,
    health_router,
    request_validation_error,
    storage_router,
)
from docportal.events import LoggingObserver
from docportal.identity import credential_from_env
from docportal.logging import init_logging
from docportal.storage import get_blob_store

logger = init_logging()


def build_components(app: FastAPI) -> None:
    """Build the credential, store and analysis service once and share them via app.state."""
    observer = LoggingObserver()
    credential = credential_from_env()
    store = get_blob_store(credential=credential)
    invoker = RetryableAnalysisInvoker(
        FormRecognizerAnalysisClient(credential=credential),
        observer=observer,
    )
    app.state.credential = credential
    app.state.observer = observer
    app.state.blob_store = store
    app.state.analysis_service = DocumentAnalysisService(store, invoker, StreamNormalizer())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup, cleanup on shutdown."""
    # Startup
    app.state.shutdown_event = threading.Event()
    try:
        build_components(app)
        logger.info("startup_complete")
    except Exception as e:
        logger.error("startup_failed", extra={"error_type": type(e).__name__, "error": str(e)})
        # Don't prevent startup; /api/health/ready reports 503 until fixed

    yield

    # Shutdown: in-flight backoff waits see the event and stop retrying
    app.state.shutdown_event.set()
    close = getattr(getattr(app.state, "credential", None), "close", None)
    if close is not None:
        close()
    logger.info("shutdown_complete")


app = FastAPI(title="Document Intelligence Portal", lifespan=lifespan)

# Include routers
app.include_router(storage_router)
app.include_router(analysis_router)
app.include_router(health_router)
app.add_exception_handler(RequestValidationError, request_validation_error)


@app.get("/healthz")
def healthz():
    return {"ok": True}


# Prometheus /metrics
Instrumentator().instrument(app).expose(app, endpoint="/metrics")

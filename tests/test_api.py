import threading
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from conftest import FakeBlobStore, ScriptedAnalysisClient
from docportal.analysis.invoker import RetryableAnalysisInvoker
from docportal.analysis.models import Cancelled, FailedFatal, FatalKind
from docportal.analysis.retry import RetryPolicy
from docportal.analysis.service import DocumentAnalysisService
from docportal.analysis.stream import StreamNormalizer
from docportal.api.deps import (
    provide_analysis_service,
    provide_blob_store,
    provide_cancel_event,
    provide_observer,
)
from docportal.api.routes import (
    analysis_router,
    health_router,
    request_validation_error,
    storage_router,
)
from docportal.exceptions import BadRequestError, RateLimitedError


def _make_app(store, client=None, service=None, observer=None, wait=None) -> FastAPI:
    app = FastAPI()
    app.include_router(storage_router)
    app.include_router(analysis_router)
    app.include_router(health_router)
    app.add_exception_handler(RequestValidationError, request_validation_error)

    if service is None:
        invoker = RetryableAnalysisInvoker(
            client or ScriptedAnalysisClient(),
            policy=RetryPolicy(),
            observer=observer,
            wait=wait,
        )
        service = DocumentAnalysisService(store, invoker, StreamNormalizer(max_bytes=1024))

    app.dependency_overrides[provide_blob_store] = lambda: store
    app.dependency_overrides[provide_analysis_service] = lambda: service
    app.dependency_overrides[provide_cancel_event] = lambda: threading.Event()
    app.dependency_overrides[provide_observer] = lambda: observer
    return app


@pytest.fixture()
def api(fake_store, observer, recording_wait) -> TestClient:
    return TestClient(_make_app(fake_store, observer=observer, wait=recording_wait))


class TestStorageRoutes:
    def test_list_containers(self, api) -> None:
        response = api.get("/api/storage/containers")
        assert response.status_code == 200
        assert response.json() == {"success": True, "containers": ["documents"]}

    def test_list_documents(self, api) -> None:
        response = api.get("/api/storage/containers/documents/documents")
        assert response.status_code == 200
        names = [d["name"] for d in response.json()["documents"]]
        assert names == ["invoice-2024.pdf", "receipt.png", "reports/q1.pdf"]

    def test_list_documents_missing_container(self, api) -> None:
        assert api.get("/api/storage/containers/nope/documents").status_code == 404

    def test_search(self, api) -> None:
        response = api.get(
            "/api/storage/containers/documents/search",
            params={"term": "*", "max_results": 2},
        )
        assert response.status_code == 200
        body = response.json()
        assert [d["name"] for d in body["documents"]] == ["invoice-2024.pdf", "receipt.png"]
        assert body["total_matches"] == 3
        assert body["has_more_results"] is True
        assert body["max_results"] == 2
        assert body["search_term"] == "*"
        assert body["examined_count"] == 3

    @pytest.mark.parametrize("params", [
        {"term": "a", "max_results": 0},
        {"term": "a", "max_results": 1001},
        {"term": ""},
        {},
        {"term": "a", "max_results": "many"},
    ])
    def test_search_rejects_bad_parameters(self, api, params) -> None:
        response = api.get("/api/storage/containers/documents/search", params=params)
        assert response.status_code == 400

    def test_search_missing_container(self, api) -> None:
        response = api.get("/api/storage/containers/nope/search", params={"term": "a"})
        assert response.status_code == 404

    def test_search_store_failure(self, observer) -> None:
        store = MagicMock()
        store.list_blobs.side_effect = RuntimeError("socket closed: secret-host")
        client = TestClient(_make_app(store, observer=observer))
        response = client.get("/api/storage/containers/docs/search", params={"term": "a"})
        assert response.status_code == 502
        assert "secret-host" not in response.text

    def test_document_exists(self, api) -> None:
        response = api.get("/api/storage/containers/documents/documents/reports/q1.pdf/exists")
        assert response.status_code == 200
        assert response.json() == {
            "container_name": "documents",
            "blob_name": "reports/q1.pdf",
            "exists": True,
        }

    def test_document_does_not_exist(self, api) -> None:
        response = api.get("/api/storage/containers/documents/documents/nope.pdf/exists")
        assert response.json()["exists"] is False

    def test_download_document(self, api, fake_store) -> None:
        response = api.get("/api/storage/containers/documents/documents/reports/q1.pdf/download")
        assert response.status_code == 200
        assert response.content == b"%PDF-q1"
        assert response.headers["content-type"] == "application/pdf"
        assert "q1.pdf" in response.headers["content-disposition"]
        assert fake_store.opened[0].closed

    def test_download_spans_many_reads(self, observer) -> None:
        content = bytes(range(256)) * 600
        store = FakeBlobStore({"docs": {"scan.png": content}})
        response = TestClient(_make_app(store, observer=observer)).get(
            "/api/storage/containers/docs/documents/scan.png/download"
        )
        assert response.content == content
        assert response.headers["content-type"] == "image/png"

    def test_download_missing_blob(self, api) -> None:
        response = api.get("/api/storage/containers/documents/documents/nope.pdf/download")
        assert response.status_code == 404


class TestAnalysisRoutes:
    def test_analyze_from_storage(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/stream",
            json={"container_name": "documents", "blob_name": "invoice-2024.pdf"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["attempts"] == 1
        assert body["result"]["document_id"] == "memory://documents/invoice-2024.pdf"
        assert body["result"]["model_id"] == "prebuilt-document"
        assert body["result"]["status"] == "Completed"

    def test_analyze_by_path(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/stream/documents/reports/q1.pdf",
            params={"model_id": "prebuilt-layout"},
        )
        assert response.status_code == 200
        assert response.json()["result"]["model_id"] == "prebuilt-layout"

    def test_analyze_from_uri(self, fake_store, observer, recording_wait) -> None:
        client = ScriptedAnalysisClient()
        api = TestClient(_make_app(fake_store, client=client, observer=observer, wait=recording_wait))
        response = api.post(
            "/api/documentanalysis/analyze",
            json={"container_name": "documents", "blob_name": "invoice-2024.pdf", "model_id": "prebuilt-invoice"},
        )
        assert response.status_code == 200
        assert response.json()["result"]["document_id"] == "memory://documents/invoice-2024.pdf"
        assert client.calls[0]["url"] == "memory://documents/invoice-2024.pdf"
        assert client.calls[0]["model_id"] == "prebuilt-invoice"
        assert fake_store.opened == []

    def test_analyze_from_uri_by_path(self, fake_store, observer, recording_wait) -> None:
        client = ScriptedAnalysisClient()
        api = TestClient(_make_app(fake_store, client=client, observer=observer, wait=recording_wait))
        response = api.post("/api/documentanalysis/analyze/documents/reports/q1.pdf")
        assert response.status_code == 200
        assert client.calls[0]["url"] == "memory://documents/reports/q1.pdf"
        assert client.calls[0]["model_id"] == "prebuilt-document"

    def test_analyze_from_uri_missing_blob(self, fake_store, observer, recording_wait) -> None:
        client = ScriptedAnalysisClient()
        api = TestClient(_make_app(fake_store, client=client, observer=observer, wait=recording_wait))
        response = api.post(
            "/api/documentanalysis/analyze",
            json={"container_name": "documents", "blob_name": "missing.pdf"},
        )
        assert response.status_code == 404
        assert client.calls == []

    def test_analyze_from_uri_retries_rate_limits(self, fake_store, observer, recording_wait) -> None:
        client = ScriptedAnalysisClient([RateLimitedError("429"), None])
        api = TestClient(_make_app(fake_store, client=client, observer=observer, wait=recording_wait))
        response = api.post("/api/documentanalysis/analyze/documents/receipt.png")
        assert response.json()["attempts"] == 2
        assert recording_wait.delays == [1.0]

    def test_analyze_missing_blob(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/stream",
            json={"container_name": "documents", "blob_name": "missing.pdf"},
        )
        assert response.status_code == 404

    def test_analyze_requires_body_fields(self, api) -> None:
        response = api.post("/api/documentanalysis/analyze/stream", json={"container_name": "documents"})
        assert response.status_code == 400

    def test_analyze_rate_limited_then_success(self, fake_store, observer, recording_wait) -> None:
        client = ScriptedAnalysisClient([RateLimitedError("429"), RateLimitedError("429"), None])
        api = TestClient(_make_app(fake_store, client=client, observer=observer, wait=recording_wait))
        response = api.post(
            "/api/documentanalysis/analyze/stream",
            json={"container_name": "documents", "blob_name": "receipt.png"},
        )
        assert response.status_code == 200
        assert response.json()["attempts"] == 3
        assert recording_wait.delays == [1.0, 2.0]

    def test_rejected_document(self, fake_store, observer, recording_wait) -> None:
        client = ScriptedAnalysisClient([BadRequestError("model mismatch: internal detail")])
        api = TestClient(_make_app(fake_store, client=client, observer=observer, wait=recording_wait))
        response = api.post(
            "/api/documentanalysis/analyze/stream",
            json={"container_name": "documents", "blob_name": "receipt.png"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "invalid document format or model incompatibility"

    @pytest.mark.parametrize("outcome, status", [
        (FailedFatal("exhausted retries", FatalKind.EXHAUSTED), 503),
        (FailedFatal("document is too large", FatalKind.TOO_LARGE), 413),
        (FailedFatal("analysis failed", FatalKind.UNEXPECTED), 502),
        (Cancelled(), 503),
    ])
    def test_outcome_status_mapping(self, fake_store, observer, outcome, status) -> None:
        service = MagicMock()
        service.analyze_from_storage.return_value = outcome
        api = TestClient(_make_app(fake_store, service=service, observer=observer))
        response = api.post(
            "/api/documentanalysis/analyze/stream",
            json={"container_name": "documents", "blob_name": "a.pdf"},
        )
        assert response.status_code == status

    def test_too_large_blob(self, observer, recording_wait) -> None:
        store = FakeBlobStore({"docs": {"big.pdf": b"x" * 2048}})
        api = TestClient(_make_app(store, observer=observer, wait=recording_wait))
        response = api.post(
            "/api/documentanalysis/analyze/stream",
            json={"container_name": "docs", "blob_name": "big.pdf"},
        )
        assert response.status_code == 413

    def test_upload(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/upload",
            files={"file": ("scan.png", b"png-bytes", "image/png")},
        )
        assert response.status_code == 200
        assert response.json()["result"]["document_id"] == "scan.png"

    def test_upload_guesses_type_from_extension(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/upload",
            files={"file": ("scan.pdf", b"%PDF", "application/octet-stream")},
        )
        assert response.status_code == 200

    def test_upload_rejects_unsupported_type(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400

    def test_upload_rejects_empty_file(self, api) -> None:
        response = api.post(
            "/api/documentanalysis/analyze/upload",
            files={"file": ("scan.pdf", b"", "application/pdf")},
        )
        assert response.status_code == 400

    def test_models(self, api) -> None:
        response = api.get("/api/documentanalysis/models")
        assert response.status_code == 200
        assert "prebuilt-invoice" in response.json()["models"]


class TestHealthRoutes:
    def test_live(self, api) -> None:
        assert api.get("/api/health/live").json() == {"status": "alive"}

    def test_ready(self, api) -> None:
        assert api.get("/api/health/ready").json() == {"status": "ready"}

    def test_not_ready_without_store(self) -> None:
        app = FastAPI()
        app.include_router(health_router)
        response = TestClient(app).get("/api/health/ready")
        assert response.status_code == 503

import io
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

import pytest

from docportal.analysis.models import NormalizedAnalysisResult
from docportal.exceptions import BlobNotFoundError, ContainerNotFoundError
from docportal.storage.base import DEFAULT_CONTENT_TYPE, BlobRecord, BlobStore

MODIFIED = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class NonSeekableStream(io.RawIOBase):
    """Readable stream that refuses to seek, like a network download."""

    def __init__(self, data: bytes):
        self._inner = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._inner.read(len(buffer))
        buffer[:len(chunk)] = chunk
        return len(chunk)


class FakeBlobStore(BlobStore):
    """In-memory store; records how many blobs each listing actually yielded."""

    def __init__(self, containers: Optional[Dict[str, Dict[str, bytes]]] = None):
        self.containers = containers if containers is not None else {}
        self.yielded = 0
        self.opened: List[io.RawIOBase] = []

    def list_containers(self) -> List[str]:
        return list(self.containers)

    def list_blobs(self, container: str) -> Iterator[BlobRecord]:
        if container not in self.containers:
            raise ContainerNotFoundError(f"Container not found: {container}")
        for name, content in self.containers[container].items():
            self.yielded += 1
            yield self._record(container, name, content)

    def open_blob(self, container: str, name: str):
        try:
            content = self.containers[container][name]
        except KeyError:
            raise BlobNotFoundError(f"Blob not found: {container}/{name}")
        stream = NonSeekableStream(content)
        self.opened.append(stream)
        return stream

    def blob_exists(self, container: str, name: str) -> bool:
        return name in self.containers.get(container, {})

    def blob_uri(self, container: str, name: str) -> str:
        return f"memory://{container}/{name}"

    def upload(self, container: str, name: str, content: bytes,
               content_type: str = DEFAULT_CONTENT_TYPE) -> BlobRecord:
        self.containers.setdefault(container, {})[name] = content
        return self._record(container, name, content)

    def _record(self, container: str, name: str, content: bytes) -> BlobRecord:
        return BlobRecord(
            name=name,
            uri=self.blob_uri(container, name),
            size_bytes=len(content),
            content_type=DEFAULT_CONTENT_TYPE,
            last_modified=MODIFIED,
            container_name=container,
        )


class ScriptedAnalysisClient:
    """Analysis client that raises or returns according to a script, one entry per call."""

    def __init__(self, script: Optional[list] = None):
        self.script = list(script or [])
        self.calls: List[dict] = []

    def submit(self, model_id, stream, document_id, high_resolution=False):
        self.calls.append({
            "model_id": model_id,
            "document_id": document_id,
            "high_resolution": high_resolution,
            "position": stream.tell(),
            "body": stream.read(),
        })
        return self._next(document_id, model_id)

    def submit_url(self, model_id, url, document_id, high_resolution=False):
        self.calls.append({
            "model_id": model_id,
            "document_id": document_id,
            "high_resolution": high_resolution,
            "url": url,
        })
        return self._next(document_id, model_id)

    def _next(self, document_id, model_id):
        step = self.script.pop(0) if self.script else None
        if isinstance(step, BaseException):
            raise step
        if step is None:
            return NormalizedAnalysisResult(document_id=document_id, model_id=model_id)
        return step


class RecordingObserver:
    def __init__(self):
        self.events: List[tuple] = []

    def emit(self, event: str, **fields) -> None:
        self.events.append((event, fields))

    def states(self) -> List[str]:
        return [fields["state"] for event, fields in self.events if event == "retry_transition"]


class RecordingWait:
    """Backoff wait that returns immediately and remembers the delays requested."""

    def __init__(self, cancel_after: Optional[int] = None):
        self.delays: List[float] = []
        self.cancel_after = cancel_after

    def __call__(self, delay: float) -> bool:
        self.delays.append(delay)
        return self.cancel_after is not None and len(self.delays) >= self.cancel_after


@pytest.fixture()
def fake_store() -> FakeBlobStore:
    return FakeBlobStore({
        "documents": {
            "invoice-2024.pdf": b"%PDF-invoice",
            "receipt.png": b"png-bytes",
            "reports/q1.pdf": b"%PDF-q1",
        }
    })


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture()
def recording_wait() -> RecordingWait:
    return RecordingWait()

#!/usr/bin/env python3
"""Upload sample documents to storage for integration testing."""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from docportal.analysis.service import content_type_for
from docportal.identity import credential_from_env
from docportal.logging import init_logging
from docportal.storage import get_blob_store

logger = init_logging()

CONTAINER = "documents"


def main():
    """Upload a local file (or a tiny generated PDF) to the test container."""
    if len(sys.argv) > 1:
        path = Path(sys.argv[1])
        content = path.read_bytes()
        blob_name = f"samples/{path.name}"
    else:
        content = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"
        blob_name = "samples/invoice-2024-001.pdf"

    print(f"Uploading test file to: {CONTAINER}/{blob_name}")

    try:
        store = get_blob_store(credential=credential_from_env())
        record = store.upload(CONTAINER, blob_name, content, content_type_for(blob_name))
    except Exception as e:
        print(f"❌ Error: {e}")
        return 1

    print(f"✅ Successfully uploaded test file to {record.uri}")
    print(f"   Size: {record.size_bytes} bytes")
    print("\nYou can now search for it with:")
    print(f"curl 'http://localhost:8000/api/storage/containers/{CONTAINER}/search?term=invoice*'")
    print("\nOr analyze it with:")
    print(f'curl -X POST http://localhost:8000/api/documentanalysis/analyze/stream \\')
    print(f'  -H "Content-Type: application/json" \\')
    print(f'  -d \'{{"container_name": "{CONTAINER}", "blob_name": "{blob_name}"}}\'')
    return 0


if __name__ == "__main__":
    sys.exit(main())

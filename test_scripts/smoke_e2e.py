#!/usr/bin/env python3
"""End-to-end smoke test against a running portal.

Run test_scripts/upload_test_file.py first so the sample blob exists.
"""
import sys

import requests

API_BASE = "http://localhost:8000"
CONTAINER = "documents"
BLOB_NAME = "samples/invoice-2024-001.pdf"


def check_api_health():
    """Check that API is responding."""
    print("0. Checking API health...")
    try:
        response = requests.get(f"{API_BASE}/api/health/ready", timeout=5)
        response.raise_for_status()
        print("   ✅ API is ready")
        return True
    except Exception as e:
        print(f"   ❌ API health check failed: {e}")
        print("   💡 Make sure API is running: uvicorn docportal.main:app")
        return False


def check_search():
    """Search the sample container with a wildcard term."""
    print("1. Searching for invoice* ...")
    try:
        response = requests.get(
            f"{API_BASE}/api/storage/containers/{CONTAINER}/search",
            params={"term": "invoice*", "max_results": 10},
            timeout=30
        )
        response.raise_for_status()
        data = response.json()
    except Exception as e:
        print(f"   ❌ Search failed: {e}")
        return False

    names = [doc["name"] for doc in data["documents"]]
    print(f"   📊 {data['total_matches']} match(es), examined {data['examined_count']}")
    for name in names:
        print(f"   📄 {name}")
    return True


def check_analysis():
    """Analyze the sample blob straight from storage."""
    print("2. Analyzing sample document...")
    try:
        response = requests.post(
            f"{API_BASE}/api/documentanalysis/analyze/stream",
            json={"container_name": CONTAINER, "blob_name": BLOB_NAME},
            timeout=300
        )
    except Exception as e:
        print(f"   ❌ Analysis request failed: {e}")
        return False

    if response.status_code != 200:
        print(f"   ❌ Analysis failed ({response.status_code}): {response.json().get('detail')}")
        return False

    data = response.json()
    result = data["result"]
    print(f"   ✅ Analyzed in {data['attempts']} attempt(s)")
    print(f"   📄 Pages: {len(result['pages'])}, tables: {len(result['tables'])}")
    return True


def main():
    """Run the smoke test."""
    print("Starting Document Intelligence Portal smoke test...")

    if not check_api_health():
        return 1

    if check_search() and check_analysis():
        print("\n🎉 Smoke test PASSED!")
        return 0

    print("\n💥 Smoke test FAILED!")
    print("\nDebugging tips:")
    print("- Check API logs for retry_transition and search_completed events")
    print("- Check DOCUMENT_INTELLIGENCE_ENDPOINT and AZURE_AUTH_MODE")
    return 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Smoke check for a running fileshare server.
Exercises every public endpoint over HTTP and prints a PASS/FAIL summary.

Usage: FILESHARE_BASE_URL=http://localhost:9000 python api_smoke_check.py
"""

import os
import sys
from io import BytesIO

import requests

BASE_URL = os.environ.get("FILESHARE_BASE_URL", "http://localhost:9000").rstrip("/")
check_results = []


class CheckResult:
    def __init__(self, endpoint, method, status, message):
        self.endpoint = endpoint
        self.method = method
        self.status = status
        self.message = message

    def __str__(self):
        symbol = "+" if self.status == "PASS" else "x" if self.status == "FAIL" else "!"
        return f"[{symbol}] {self.method} {self.endpoint}: {self.message}"


def log_check(endpoint, method, status, message):
    result = CheckResult(endpoint, method, status, message)
    check_results.append(result)
    print(result)


def expect_status(endpoint, method, response, expected):
    if response.status_code == expected:
        log_check(endpoint, method, "PASS", f"Status {expected}")
        return True
    log_check(
        endpoint,
        method,
        "FAIL",
        f"Expected {expected}, got {response.status_code}: {response.text[:200]}",
    )
    return False


def check_health():
    """GET /health"""
    print("\n=== Health ===")
    try:
        response = requests.get(f"{BASE_URL}/health", timeout=5)
        expect_status("/health", "GET", response, 200)
    except requests.RequestException as e:
        log_check("/health", "GET", "FAIL", f"Exception: {e}")


def check_upload(path="/upload"):
    """POST a 1 KiB PDF and return (file_id, payload bytes)."""
    print(f"\n=== Upload via {path} ===")
    payload = os.urandom(1024)
    try:
        files = {"files": ("report.pdf", BytesIO(payload), "application/pdf")}
        response = requests.post(f"{BASE_URL}{path}", files=files, timeout=10)
        if not expect_status(path, "POST", response, 200):
            return None, payload
        entry = response.json()["files"][0]
        if entry.get("size") != 1024 or len(entry.get("id", "")) != 32:
            log_check(path, "POST", "FAIL", f"Unexpected record: {entry}")
            return None, payload
        return entry["id"], payload
    except (requests.RequestException, ValueError, KeyError) as e:
        log_check(path, "POST", "FAIL", f"Exception: {e}")
        return None, payload


def check_multiple_upload():
    print("\n=== Multiple File Upload ===")
    try:
        files = [
            ("files", ("multi1.txt", BytesIO(b"File 1"), "text/plain")),
            ("files", ("multi2.txt", BytesIO(b"File 2"), "text/plain")),
        ]
        response = requests.post(f"{BASE_URL}/api/upload", files=files, timeout=10)
        if expect_status("/api/upload", "POST", response, 200):
            names = [entry["original_name"] for entry in response.json()["files"]]
            if names != ["multi1.txt", "multi2.txt"]:
                log_check("/api/upload", "POST", "FAIL", f"Unexpected order: {names}")
    except (requests.RequestException, ValueError, KeyError) as e:
        log_check("/api/upload", "POST", "FAIL", f"Exception: {e}")


def check_download(file_id, expected):
    print("\n=== Download ===")
    if not file_id:
        log_check("/download/<id>", "GET", "SKIP", "No file_id from upload check")
        return
    endpoint = f"/download/{file_id}"
    try:
        response = requests.get(f"{BASE_URL}{endpoint}", timeout=10)
        if not expect_status(endpoint, "GET", response, 200):
            return
        if response.content != expected:
            log_check(endpoint, "GET", "FAIL", "Downloaded bytes differ from upload")
        if response.headers.get("Content-Type") != "application/pdf":
            log_check(endpoint, "GET", "FAIL", f"Content-Type: {response.headers.get('Content-Type')}")
    except requests.RequestException as e:
        log_check(endpoint, "GET", "FAIL", f"Exception: {e}")


def check_info(file_id):
    print("\n=== Info ===")
    if not file_id:
        log_check("/info/<id>", "GET", "SKIP", "No file_id from upload check")
        return
    for endpoint in (f"/info/{file_id}", f"/api/info/{file_id}"):
        try:
            response = requests.get(f"{BASE_URL}{endpoint}", timeout=10)
            expect_status(endpoint, "GET", response, 200)
        except requests.RequestException as e:
            log_check(endpoint, "GET", "FAIL", f"Exception: {e}")


def check_invalid_inputs():
    print("\n=== Invalid Inputs ===")
    cases = [
        ("GET", "/info/not-a-valid-id", None, 400),
        ("GET", "/api/info/not-a-valid-id", None, 400),
        ("GET", "/download/" + "0" * 32, None, 404),
        ("POST", "/upload", {"files": ("../../etc/passwd", BytesIO(b"x"), "text/plain")}, 400),
        ("POST", "/upload", {"files": ("payload.exe", BytesIO(b"MZ"), "application/octet-stream")}, 400),
    ]
    for method, endpoint, files, expected in cases:
        try:
            response = requests.request(method, f"{BASE_URL}{endpoint}", files=files, timeout=10)
            expect_status(endpoint, method, response, expected)
        except requests.RequestException as e:
            log_check(endpoint, method, "FAIL", f"Exception: {e}")


def print_summary():
    passed = sum(1 for r in check_results if r.status == "PASS")
    failed = sum(1 for r in check_results if r.status == "FAIL")
    skipped = sum(1 for r in check_results if r.status == "SKIP")
    print("\n=== Summary ===")
    print(f"Passed: {passed}  Failed: {failed}  Skipped: {skipped}")


def main():
    print(f"Checking fileshare at {BASE_URL}")
    check_health()
    file_id, payload = check_upload("/upload")
    check_upload("/api/upload")
    check_multiple_upload()
    check_download(file_id, payload)
    check_info(file_id)
    check_invalid_inputs()
    print_summary()
    return 1 if any(r.status == "FAIL" for r in check_results) else 0


if __name__ == "__main__":
    sys.exit(main())

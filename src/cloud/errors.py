"""
Upload/poll error taxonomy.

Every upload error may carry `saved_path`, the local fallback file written
before the error was surfaced.
"""

from __future__ import annotations

from typing import Optional


class UploadError(Exception):
    """Base class for upload and processing failures."""

    def __init__(self, message: str, saved_path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.saved_path = saved_path


class InvalidResponseError(UploadError):
    """The server response body was missing or malformed."""


class ServerError(UploadError):
    """Non-2xx HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None, saved_path: Optional[str] = None):
        super().__init__(message, saved_path)
        self.status_code = status_code


class TransportError(UploadError):
    """Network-level failure (unreachable host, connection reset, transport timeout)."""


class RequestTimeoutError(UploadError):
    """The request-level deadline expired before the transport completed."""

    def __init__(self, timeout_s: float, saved_path: Optional[str] = None):
        super().__init__(f"Request timed out after {timeout_s:g}s", saved_path)
        self.timeout_s = timeout_s


class UploadCancelledError(UploadError):
    """The operation was cancelled by the caller."""

    def __init__(self, saved_path: Optional[str] = None):
        super().__init__("Upload cancelled", saved_path)


class ProcessingFailedError(UploadError):
    """The server reported that processing the scan failed."""

    def __init__(self, scan_id: str, detail: str):
        super().__init__(f"Scan {scan_id} failed: {detail}")
        self.scan_id = scan_id
        self.detail = detail


class ProcessingTimeoutError(UploadError):
    """The scan did not become ready before the polling deadline."""

    def __init__(self, scan_id: str, elapsed_s: float):
        super().__init__(f"Processing timed out for scan {scan_id} after {elapsed_s:.0f}s")
        self.scan_id = scan_id
        self.elapsed_s = elapsed_s

"""
Scan backend client: upload, status polling and local fallback.
"""

from .api_models import ScanCreatedResponse, ScanStatusResponse
from .deadline import RequestDeadline
from .errors import (
    UploadError,
    InvalidResponseError,
    ServerError,
    TransportError,
    RequestTimeoutError,
    UploadCancelledError,
    ProcessingFailedError,
    ProcessingTimeoutError,
)
from .fallback import LocalScanStore
from .uploader import ScanUploader, UploadOutcome

__all__ = [
    "ScanCreatedResponse",
    "ScanStatusResponse",
    "RequestDeadline",
    "UploadError",
    "InvalidResponseError",
    "ServerError",
    "TransportError",
    "RequestTimeoutError",
    "UploadCancelledError",
    "ProcessingFailedError",
    "ProcessingTimeoutError",
    "LocalScanStore",
    "ScanUploader",
    "UploadOutcome",
]

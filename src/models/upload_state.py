"""
Client-side scan upload state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class UploadPhase(str, Enum):
    """Upload/poll state machine phases."""
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanUploadState:
    """
    One value of the upload state machine.

    Attributes:
        phase: Current phase.
        scan_id: Server scan identifier once known.
        stage: Optional server-reported processing stage (display only).
        reason: Failure message for FAILED.
        saved_path: Local fallback file, if the cloud was saved locally.
    """
    phase: UploadPhase = UploadPhase.IDLE
    scan_id: Optional[str] = None
    stage: Optional[str] = None
    reason: Optional[str] = None
    saved_path: Optional[str] = None

    @classmethod
    def idle(cls) -> "ScanUploadState":
        return cls(UploadPhase.IDLE)

    @classmethod
    def uploading(cls) -> "ScanUploadState":
        return cls(UploadPhase.UPLOADING)

    @classmethod
    def processing(cls, scan_id: str, stage: Optional[str] = None) -> "ScanUploadState":
        return cls(UploadPhase.PROCESSING, scan_id=scan_id, stage=stage)

    @classmethod
    def ready(cls, scan_id: str) -> "ScanUploadState":
        return cls(UploadPhase.READY, scan_id=scan_id)

    @classmethod
    def failed(
        cls,
        reason: str,
        scan_id: Optional[str] = None,
        saved_path: Optional[str] = None,
    ) -> "ScanUploadState":
        return cls(UploadPhase.FAILED, scan_id=scan_id, reason=reason, saved_path=saved_path)

    @property
    def is_terminal(self) -> bool:
        return self.phase in (UploadPhase.READY, UploadPhase.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"phase": self.phase.value}
        if self.scan_id:
            d["scan_id"] = self.scan_id
        if self.stage:
            d["stage"] = self.stage
        if self.reason:
            d["reason"] = self.reason
        if self.saved_path:
            d["saved_path"] = self.saved_path
        return d

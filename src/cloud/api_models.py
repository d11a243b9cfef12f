"""
Scan backend response payloads.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ScanCreatedResponse(BaseModel):
    """Response of POST /api/scans."""
    model_config = ConfigDict(populate_by_name=True)

    scan_id: str = Field(..., alias="scanId", min_length=1, description="Opaque scan identifier")


class ScanStatusResponse(BaseModel):
    """
    Response of GET /api/scans/{scanId}/status.

    Servers report the state under either `state` or `status`; failures may
    carry `detail` or `message`.
    """
    model_config = ConfigDict(extra="ignore")

    state: Optional[str] = Field(None, description="processing|ready|failed")
    status: Optional[str] = Field(None, description="Alias of state")
    stage: Optional[str] = Field(None, description="Human-readable processing stage")
    detail: Optional[str] = None
    message: Optional[str] = None

    @property
    def resolved_state(self) -> str:
        return (self.state or self.status or "").strip().lower()

    @property
    def is_ready(self) -> bool:
        return self.resolved_state == "ready"

    @property
    def is_failed(self) -> bool:
        return self.resolved_state == "failed"

    @property
    def failure_detail(self) -> str:
        return self.detail or self.message or "Scan processing failed"

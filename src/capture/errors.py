"""
Capture error taxonomy.

Each error carries structured fields so callers can assert on counts and
show a short actionable message (``guidance``).
"""

from __future__ import annotations

from typing import Optional


class CaptureError(Exception):
    """Base class for terminal capture failures."""

    default_guidance = "Try the scan again."

    def __init__(self, message: str, guidance: Optional[str] = None):
        super().__init__(message)
        self.guidance = guidance or self.default_guidance


class NoFramesError(CaptureError):
    """No usable frame was sampled during the whole capture window."""

    default_guidance = "Make sure the depth camera is running and your face is in view."

    def __init__(self, guidance: Optional[str] = None):
        super().__init__("No usable depth frames were captured", guidance)


class SparsePointsError(CaptureError):
    """The selected candidates together hold fewer points than required."""

    default_guidance = "Move closer to the camera."

    def __init__(self, count: int, minimum: int, guidance: Optional[str] = None):
        super().__init__(f"Only {count} points captured (minimum {minimum})", guidance)
        self.count = count
        self.minimum = minimum


class InsufficientPointsError(CaptureError):
    """The assembled (budget-truncated) cloud holds fewer points than required."""

    default_guidance = "Move closer to the camera."

    def __init__(self, count: int, minimum: int, guidance: Optional[str] = None):
        super().__init__(f"Assembled point cloud has {count} points (minimum {minimum})", guidance)
        self.count = count
        self.minimum = minimum

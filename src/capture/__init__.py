"""
Capture layer: latest-frame store, collaborator interfaces, replay source and
the timed sampling loop.
"""

from .base import FrameSource, LandmarkAnalyzer, NullLandmarkAnalyzer
from .errors import CaptureError, NoFramesError, SparsePointsError, InsufficientPointsError
from .store import FrameSnapshotStore

__all__ = [
    "FrameSource",
    "LandmarkAnalyzer",
    "NullLandmarkAnalyzer",
    "FrameSnapshotStore",
    "CaptureError",
    "NoFramesError",
    "SparsePointsError",
    "InsufficientPointsError",
]

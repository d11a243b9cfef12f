"""
Capture collaborator interfaces.

The depth camera and the face landmark detector live outside this package;
they are consumed through these narrow protocols:
- FrameSource: exposes the latest synchronized (depth, color, intrinsics) triple
- LandmarkAnalyzer: turns a color frame into an optional FaceAnalysis
"""

from __future__ import annotations

from typing import Optional, Protocol

from models.face import FaceAnalysis
from models.frame import ColorFrame, FrameSnapshot


class FrameSource(Protocol):
    def latest(self) -> Optional[FrameSnapshot]:
        ...


class LandmarkAnalyzer(Protocol):
    def analyze(self, color: ColorFrame) -> Optional[FaceAnalysis]:
        ...


class NullLandmarkAnalyzer:
    """Analyzer used when no face detector is available; never reports a face."""

    def analyze(self, color: ColorFrame) -> Optional[FaceAnalysis]:
        return None

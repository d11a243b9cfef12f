from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from capture.base import LandmarkAnalyzer, NullLandmarkAnalyzer
from capture.store import FrameSnapshotStore
from models.config import Config
from models.frame import CameraIntrinsics, ColorFrame, DepthFrame


@dataclass
class ScanContext:
    """Holds scan-wide collaborators; avoids global singletons."""

    config: Config
    store: FrameSnapshotStore = field(default_factory=FrameSnapshotStore)
    analyzer: LandmarkAnalyzer = field(default_factory=NullLandmarkAnalyzer)
    http_client: Optional[httpx.Client] = None

    def on_frame(
        self,
        depth: DepthFrame,
        color: ColorFrame,
        intrinsics: Optional[CameraIntrinsics],
        timestamp: Optional[float] = None,
    ) -> None:
        """Frame-arrival callback for the external camera pipeline."""
        self.store.update(depth, color, intrinsics, timestamp=timestamp)

"""
Latest-frame snapshot store shared between the frame-arrival path and the
sampling loop.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from models.frame import CameraIntrinsics, ColorFrame, DepthFrame, FrameSnapshot


class FrameSnapshotStore:
    """
    Holds the most recent synchronized (depth, color, intrinsics) triple.

    Writers replace the whole triple at once and readers get the same
    FrameSnapshot object back, so a depth frame is never paired with a color
    frame from another instant. The lock is held only while swapping or
    reading the reference.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Optional[FrameSnapshot] = None
        self._updates = 0

    def update(
        self,
        depth: DepthFrame,
        color: ColorFrame,
        intrinsics: Optional[CameraIntrinsics],
        timestamp: Optional[float] = None,
    ) -> None:
        """Publish a new synchronized triple, replacing the previous one."""
        snapshot = FrameSnapshot(
            depth=depth,
            color=color,
            intrinsics=intrinsics,
            timestamp=timestamp if timestamp is not None else time.time(),
        )
        with self._lock:
            self._snapshot = snapshot
            self._updates += 1

    def latest(self) -> Optional[FrameSnapshot]:
        """Return the most recent snapshot, or None if nothing arrived yet."""
        with self._lock:
            return self._snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None

    @property
    def update_count(self) -> int:
        """Number of triples published since creation."""
        with self._lock:
            return self._updates

"""
Replay of recorded depth + color frames into a FrameSnapshotStore.

Each recording is an .npz file with:
- depth: (H, W) float32 meters
- color: (H', W', 4) uint8 pixels
- fx, fy, cx, cy, ref_width, ref_height: intrinsics at reference resolution
- pixel_format (optional): "BGRA" (default) or "RGBA"

The replay thread publishes one frame every 1/fps seconds, cycling through
the recordings, so the capture loop can run without device hardware.
"""

from __future__ import annotations

import glob
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from models.frame import CameraIntrinsics, ColorFrame, DepthFrame
from .store import FrameSnapshotStore


@dataclass
class ReplayConfig:
    """
    Attributes:
        path: Directory of .npz recordings or a single .npz file.
        fps: Publish rate.
        loop: Restart from the first recording when exhausted.
    """
    path: str
    fps: float = 15.0
    loop: bool = True


def load_recording(path: str) -> Tuple[DepthFrame, ColorFrame, CameraIntrinsics]:
    """Load one .npz recording."""
    with np.load(path, allow_pickle=False) as data:
        depth = DepthFrame.from_numpy(data["depth"])
        pixel_format = str(data["pixel_format"]) if "pixel_format" in data.files else "BGRA"
        color = ColorFrame.from_image(np.asarray(data["color"], dtype=np.uint8), pixel_format=pixel_format)
        intrinsics = CameraIntrinsics(
            fx=float(data["fx"]),
            fy=float(data["fy"]),
            cx=float(data["cx"]),
            cy=float(data["cy"]),
            reference_width=int(data["ref_width"]),
            reference_height=int(data["ref_height"]),
        )
    return depth, color, intrinsics


def save_recording(
    path: str,
    depth: np.ndarray,
    color: np.ndarray,
    intrinsics: CameraIntrinsics,
    pixel_format: str = "BGRA",
) -> str:
    """Write a recording in the layout load_recording expects."""
    np.savez(
        path,
        depth=np.asarray(depth, dtype=np.float32),
        color=np.asarray(color, dtype=np.uint8),
        fx=intrinsics.fx,
        fy=intrinsics.fy,
        cx=intrinsics.cx,
        cy=intrinsics.cy,
        ref_width=intrinsics.reference_width,
        ref_height=intrinsics.reference_height,
        pixel_format=pixel_format,
    )
    return path


class ReplayFrameSource:
    """
    Publishes recorded frames into a FrameSnapshotStore on a background thread.

    Example:
        store = FrameSnapshotStore()
        with ReplayFrameSource(ReplayConfig("recordings/"), store):
            result = CaptureScheduler(store, config).run()
    """

    def __init__(self, config: ReplayConfig, store: FrameSnapshotStore):
        self._config = config
        self._store = store
        self._frames: List[Tuple[DepthFrame, ColorFrame, CameraIntrinsics]] = []
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.published = 0

    def _discover(self) -> List[str]:
        path = self._config.path
        if os.path.isdir(path):
            return sorted(glob.glob(os.path.join(path, "*.npz")))
        if os.path.exists(path):
            return [path]
        return []

    def open(self) -> None:
        """Load recordings, publish the first one, and start the publisher thread."""
        files = self._discover()
        if not files:
            raise RuntimeError(f"No .npz recordings found at {self._config.path}")
        self._frames = [load_recording(p) for p in files]
        logging.info(f"Replay source loaded {len(self._frames)} recordings from {self._config.path}")

        self._stop.clear()
        self._publish(0)
        self._thread = threading.Thread(target=self._publish_worker, args=(1,), name="replay-source")
        self._thread.daemon = True
        self._thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None

    def __enter__(self) -> "ReplayFrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _publish(self, pos: int) -> None:
        depth, color, intrinsics = self._frames[pos]
        self._store.update(depth, color, intrinsics, timestamp=time.time())
        self.published += 1

    def _publish_worker(self, pos: int) -> None:
        period = 1.0 / self._config.fps if self._config.fps > 0 else 0.0
        while not self._stop.wait(period):
            if pos >= len(self._frames):
                if not self._config.loop:
                    logging.info("Replay source exhausted")
                    break
                pos = 0
            self._publish(pos)
            pos += 1

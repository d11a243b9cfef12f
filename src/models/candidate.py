"""
FrameCandidate model: one sampling tick's scored, filterable unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from models.frame import DepthFrame
from models.point import PointSet


@dataclass(frozen=True)
class FrameCandidate:
    """
    Metrics and payload collected for one sampling tick.

    Attributes:
        index: Sequential tick number (temporal order).
        timestamp: Capture timestamp of the underlying frame.
        points: Projected points for this frame.
        valid_ratio: Valid depth samples / total samples in the ROI.
        landmarks: Normalized (N, 2) landmarks, None without a face.
        yaw, pitch, roll: Head angles in degrees.
        mouth_ratio: Mouth openness ratio.
        landmark_rms: RMS landmark displacement vs. the reference frame.
        pose_delta: Max absolute yaw/pitch/roll change vs. the previous candidate.
        landmark_delta: RMS landmark displacement vs. the previous candidate.
        centroid_delta: Landmark centroid displacement vs. the previous candidate.
        image_jpeg: Compressed color image (only when pose images are kept).
        depth: Depth frame (only when pose images are kept).
    """
    index: int
    timestamp: float
    points: PointSet
    valid_ratio: float
    landmarks: Optional[np.ndarray] = None
    yaw: Optional[float] = None
    pitch: Optional[float] = None
    roll: Optional[float] = None
    mouth_ratio: Optional[float] = None
    landmark_rms: Optional[float] = None
    pose_delta: Optional[float] = None
    landmark_delta: Optional[float] = None
    centroid_delta: Optional[float] = None
    image_jpeg: Optional[bytes] = None
    depth: Optional[DepthFrame] = None

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def has_face(self) -> bool:
        return self.landmarks is not None or self.yaw is not None

    def metric_key(self) -> Tuple:
        """Tuple of scalar metrics; candidates with equal keys are treated as duplicates."""
        return (
            self.point_count,
            self.valid_ratio,
            self.yaw,
            self.pitch,
            self.roll,
            self.mouth_ratio,
            self.landmark_rms,
            self.landmark_delta,
        )


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate paired with its quality score."""
    candidate: FrameCandidate
    score: float

    @property
    def index(self) -> int:
        return self.candidate.index

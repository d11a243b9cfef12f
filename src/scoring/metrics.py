"""
Per-tick candidate metrics: landmark stability against a reference frame and
inter-frame deltas against the previous candidate.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from models.candidate import FrameCandidate
from models.face import FaceAnalysis
from models.frame import DepthFrame
from models.pose import Pose
from projection.projector import ProjectionResult


def landmark_rms(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> Optional[float]:
    """
    Root-mean-square displacement between two landmark sets.

    Returns None when either set is missing or the sets differ in shape.
    """
    if a is None or b is None:
        return None
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape or a.size == 0:
        return None
    return float(np.sqrt(np.mean(np.sum((a - b) ** 2, axis=1))))


def pose_delta(
    current: Sequence[Optional[float]],
    previous: Sequence[Optional[float]],
) -> Optional[float]:
    """Largest absolute change among the (yaw, pitch, roll) angles present in both."""
    diffs = [abs(c - p) for c, p in zip(current, previous) if c is not None and p is not None]
    return max(diffs) if diffs else None


def centroid_delta(
    current: Optional[Tuple[float, float]],
    previous: Optional[Tuple[float, float]],
) -> Optional[float]:
    if current is None or previous is None:
        return None
    return math.hypot(current[0] - previous[0], current[1] - previous[1])


class CandidateBuilder:
    """
    Turns projection + face analysis results into FrameCandidates.

    The first candidate with landmarks becomes the reference for
    landmark RMS. With per_pose_reference, each head pose (and the
    unclassified frames) gets its own reference: the first frame
    classified into it. Deltas compare against the immediately preceding
    candidate; a missing value on either side yields None.
    """

    def __init__(self, per_pose_reference: bool = False):
        self.per_pose_reference = per_pose_reference
        self._references: Dict[Optional[Pose], np.ndarray] = {}
        self._previous: Optional[FrameCandidate] = None
        self._previous_centroid: Optional[Tuple[float, float]] = None
        self._next_index = 0

    @property
    def reference_landmarks(self) -> Optional[np.ndarray]:
        return self._references.get(None)

    def reference_for(self, pose: Optional[Pose]) -> Optional[np.ndarray]:
        return self._references.get(pose)

    def reset(self) -> None:
        self._references = {}
        self._previous = None
        self._previous_centroid = None
        self._next_index = 0

    def build(
        self,
        projection: ProjectionResult,
        face: Optional[FaceAnalysis],
        timestamp: float,
        image_jpeg: Optional[bytes] = None,
        depth: Optional[DepthFrame] = None,
    ) -> FrameCandidate:
        landmarks = None
        yaw = pitch = roll = mouth = None
        centroid = None
        if face is not None:
            if face.landmarks is not None and len(face.landmarks) > 0:
                landmarks = np.asarray(face.landmarks, dtype=np.float64)
                centroid = face.centroid
            yaw, pitch, roll = face.yaw, face.pitch, face.roll
            mouth = face.mouth_ratio

        key = Pose.classify(yaw, pitch, roll) if self.per_pose_reference else None
        reference = self._references.get(key)
        if landmarks is not None and reference is None:
            reference = self._references[key] = landmarks
            label = key.value if key is not None else "default"
            logging.debug(f"Landmark reference ({label}) set at tick {self._next_index}")

        prev = self._previous
        candidate = FrameCandidate(
            index=self._next_index,
            timestamp=timestamp,
            points=projection.points,
            valid_ratio=projection.valid_ratio,
            landmarks=landmarks,
            yaw=yaw,
            pitch=pitch,
            roll=roll,
            mouth_ratio=mouth,
            landmark_rms=landmark_rms(landmarks, reference),
            pose_delta=pose_delta((yaw, pitch, roll), (prev.yaw, prev.pitch, prev.roll)) if prev else None,
            landmark_delta=landmark_rms(landmarks, prev.landmarks) if prev else None,
            centroid_delta=centroid_delta(centroid, self._previous_centroid) if prev else None,
            image_jpeg=image_jpeg,
            depth=depth,
        )

        self._previous = candidate
        self._previous_centroid = centroid
        self._next_index += 1
        return candidate

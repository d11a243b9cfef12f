"""
FaceAnalysis model produced by an external landmark analyzer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class FaceAnalysis:
    """
    Per-frame face landmark/pose result.

    Every field is optional: a missing value means the analyzer could not
    produce it, and downstream scoring treats it as neutral.

    Attributes:
        landmarks: (N, 2) array of normalized [0, 1] image coordinates.
        yaw: Head yaw in degrees (negative = turned to the subject's left).
        pitch: Head pitch in degrees (positive = looking up).
        roll: Head roll in degrees.
        mouth_ratio: Mouth opening height divided by mouth width.
        interocular_distance: Normalized distance between eye centers.
    """
    landmarks: Optional[np.ndarray] = None
    yaw: Optional[float] = None
    pitch: Optional[float] = None
    roll: Optional[float] = None
    mouth_ratio: Optional[float] = None
    interocular_distance: Optional[float] = None

    @property
    def centroid(self) -> Optional[Tuple[float, float]]:
        """Mean landmark position, or None without landmarks."""
        if self.landmarks is None or len(self.landmarks) == 0:
            return None
        cx, cy = np.asarray(self.landmarks, dtype=np.float64).mean(axis=0)
        return (float(cx), float(cy))

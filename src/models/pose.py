"""
Discrete head poses used by guided capture.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from models.frame import DepthFrame


class Pose(str, Enum):
    """Head pose buckets, declared in output order."""
    FRONT = "front"
    LEFT = "left"
    RIGHT = "right"
    DOWN = "down"
    UP = "up"

    @property
    def spec(self) -> "PoseSpec":
        return POSE_SPECS[self]

    @property
    def form_field(self) -> str:
        """Multipart field name used when uploading this pose's image."""
        return f"image_{self.value}"

    @classmethod
    def classify(
        cls,
        yaw: Optional[float],
        pitch: Optional[float],
        roll: Optional[float] = None,
    ) -> Optional["Pose"]:
        """
        Classify a head orientation into exactly one pose, or None.

        Yaw is required; a missing pitch is treated as level and a missing
        roll as upright.
        """
        if yaw is None:
            return None
        for pose in cls:
            if pose.spec.accepts(yaw, pitch if pitch is not None else 0.0, roll):
                return pose
        return None


@dataclass(frozen=True)
class PoseSpec:
    """
    Acceptance window for one pose.

    Yaw ranges are open (low, high) so the side poses start strictly past
    their threshold in both directions. Pitch ranges are half-open
    [low, high). ideal_yaw breaks ties between several frames claiming the
    same pose.
    """
    ideal_yaw: float
    yaw_range: Tuple[float, float]
    pitch_range: Tuple[float, float]
    max_abs_roll: float = 25.0

    def accepts(self, yaw: float, pitch: float, roll: Optional[float] = None) -> bool:
        if not (self.yaw_range[0] < yaw < self.yaw_range[1]):
            return False
        if not (self.pitch_range[0] <= pitch < self.pitch_range[1]):
            return False
        if roll is not None and abs(roll) >= self.max_abs_roll:
            return False
        return True


# The five windows do not overlap, so classification is unambiguous.
POSE_SPECS = {
    Pose.FRONT: PoseSpec(ideal_yaw=0.0, yaw_range=(-15.0, 15.0), pitch_range=(-10.0, 10.0)),
    Pose.LEFT: PoseSpec(ideal_yaw=-90.0, yaw_range=(-math.inf, -70.0), pitch_range=(-30.0, 30.0)),
    Pose.RIGHT: PoseSpec(ideal_yaw=90.0, yaw_range=(70.0, math.inf), pitch_range=(-30.0, 30.0)),
    Pose.DOWN: PoseSpec(ideal_yaw=0.0, yaw_range=(-15.0, 15.0), pitch_range=(-45.0, -10.0)),
    Pose.UP: PoseSpec(ideal_yaw=0.0, yaw_range=(-15.0, 15.0), pitch_range=(10.0, 45.0)),
}


@dataclass(frozen=True)
class CapturedPoseFrame:
    """
    A selected candidate's representative image for one pose.

    Attributes:
        pose: Pose bucket this frame fills.
        image_jpeg: JPEG-compressed color image.
        depth: Depth frame from the same capture instant (may be None).
        timestamp: Capture timestamp.
        yaw, pitch, roll: Head angles in degrees.
    """
    pose: Pose
    image_jpeg: bytes
    depth: Optional[DepthFrame]
    timestamp: float
    yaw: Optional[float] = None
    pitch: Optional[float] = None
    roll: Optional[float] = None

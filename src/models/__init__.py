"""
Typed models for the face scan capture pipeline.

These are plain dataclasses; configuration models provide from_dict/to_dict
adapters for the YAML config.
"""

from .frame import CameraIntrinsics, ColorFrame, DepthFrame, FrameSnapshot
from .point import PointRecord, PointSet
from .face import FaceAnalysis
from .candidate import FrameCandidate, ScoredCandidate
from .pose import CapturedPoseFrame, Pose, PoseSpec, POSE_SPECS
from .upload_state import ScanUploadState, UploadPhase
from .config import (
    Config,
    CaptureConfig,
    RegionOfInterestConfig,
    AcceptanceConfig,
    ScoringConfig,
    ScoringWeights,
    SelectionConfig,
    AssemblyConfig,
    UploadConfig,
)

__all__ = [
    # Frames
    "DepthFrame",
    "ColorFrame",
    "CameraIntrinsics",
    "FrameSnapshot",
    # Points
    "PointRecord",
    "PointSet",
    # Face / candidates
    "FaceAnalysis",
    "FrameCandidate",
    "ScoredCandidate",
    # Poses
    "Pose",
    "PoseSpec",
    "POSE_SPECS",
    "CapturedPoseFrame",
    # Upload
    "ScanUploadState",
    "UploadPhase",
    # Config
    "Config",
    "CaptureConfig",
    "RegionOfInterestConfig",
    "AcceptanceConfig",
    "ScoringConfig",
    "ScoringWeights",
    "SelectionConfig",
    "AssemblyConfig",
    "UploadConfig",
]

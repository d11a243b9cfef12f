"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

CAPTURE_MODES = ("quick", "guided")
SELECTION_POLICIES = ("yaw_bucket", "discrete_pose")

# Per-mode defaults; explicit YAML values override these.
_MODE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "quick": {
        "duration_s": 8.0,
        "interval_s": 0.25,
        "capture_pose_images": False,
        "per_pose_reference": False,
        "selection_policy": "yaw_bucket",
    },
    "guided": {
        "duration_s": 25.0,
        "interval_s": 0.3,
        "capture_pose_images": True,
        "per_pose_reference": True,
        "selection_policy": "discrete_pose",
    },
}


@dataclass
class RegionOfInterestConfig:
    """
    Elliptical sampling mask, as ratios of the depth grid size.

    The default ellipse sits slightly above frame center so that background
    and shoulders fall outside it.
    """
    enabled: bool = True
    center_x: float = 0.5
    center_y: float = 0.45
    radius_x: float = 0.32
    radius_y: float = 0.42

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RegionOfInterestConfig":
        return cls(
            enabled=d.get("enabled", True),
            center_x=d.get("center_x", 0.5),
            center_y=d.get("center_y", 0.45),
            radius_x=d.get("radius_x", 0.32),
            radius_y=d.get("radius_y", 0.42),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "center_x": self.center_x,
            "center_y": self.center_y,
            "radius_x": self.radius_x,
            "radius_y": self.radius_y,
        }


@dataclass
class CaptureConfig:
    """
    Sampling loop configuration.

    per_pose_reference measures landmark drift against the first frame of
    each head pose instead of the first frame overall.
    """
    mode: str = "quick"
    duration_s: float = 8.0
    interval_s: float = 0.25
    stride: int = 3
    capture_pose_images: bool = False
    per_pose_reference: bool = False
    jpeg_quality: int = 90
    roi: RegionOfInterestConfig = field(default_factory=RegionOfInterestConfig)

    @classmethod
    def for_mode(cls, mode: str) -> "CaptureConfig":
        """Capture defaults for a named mode ("quick" or "guided")."""
        defaults = _MODE_DEFAULTS.get(mode)
        if defaults is None:
            raise ValueError(f"Unknown capture mode: {mode}")
        return cls(
            mode=mode,
            duration_s=defaults["duration_s"],
            interval_s=defaults["interval_s"],
            capture_pose_images=defaults["capture_pose_images"],
            per_pose_reference=defaults["per_pose_reference"],
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CaptureConfig":
        base = cls.for_mode(d.get("mode", "quick"))
        return cls(
            mode=base.mode,
            duration_s=d.get("duration_s", base.duration_s),
            interval_s=d.get("interval_s", base.interval_s),
            stride=d.get("stride", base.stride),
            capture_pose_images=d.get("capture_pose_images", base.capture_pose_images),
            per_pose_reference=d.get("per_pose_reference", base.per_pose_reference),
            jpeg_quality=d.get("jpeg_quality", base.jpeg_quality),
            roi=RegionOfInterestConfig.from_dict(d.get("roi", {}) or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "duration_s": self.duration_s,
            "interval_s": self.interval_s,
            "stride": self.stride,
            "capture_pose_images": self.capture_pose_images,
            "per_pose_reference": self.per_pose_reference,
            "jpeg_quality": self.jpeg_quality,
            "roi": self.roi.to_dict(),
        }


@dataclass
class AcceptanceConfig:
    """Per-candidate acceptance thresholds."""
    min_valid_ratio: float = 0.06
    min_point_count: int = 5000
    max_abs_roll: float = 15.0
    max_mouth_ratio: float = 0.07
    max_landmark_rms: float = 0.03
    max_pose_delta: float = 8.0
    max_centroid_delta: float = 0.04

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AcceptanceConfig":
        return cls(
            min_valid_ratio=d.get("min_valid_ratio", 0.06),
            min_point_count=d.get("min_point_count", 5000),
            max_abs_roll=d.get("max_abs_roll", 15.0),
            max_mouth_ratio=d.get("max_mouth_ratio", 0.07),
            max_landmark_rms=d.get("max_landmark_rms", 0.03),
            max_pose_delta=d.get("max_pose_delta", 8.0),
            max_centroid_delta=d.get("max_centroid_delta", 0.04),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_valid_ratio": self.min_valid_ratio,
            "min_point_count": self.min_point_count,
            "max_abs_roll": self.max_abs_roll,
            "max_mouth_ratio": self.max_mouth_ratio,
            "max_landmark_rms": self.max_landmark_rms,
            "max_pose_delta": self.max_pose_delta,
            "max_centroid_delta": self.max_centroid_delta,
        }


@dataclass
class ScoringWeights:
    """Weights of the quality score terms; must sum to 1."""
    validity: float = 0.35
    landmark_stability: float = 0.30
    temporal_stability: float = 0.20
    roll_stability: float = 0.10
    point_count: float = 0.05

    @property
    def total(self) -> float:
        return (
            self.validity
            + self.landmark_stability
            + self.temporal_stability
            + self.roll_stability
            + self.point_count
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScoringWeights":
        return cls(
            validity=d.get("validity", 0.35),
            landmark_stability=d.get("landmark_stability", 0.30),
            temporal_stability=d.get("temporal_stability", 0.20),
            roll_stability=d.get("roll_stability", 0.10),
            point_count=d.get("point_count", 0.05),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validity": self.validity,
            "landmark_stability": self.landmark_stability,
            "temporal_stability": self.temporal_stability,
            "roll_stability": self.roll_stability,
            "point_count": self.point_count,
        }


@dataclass
class ScoringConfig:
    """
    Quality score configuration.

    Attributes:
        weights: Term weights.
        validity_floor: Valid-depth ratios at or below this are noise.
        landmark_rms_scale: RMS at which landmark stability reaches zero.
        landmark_delta_scale: Inter-frame delta at which temporal stability reaches zero.
        roll_scale: Absolute roll (degrees) at which roll stability reaches zero.
        mouth_scale: Mouth ratio at which the expression factor reaches zero.
        point_saturation: Point count giving ~63% of the point bonus.
    """
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    validity_floor: float = 0.05
    landmark_rms_scale: float = 0.05
    landmark_delta_scale: float = 0.05
    roll_scale: float = 30.0
    mouth_scale: float = 0.15
    point_saturation: float = 20000.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScoringConfig":
        return cls(
            weights=ScoringWeights.from_dict(d.get("weights", {}) or {}),
            validity_floor=d.get("validity_floor", 0.05),
            landmark_rms_scale=d.get("landmark_rms_scale", 0.05),
            landmark_delta_scale=d.get("landmark_delta_scale", 0.05),
            roll_scale=d.get("roll_scale", 30.0),
            mouth_scale=d.get("mouth_scale", 0.15),
            point_saturation=d.get("point_saturation", 20000.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": self.weights.to_dict(),
            "validity_floor": self.validity_floor,
            "landmark_rms_scale": self.landmark_rms_scale,
            "landmark_delta_scale": self.landmark_delta_scale,
            "roll_scale": self.roll_scale,
            "mouth_scale": self.mouth_scale,
            "point_saturation": self.point_saturation,
        }


@dataclass
class SelectionConfig:
    """Frame/pose selection policy configuration."""
    policy: str = "yaw_bucket"
    center_count: int = 3
    left_count: int = 2
    right_count: int = 2
    total_target: int = 8
    center_max_abs_yaw: float = 8.0
    side_min_abs_yaw: float = 10.0
    side_max_abs_yaw: float = 25.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any], default_policy: str = "yaw_bucket") -> "SelectionConfig":
        return cls(
            policy=d.get("policy", default_policy),
            center_count=d.get("center_count", 3),
            left_count=d.get("left_count", 2),
            right_count=d.get("right_count", 2),
            total_target=d.get("total_target", 8),
            center_max_abs_yaw=d.get("center_max_abs_yaw", 8.0),
            side_min_abs_yaw=d.get("side_min_abs_yaw", 10.0),
            side_max_abs_yaw=d.get("side_max_abs_yaw", 25.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy,
            "center_count": self.center_count,
            "left_count": self.left_count,
            "right_count": self.right_count,
            "total_target": self.total_target,
            "center_max_abs_yaw": self.center_max_abs_yaw,
            "side_min_abs_yaw": self.side_min_abs_yaw,
            "side_max_abs_yaw": self.side_max_abs_yaw,
        }


@dataclass
class AssemblyConfig:
    """Point cloud assembly limits."""
    point_budget: int = 500_000
    min_points: int = 1000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AssemblyConfig":
        return cls(
            point_budget=d.get("point_budget", 500_000),
            min_points=d.get("min_points", 1000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "point_budget": self.point_budget,
            "min_points": self.min_points,
        }


@dataclass
class UploadConfig:
    """Scan backend upload/poll configuration."""
    base_url: str = "http://localhost:8000"
    request_timeout_s: float = 300.0
    poll_interval_s: float = 2.0
    poll_deadline_s: float = 600.0
    max_error_body_chars: int = 400
    fallback_dir: str = "data/scans"
    unit_scale: float = 1.0
    units: str = "meters"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UploadConfig":
        return cls(
            base_url=d.get("base_url", "http://localhost:8000"),
            request_timeout_s=d.get("request_timeout_s", 300.0),
            poll_interval_s=d.get("poll_interval_s", 2.0),
            poll_deadline_s=d.get("poll_deadline_s", 600.0),
            max_error_body_chars=d.get("max_error_body_chars", 400),
            fallback_dir=d.get("fallback_dir", "data/scans"),
            unit_scale=d.get("unit_scale", 1.0),
            units=d.get("units", "meters"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "request_timeout_s": self.request_timeout_s,
            "poll_interval_s": self.poll_interval_s,
            "poll_deadline_s": self.poll_deadline_s,
            "max_error_body_chars": self.max_error_body_chars,
            "fallback_dir": self.fallback_dir,
            "unit_scale": self.unit_scale,
            "units": self.units,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    acceptance: AcceptanceConfig = field(default_factory=AcceptanceConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    log_path: str = "logs/facescan.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        capture = CaptureConfig.from_dict(d.get("capture", {}) or {})
        default_policy = _MODE_DEFAULTS[capture.mode]["selection_policy"]
        return cls(
            capture=capture,
            acceptance=AcceptanceConfig.from_dict(d.get("acceptance", {}) or {}),
            scoring=ScoringConfig.from_dict(d.get("scoring", {}) or {}),
            selection=SelectionConfig.from_dict(d.get("selection", {}) or {}, default_policy),
            assembly=AssemblyConfig.from_dict(d.get("assembly", {}) or {}),
            upload=UploadConfig.from_dict(d.get("upload", {}) or {}),
            log_path=d.get("log_path", "logs/facescan.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "capture": self.capture.to_dict(),
            "acceptance": self.acceptance.to_dict(),
            "scoring": self.scoring.to_dict(),
            "selection": self.selection.to_dict(),
            "assembly": self.assembly.to_dict(),
            "upload": self.upload.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }

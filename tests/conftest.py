"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.candidate import FrameCandidate
from models.frame import CameraIntrinsics, ColorFrame, DepthFrame
from models.point import PointSet


class FakeClock:
    """Deterministic monotonic clock; sleep() advances time instead of blocking."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


def make_depth(width=40, height=30, value=0.5):
    return DepthFrame.from_numpy(np.full((height, width), value, dtype=np.float32))


def make_color(width=80, height=60, pixel_format="BGRA", row_padding=0):
    """Color grid where (b, g, r) encode (x, y, constant) so lookups are checkable."""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    xs = np.arange(width, dtype=np.uint8)
    ys = np.arange(height, dtype=np.uint8)
    image[:, :, 0] = xs[np.newaxis, :]
    image[:, :, 1] = ys[:, np.newaxis]
    image[:, :, 2] = 200
    image[:, :, 3] = 255
    return ColorFrame.from_image(image, pixel_format=pixel_format, row_padding=row_padding)


def make_intrinsics(reference_width=640, reference_height=480):
    return CameraIntrinsics(
        fx=500.0,
        fy=500.0,
        cx=reference_width / 2.0,
        cy=reference_height / 2.0,
        reference_width=reference_width,
        reference_height=reference_height,
    )


def make_points(count, z=0.5, color=(10, 20, 30)):
    xyz = np.column_stack([
        np.arange(count, dtype=np.float64) * 0.001,
        np.zeros(count),
        np.full(count, z),
    ])
    rgb = np.tile(np.array(color, dtype=np.uint8), (count, 1))
    return PointSet(xyz, rgb)


def make_candidate(index=0, points=6000, valid_ratio=0.5, **kwargs):
    """FrameCandidate with sensible defaults; every metric can be overridden."""
    fields = dict(
        index=index,
        timestamp=float(index),
        points=make_points(points) if isinstance(points, int) else points,
        valid_ratio=valid_ratio,
    )
    fields.update(kwargs)
    return FrameCandidate(**fields)


@pytest.fixture
def depth_frame():
    return make_depth()


@pytest.fixture
def color_frame():
    return make_color()


@pytest.fixture
def intrinsics():
    return make_intrinsics()


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
capture:
  mode: "quick"
  stride: 3

acceptance:
  min_point_count: 5000

selection:
  total_target: 8

assembly:
  point_budget: 500000
  min_points: 1000

upload:
  base_url: "http://localhost:8000"
  poll_interval_s: 2

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config(tmp_path):
    """Return a valid configuration dictionary."""
    return {
        "capture": {
            "mode": "quick",
            "stride": 3,
            "jpeg_quality": 90,
            "roi": {"enabled": True, "radius_x": 0.32, "radius_y": 0.42},
        },
        "acceptance": {
            "min_valid_ratio": 0.06,
            "min_point_count": 5000,
            "max_abs_roll": 15.0,
        },
        "scoring": {
            "weights": {
                "validity": 0.35,
                "landmark_stability": 0.30,
                "temporal_stability": 0.20,
                "roll_stability": 0.10,
                "point_count": 0.05,
            },
        },
        "selection": {
            "center_count": 3,
            "left_count": 2,
            "right_count": 2,
            "total_target": 8,
        },
        "assembly": {
            "point_budget": 500000,
            "min_points": 1000,
        },
        "upload": {
            "base_url": "http://scans.test",
            "request_timeout_s": 30,
            "poll_interval_s": 2,
            "poll_deadline_s": 600,
            "fallback_dir": str(tmp_path / "scans"),
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }

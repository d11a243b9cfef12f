"""
Pinhole back-projection of a depth grid into colored 3D points.

For a depth pixel (px, py) with depth d and intrinsics rescaled to the depth
grid:

    x = (px - cx) / fx * d
    y = (py - cy) / fy * d
    z = d

Color is sampled from the color grid at (px, py) scaled by
color_size / depth_size and clamped to the grid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from models.config import RegionOfInterestConfig
from models.frame import CameraIntrinsics, ColorFrame, DepthFrame
from models.point import PointSet


@dataclass(frozen=True)
class ProjectionResult:
    """
    Output of one projection.

    Attributes:
        points: Valid back-projected points in row-major sampling order.
        total_samples: Grid samples inside the region of interest.
        valid_samples: Samples with finite, positive depth.
    """
    points: PointSet
    total_samples: int
    valid_samples: int

    @property
    def valid_ratio(self) -> float:
        if self.total_samples == 0:
            return 0.0
        return self.valid_samples / self.total_samples


def roi_mask(
    xs: np.ndarray,
    ys: np.ndarray,
    width: int,
    height: int,
    roi: RegionOfInterestConfig,
) -> np.ndarray:
    """Boolean mask of sample positions lying inside the ROI ellipse (boundary included)."""
    cx = roi.center_x * width
    cy = roi.center_y * height
    rx = max(roi.radius_x * width, 1e-9)
    ry = max(roi.radius_y * height, 1e-9)
    nx = (xs - cx) / rx
    ny = (ys - cy) / ry
    return nx * nx + ny * ny <= 1.0


def project(
    depth: Optional[DepthFrame],
    color: Optional[ColorFrame],
    intrinsics: Optional[CameraIntrinsics],
    stride: int = 2,
    roi: Optional[RegionOfInterestConfig] = None,
) -> Optional[ProjectionResult]:
    """
    Back-project a depth grid sampled every `stride` pixels in both axes.

    Args:
        depth: Depth grid in meters.
        color: Color grid from the same capture instant.
        intrinsics: Camera intrinsics at their reference resolution.
        stride: Sampling step in pixels (>= 1).
        roi: Optional elliptical mask; samples outside it are not counted.

    Returns:
        ProjectionResult, or None if any input is missing.
    """
    if depth is None or color is None or intrinsics is None:
        return None
    if stride < 1:
        raise ValueError(f"stride must be >= 1, got {stride}")

    height, width = depth.height, depth.width
    k = intrinsics.scaled_to(width, height)

    grid_x, grid_y = np.meshgrid(
        np.arange(0, width, stride),
        np.arange(0, height, stride),
    )
    xs = grid_x.ravel()
    ys = grid_y.ravel()

    if roi is not None and roi.enabled:
        inside = roi_mask(xs, ys, width, height, roi)
        xs = xs[inside]
        ys = ys[inside]

    total = int(xs.size)
    d = depth.depth[ys, xs]
    valid = np.isfinite(d) & (d > 0)
    xs = xs[valid]
    ys = ys[valid]
    d = d[valid].astype(np.float64)

    x_cam = (xs - k.cx) / k.fx * d
    y_cam = (ys - k.cy) / k.fy * d

    color_x = np.clip((xs * (color.width / width)).astype(np.int64), 0, color.width - 1)
    color_y = np.clip((ys * (color.height / height)).astype(np.int64), 0, color.height - 1)
    rgb = color.rgb_at(color_x, color_y)

    points = PointSet(np.column_stack([x_cam, y_cam, d]), rgb)
    return ProjectionResult(points=points, total_samples=total, valid_samples=int(valid.sum()))


class PointProjector:
    """Projector bound to a stride and region of interest from configuration."""

    def __init__(self, stride: int = 3, roi: Optional[RegionOfInterestConfig] = None):
        if stride < 1:
            raise ValueError(f"stride must be >= 1, got {stride}")
        self.stride = stride
        self.roi = roi

    def project(
        self,
        depth: Optional[DepthFrame],
        color: Optional[ColorFrame],
        intrinsics: Optional[CameraIntrinsics],
    ) -> Optional[ProjectionResult]:
        return project(depth, color, intrinsics, stride=self.stride, roi=self.roi)

"""
Depth back-projection into colored camera-space points.
"""

from .projector import PointProjector, ProjectionResult, project, roi_mask

__all__ = [
    "PointProjector",
    "ProjectionResult",
    "project",
    "roi_mask",
]

"""
Point cloud assembly under a global point budget.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from capture.errors import InsufficientPointsError
from models.candidate import FrameCandidate
from models.config import AssemblyConfig
from models.point import PointSet


class PointCloudAssembler:
    """
    Concatenates candidates' points in selection order up to the budget.

    Truncation policy: whole candidates are taken while they fit; the
    candidate that crosses the budget contributes only its first
    (budget - assembled) points in projection order, so the result holds
    exactly `point_budget` points whenever the input exceeds it.
    """

    def __init__(self, config: AssemblyConfig):
        if config.point_budget < 1:
            raise ValueError("point_budget must be positive")
        self._config = config

    def assemble(self, candidates: Sequence[FrameCandidate]) -> PointSet:
        budget = self._config.point_budget
        parts: List[PointSet] = []
        total = 0
        for candidate in candidates:
            remaining = budget - total
            if remaining <= 0:
                break
            points = candidate.points
            if len(points) > remaining:
                logging.info(
                    f"Point budget {budget} reached; truncating candidate "
                    f"{candidate.index} to {remaining}/{len(points)} points"
                )
                points = points.head(remaining)
            parts.append(points)
            total += len(points)

        cloud = PointSet.concatenate(parts)
        if len(cloud) < self._config.min_points:
            raise InsufficientPointsError(len(cloud), self._config.min_points)
        logging.info(f"Assembled {len(cloud)} points from {len(parts)} candidates")
        return cloud

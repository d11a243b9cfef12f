"""
Discrete-pose selection: at most one frame per pose, in the fixed order
front, left, right, down, up.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from models.candidate import ScoredCandidate
from models.pose import Pose
from .base import Selector, SelectionResult


class DiscretePoseSelector(Selector):
    """
    Keeps, for each pose, the candidate whose yaw is closest to the pose's
    ideal yaw. Equal distances prefer the higher score, then the earlier
    candidate. Poses without a qualifying candidate are reported in
    missing_poses.
    """

    name = "discrete_pose"

    def select(self, candidates: Sequence[ScoredCandidate]) -> SelectionResult:
        members: Dict[Pose, List[ScoredCandidate]] = {pose: [] for pose in Pose}
        for scored in candidates:
            c = scored.candidate
            pose = Pose.classify(c.yaw, c.pitch, c.roll)
            if pose is not None:
                members[pose].append(scored)

        result = SelectionResult()
        for pose in Pose:
            group = members[pose]
            if not group:
                result.missing_poses.append(pose)
                continue
            ideal = pose.spec.ideal_yaw
            best = min(group, key=lambda s: (abs(s.candidate.yaw - ideal), -s.score, s.index))
            result.selected.append(best)
            result.poses.append(pose)

        if result.missing_poses:
            missing = ", ".join(p.value for p in result.missing_poses)
            logging.warning(f"No qualifying frame for pose(s): {missing}")
        logging.info(
            f"Discrete-pose selection: {len(result.selected)}/{len(Pose)} poses filled"
        )
        return result

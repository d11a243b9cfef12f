"""
Continuous yaw-bucket selection.

Candidates are split into left / center / right yaw buckets; the best few of
each bucket are taken, then the selection is padded from the remaining pool
up to the configured total.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from models.candidate import ScoredCandidate
from models.config import SelectionConfig
from .base import Selector, SelectionResult, rank


class YawBucketSelector(Selector):
    """
    Example:
        selector = YawBucketSelector(SelectionConfig(center_count=3, left_count=2,
                                                     right_count=2, total_target=8))
        result = selector.select(scored)
    """

    name = "yaw_bucket"

    def __init__(self, config: SelectionConfig):
        self._config = config

    def bucket_of(self, yaw: Optional[float]) -> Optional[str]:
        """Return "left", "center", "right" or None for a yaw angle in degrees."""
        if yaw is None:
            return None
        cfg = self._config
        if abs(yaw) <= cfg.center_max_abs_yaw:
            return "center"
        if -cfg.side_max_abs_yaw <= yaw <= -cfg.side_min_abs_yaw:
            return "left"
        if cfg.side_min_abs_yaw <= yaw <= cfg.side_max_abs_yaw:
            return "right"
        return None

    def select(self, candidates: Sequence[ScoredCandidate]) -> SelectionResult:
        cfg = self._config
        buckets = {"center": [], "left": [], "right": []}
        for scored in candidates:
            name = self.bucket_of(scored.candidate.yaw)
            if name is not None:
                buckets[name].append(scored)

        selected: List[ScoredCandidate] = []
        for name, count in (
            ("center", cfg.center_count),
            ("left", cfg.left_count),
            ("right", cfg.right_count),
        ):
            picked = rank(buckets[name])[:count]
            if len(picked) < count:
                logging.debug(f"Yaw bucket '{name}' short: {len(picked)}/{count}")
            selected.extend(picked)
        selected = selected[: cfg.total_target]

        if len(selected) < cfg.total_target:
            chosen_ids = {s.index for s in selected}
            seen_keys = {s.candidate.metric_key() for s in selected}
            for scored in rank(candidates):
                if len(selected) >= cfg.total_target:
                    break
                key = scored.candidate.metric_key()
                if scored.index in chosen_ids or key in seen_keys:
                    continue
                selected.append(scored)
                chosen_ids.add(scored.index)
                seen_keys.add(key)

        logging.info(
            f"Yaw-bucket selection: {len(selected)} frames "
            f"(center={len(buckets['center'])}, left={len(buckets['left'])}, "
            f"right={len(buckets['right'])} available)"
        )
        return SelectionResult(selected=selected, poses=[None] * len(selected))

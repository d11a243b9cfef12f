"""
Scalar quality score used to rank candidates.

    score = w_v * validity
          + w_l * landmark_stability
          + w_t * temporal_stability
          + w_r * roll_stability
          + w_p * point_bonus

Each term lies in [0, 1]. Missing face signals score a neutral 0.5. Roll
stability is multiplied by an expression factor so an open mouth also
deboosts the frame. The point bonus saturates, so point count alone cannot
lift a poorly posed frame above a well posed one.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from models.candidate import FrameCandidate, ScoredCandidate
from models.config import ScoringConfig

NEUTRAL = 0.5


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _inverse_linear(value: Optional[float], scale: float) -> float:
    """1 at zero, falling linearly to 0 at `scale`; NEUTRAL when missing."""
    if value is None:
        return NEUTRAL
    if scale <= 0:
        return 0.0
    return _clamp01(1.0 - abs(value) / scale)


def validity_term(valid_ratio: float, floor: float) -> float:
    """Valid-depth ratio with everything at or below the noise floor mapped to 0."""
    if floor >= 1.0:
        return 0.0
    return _clamp01((valid_ratio - floor) / (1.0 - floor))


def point_bonus(point_count: int, saturation: float) -> float:
    if saturation <= 0:
        return 1.0 if point_count > 0 else 0.0
    return 1.0 - math.exp(-point_count / saturation)


def roll_term(candidate: FrameCandidate, config: ScoringConfig) -> float:
    if candidate.roll is None and candidate.mouth_ratio is None:
        return NEUTRAL
    roll = 1.0 if candidate.roll is None else _inverse_linear(candidate.roll, config.roll_scale)
    mouth = 1.0 if candidate.mouth_ratio is None else _inverse_linear(candidate.mouth_ratio, config.mouth_scale)
    return roll * mouth


def quality_score(candidate: FrameCandidate, config: ScoringConfig) -> float:
    w = config.weights
    return (
        w.validity * validity_term(candidate.valid_ratio, config.validity_floor)
        + w.landmark_stability * _inverse_linear(candidate.landmark_rms, config.landmark_rms_scale)
        + w.temporal_stability * _inverse_linear(candidate.landmark_delta, config.landmark_delta_scale)
        + w.roll_stability * roll_term(candidate, config)
        + w.point_count * point_bonus(candidate.point_count, config.point_saturation)
    )


def score_candidates(
    candidates: Sequence[FrameCandidate],
    config: ScoringConfig,
) -> List[ScoredCandidate]:
    """Score candidates, preserving their temporal order."""
    return [ScoredCandidate(candidate=c, score=quality_score(c, config)) for c in candidates]

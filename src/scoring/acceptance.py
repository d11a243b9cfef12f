"""
Candidate acceptance filter and rejection guidance.

Every check is skipped when its input is missing: a frame without a detected
face is judged on its depth and point metrics alone.
"""

from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from models.candidate import FrameCandidate
from models.config import AcceptanceConfig


class RejectionReason(str, Enum):
    """Acceptance predicates, in evaluation order."""
    LOW_VALIDITY = "low_validity"
    FEW_POINTS = "few_points"
    ROLL = "roll"
    MOUTH_OPEN = "mouth_open"
    LANDMARK_DRIFT = "landmark_drift"
    POSE_MOTION = "pose_motion"
    CENTROID_MOTION = "centroid_motion"


GUIDANCE: Dict[RejectionReason, str] = {
    RejectionReason.LOW_VALIDITY: "Improve lighting and keep your face in the oval.",
    RejectionReason.FEW_POINTS: "Move closer to the camera.",
    RejectionReason.ROLL: "Hold the phone level.",
    RejectionReason.MOUTH_OPEN: "Relax your face and close your mouth.",
    RejectionReason.LANDMARK_DRIFT: "Keep your head steady in the frame.",
    RejectionReason.POSE_MOTION: "Turn your head more slowly.",
    RejectionReason.CENTROID_MOTION: "Hold still.",
}


def rejection_reasons(candidate: FrameCandidate, config: AcceptanceConfig) -> List[RejectionReason]:
    """Return every failed acceptance predicate for one candidate (empty if accepted)."""
    reasons: List[RejectionReason] = []
    if candidate.valid_ratio < config.min_valid_ratio:
        reasons.append(RejectionReason.LOW_VALIDITY)
    if candidate.point_count < config.min_point_count:
        reasons.append(RejectionReason.FEW_POINTS)
    if candidate.roll is not None and abs(candidate.roll) >= config.max_abs_roll:
        reasons.append(RejectionReason.ROLL)
    if candidate.mouth_ratio is not None and candidate.mouth_ratio >= config.max_mouth_ratio:
        reasons.append(RejectionReason.MOUTH_OPEN)
    if candidate.landmark_rms is not None and candidate.landmark_rms >= config.max_landmark_rms:
        reasons.append(RejectionReason.LANDMARK_DRIFT)
    if candidate.pose_delta is not None and candidate.pose_delta >= config.max_pose_delta:
        reasons.append(RejectionReason.POSE_MOTION)
    if candidate.centroid_delta is not None and candidate.centroid_delta >= config.max_centroid_delta:
        reasons.append(RejectionReason.CENTROID_MOTION)
    return reasons


def is_acceptable(candidate: FrameCandidate, config: AcceptanceConfig) -> bool:
    return not rejection_reasons(candidate, config)


def filter_candidates(
    candidates: Sequence[FrameCandidate],
    config: AcceptanceConfig,
) -> Tuple[List[FrameCandidate], bool]:
    """
    Keep acceptable candidates in their original order.

    Returns:
        (candidates, fell_back). When nothing passes, the unfiltered list is
        returned with fell_back=True.
    """
    accepted = [c for c in candidates if is_acceptable(c, config)]
    if accepted or not candidates:
        logging.info(f"Acceptance filter kept {len(accepted)}/{len(candidates)} candidates")
        return accepted, False
    logging.warning(
        f"No candidate passed the acceptance filter; using all {len(candidates)} candidates"
    )
    return list(candidates), True


def summarize_rejections(
    candidates: Sequence[FrameCandidate],
    config: AcceptanceConfig,
) -> Counter:
    """Count failed predicates across candidates."""
    counts: Counter = Counter()
    for candidate in candidates:
        counts.update(rejection_reasons(candidate, config))
    return counts


def most_common_rejection(
    candidates: Sequence[FrameCandidate],
    config: AcceptanceConfig,
) -> Optional[RejectionReason]:
    """Most frequently failed predicate; ties go to the earlier predicate."""
    counts = summarize_rejections(candidates, config)
    if not counts:
        return None
    best = max(counts.values())
    for reason in RejectionReason:
        if counts.get(reason) == best:
            return reason
    return None


def guidance_for(reason: Optional[RejectionReason]) -> Optional[str]:
    if reason is None:
        return None
    return GUIDANCE[reason]

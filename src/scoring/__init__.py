"""
Candidate metrics, acceptance filtering and quality scoring.
"""

from .metrics import CandidateBuilder, landmark_rms, pose_delta, centroid_delta
from .acceptance import (
    RejectionReason,
    rejection_reasons,
    is_acceptable,
    filter_candidates,
    summarize_rejections,
    most_common_rejection,
    guidance_for,
)
from .quality import quality_score, score_candidates

__all__ = [
    "CandidateBuilder",
    "landmark_rms",
    "pose_delta",
    "centroid_delta",
    "RejectionReason",
    "rejection_reasons",
    "is_acceptable",
    "filter_candidates",
    "summarize_rejections",
    "most_common_rejection",
    "guidance_for",
    "quality_score",
    "score_candidates",
]

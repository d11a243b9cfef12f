"""
Selector interface for frame/pose selection policies.

A selector picks a bounded subset of scored candidates. Candidates arrive in
temporal order; every policy breaks score ties by that order so the same
input always yields the same selection.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from models.candidate import ScoredCandidate
from models.pose import Pose


@dataclass
class SelectionResult:
    """
    Attributes:
        selected: Chosen candidates in output order.
        poses: Pose of each selected candidate (discrete-pose policy only).
        missing_poses: Poses no candidate qualified for.
    """
    selected: List[ScoredCandidate] = field(default_factory=list)
    poses: List[Optional[Pose]] = field(default_factory=list)
    missing_poses: List[Pose] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.selected)

    @property
    def point_count(self) -> int:
        return sum(s.candidate.point_count for s in self.selected)


def rank(candidates: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
    """Highest score first; equal scores keep first-seen order."""
    return sorted(candidates, key=lambda s: (-s.score, s.index))


class Selector(ABC):
    """Abstract base class for selection policies."""

    name = "base"

    @abstractmethod
    def select(self, candidates: Sequence[ScoredCandidate]) -> SelectionResult:
        """
        Choose candidates for assembly.

        Args:
            candidates: Scored candidates in temporal order.

        Returns:
            SelectionResult with the chosen candidates in output order.
        """
        pass

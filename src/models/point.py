"""
Point models: single colored 3D points and bulk point sets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List

import numpy as np


@dataclass(frozen=True)
class PointRecord:
    """A camera-space 3D point (meters) with 8-bit color."""
    x: float
    y: float
    z: float
    r: int
    g: int
    b: int

    def as_tuple(self):
        return (self.x, self.y, self.z, self.r, self.g, self.b)


class PointSet:
    """
    Immutable columnar storage for PointRecords.

    Points are held as an (N, 3) float64 xyz array and an (N, 3) uint8 rgb
    array; iteration yields PointRecord objects.
    """

    __slots__ = ("_xyz", "_rgb")

    def __init__(self, xyz: np.ndarray, rgb: np.ndarray):
        xyz = np.array(xyz, dtype=np.float64).reshape(-1, 3)
        rgb = np.array(rgb, dtype=np.uint8).reshape(-1, 3)
        if len(xyz) != len(rgb):
            raise ValueError(f"xyz ({len(xyz)}) and rgb ({len(rgb)}) lengths differ")
        xyz.flags.writeable = False
        rgb.flags.writeable = False
        self._xyz = xyz
        self._rgb = rgb

    @classmethod
    def empty(cls) -> "PointSet":
        return cls(np.zeros((0, 3)), np.zeros((0, 3), dtype=np.uint8))

    @classmethod
    def from_records(cls, records: Iterable[PointRecord]) -> "PointSet":
        records = list(records)
        if not records:
            return cls.empty()
        xyz = np.array([[p.x, p.y, p.z] for p in records], dtype=np.float64)
        rgb = np.array([[p.r, p.g, p.b] for p in records], dtype=np.uint8)
        return cls(xyz, rgb)

    @classmethod
    def concatenate(cls, parts: List["PointSet"]) -> "PointSet":
        if not parts:
            return cls.empty()
        return cls(
            np.concatenate([p.xyz for p in parts]),
            np.concatenate([p.rgb for p in parts]),
        )

    @property
    def xyz(self) -> np.ndarray:
        return self._xyz

    @property
    def rgb(self) -> np.ndarray:
        return self._rgb

    def head(self, count: int) -> "PointSet":
        """Return the first `count` points."""
        return PointSet(self._xyz[:count], self._rgb[:count])

    def __len__(self) -> int:
        return len(self._xyz)

    def __iter__(self) -> Iterator[PointRecord]:
        for (x, y, z), (r, g, b) in zip(self._xyz.tolist(), self._rgb.tolist()):
            yield PointRecord(x, y, z, r, g, b)

    def __getitem__(self, index: int) -> PointRecord:
        x, y, z = self._xyz[index].tolist()
        r, g, b = self._rgb[index].tolist()
        return PointRecord(x, y, z, r, g, b)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PointSet):
            return NotImplemented
        return np.array_equal(self._xyz, other._xyz) and np.array_equal(self._rgb, other._rgb)

    def __repr__(self) -> str:
        return f"PointSet({len(self)} points)"

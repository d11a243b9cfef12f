"""
ASCII PLY point cloud format.

Layout (fixed header, one vertex per line, newline-terminated):

    ply
    format ascii 1.0
    element vertex N
    property float x
    property float y
    property float z
    property uchar red
    property uchar green
    property uchar blue
    end_header
    x y z r g b

Coordinates are written with six decimals, so serializing a parsed cloud
reproduces the input bytes exactly.
"""

from __future__ import annotations

import io
import os
from typing import Union

import numpy as np

from models.point import PointSet

PLY_MIME_TYPE = "application/octet-stream"
PLY_EXTENSION = ".ply"

HEADER_TEMPLATE = (
    "ply\n"
    "format ascii 1.0\n"
    "element vertex {count}\n"
    "property float x\n"
    "property float y\n"
    "property float z\n"
    "property uchar red\n"
    "property uchar green\n"
    "property uchar blue\n"
    "end_header\n"
)

_VERTEX_FORMAT = "%.6f %.6f %.6f %d %d %d"
_HEADER_LINES = HEADER_TEMPLATE.count("\n")


class PlyFormatError(ValueError):
    """Raised when PLY text does not match the fixed layout."""


def serialize_ply(points: PointSet) -> bytes:
    """Serialize points to ASCII PLY bytes."""
    buf = io.StringIO()
    buf.write(HEADER_TEMPLATE.format(count=len(points)))
    if len(points):
        rows = np.column_stack([points.xyz, points.rgb.astype(np.float64)])
        np.savetxt(buf, rows, fmt=_VERTEX_FORMAT, newline="\n")
    return buf.getvalue().encode("ascii")


def parse_ply(data: Union[bytes, str]) -> PointSet:
    """Parse ASCII PLY produced by serialize_ply."""
    text = data.decode("ascii") if isinstance(data, bytes) else data
    lines = text.split("\n")
    if len(lines) < _HEADER_LINES + 1:
        raise PlyFormatError("Truncated PLY header")

    count_line = lines[2]
    prefix = "element vertex "
    if not count_line.startswith(prefix):
        raise PlyFormatError(f"Expected 'element vertex N', got {count_line!r}")
    try:
        count = int(count_line[len(prefix):])
    except ValueError:
        raise PlyFormatError(f"Invalid vertex count: {count_line!r}")

    header = "\n".join(lines[:_HEADER_LINES]) + "\n"
    if header != HEADER_TEMPLATE.format(count=count):
        raise PlyFormatError("PLY header does not match the expected layout")

    body = lines[_HEADER_LINES:]
    if body[-1] != "":
        raise PlyFormatError("PLY body is not newline-terminated")
    body = body[:-1]
    if len(body) != count:
        raise PlyFormatError(f"Header declares {count} vertices, body has {len(body)}")
    if count == 0:
        return PointSet.empty()

    try:
        rows = np.loadtxt(io.StringIO("\n".join(body)), dtype=np.float64, ndmin=2)
    except ValueError as e:
        raise PlyFormatError(f"Invalid vertex data: {e}")
    if rows.shape[1] != 6:
        raise PlyFormatError(f"Expected 6 values per vertex, got {rows.shape[1]}")
    return PointSet(rows[:, :3], rows[:, 3:].astype(np.uint8))


def vertex_count(data: Union[bytes, str]) -> int:
    """Vertex count declared in a PLY header."""
    text = data.decode("ascii") if isinstance(data, bytes) else data
    for line in text.split("\n", _HEADER_LINES)[:_HEADER_LINES]:
        if line.startswith("element vertex "):
            return int(line.split()[-1])
    raise PlyFormatError("No 'element vertex' line in header")


def write_ply(points: PointSet, path: str) -> str:
    """Write points to `path` and return the path."""
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory)
    with open(path, "wb") as f:
        f.write(serialize_ply(points))
    return path


def read_ply(path: str) -> PointSet:
    with open(path, "rb") as f:
        return parse_ply(f.read())

"""
Point cloud assembly and ASCII PLY serialization.
"""

from .assembler import PointCloudAssembler
from .ply import (
    PLY_EXTENSION,
    PLY_MIME_TYPE,
    PlyFormatError,
    parse_ply,
    read_ply,
    serialize_ply,
    vertex_count,
    write_ply,
)

__all__ = [
    "PointCloudAssembler",
    "PLY_EXTENSION",
    "PLY_MIME_TYPE",
    "PlyFormatError",
    "parse_ply",
    "read_ply",
    "serialize_ply",
    "vertex_count",
    "write_ply",
]

"""
Frame models for synchronized depth + color capture.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

# Byte offsets of (red, green, blue) inside one 4-byte pixel
CHANNEL_OFFSETS = {
    "BGRA": (2, 1, 0),
    "RGBA": (0, 1, 2),
}


@dataclass(frozen=True)
class DepthFrame:
    """
    Per-pixel distance-to-camera grid.

    Attributes:
        depth: float32 array of shape (height, width), meters. A pixel is
            invalid if it is non-finite or <= 0.
        timestamp: Unix timestamp when the frame was captured.
    """
    depth: np.ndarray
    timestamp: float = 0.0

    @classmethod
    def from_numpy(cls, depth: np.ndarray, timestamp: float = 0.0) -> "DepthFrame":
        arr = np.asarray(depth, dtype=np.float32)
        if arr.ndim != 2:
            raise ValueError(f"Depth grid must be 2D, got shape {arr.shape}")
        arr = arr.copy()
        arr.flags.writeable = False
        return cls(depth=arr, timestamp=timestamp)

    @property
    def width(self) -> int:
        return int(self.depth.shape[1])

    @property
    def height(self) -> int:
        return int(self.depth.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)


@dataclass(frozen=True)
class ColorFrame:
    """
    Packed 4-byte-per-pixel color grid with optional row padding.

    Attributes:
        data: Flat uint8 buffer of at least height * bytes_per_row bytes.
        width: Width in pixels.
        height: Height in pixels.
        bytes_per_row: Row stride in bytes (>= width * 4).
        pixel_format: "BGRA" (device default) or "RGBA".
        timestamp: Unix timestamp when the frame was captured.
    """
    data: np.ndarray
    width: int
    height: int
    bytes_per_row: int
    pixel_format: str = "BGRA"
    timestamp: float = 0.0

    BYTES_PER_PIXEL = 4

    def __post_init__(self):
        if self.pixel_format not in CHANNEL_OFFSETS:
            raise ValueError(f"Unsupported pixel format: {self.pixel_format}")
        if self.bytes_per_row < self.width * self.BYTES_PER_PIXEL:
            raise ValueError(
                f"bytes_per_row {self.bytes_per_row} smaller than row size "
                f"{self.width * self.BYTES_PER_PIXEL}"
            )
        if self.data.size < self.height * self.bytes_per_row:
            raise ValueError("Color buffer is smaller than height * bytes_per_row")

    @classmethod
    def from_image(
        cls,
        image: np.ndarray,
        pixel_format: str = "BGRA",
        row_padding: int = 0,
        timestamp: float = 0.0,
    ) -> "ColorFrame":
        """Create a ColorFrame from an (H, W, 4) uint8 array, optionally padding each row."""
        if image.ndim != 3 or image.shape[2] != cls.BYTES_PER_PIXEL:
            raise ValueError(f"Expected (H, W, 4) image, got shape {image.shape}")
        h, w = image.shape[:2]
        stride = w * cls.BYTES_PER_PIXEL + row_padding
        rows = np.zeros((h, stride), dtype=np.uint8)
        rows[:, : w * cls.BYTES_PER_PIXEL] = image.reshape(h, -1)
        flat = rows.reshape(-1)
        flat.flags.writeable = False
        return cls(
            data=flat,
            width=w,
            height=h,
            bytes_per_row=stride,
            pixel_format=pixel_format,
            timestamp=timestamp,
        )

    def rows(self) -> np.ndarray:
        """Return the buffer viewed as (height, bytes_per_row)."""
        return self.data[: self.height * self.bytes_per_row].reshape(self.height, self.bytes_per_row)

    def rgb_at(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """
        Sample (r, g, b) at integer pixel positions.

        Positions must already be clamped to the grid; returns uint8 (N, 3).
        """
        rows = self.rows()
        base = xs * self.BYTES_PER_PIXEL
        r_off, g_off, b_off = CHANNEL_OFFSETS[self.pixel_format]
        return np.stack(
            [rows[ys, base + r_off], rows[ys, base + g_off], rows[ys, base + b_off]],
            axis=1,
        ).astype(np.uint8)

    def to_bgr(self) -> np.ndarray:
        """Return an unpadded (H, W, 3) BGR image for OpenCV."""
        pixels = self.rows()[:, : self.width * self.BYTES_PER_PIXEL].reshape(
            self.height, self.width, self.BYTES_PER_PIXEL
        )
        r_off, g_off, b_off = CHANNEL_OFFSETS[self.pixel_format]
        return np.ascontiguousarray(pixels[:, :, [b_off, g_off, r_off]])


@dataclass(frozen=True)
class CameraIntrinsics:
    """
    Pinhole camera parameters.

    fx/fy/cx/cy are expressed at the reference resolution
    (reference_width x reference_height) and must be rescaled to the depth
    grid before use.
    """
    fx: float
    fy: float
    cx: float
    cy: float
    reference_width: int
    reference_height: int

    def scaled_to(self, width: int, height: int) -> "CameraIntrinsics":
        """Rescale focal lengths and principal point to a grid of width x height."""
        scale_x = float(self.reference_width) / float(width)
        scale_y = float(self.reference_height) / float(height)
        return CameraIntrinsics(
            fx=self.fx / scale_x,
            fy=self.fy / scale_y,
            cx=self.cx / scale_x,
            cy=self.cy / scale_y,
            reference_width=width,
            reference_height=height,
        )


@dataclass(frozen=True)
class FrameSnapshot:
    """One synchronized (depth, color, intrinsics) triple from the same capture instant."""
    depth: DepthFrame
    color: ColorFrame
    intrinsics: Optional[CameraIntrinsics]
    timestamp: float = 0.0

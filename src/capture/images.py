"""
JPEG encoding of color frames for per-pose images.
"""

from __future__ import annotations

import cv2

from models.frame import ColorFrame


def encode_jpeg(color: ColorFrame, quality: int = 90) -> bytes:
    """Encode a color frame as JPEG bytes."""
    ok, buf = cv2.imencode(".jpg", color.to_bgr(), [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("Failed to encode JPEG")
    return buf.tobytes()

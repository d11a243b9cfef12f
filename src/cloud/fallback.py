"""
Local durable storage for scans that could not be uploaded.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid

from pointcloud.ply import PLY_EXTENSION


class LocalScanStore:
    """Writes scan bytes to uniquely named files under a directory."""

    def __init__(self, directory: str):
        self.directory = directory

    def save(self, data: bytes, suffix: str = PLY_EXTENSION) -> str:
        """
        Atomically write `data` to a new file and return its path.

        The filename is derived from a random UUID, so concurrent saves never
        collide.
        """
        if not os.path.exists(self.directory):
            os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, f"scan_{uuid.uuid4().hex}{suffix}")
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logging.info(f"Saved scan locally: {path} ({len(data)} bytes)")
        return path

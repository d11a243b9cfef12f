"""
Scan upload and processing-status polling.

State machine (see models.upload_state):

    IDLE -> UPLOADING -> PROCESSING(stage?) -> READY | FAILED

A failed upload writes the point cloud to local storage before the error is
surfaced. Polling repeats at a fixed interval until the server reports
ready/failed or the overall deadline passes; transient poll errors are
retried only by the next poll.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from models.config import UploadConfig
from models.pose import Pose
from models.upload_state import ScanUploadState
from pointcloud.ply import PLY_MIME_TYPE
from .api_models import ScanCreatedResponse, ScanStatusResponse
from .deadline import RequestDeadline
from .errors import (
    InvalidResponseError,
    ProcessingFailedError,
    ProcessingTimeoutError,
    RequestTimeoutError,
    ServerError,
    TransportError,
    UploadCancelledError,
    UploadError,
)
from .fallback import LocalScanStore

SCANS_PATH = "/api/scans"


def status_path(scan_id: str) -> str:
    return f"{SCANS_PATH}/{scan_id}/status"


def truncate_body(text: str, limit: int) -> str:
    """Cap error text at `limit` characters."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass
class UploadOutcome:
    """Result of a completed upload + poll cycle."""
    scan_id: str
    status: ScanStatusResponse


class ScanUploader:
    """
    Drives one scan through upload and processing.

    Args:
        config: Upload configuration.
        client: httpx client; built from config.base_url when omitted.
        fallback: Local store used when the upload fails.
        clock: Monotonic clock for the polling deadline.
        sleep: Delay between polls; defaults to waiting on the cancel event.
        on_state: Called with every ScanUploadState transition.

    Example:
        uploader = ScanUploader(config.upload)
        outcome = uploader.run(ply_bytes, images={Pose.FRONT: jpeg})
    """

    def __init__(
        self,
        config: UploadConfig,
        client: Optional[httpx.Client] = None,
        fallback: Optional[LocalScanStore] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        on_state: Optional[Callable[[ScanUploadState], None]] = None,
    ):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.request_timeout_s),
        )
        self._fallback = fallback or LocalScanStore(config.fallback_dir)
        self._clock = clock
        self._cancel = threading.Event()
        self._sleep = sleep or self._wait_for_cancel
        self._on_state = on_state
        self._state = ScanUploadState.idle()
        self.polls = 0

    @property
    def state(self) -> ScanUploadState:
        return self._state

    def cancel(self) -> None:
        """Cancel an in-flight upload or poll loop."""
        self._cancel.set()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ScanUploader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _wait_for_cancel(self, seconds: float) -> None:
        self._cancel.wait(seconds)

    def _set_state(self, state: ScanUploadState) -> None:
        self._state = state
        logging.debug(f"Upload state -> {state.to_dict()}")
        if self._on_state is not None:
            try:
                self._on_state(state)
            except Exception as e:
                logging.warning(f"Upload state callback error: {e}")

    def run(self, ply: bytes, images: Optional[Dict[Pose, bytes]] = None) -> UploadOutcome:
        """Upload, then poll until the scan is ready. Raises UploadError on failure."""
        scan_id = self.upload(ply, images)
        status = self.poll(scan_id)
        return UploadOutcome(scan_id=scan_id, status=status)

    # Upload

    def upload(self, ply: bytes, images: Optional[Dict[Pose, bytes]] = None) -> str:
        """
        POST the point cloud (and optional per-pose JPEGs); return the scan id.

        On any failure the point cloud is saved locally and the raised
        UploadError carries the saved path.
        """
        self._set_state(ScanUploadState.uploading())
        logging.info(
            f"Uploading scan: {len(ply)} bytes, {len(images or {})} pose images"
        )
        try:
            if self._cancel.is_set():
                raise UploadCancelledError()
            response = RequestDeadline(self.config.request_timeout_s, self._cancel).call(
                lambda: self._post_scan(ply, images)
            )
            scan_id = self._parse_created(response)
        except UploadError as e:
            self._fail_upload(e, ply)
            raise

        logging.info(f"Upload accepted: scan_id={scan_id}")
        self._set_state(ScanUploadState.processing(scan_id))
        return scan_id

    def _post_scan(self, ply: bytes, images: Optional[Dict[Pose, bytes]]) -> httpx.Response:
        files = {"ply": ("scan.ply", ply, PLY_MIME_TYPE)}
        for pose in Pose:
            jpeg = (images or {}).get(pose)
            if jpeg:
                files[pose.form_field] = (f"{pose.value}.jpg", jpeg, "image/jpeg")
        params = {"unit_scale": str(self.config.unit_scale), "units": self.config.units}
        try:
            return self._client.post(SCANS_PATH, params=params, files=files)
        except httpx.HTTPError as e:
            raise TransportError(f"Upload transport error: {e}")

    def _parse_created(self, response: httpx.Response) -> str:
        if not response.is_success:
            raise self._server_error(response)
        try:
            return ScanCreatedResponse.model_validate(response.json()).scan_id
        except (ValueError, ValidationError) as e:
            raise InvalidResponseError(f"Invalid upload response: {truncate_body(str(e), self.config.max_error_body_chars)}")

    def _server_error(self, response: httpx.Response) -> ServerError:
        body = truncate_body(response.text, self.config.max_error_body_chars)
        message = f"Server returned HTTP {response.status_code}"
        if body:
            message = f"{message}: {body}"
        return ServerError(message, status_code=response.status_code)

    def _fail_upload(self, error: UploadError, ply: bytes) -> None:
        try:
            error.saved_path = self._fallback.save(ply)
        except OSError as save_error:
            logging.error(f"Local fallback save failed: {save_error}")
        logging.error(f"Upload failed: {error.message} (saved to {error.saved_path})")
        self._set_state(ScanUploadState.failed(error.message, saved_path=error.saved_path))

    # Polling

    def poll(self, scan_id: str) -> ScanStatusResponse:
        """
        Poll the status endpoint until ready, failed, or the deadline passes.

        Raises:
            ProcessingFailedError: Server reported failure.
            ProcessingTimeoutError: Deadline elapsed without resolution.
            UploadCancelledError: cancel() was called.
        """
        interval = self.config.poll_interval_s
        start = self._clock()
        deadline = start + self.config.poll_deadline_s
        last_stage: Optional[str] = None

        while True:
            if self._cancel.is_set():
                self._set_state(ScanUploadState.failed("Cancelled", scan_id=scan_id))
                raise UploadCancelledError()

            remaining = deadline - self._clock()
            if remaining <= 0:
                self._time_out(scan_id, start)
            try:
                status = self._fetch_status(scan_id, remaining)
            except RequestTimeoutError:
                self._time_out(scan_id, start)
            if status is not None:
                if status.is_ready:
                    logging.info(f"Scan {scan_id} ready after {self.polls} polls")
                    self._set_state(ScanUploadState.ready(scan_id))
                    return status
                if status.is_failed:
                    error = ProcessingFailedError(scan_id, status.failure_detail)
                    logging.error(error.message)
                    self._set_state(ScanUploadState.failed(error.message, scan_id=scan_id))
                    raise error
                if status.stage != last_stage or self._state.scan_id != scan_id:
                    last_stage = status.stage
                    if status.stage:
                        logging.info(f"Scan {scan_id} processing: {status.stage}")
                    self._set_state(ScanUploadState.processing(scan_id, status.stage))

            remaining = deadline - self._clock()
            if remaining <= 0:
                self._time_out(scan_id, start)
            self._sleep(min(interval, remaining))

    def _time_out(self, scan_id: str, start: float) -> None:
        elapsed = max(self._clock() - start, self.config.poll_deadline_s)
        error = ProcessingTimeoutError(scan_id, elapsed)
        logging.error(error.message)
        self._set_state(ScanUploadState.failed(error.message, scan_id=scan_id))
        raise error

    def _fetch_status(self, scan_id: str, remaining_s: float) -> Optional[ScanStatusResponse]:
        """
        One status request; returns None on transient errors.

        The request is bounded by whatever is left of the polling deadline.
        RequestTimeoutError propagates only when that bound, not the regular
        request timeout, expired.
        """
        self.polls += 1
        timeout_s = min(self.config.request_timeout_s, remaining_s)
        try:
            response = RequestDeadline(timeout_s, self._cancel).call(
                lambda: self._client.get(status_path(scan_id))
            )
        except RequestTimeoutError:
            if timeout_s < self.config.request_timeout_s:
                raise
            logging.warning(f"Status poll {self.polls} timed out after {timeout_s:g}s")
            return None
        except UploadCancelledError:
            return None
        except UploadError as e:
            logging.warning(f"Status poll {self.polls} failed: {e}")
            return None
        except httpx.HTTPError as e:
            logging.warning(f"Status poll {self.polls} transport error: {e}")
            return None

        if not response.is_success:
            logging.warning(f"Status poll {self.polls}: {self._server_error(response).message}")
            return None
        try:
            return ScanStatusResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logging.warning(f"Status poll {self.polls}: invalid response: {e}")
            return None

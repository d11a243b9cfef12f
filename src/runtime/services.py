from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from capture.errors import CaptureError, NoFramesError
from capture.scheduler import CaptureResult, CaptureScheduler, CaptureState
from cloud.errors import UploadError
from cloud.fallback import LocalScanStore
from cloud.uploader import ScanUploader, UploadOutcome
from models.pose import Pose
from models.upload_state import ScanUploadState
from pointcloud.assembler import PointCloudAssembler
from pointcloud.ply import serialize_ply
from projection.projector import project
from runtime.context import ScanContext
from scoring.metrics import CandidateBuilder
from scoring.quality import score_candidates
from selection import SelectionResult

SINGLE_SHOT_STRIDE = 2


@dataclass
class ScanReport:
    """
    Terminal outcome of a scan attempt, for presentation.

    Exactly one of `upload` (success) or `error` is set once the scan ends;
    `saved_path` points at the local copy when one was written.
    """
    capture: Optional[CaptureResult] = None
    upload: Optional[UploadOutcome] = None
    error: Optional[Exception] = None
    message: str = ""
    saved_path: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ScanSession:
    """
    Orchestrates capture -> serialize -> upload for one scan.

    Sampling and network calls block the calling thread; callers that
    drive a UI run the session on a worker thread and receive progress via
    the state callbacks.
    """

    def __init__(
        self,
        ctx: ScanContext,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        on_capture_state: Optional[Callable[[CaptureState], None]] = None,
        on_upload_state: Optional[Callable[[ScanUploadState], None]] = None,
    ):
        self.ctx = ctx
        self._clock = clock
        self._sleep = sleep
        self._on_capture_state = on_capture_state
        self._on_upload_state = on_upload_state
        self._scheduler: Optional[CaptureScheduler] = None
        self._uploader: Optional[ScanUploader] = None
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Cancel whichever stage is running, and any stage not yet started."""
        self._cancelled.set()
        if self._scheduler is not None:
            self._scheduler.cancel()
        if self._uploader is not None:
            self._uploader.cancel()

    def capture(self) -> CaptureResult:
        """Run one timed capture window."""
        self._scheduler = CaptureScheduler(
            self.ctx.store,
            self.ctx.config,
            self.ctx.analyzer,
            clock=self._clock,
            sleep=self._sleep,
            on_state=self._on_capture_state,
        )
        if self._cancelled.is_set():
            self._scheduler.cancel()
        return self._scheduler.run()

    def capture_single(self) -> CaptureResult:
        """Project the latest frame once (stride 2, no ROI) and serialize it."""
        snapshot = self.ctx.store.latest()
        if snapshot is None:
            raise NoFramesError()
        projection = project(snapshot.depth, snapshot.color, snapshot.intrinsics, stride=SINGLE_SHOT_STRIDE)
        if projection is None:
            raise NoFramesError()

        candidate = CandidateBuilder().build(projection, None, timestamp=snapshot.timestamp)
        cloud = PointCloudAssembler(self.ctx.config.assembly).assemble([candidate])
        scored = score_candidates([candidate], self.ctx.config.scoring)
        return CaptureResult(
            points=cloud,
            ply=serialize_ply(cloud),
            selection=SelectionResult(selected=scored, poses=[None]),
            candidates_collected=1,
        )

    def upload(self, result: CaptureResult) -> UploadOutcome:
        images: Dict[Pose, bytes] = {f.pose: f.image_jpeg for f in result.pose_frames}
        self._uploader = ScanUploader(
            self.ctx.config.upload,
            client=self.ctx.http_client,
            fallback=LocalScanStore(self.ctx.config.upload.fallback_dir),
            clock=self._clock,
            sleep=self._sleep,
            on_state=self._on_upload_state,
        )
        if self._cancelled.is_set():
            self._uploader.cancel()
        try:
            return self._uploader.run(result.ply, images)
        finally:
            self._uploader.close()

    def save_locally(self, result: CaptureResult) -> str:
        return LocalScanStore(self.ctx.config.upload.fallback_dir).save(result.ply)

    def run(self, upload: bool = True, single_shot: bool = False) -> ScanReport:
        """Capture and optionally upload, converting errors into a ScanReport."""
        report = ScanReport()
        try:
            report.capture = self.capture_single() if single_shot else self.capture()
        except CaptureError as e:
            report.error = e
            report.message = f"{e} {e.guidance}"
            return report

        if report.capture.missing_poses:
            missing = ", ".join(p.value for p in report.capture.missing_poses)
            logging.warning(f"Scan is missing poses: {missing}")

        if not upload:
            report.saved_path = self.save_locally(report.capture)
            report.message = f"Saved {report.capture.point_count} points to {report.saved_path}"
            return report

        try:
            report.upload = self.upload(report.capture)
            report.message = f"Scan {report.upload.scan_id} is ready"
        except UploadError as e:
            report.error = e
            report.saved_path = e.saved_path
            report.message = e.message
            if e.saved_path:
                report.message = f"{e.message}. Saved locally to {e.saved_path}"
        return report

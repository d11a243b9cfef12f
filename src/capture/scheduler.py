"""
Timed, cancellable capture sampling loop.

State machine:

    IDLE -> SAMPLING -> FINALIZING -> SUCCEEDED | FAILED

Sampling runs one tick every `interval_s` until the wall-clock deadline
(`duration_s` after start) or until cancelled. Each tick reads the latest
frame snapshot, projects it, optionally analyzes the face, and appends one
FrameCandidate. Ticks never overlap. Finalization filters, scores and selects
candidates, then assembles and serializes the point cloud.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from capture.base import FrameSource, LandmarkAnalyzer, NullLandmarkAnalyzer
from capture.errors import CaptureError, NoFramesError, SparsePointsError
from capture.images import encode_jpeg
from models.candidate import FrameCandidate
from models.config import Config
from models.point import PointSet
from models.pose import CapturedPoseFrame, Pose
from pointcloud.assembler import PointCloudAssembler
from pointcloud.ply import serialize_ply
from projection.projector import PointProjector
from scoring.acceptance import filter_candidates, guidance_for, most_common_rejection
from scoring.metrics import CandidateBuilder
from scoring.quality import score_candidates
from selection import SelectionResult, create_selector_from_config, rank


class CaptureState(str, Enum):
    """Capture scheduler states."""
    IDLE = "idle"
    SAMPLING = "sampling"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CaptureResult:
    """
    Outcome of a successful capture.

    Attributes:
        points: Assembled point cloud.
        ply: Serialized ASCII PLY bytes.
        selection: Selected candidates (and poses, for discrete-pose mode).
        pose_frames: Representative per-pose images, when kept.
        candidates_collected: Number of candidates sampled.
        fell_back: True if no candidate passed acceptance and all were used.
        cancelled: True if sampling ended by cancellation.
    """
    points: PointSet
    ply: bytes
    selection: SelectionResult
    pose_frames: List[CapturedPoseFrame] = field(default_factory=list)
    candidates_collected: int = 0
    fell_back: bool = False
    cancelled: bool = False

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def missing_poses(self) -> List[Pose]:
        return self.selection.missing_poses


def finalize_capture(candidates: List[FrameCandidate], config: Config) -> CaptureResult:
    """
    Filter, score and select candidates, then assemble and serialize the cloud.

    Raises:
        NoFramesError: No candidates were collected.
        SparsePointsError: Selected candidates hold fewer than assembly.min_points.
        InsufficientPointsError: The budget-truncated cloud is below the minimum.
    """
    if not candidates:
        raise NoFramesError()

    accepted, fell_back = filter_candidates(candidates, config.acceptance)
    scored = score_candidates(accepted, config.scoring)
    selection = create_selector_from_config(config.selection).select(scored)
    if not selection.selected:
        best = rank(scored)[0]
        logging.warning(
            f"Selection policy '{config.selection.policy}' chose nothing; "
            f"falling back to best-scored candidate {best.index}"
        )
        selection.selected.append(best)
        selection.poses.append(None)

    total = selection.point_count
    if total < config.assembly.min_points:
        guidance = guidance_for(most_common_rejection(candidates, config.acceptance))
        raise SparsePointsError(total, config.assembly.min_points, guidance)

    cloud = PointCloudAssembler(config.assembly).assemble([s.candidate for s in selection.selected])
    pose_frames = [
        CapturedPoseFrame(
            pose=pose,
            image_jpeg=s.candidate.image_jpeg,
            depth=s.candidate.depth,
            timestamp=s.candidate.timestamp,
            yaw=s.candidate.yaw,
            pitch=s.candidate.pitch,
            roll=s.candidate.roll,
        )
        for s, pose in zip(selection.selected, selection.poses)
        if pose is not None and s.candidate.image_jpeg is not None
    ]
    return CaptureResult(
        points=cloud,
        ply=serialize_ply(cloud),
        selection=selection,
        pose_frames=pose_frames,
        candidates_collected=len(candidates),
        fell_back=fell_back,
    )


class CaptureScheduler:
    """
    Runs one capture window against a FrameSource.

    `clock` and `sleep` are injectable so tests can simulate time; by default
    sleeping waits on the cancellation event, so cancel() wakes the loop
    immediately.

    Example:
        scheduler = CaptureScheduler(store, config, analyzer)
        scheduler.start()
        ...
        result = scheduler.wait()
    """

    def __init__(
        self,
        source: FrameSource,
        config: Config,
        analyzer: Optional[LandmarkAnalyzer] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        on_state: Optional[Callable[[CaptureState], None]] = None,
    ):
        self.source = source
        self.config = config
        self.analyzer = analyzer or NullLandmarkAnalyzer()
        self._clock = clock
        self._sleep = sleep or self._wait_for_cancel
        self._on_state = on_state
        self._projector = PointProjector(config.capture.stride, config.capture.roi)
        self._cancel = threading.Event()
        self._state_lock = threading.Lock()
        self._state = CaptureState.IDLE
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()
        self._result: Optional[CaptureResult] = None
        self._error: Optional[BaseException] = None
        self.candidates: List[FrameCandidate] = []
        self.ticks = 0

    @property
    def state(self) -> CaptureState:
        with self._state_lock:
            return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Stop sampling before the next tick; collected candidates are still finalized."""
        if not self._cancel.is_set():
            logging.info("Capture cancellation requested")
        self._cancel.set()

    def _set_state(self, state: CaptureState) -> None:
        with self._state_lock:
            self._state = state
        logging.debug(f"Capture state -> {state.value}")
        if self._on_state is not None:
            try:
                self._on_state(state)
            except Exception as e:
                logging.warning(f"Capture state callback error: {e}")

    def _wait_for_cancel(self, seconds: float) -> None:
        self._cancel.wait(seconds)

    def run(self) -> CaptureResult:
        """Sample for the configured window, then finalize. Blocks until done."""
        if self.state != CaptureState.IDLE:
            raise RuntimeError("CaptureScheduler can only run once")
        try:
            candidates = self._sample()
            self._set_state(CaptureState.FINALIZING)
            result = finalize_capture(candidates, self.config)
            result.cancelled = self.cancelled
        except CaptureError as e:
            logging.error(f"Capture failed: {e}")
            self._set_state(CaptureState.FAILED)
            raise
        except Exception:
            self._set_state(CaptureState.FAILED)
            raise
        logging.info(
            f"Capture succeeded: {result.point_count} points from "
            f"{len(result.selection)} of {result.candidates_collected} candidates"
        )
        self._set_state(CaptureState.SUCCEEDED)
        return result

    def start(self) -> threading.Thread:
        """Run the capture on a background thread; collect the outcome with wait()."""
        if self._thread is not None:
            raise RuntimeError("Capture already started")
        self._thread = threading.Thread(target=self._run_in_background, name="capture-scheduler")
        self._thread.daemon = True
        self._thread.start()
        return self._thread

    def _run_in_background(self) -> None:
        try:
            self._result = self.run()
        except BaseException as e:
            self._error = e
        finally:
            self._done.set()

    def wait(self, timeout: Optional[float] = None) -> CaptureResult:
        """Block until a started capture finishes; re-raises its error."""
        if self._thread is None:
            raise RuntimeError("Capture was not started")
        if not self._done.wait(timeout):
            raise TimeoutError("Capture did not finish in time")
        if self._error is not None:
            raise self._error
        return self._result

    def _sample(self) -> List[FrameCandidate]:
        capture_cfg = self.config.capture
        builder = CandidateBuilder(per_pose_reference=capture_cfg.per_pose_reference)
        start = self._clock()
        deadline = start + capture_cfg.duration_s
        self._set_state(CaptureState.SAMPLING)
        logging.info(
            f"Sampling started: mode={capture_cfg.mode} window={capture_cfg.duration_s}s "
            f"interval={capture_cfg.interval_s}s stride={capture_cfg.stride}"
        )

        while True:
            if self._cancel.is_set():
                logging.info(f"Sampling cancelled after {self.ticks} ticks")
                break
            if self._clock() >= deadline:
                break

            candidate = self._tick(builder)
            self.ticks += 1
            if candidate is not None:
                self.candidates.append(candidate)

            if self._cancel.is_set():
                logging.info(f"Sampling cancelled after {self.ticks} ticks")
                break
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(capture_cfg.interval_s, remaining))

        logging.info(
            f"Sampling finished: {len(self.candidates)} candidates from {self.ticks} ticks"
        )
        return list(self.candidates)

    def _tick(self, builder: CandidateBuilder) -> Optional[FrameCandidate]:
        snapshot = self.source.latest()
        if snapshot is None:
            logging.debug("No frame available yet")
            return None

        projection = self._projector.project(snapshot.depth, snapshot.color, snapshot.intrinsics)
        if projection is None:
            logging.debug("Projection unavailable for this tick")
            return None

        try:
            face = self.analyzer.analyze(snapshot.color)
        except Exception as e:
            logging.warning(f"Landmark analyzer error: {e}")
            face = None

        image_jpeg = None
        depth = None
        if self.config.capture.capture_pose_images and face is not None:
            if Pose.classify(face.yaw, face.pitch, face.roll) is not None:
                image_jpeg = encode_jpeg(snapshot.color, self.config.capture.jpeg_quality)
                depth = snapshot.depth

        candidate = builder.build(
            projection,
            face,
            timestamp=snapshot.timestamp,
            image_jpeg=image_jpeg,
            depth=depth,
        )
        logging.debug(
            f"Tick {candidate.index}: points={candidate.point_count} "
            f"valid={candidate.valid_ratio:.3f} yaw={candidate.yaw} roll={candidate.roll}"
        )
        return candidate

"""
Tests for the timed capture loop and finalization.
"""

import itertools

import numpy as np
import pytest

from capture.errors import NoFramesError, SparsePointsError
from capture.scheduler import CaptureScheduler, CaptureState, finalize_capture
from capture.store import FrameSnapshotStore
from models.config import Config
from models.face import FaceAnalysis
from models.pose import Pose
from pointcloud.ply import parse_ply, vertex_count

from conftest import make_candidate, make_color, make_depth, make_intrinsics


def _config(**capture):
    capture_cfg = {"stride": 1, "roi": {"enabled": False}, "duration_s": 2.5, "interval_s": 0.25}
    capture_cfg.update(capture)
    return Config.from_dict({
        "capture": capture_cfg,
        "assembly": {"min_points": 1000},
    })


def _store(width=40, height=30):
    store = FrameSnapshotStore()
    store.update(make_depth(width, height), make_color(), make_intrinsics(), timestamp=1.0)
    return store


class CountingSource:
    """FrameSource wrapper that runs a hook on every read."""

    def __init__(self, store, on_read=None):
        self.store = store
        self.reads = 0
        self.on_read = on_read

    def latest(self):
        self.reads += 1
        if self.on_read is not None:
            self.on_read(self.reads)
        return self.store.latest()


class SequenceAnalyzer:
    """Returns faces with the given (yaw, pitch) angles in a cycle."""

    def __init__(self, angles):
        self._angles = itertools.cycle(angles)

    def analyze(self, color):
        yaw, pitch = next(self._angles)
        return FaceAnalysis(yaw=yaw, pitch=pitch, roll=0.0)


class FailingAnalyzer:
    def analyze(self, color):
        raise RuntimeError("model not loaded")


class TestSampling:
    def test_tick_count_follows_window(self, fake_clock):
        scheduler = CaptureScheduler(_store(), _config(), clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.run()
        assert scheduler.ticks == 10
        assert len(scheduler.candidates) == 10
        assert fake_clock.now == pytest.approx(2.5)

    def test_quick_mode_window(self, fake_clock):
        config = Config.from_dict({"capture": {"mode": "quick", "stride": 1, "roi": {"enabled": False}}})
        scheduler = CaptureScheduler(_store(), config, clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.run()
        # 8 s window sampled every 0.25 s
        assert scheduler.ticks == 32

    def test_last_sleep_clipped_to_deadline(self, fake_clock):
        config = _config(duration_s=1.0, interval_s=0.375)
        scheduler = CaptureScheduler(_store(), config, clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.run()
        assert fake_clock.sleeps == [0.375, 0.375, 0.25]
        assert scheduler.ticks == 3

    def test_empty_source_raises_no_frames(self, fake_clock):
        states = []
        scheduler = CaptureScheduler(FrameSnapshotStore(), _config(), clock=fake_clock,
                                     sleep=fake_clock.sleep, on_state=states.append)
        with pytest.raises(NoFramesError):
            scheduler.run()
        assert scheduler.ticks == 10
        assert scheduler.state == CaptureState.FAILED
        assert states == [CaptureState.SAMPLING, CaptureState.FINALIZING, CaptureState.FAILED]

    def test_sparse_frames_raise_with_count(self, fake_clock):
        # 25 x 20 grid at stride 1 gives 500 points per frame
        scheduler = CaptureScheduler(_store(25, 20), _config(), clock=fake_clock, sleep=fake_clock.sleep)
        with pytest.raises(SparsePointsError) as excinfo:
            scheduler.run()
        assert excinfo.value.count == 500
        assert excinfo.value.minimum == 1000
        assert excinfo.value.guidance == "Move closer to the camera."

    def test_cancel_finalizes_collected_candidates(self, fake_clock):
        holder = {}
        source = CountingSource(_store(), on_read=lambda n: n == 2 and holder["scheduler"].cancel())
        scheduler = CaptureScheduler(source, _config(), clock=fake_clock, sleep=fake_clock.sleep)
        holder["scheduler"] = scheduler

        result = scheduler.run()

        assert scheduler.ticks == 2
        assert source.reads == 2
        assert result.cancelled is True
        assert result.candidates_collected == 2
        assert result.point_count == 1200
        assert scheduler.state == CaptureState.SUCCEEDED

    def test_cancel_before_start_raises_no_frames(self, fake_clock):
        scheduler = CaptureScheduler(_store(), _config(), clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.cancel()
        with pytest.raises(NoFramesError):
            scheduler.run()
        assert scheduler.ticks == 0

    def test_runs_only_once(self, fake_clock):
        scheduler = CaptureScheduler(_store(), _config(), clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.run()
        with pytest.raises(RuntimeError):
            scheduler.run()

    def test_success_states(self, fake_clock):
        states = []
        scheduler = CaptureScheduler(_store(), _config(), clock=fake_clock,
                                     sleep=fake_clock.sleep, on_state=states.append)
        result = scheduler.run()
        assert states == [CaptureState.SAMPLING, CaptureState.FINALIZING, CaptureState.SUCCEEDED]
        assert vertex_count(result.ply) == result.point_count
        assert len(parse_ply(result.ply)) == result.point_count

    def test_analyzer_errors_do_not_stop_sampling(self, fake_clock):
        scheduler = CaptureScheduler(_store(), _config(), FailingAnalyzer(),
                                     clock=fake_clock, sleep=fake_clock.sleep)
        scheduler.run()
        assert len(scheduler.candidates) == 10
        assert not any(c.has_face for c in scheduler.candidates)

    def test_background_run(self):
        scheduler = CaptureScheduler(_store(), _config(duration_s=0.05, interval_s=0.01))
        scheduler.start()
        result = scheduler.wait(timeout=5)
        assert result.point_count > 0
        with pytest.raises(RuntimeError):
            scheduler.start()


class TestGuidedCapture:
    ANGLES = [(0.0, 0.0), (-90.0, 0.0), (90.0, 0.0), (0.0, -25.0), (0.0, 25.0)]

    def _guided_config(self):
        return Config.from_dict({
            "capture": {
                "mode": "guided",
                "stride": 1,
                "roi": {"enabled": False},
                "duration_s": 1.25,
                "interval_s": 0.25,
            },
            "acceptance": {"min_point_count": 100, "max_pose_delta": 1000},
            "assembly": {"min_points": 1000},
        })

    def test_one_frame_per_pose(self, fake_clock):
        scheduler = CaptureScheduler(_store(), self._guided_config(), SequenceAnalyzer(self.ANGLES),
                                     clock=fake_clock, sleep=fake_clock.sleep)
        result = scheduler.run()

        assert scheduler.ticks == 5
        assert [f.pose for f in result.pose_frames] == list(Pose)
        assert result.missing_poses == []
        assert result.point_count == 5 * 1200
        for frame in result.pose_frames:
            assert frame.image_jpeg[:2] == b"\xff\xd8"
            assert frame.depth is not None

    def test_missing_poses_reported(self, fake_clock):
        analyzer = SequenceAnalyzer([(0.0, 0.0), (-88.0, 2.0)])
        scheduler = CaptureScheduler(_store(), self._guided_config(), analyzer,
                                     clock=fake_clock, sleep=fake_clock.sleep)
        result = scheduler.run()
        assert [f.pose for f in result.pose_frames] == [Pose.FRONT, Pose.LEFT]
        assert result.missing_poses == [Pose.RIGHT, Pose.DOWN, Pose.UP]

    def test_images_only_for_classified_frames(self, fake_clock):
        analyzer = SequenceAnalyzer([(45.0, 0.0)])
        scheduler = CaptureScheduler(_store(), self._guided_config(), analyzer,
                                     clock=fake_clock, sleep=fake_clock.sleep)
        result = scheduler.run()
        assert all(c.image_jpeg is None for c in scheduler.candidates)
        # nothing classifies, so the best-scored candidate is used
        assert len(result.selection) == 1
        assert result.pose_frames == []


class LandmarkSequenceAnalyzer:
    """Returns faces whose landmarks shift with the head pose, as a real detector's do."""

    BASE = np.array([[0.4, 0.4], [0.6, 0.4], [0.5, 0.55], [0.42, 0.7], [0.58, 0.7]])

    def __init__(self, frames):
        self._frames = itertools.cycle(frames)

    def analyze(self, color):
        yaw, offset = next(self._frames)
        return FaceAnalysis(landmarks=self.BASE + offset, yaw=yaw, pitch=0.0, roll=0.0)


class TestGuidedCaptureDefaults:
    FRAMES = [(0.0, 0.0), (0.0, 0.0), (-90.0, 0.12), (-90.0, 0.12), (90.0, -0.12), (90.0, -0.12)]

    def _config(self, **capture):
        capture_cfg = {"mode": "guided", "stride": 1, "roi": {"enabled": False},
                       "duration_s": 1.5, "interval_s": 0.25}
        capture_cfg.update(capture)
        return Config.from_dict({"capture": capture_cfg})

    def _run(self, config, fake_clock):
        scheduler = CaptureScheduler(_store(100, 80), config, LandmarkSequenceAnalyzer(self.FRAMES),
                                     clock=fake_clock, sleep=fake_clock.sleep)
        return scheduler, scheduler.run()

    def test_side_poses_survive_default_acceptance(self, fake_clock):
        scheduler, result = self._run(self._config(), fake_clock)

        assert scheduler.ticks == 6
        assert [f.pose for f in result.pose_frames] == [Pose.FRONT, Pose.LEFT, Pose.RIGHT]
        # the first frame of each turn is rejected as motion; steady frames score higher
        assert [s.index for s in result.selection.selected] == [1, 3, 5]

    def test_single_reference_rejects_side_poses(self, fake_clock):
        _, result = self._run(self._config(per_pose_reference=False), fake_clock)
        assert [f.pose for f in result.pose_frames] == [Pose.FRONT]


class TestFinalizeCapture:
    def test_no_candidates(self):
        with pytest.raises(NoFramesError):
            finalize_capture([], Config())

    def test_fallback_when_nothing_accepted(self):
        config = Config.from_dict({"assembly": {"min_points": 100}})
        candidates = [make_candidate(index=i, points=1000 + i, roll=40.0) for i in range(3)]
        result = finalize_capture(candidates, config)
        assert result.fell_back is True
        assert result.point_count > 0

    def test_sparse_guidance_uses_most_common_rejection(self):
        config = Config.from_dict({"assembly": {"min_points": 10000}})
        candidates = [make_candidate(index=i, points=2000, roll=30.0) for i in range(3)]
        with pytest.raises(SparsePointsError) as excinfo:
            finalize_capture(candidates, config)
        # each candidate fails both FEW_POINTS and ROLL; FEW_POINTS is evaluated first
        assert excinfo.value.guidance == "Move closer to the camera."

    def test_budget_applied(self):
        config = Config.from_dict({"assembly": {"point_budget": 7000, "min_points": 1000}})
        candidates = [make_candidate(index=i, points=6000 + i, yaw=0.0) for i in range(3)]
        result = finalize_capture(candidates, config)
        assert result.point_count == 7000
        assert vertex_count(result.ply) == 7000

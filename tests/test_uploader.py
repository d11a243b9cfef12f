"""
Tests for scan upload, status polling, request deadlines and local fallback.
"""

import json
import os
import threading
import time

import httpx
import pytest

from cloud import (
    InvalidResponseError,
    LocalScanStore,
    ProcessingFailedError,
    ProcessingTimeoutError,
    RequestDeadline,
    RequestTimeoutError,
    ScanUploader,
    ServerError,
    TransportError,
    UploadCancelledError,
)
from cloud.uploader import truncate_body
from models.config import UploadConfig
from models.pose import Pose
from models.upload_state import UploadPhase

PLY = b"ply\nformat ascii 1.0\nelement vertex 0\n"


class FakeBackend:
    """MockTransport handler with scripted status responses."""

    def __init__(self, statuses=None, create=None):
        self.statuses = list(statuses or [{"state": "ready"}])
        self.create = create or httpx.Response(201, json={"scanId": "scan-1"})
        self.uploads = []
        self.status_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/api/scans":
            self.uploads.append(request)
            if isinstance(self.create, Exception):
                raise self.create
            return self.create
        if request.method == "GET" and request.url.path.endswith("/status"):
            self.status_requests += 1
            item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if isinstance(item, httpx.Response):
                return item
            return httpx.Response(200, json=item)
        return httpx.Response(404)


@pytest.fixture
def upload_config(tmp_path):
    return UploadConfig(
        base_url="http://scans.test",
        request_timeout_s=5.0,
        poll_interval_s=2.0,
        poll_deadline_s=10.0,
        fallback_dir=str(tmp_path / "scans"),
    )


def make_uploader(backend, config, clock, states=None):
    client = httpx.Client(base_url=config.base_url, transport=httpx.MockTransport(backend))
    return ScanUploader(
        config,
        client=client,
        clock=clock,
        sleep=clock.sleep,
        on_state=states.append if states is not None else None,
    )


class TestUploadSuccess:
    def test_ready_after_processing(self, upload_config, fake_clock):
        backend = FakeBackend(statuses=[
            {"state": "processing", "stage": "meshing"},
            {"status": "ready"},
        ])
        states = []
        uploader = make_uploader(backend, upload_config, fake_clock, states)

        outcome = uploader.run(PLY)

        assert outcome.scan_id == "scan-1"
        assert outcome.status.is_ready
        assert uploader.polls == 2
        assert [s.phase for s in states] == [
            UploadPhase.UPLOADING,
            UploadPhase.PROCESSING,
            UploadPhase.PROCESSING,
            UploadPhase.READY,
        ]
        assert states[2].stage == "meshing"
        assert fake_clock.sleeps == [2.0]

    def test_multipart_fields_and_params(self, upload_config, fake_clock):
        backend = FakeBackend()
        upload_config.unit_scale = 0.001
        upload_config.units = "millimeters"
        uploader = make_uploader(backend, upload_config, fake_clock)

        uploader.run(PLY, images={Pose.FRONT: b"\xff\xd8front", Pose.UP: b"\xff\xd8up"})

        request = backend.uploads[0]
        body = request.content
        assert b'name="ply"' in body
        assert PLY in body
        assert b'name="image_front"' in body
        assert b'name="image_up"' in body
        assert b'name="image_left"' not in body
        assert request.url.params["unit_scale"] == "0.001"
        assert request.url.params["units"] == "millimeters"

    def test_transient_poll_errors_are_retried(self, upload_config, fake_clock):
        backend = FakeBackend(statuses=[
            httpx.Response(503, text="busy"),
            httpx.Response(200, text="not json"),
            {"state": "ready"},
        ])
        uploader = make_uploader(backend, upload_config, fake_clock)

        outcome = uploader.run(PLY)

        assert outcome.scan_id == "scan-1"
        assert uploader.polls == 3


class TestUploadFailure:
    def _saved_files(self, config):
        if not os.path.exists(config.fallback_dir):
            return []
        return sorted(os.listdir(config.fallback_dir))

    def test_server_error_saves_locally(self, upload_config, fake_clock):
        backend = FakeBackend(create=httpx.Response(500, text="boom"))
        states = []
        uploader = make_uploader(backend, upload_config, fake_clock, states)

        with pytest.raises(ServerError) as excinfo:
            uploader.run(PLY)

        error = excinfo.value
        assert error.status_code == 500
        assert error.message == "Server returned HTTP 500: boom"
        assert error.saved_path is not None
        with open(error.saved_path, "rb") as f:
            assert f.read() == PLY
        assert states[-1].phase == UploadPhase.FAILED
        assert states[-1].saved_path == error.saved_path
        assert backend.status_requests == 0

    def test_error_body_truncated(self, upload_config, fake_clock):
        backend = FakeBackend(create=httpx.Response(502, text="x" * 1000))
        uploader = make_uploader(backend, upload_config, fake_clock)

        with pytest.raises(ServerError) as excinfo:
            uploader.upload(PLY)

        assert excinfo.value.message == "Server returned HTTP 502: " + "x" * 400 + "..."

    @pytest.mark.parametrize("response", [
        httpx.Response(201, json={}),
        httpx.Response(201, json={"scanId": ""}),
        httpx.Response(201, text="<html>"),
    ])
    def test_invalid_created_response(self, upload_config, fake_clock, response):
        uploader = make_uploader(FakeBackend(create=response), upload_config, fake_clock)

        with pytest.raises(InvalidResponseError) as excinfo:
            uploader.upload(PLY)

        assert excinfo.value.saved_path is not None
        assert len(self._saved_files(upload_config)) == 1

    def test_transport_error(self, upload_config, fake_clock):
        backend = FakeBackend(create=httpx.ConnectError("connection refused"))
        uploader = make_uploader(backend, upload_config, fake_clock)

        with pytest.raises(TransportError) as excinfo:
            uploader.upload(PLY)

        assert "connection refused" in excinfo.value.message
        assert os.path.exists(excinfo.value.saved_path)

    def test_request_deadline_expires(self, upload_config, fake_clock):
        release = threading.Event()

        def slow(request):
            release.wait(2)
            return httpx.Response(201, json={"scanId": "late"})

        upload_config.request_timeout_s = 0.05
        uploader = make_uploader(slow, upload_config, fake_clock)
        try:
            with pytest.raises(RequestTimeoutError) as excinfo:
                uploader.upload(PLY)
        finally:
            release.set()
        assert excinfo.value.saved_path is not None

    def test_processing_failed(self, upload_config, fake_clock):
        backend = FakeBackend(statuses=[{"state": "failed", "detail": "mesh reconstruction failed"}])
        states = []
        uploader = make_uploader(backend, upload_config, fake_clock, states)

        with pytest.raises(ProcessingFailedError) as excinfo:
            uploader.run(PLY)

        assert excinfo.value.detail == "mesh reconstruction failed"
        assert excinfo.value.scan_id == "scan-1"
        assert states[-1].phase == UploadPhase.FAILED
        assert self._saved_files(upload_config) == []

    def test_processing_failed_default_detail(self, upload_config, fake_clock):
        backend = FakeBackend(statuses=[{"status": "FAILED"}])
        uploader = make_uploader(backend, upload_config, fake_clock)

        with pytest.raises(ProcessingFailedError) as excinfo:
            uploader.run(PLY)

        assert excinfo.value.detail == "Scan processing failed"

    def test_poll_deadline(self, upload_config, fake_clock):
        backend = FakeBackend(statuses=[{"state": "processing"}])
        uploader = make_uploader(backend, upload_config, fake_clock)

        with pytest.raises(ProcessingTimeoutError) as excinfo:
            uploader.run(PLY)

        # polls at t = 0, 2, 4, 6, 8; none once the deadline is reached
        assert uploader.polls == 5
        assert backend.status_requests == 5
        assert excinfo.value.elapsed_s == pytest.approx(10.0)
        assert uploader.state.phase == UploadPhase.FAILED
        assert fake_clock.now == pytest.approx(10.0)

    def test_cancel_before_upload_sends_nothing(self, upload_config, fake_clock):
        backend = FakeBackend()
        uploader = make_uploader(backend, upload_config, fake_clock)
        uploader.cancel()

        with pytest.raises(UploadCancelledError) as excinfo:
            uploader.run(PLY)

        assert backend.uploads == []
        with open(excinfo.value.saved_path, "rb") as f:
            assert f.read() == PLY

    def test_slow_status_request_bounded_by_poll_deadline(self, upload_config):
        release = threading.Event()

        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"scanId": "scan-1"})
            release.wait(3)
            return httpx.Response(200, json={"state": "processing"})

        upload_config.poll_deadline_s = 0.2
        upload_config.request_timeout_s = 5.0
        client = httpx.Client(base_url=upload_config.base_url, transport=httpx.MockTransport(handler))
        uploader = ScanUploader(upload_config, client=client)
        started = time.monotonic()
        try:
            with pytest.raises(ProcessingTimeoutError):
                uploader.run(PLY)
        finally:
            release.set()

        assert time.monotonic() - started < 1.5
        assert uploader.polls == 1
        assert uploader.state.phase == UploadPhase.FAILED

    def test_cancel_stops_polling(self, upload_config, fake_clock):
        backend = FakeBackend(statuses=[{"state": "processing"}])
        uploader = make_uploader(backend, upload_config, fake_clock)

        def cancel_on_sleep(seconds):
            fake_clock.sleep(seconds)
            uploader.cancel()

        uploader._sleep = cancel_on_sleep
        with pytest.raises(UploadCancelledError):
            uploader.run(PLY)

        assert uploader.polls == 1
        assert uploader.state.phase == UploadPhase.FAILED


class TestTruncateBody:
    def test_short_text_unchanged(self):
        assert truncate_body("  oops \n", 10) == "oops"

    def test_long_text_capped(self):
        assert truncate_body("abcdef", 3) == "abc..."

    def test_none(self):
        assert truncate_body(None, 3) == ""


class TestRequestDeadline:
    def test_returns_value(self):
        deadline = RequestDeadline(0.05)
        assert deadline.call(lambda: 42) == 42
        time.sleep(0.1)
        # the timer was cancelled on completion
        assert deadline.timeouts_fired == 0
        assert deadline.settled

    def test_timeout_fires_once(self):
        release = threading.Event()
        deadline = RequestDeadline(0.05)
        try:
            with pytest.raises(RequestTimeoutError):
                deadline.call(lambda: release.wait(2))
        finally:
            release.set()
        time.sleep(0.1)
        assert deadline.timeouts_fired == 1

    def test_propagates_errors(self):
        def boom():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            RequestDeadline(1.0).call(boom)

    def test_cancellation(self):
        cancel = threading.Event()
        release = threading.Event()
        cancel.set()
        try:
            with pytest.raises(UploadCancelledError):
                RequestDeadline(5.0, cancel).call(lambda: release.wait(2))
        finally:
            release.set()

    def test_single_use(self):
        deadline = RequestDeadline(1.0)
        deadline.call(lambda: None)
        with pytest.raises(RuntimeError):
            deadline.call(lambda: None)


class TestLocalScanStore:
    def test_unique_atomic_files(self, tmp_path):
        store = LocalScanStore(str(tmp_path / "nested" / "scans"))
        first = store.save(b"one")
        second = store.save(b"two")

        assert first != second
        assert os.path.basename(first).startswith("scan_")
        assert first.endswith(".ply")
        with open(second, "rb") as f:
            assert f.read() == b"two"
        leftovers = [n for n in os.listdir(store.directory) if n.endswith(".tmp")]
        assert leftovers == []


class TestScanStatusResponse:
    def test_state_aliases(self):
        from cloud.api_models import ScanStatusResponse

        assert ScanStatusResponse.model_validate({"status": "Ready"}).is_ready
        assert ScanStatusResponse.model_validate({"state": "failed", "message": "m"}).failure_detail == "m"
        assert not ScanStatusResponse.model_validate(json.loads('{"extra": 1}')).is_ready

"""
Tests for camera handling and capture requests.
"""
import threading

import numpy as np
import pytest

from error_handlers import (
    CameraNotFoundError,
    CameraNotInitializedError,
    CapturePreemptedError,
    FrameCaptureError,
    RotationFailure,
    error_status,
)
from layer1_capture import Camera, CaptureSession


class BlockingCamera:
    """Camera whose first read waits until the test releases it."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.reads = 0

    def get_frame(self):
        self.reads += 1
        self.entered.set()
        assert self.release.wait(timeout=5)
        return np.full((4, 6, 3), self.reads, dtype=np.uint8)


class StillCamera:
    def get_frame(self):
        return np.zeros((4, 6, 3), dtype=np.uint8)


class FailingCamera:
    def get_frame(self):
        raise FrameCaptureError()


@pytest.fixture
def blocking_camera():
    return BlockingCamera()


@pytest.fixture
def session(blocking_camera):
    session = CaptureSession(blocking_camera, orientation=90)
    yield session
    blocking_camera.release.set()
    session.close()


class TestCaptureSession:
    """Test single-shot capture requests."""

    def test_capture_returns_tagged_frame(self, session, blocking_camera):
        """Test a capture carries the session orientation tag."""
        blocking_camera.release.set()
        frame = session.capture(timeout=5)
        assert (frame.width, frame.height) == (6, 4)
        assert frame.orientation == 90

    def test_new_request_preempts_running_capture(self, session, blocking_camera):
        """Test a new request discards the frame of a running capture."""
        first = session.request_capture()
        assert blocking_camera.entered.wait(timeout=5)

        second = session.request_capture()
        blocking_camera.release.set()

        with pytest.raises(CapturePreemptedError):
            first.result(timeout=5)
        frame = second.result(timeout=5)
        assert frame.pixels[0, 0, 0] == 2

    def test_new_request_cancels_queued_capture(self, session, blocking_camera):
        """Test a new request cancels a capture still waiting to run."""
        first = session.request_capture()
        assert blocking_camera.entered.wait(timeout=5)

        queued = session.request_capture()
        latest = session.request_capture()
        assert queued.cancelled()

        blocking_camera.release.set()
        with pytest.raises(CapturePreemptedError):
            first.result(timeout=5)
        assert latest.result(timeout=5).orientation == 90
        assert blocking_camera.reads == 2

    def test_bad_orientation_is_a_rotation_failure(self):
        """Test a non-right-angle session orientation fails the capture."""
        session = CaptureSession(StillCamera(), orientation=45)
        try:
            with pytest.raises(RotationFailure) as exc_info:
                session.capture(timeout=5)
        finally:
            session.close()
        assert exc_info.value.error_code == "ROTATION_FAILED"
        assert error_status(exc_info.value) == 422

    def test_camera_error_is_reported(self):
        """Test camera read errors reach the caller."""
        session = CaptureSession(FailingCamera())
        try:
            with pytest.raises(FrameCaptureError):
                session.capture(timeout=5)
        finally:
            session.close()


class TestCamera:
    """Test camera error reporting without hardware."""

    def test_missing_device(self):
        """Test initialize reports a missing camera index."""
        camera = Camera(camera_index=987)
        with pytest.raises(CameraNotFoundError) as exc_info:
            camera.initialize()
        assert exc_info.value.details["camera_index"] == 987

    def test_frame_before_initialize(self):
        """Test reading a frame before initialize fails."""
        camera = Camera(camera_index=987)
        assert not camera.is_opened()
        with pytest.raises(CameraNotInitializedError):
            camera.get_frame()

    def test_release_without_initialize(self):
        """Test release is safe before initialize."""
        camera = Camera(camera_index=987)
        camera.release()
        assert camera.camera is None

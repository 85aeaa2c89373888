"""
Pytest configuration and fixtures for the ID scanner tests.
"""
import io
import os
import sys

import cv2
import numpy as np
import pytest

# Add the app directory to the path
sys.path.insert(0, os.path.dirname(__file__))

# No camera hardware or result files during tests
os.environ.setdefault('CAMERA_INDEX', '99')
os.environ.setdefault('SAVE_CAPTURES', '0')
os.environ.setdefault('LOG_LEVEL', 'WARNING')


class FakeRecognizer:
    """Stands in for IDRecognizer so tests do not need Tesseract."""

    def __init__(self, id_number="N12345678", error=None):
        self.id_number = id_number
        self.error = error
        self.regions = []

    def scan_for_id_number(self, frame, rect=None):
        self.regions.append(frame)
        if self.error is not None:
            raise self.error
        return self.id_number

    def is_available(self):
        return self.error is None

    def close(self):
        pass


@pytest.fixture
def app():
    """Create Flask test application."""
    from app import app as flask_app
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def fake_recognizer(monkeypatch):
    """Replace the coordinator's recognizer with a fake."""
    import app as app_module
    recognizer = FakeRecognizer()
    monkeypatch.setattr(app_module.scanner, 'recognizer', recognizer)
    return recognizer


@pytest.fixture
def raw_pixels():
    """Deterministic 1600 x 1200 (h x w) colour image."""
    rng = np.random.default_rng(seed=7)
    return rng.integers(0, 256, size=(1600, 1200, 3), dtype=np.uint8)


@pytest.fixture
def small_pixels():
    """Deterministic 400 x 300 (h x w) colour image."""
    rng = np.random.default_rng(seed=11)
    return rng.integers(0, 256, size=(400, 300, 3), dtype=np.uint8)


@pytest.fixture
def png_upload(small_pixels):
    """Factory for multipart image fields holding small_pixels as PNG."""
    ok, buffer = cv2.imencode('.png', small_pixels)
    assert ok

    def make(filename='card.png'):
        return (io.BytesIO(buffer.tobytes()), filename)

    return make

"""
Tests for ID recognition and result saving.
"""
import json
import os
import threading

import numpy as np
import pytest
import pytesseract

from error_handlers import (
    CropOutOfBounds,
    IDNumberNotFoundError,
    RecognitionFailedError,
    RecognitionUnavailable,
)
from layer2_readjustment import Frame, PixelRect
from layer3_ocr import IDRecognizer, ImageSaver, extract_id_number


@pytest.fixture
def region():
    rng = np.random.default_rng(seed=3)
    return Frame(rng.integers(0, 256, size=(20, 60, 3), dtype=np.uint8))


@pytest.fixture
def tesseract(monkeypatch):
    """Fake pytesseract calls, recording the images passed in."""
    calls = {"images": [], "text": "N Number N12345678\n"}

    def image_to_string(image, config=""):
        calls["images"].append(image)
        calls["config"] = config
        return calls["text"]

    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(pytesseract, "image_to_string", image_to_string)
    return calls


class TestExtractIDNumber:
    """Test ID number parsing from recognized text."""

    def test_pattern_match(self):
        """Test the ID pattern is found in the text."""
        assert extract_id_number("N Number N12345678") == "N12345678"

    def test_pattern_ignores_spaces(self):
        """Test spaces inside the ID are ignored."""
        assert extract_id_number("N Number: N1234 5678") == "N12345678"

    def test_falls_back_to_label_offset(self):
        """Test the label is dropped when the pattern misses."""
        assert extract_id_number("ID NUMBER 0042") == "0042"

    def test_custom_pattern(self):
        """Test a custom ID pattern."""
        assert extract_id_number("Student 2024-00815", pattern=r"\d{4}-\d{5}") == "2024-00815"

    @pytest.mark.parametrize("text", ["", "N Num", "   "])
    def test_nothing_after_label(self, text):
        """Test empty text raises IDNumberNotFoundError."""
        with pytest.raises(IDNumberNotFoundError):
            extract_id_number(text)


class TestIDRecognizer:
    """Test the Tesseract wrapper with pytesseract faked."""

    def test_scan_returns_stripped_text(self, tesseract, region):
        """Test scan returns stripped text with the configured options."""
        recognizer = IDRecognizer(config="--psm 7")
        assert recognizer.scan(region) == "N Number N12345678"
        assert tesseract["config"] == "--psm 7"

    def test_scan_converts_to_grayscale(self, tesseract, region):
        """Test scan hands Tesseract a grayscale image."""
        IDRecognizer().scan(region)
        assert tesseract["images"][0].shape == (20, 60)

    def test_scan_with_rect_crops_first(self, tesseract, region):
        """Test scan crops to the bounding box first."""
        IDRecognizer().scan(region, PixelRect(0, 0, 10, 5))
        assert tesseract["images"][0].shape == (5, 10)

    def test_scan_with_rect_outside_frame(self, tesseract, region):
        """Test a bounding box outside the frame is rejected."""
        with pytest.raises(CropOutOfBounds):
            IDRecognizer().scan(region, PixelRect(50, 0, 20, 5))
        assert tesseract["images"] == []

    def test_scan_for_id_number(self, tesseract, region):
        """Test scan_for_id_number returns the parsed ID."""
        assert IDRecognizer().scan_for_id_number(region) == "N12345678"

    def test_scan_for_id_number_not_found(self, tesseract, region):
        """Test unreadable text raises IDNumberNotFoundError."""
        tesseract["text"] = "blurry"
        with pytest.raises(IDNumberNotFoundError):
            IDRecognizer().scan_for_id_number(region)

    def test_tesseract_error_is_wrapped(self, monkeypatch, tesseract, region):
        """Test Tesseract failures become RecognitionFailedError."""
        def broken(image, config=""):
            raise pytesseract.TesseractError(1, "bad image")

        monkeypatch.setattr(pytesseract, "image_to_string", broken)
        with pytest.raises(RecognitionFailedError):
            IDRecognizer().scan(region)

    def test_unavailable_when_tesseract_missing(self, monkeypatch, region):
        """Test a missing binary raises RecognitionUnavailable."""
        def missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)
        recognizer = IDRecognizer()

        assert not recognizer.is_available()
        with pytest.raises(RecognitionUnavailable) as exc_info:
            recognizer.scan(region)
        assert exc_info.value.error_code == "RECOGNITION_UNAVAILABLE"

    def test_scan_async_delivers_to_callback(self, tesseract, region):
        """Test scan_async passes the text to the callback."""
        recognizer = IDRecognizer()
        received = []
        done = threading.Event()

        def callback(text):
            received.append(text)
            done.set()

        future = recognizer.scan_async(region, callback=callback)
        assert future.result(timeout=5) == "N Number N12345678"
        assert done.wait(timeout=5)
        assert received == ["N Number N12345678"]
        recognizer.close()

    def test_scan_async_reports_error(self, monkeypatch, region):
        """Test scan_async reports errors through the Future."""
        def missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)
        recognizer = IDRecognizer()
        received = []

        future = recognizer.scan_async(region, callback=received.append)
        with pytest.raises(RecognitionUnavailable):
            future.result(timeout=5)
        recognizer.close()
        assert received == []

    def test_scan_async_delivers_error_to_handler(self, monkeypatch, region):
        """Test scan_async passes errors to on_error."""
        def missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)
        recognizer = IDRecognizer()
        texts, errors = [], []
        done = threading.Event()

        def on_error(error):
            errors.append(error)
            done.set()

        recognizer.scan_async(region, callback=texts.append, on_error=on_error)
        assert done.wait(timeout=5)
        recognizer.close()
        assert texts == []
        assert isinstance(errors[0], RecognitionUnavailable)


class TestImageSaver:
    """Test traceability output."""

    def test_creates_directories(self, tmp_path):
        """Test the saver creates its output directories."""
        saver = ImageSaver(base_dir=str(tmp_path / "ids"))
        assert os.path.isdir(saver.images_dir)
        assert os.path.isdir(saver.json_dir)

    def test_save_image_and_json(self, tmp_path, region):
        """Test saving an image and its JSON result."""
        saver = ImageSaver(base_dir=str(tmp_path / "ids"))

        result = saver.save_image(region)
        assert os.path.isfile(result["filepath"])
        assert result["filename"].startswith("student_id_")

        json_path = saver.save_result_json({"id_number": "N12345678"}, result["timestamp"])
        with open(json_path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["id_number"] == "N12345678"
        assert "capture_time" in data

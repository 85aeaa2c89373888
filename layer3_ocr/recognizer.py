"""
Layer 3 — Recognition
Component: ID recognizer
Responsibility: Read text and the ID number from an extracted region
"""
import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import cv2
import pytesseract

from error_handlers import (
    IDNumberNotFoundError,
    RecognitionFailedError,
    RecognitionUnavailable,
)
from layer2_readjustment import Frame, PixelRect

logger = logging.getLogger(__name__)

DEFAULT_TESSERACT_CONFIG = "--psm 7"
DEFAULT_ID_PATTERN = r"N\d{8}"
# Length of the printed "N Number " label in front of the ID
DEFAULT_PREFIX_LENGTH = 9


def extract_id_number(text, pattern=DEFAULT_ID_PATTERN, prefix_length=DEFAULT_PREFIX_LENGTH):
    """
    Pull the ID number out of recognized text

    The pattern is tried first. Without a match, the fixed-length label in
    front of the number is dropped and the remainder is returned.

    Args:
        text: Text returned by the recognizer
        pattern: Regular expression of a well-formed ID number
        prefix_length: Characters to drop when the pattern does not match

    Returns:
        str: The ID number

    Raises:
        IDNumberNotFoundError: If nothing is left after the label
    """
    cleaned = " ".join(text.split())

    if pattern:
        match = re.search(pattern, cleaned.replace(" ", ""))
        if match:
            return match.group(0)

    remainder = cleaned[prefix_length:].strip()
    if not remainder:
        raise IDNumberNotFoundError(text)
    return remainder


class IDRecognizer:
    """Tesseract wrapper for reading the ID number region"""

    def __init__(self, tesseract_cmd=None, config=DEFAULT_TESSERACT_CONFIG,
                 id_pattern=DEFAULT_ID_PATTERN, prefix_length=DEFAULT_PREFIX_LENGTH):
        """
        Initialize recognizer

        Args:
            tesseract_cmd: Path to the tesseract binary (default: from PATH)
            config: Extra command line options for tesseract
            id_pattern: Regular expression of a well-formed ID number
            prefix_length: Label length dropped when the pattern misses
        """
        logger.info("Initializing IDRecognizer")

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
            logger.debug(f"Tesseract command: {tesseract_cmd}")

        self.config = config
        self.id_pattern = id_pattern
        self.prefix_length = prefix_length
        self._available = False
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recognizer")

    def ensure_available(self):
        """
        Check that the Tesseract binary can be run

        Raises:
            RecognitionUnavailable: If Tesseract is missing or broken
        """
        with self._lock:
            if self._available:
                return

            try:
                version = pytesseract.get_tesseract_version()
            except (pytesseract.TesseractNotFoundError, OSError) as e:
                logger.error(f"Tesseract not available: {e}")
                raise RecognitionUnavailable(e)

            logger.info(f"Tesseract {version} available")
            self._available = True

    def is_available(self):
        try:
            self.ensure_available()
        except RecognitionUnavailable:
            return False
        return True

    def scan(self, frame: Frame, rect: Optional[PixelRect] = None) -> str:
        """
        Return the text in a frame

        Args:
            frame: Region from the extraction pipeline
            rect: Optional bounding box to crop the frame to first

        Returns:
            str: Recognized text (may be incorrect)

        Raises:
            RecognitionUnavailable: If Tesseract is not installed
            CropOutOfBounds: If rect does not fit the frame
            RecognitionFailedError: If Tesseract fails on the image
        """
        self.ensure_available()

        if rect is not None:
            frame = frame.crop(rect)

        image = frame.pixels
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

        try:
            text = pytesseract.image_to_string(image, config=self.config)
        except pytesseract.TesseractError as e:
            logger.error(f"Error during recognition: {e}")
            raise RecognitionFailedError(e)

        text = text.strip()
        logger.info(f"Recognized text: {text!r}")
        return text

    def scan_for_id_number(self, frame: Frame, rect: Optional[PixelRect] = None) -> str:
        """
        Return the ID number in a frame

        Returns:
            str: ID number, which is *likely* but not certain to be right
        """
        text = self.scan(frame, rect)
        id_number = extract_id_number(text, self.id_pattern, self.prefix_length)
        logger.info(f"✓ ID number: {id_number}")
        return id_number

    def scan_async(self, frame: Frame, rect: Optional[PixelRect] = None,
                   callback: Optional[Callable[[str], None]] = None,
                   on_error: Optional[Callable[[Exception], None]] = None) -> Future:
        """
        Scan on the recognizer thread

        Args:
            frame: Region from the extraction pipeline
            rect: Optional bounding box to crop to
            callback: Called with the text once recognition succeeds
            on_error: Called with the exception if recognition fails; without
                it, errors are only reported through the returned Future

        Returns:
            Future: Resolves to the text, or raises the recognition error
        """
        future = self._executor.submit(self.scan, frame, rect)

        if callback is not None or on_error is not None:
            def _deliver(done):
                if done.cancelled():
                    return
                error = done.exception()
                if error is None:
                    if callback is not None:
                        callback(done.result())
                elif on_error is not None:
                    on_error(error)
            future.add_done_callback(_deliver)

        return future

    def close(self):
        self._executor.shutdown(wait=True)

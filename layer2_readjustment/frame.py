"""
Layer 2 — Image Readjustment
Component: Frame
Responsibility: Immutable captured image with its orientation tag
"""
import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from error_handlers import CropOutOfBounds, ImageDecodeError, RotationFailure
from .geometry import PixelRect

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    One captured image.

    Attributes:
        pixels: Read-only numpy array (H x W or H x W x C)
        orientation: Clockwise rotation in degrees still needed to show the
            pixels upright, as reported by the capture source
    """
    pixels: np.ndarray
    orientation: int = 0

    def __post_init__(self):
        # Always copy: a read-only view can still change through its base
        object.__setattr__(self, "pixels", frozen_copy(self.pixels))

        orientation = right_angle(self.orientation, "orientation tag must be a multiple of 90 degrees")
        object.__setattr__(self, "orientation", orientation % 360)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @classmethod
    def from_bytes(cls, data: bytes, orientation: int = 0) -> 'Frame':
        """
        Decode an encoded image (JPEG, PNG, ...) into a frame.

        EXIF orientation is ignored; the orientation argument is the tag.

        Raises:
            ImageDecodeError: If the bytes are not a readable image
        """
        if not data:
            raise ImageDecodeError(reason="empty image data")

        buffer = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION)
        if image is None:
            raise ImageDecodeError(reason="OpenCV could not decode the data")

        logger.debug(f"Decoded image {image.shape[1]}x{image.shape[0]}")
        return cls(image, orientation)

    def to_png(self) -> bytes:
        ok, buffer = cv2.imencode('.png', self.pixels)
        if not ok:
            raise ImageDecodeError(reason="OpenCV could not encode the frame as PNG")
        return buffer.tobytes()

    def crop(self, rect: PixelRect) -> 'Frame':
        """
        Crop to a pixel rectangle, keeping the orientation tag.

        Raises:
            CropOutOfBounds: If the rectangle is empty or leaves the frame
        """
        left, top, right, bottom = rect.bounds()

        inside = 0 <= left < right <= self.width and 0 <= top < bottom <= self.height
        if not inside:
            logger.warning(f"Crop {(left, top, right, bottom)} does not fit {self.width}x{self.height}")
            raise CropOutOfBounds((left, top, right, bottom), self.size)

        return Frame(self.pixels[top:bottom, left:right], self.orientation)


def frozen_copy(array: np.ndarray) -> np.ndarray:
    """Contiguous read-only copy of an array."""
    copy = np.ascontiguousarray(array).copy()
    copy.setflags(write=False)
    return copy


def right_angle(degrees, reason="only multiples of 90 degrees are supported") -> int:
    """
    Whole-number multiple of 90 as an int

    Raises:
        RotationFailure: For non-numeric, fractional or other angles
    """
    try:
        value = int(degrees)
    except (TypeError, ValueError, OverflowError) as e:
        raise RotationFailure(degrees, e)

    if value != degrees or value % 90:
        raise RotationFailure(degrees, reason)
    return value

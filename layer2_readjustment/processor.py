"""
Layer 2 – Image Readjustment
Responsibility: Preview mapping, orientation correction, ID region isolation
Output: Sub-frame holding the ID number, ready for recognition
"""
import cv2
import logging

import numpy as np

from error_handlers import RotationFailure, ScannerError
from .frame import Frame, right_angle
from .geometry import NormalizedRect, compute_crop_box

logger = logging.getLogger(__name__)

RIGHT_ANGLE_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}

# cv2.rotate rejects images with more channels than this
MAX_OPENCV_CHANNELS = 4


class RegionExtractor:
    """
    Geometric pipeline from a raw captured frame to the ID number region.

    Stateless: every stage returns a new Frame and never touches pixels
    of its input, so one extractor can serve any number of captures.
    """

    compute_crop_box = staticmethod(compute_crop_box)

    def map_to_preview_region(self, frame: Frame, preview_rect: NormalizedRect) -> Frame:
        """
        Crop the full-resolution frame to what was visible on screen

        Args:
            frame: Captured frame
            preview_rect: Visible region in frame-normalized coordinates

        Returns:
            Frame: Visible part of the frame, orientation tag preserved

        Raises:
            InvalidRegion: If preview_rect is not inside the unit square
            CropOutOfBounds: If the scaled rectangle leaves the frame
        """
        preview_rect.validate()
        pixel_rect = preview_rect.to_pixels(frame.width, frame.height)
        logger.debug(f"Preview rect {tuple(preview_rect)} -> pixels {pixel_rect.bounds()}")
        return frame.crop(pixel_rect)

    def apply_orientation_correction(self, frame: Frame, rotation_degrees) -> Frame:
        """
        Rotate pixel content clockwise by a multiple of 90 degrees

        Rotation is lossless: width and height swap for quarter turns and
        turning back restores the original pixels exactly. Images with more
        than four channels are turned with numpy since OpenCV refuses them.

        Args:
            frame: Frame to rotate
            rotation_degrees: Clockwise angle, any multiple of 90

        Returns:
            Frame: Rotated frame with orientation tag reduced by the angle

        Raises:
            RotationFailure: For other angles or unreadable pixel data
        """
        degrees = right_angle(rotation_degrees)

        pixels = frame.pixels
        if pixels.ndim not in (2, 3) or pixels.size == 0:
            raise RotationFailure(rotation_degrees, f"unreadable pixel data with shape {pixels.shape}")

        turn = degrees % 360
        if turn == 0:
            return frame

        if pixels.ndim == 3 and pixels.shape[2] > MAX_OPENCV_CHANNELS:
            # np.rot90 turns counterclockwise for positive k
            rotated = np.rot90(pixels, k=-turn // 90)
        else:
            try:
                rotated = cv2.rotate(pixels, RIGHT_ANGLE_ROTATIONS[turn])
            except (cv2.error, TypeError) as e:
                raise RotationFailure(rotation_degrees, e)

        logger.debug(f"Rotated {frame.width}x{frame.height} by {turn} degrees")
        return Frame(rotated, frame.orientation - turn)

    def extract_region_of_interest(self, raw_frame: Frame, preview_rect: NormalizedRect,
                                   view_width, view_height, rotation_degrees=None) -> Frame:
        """
        Run the full pipeline: preview mapping, rotation, crop box

        The crop box is laid out in view space exactly as the on-screen
        guide is, then scaled onto the rotated frame.

        Args:
            raw_frame: Frame from the capture source
            preview_rect: Visible region of raw_frame
            view_width: Width of the preview view
            view_height: Height of the preview view
            rotation_degrees: Clockwise correction; None uses the frame's
                orientation tag

        Returns:
            Frame: Region expected to hold the ID number

        Raises:
            ScannerError: The first stage error, unchanged
        """
        logger.info("Starting region extraction pipeline")

        try:
            logger.debug("Step 1: Mapping frame to preview region")
            mapped = self.map_to_preview_region(raw_frame, preview_rect)

            degrees = mapped.orientation if rotation_degrees is None else rotation_degrees
            logger.debug(f"Step 2: Correcting orientation by {degrees} degrees")
            rotated = self.apply_orientation_correction(mapped, degrees)

            logger.debug("Step 3: Cropping to ID box")
            view_box = compute_crop_box(view_width, view_height)
            crop_box = view_box.scale(rotated.width / view_width, rotated.height / view_height)
            region = rotated.crop(crop_box)

        except ScannerError as e:
            logger.warning(f"Region extraction failed: {e.error_code}")
            raise

        logger.info(f"✓ Region extracted - {region.width}x{region.height}")
        return region

"""
Tests for the region extraction core.
"""
import cv2
import numpy as np
import pytest

from error_handlers import (
    CropOutOfBounds,
    ImageDecodeError,
    InvalidRegion,
    RotationFailure,
)
from layer2_readjustment import (
    Frame,
    NormalizedRect,
    PixelRect,
    RegionExtractor,
    compute_crop_box,
    draw_crop_box,
    preview_rect_for_aspect_fill,
)


@pytest.fixture
def extractor():
    return RegionExtractor()


@pytest.fixture
def raw_frame(raw_pixels):
    return Frame(raw_pixels, orientation=90)


class TestComputeCropBox:
    """Test the shared crop box definition."""

    @pytest.mark.parametrize("width,height", [
        (300, 500),
        (1, 1),
        (1280, 1200),
        (0.5, 7.25),
        (1e6, 3),
    ])
    def test_size_and_center(self, width, height):
        """Test box is a third wide, an eighth high and centered."""
        box = compute_crop_box(width, height)
        assert box.width == pytest.approx(width / 3)
        assert box.height == pytest.approx(height / 8)
        assert box.center[0] == pytest.approx(width / 2)
        assert box.center[1] == pytest.approx(height / 2)

    def test_is_deterministic(self):
        """Test the same size always gives the same box."""
        assert compute_crop_box(375, 667) == compute_crop_box(375, 667)

    def test_extractor_uses_same_function(self, extractor):
        """Test the extractor exposes the shared box function."""
        assert extractor.compute_crop_box(300, 500) == compute_crop_box(300, 500)

    @pytest.mark.parametrize("width,height", [(0, 10), (10, -1), (float('nan'), 5)])
    def test_rejects_non_positive_size(self, width, height):
        """Test empty or non-finite sizes are invalid."""
        with pytest.raises(InvalidRegion):
            compute_crop_box(width, height)


class TestOrientationCorrection:
    """Test lossless right-angle rotation."""

    def test_quarter_turn_is_clockwise(self, extractor):
        """Test positive angles rotate clockwise."""
        frame = Frame(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8))
        rotated = extractor.apply_orientation_correction(frame, 90)
        assert rotated.pixels.tolist() == [[4, 1], [5, 2], [6, 3]]

    def test_quarter_turn_swaps_dimensions(self, extractor, raw_frame):
        """Test a quarter turn swaps width and height."""
        rotated = extractor.apply_orientation_correction(raw_frame, 90)
        assert (rotated.width, rotated.height) == (raw_frame.height, raw_frame.width)

    def test_zero_is_identity(self, extractor, raw_frame):
        """Test rotating by zero changes nothing."""
        rotated = extractor.apply_orientation_correction(raw_frame, 0)
        assert np.array_equal(rotated.pixels, raw_frame.pixels)
        assert rotated.orientation == raw_frame.orientation

    def test_full_turn_is_identity(self, extractor, raw_frame):
        """Test rotating by 360 changes nothing."""
        rotated = extractor.apply_orientation_correction(raw_frame, 360)
        assert np.array_equal(rotated.pixels, raw_frame.pixels)

    def test_four_quarter_turns_restore_pixels(self, extractor, raw_frame):
        """Test four quarter turns restore pixels and tag."""
        frame = raw_frame
        for _ in range(4):
            frame = extractor.apply_orientation_correction(frame, 90)
        assert frame.pixels.shape == raw_frame.pixels.shape
        assert np.array_equal(frame.pixels, raw_frame.pixels)
        assert frame.orientation == raw_frame.orientation

    @pytest.mark.parametrize("degrees", [90, 180, 270, -90, 450])
    def test_turning_back_restores_pixels(self, extractor, raw_frame, degrees):
        """Test rotating and rotating back is lossless."""
        there = extractor.apply_orientation_correction(raw_frame, degrees)
        back = extractor.apply_orientation_correction(there, -degrees)
        assert np.array_equal(back.pixels, raw_frame.pixels)

    def test_minus_quarter_equals_three_quarters(self, extractor, raw_frame):
        """Test -90 and 270 give the same pixels."""
        a = extractor.apply_orientation_correction(raw_frame, -90)
        b = extractor.apply_orientation_correction(raw_frame, 270)
        assert np.array_equal(a.pixels, b.pixels)

    def test_orientation_tag_is_reduced(self, extractor, raw_frame):
        """Test rotation reduces the orientation tag."""
        rotated = extractor.apply_orientation_correction(raw_frame, 90)
        assert rotated.orientation == 0

    def test_input_frame_untouched(self, extractor, raw_frame, raw_pixels):
        """Test rotation leaves the input frame intact."""
        extractor.apply_orientation_correction(raw_frame, 90)
        assert np.array_equal(raw_frame.pixels, raw_pixels)

    @pytest.mark.parametrize("degrees", [45, 89.5, "ninety"])
    def test_rejects_other_angles(self, extractor, raw_frame, degrees):
        """Test non-right angles raise RotationFailure."""
        with pytest.raises(RotationFailure):
            extractor.apply_orientation_correction(raw_frame, degrees)

    def test_many_channels_rotate_losslessly(self, extractor):
        """Test images with more than four channels still rotate."""
        pixels = np.arange(2 * 3 * 5, dtype=np.uint8).reshape(2, 3, 5)
        rotated = extractor.apply_orientation_correction(Frame(pixels), 90)
        assert rotated.pixels.shape == (3, 2, 5)
        assert np.array_equal(rotated.pixels[:, :, 4], np.rot90(pixels[:, :, 4], k=-1))
        back = extractor.apply_orientation_correction(rotated, -90)
        assert np.array_equal(back.pixels, pixels)

    @pytest.mark.parametrize("pixels", [
        np.zeros((0, 0), dtype=np.uint8),
        np.zeros(5, dtype=np.uint8),
    ])
    def test_rejects_unreadable_pixels(self, extractor, pixels):
        """Test empty or one-dimensional pixels raise RotationFailure."""
        with pytest.raises(RotationFailure):
            extractor.apply_orientation_correction(Frame(pixels), 90)


class TestMapToPreviewRegion:
    """Test cropping a frame to the visible preview."""

    def test_full_rect_is_identity(self, extractor, raw_frame):
        """Test the unit rect maps to the whole frame."""
        mapped = extractor.map_to_preview_region(raw_frame, NormalizedRect(0, 0, 1, 1))
        assert np.array_equal(mapped.pixels, raw_frame.pixels)
        assert mapped.orientation == raw_frame.orientation

    def test_scenario_offset_and_size(self, extractor, raw_frame, raw_pixels):
        """Test a letterboxed preview crops the right rows."""
        mapped = extractor.map_to_preview_region(raw_frame, NormalizedRect(0, 0.1, 1, 0.8))
        assert (mapped.width, mapped.height) == (1200, 1280)
        assert np.array_equal(mapped.pixels, raw_pixels[160:1440, :])
        assert mapped.orientation == 90

    def test_rect_past_edge_is_out_of_bounds(self, extractor, raw_frame):
        """Test a rect past the frame edge is out of bounds."""
        with pytest.raises(CropOutOfBounds) as exc_info:
            extractor.map_to_preview_region(raw_frame, NormalizedRect(0.5, 0, 0.6, 1))
        assert exc_info.value.error_code == "CROP_OUT_OF_BOUNDS"

    @pytest.mark.parametrize("rect", [
        NormalizedRect(0, 0, 1.2, 1),
        NormalizedRect(-0.1, 0, 0.5, 0.5),
        NormalizedRect(0, 0, 0, 1),
        NormalizedRect(0, float('nan'), 1, 1),
    ])
    def test_invalid_rect(self, extractor, raw_frame, rect):
        """Test rects outside the unit square are invalid."""
        with pytest.raises(InvalidRegion):
            extractor.map_to_preview_region(raw_frame, rect)


class TestExtractRegionOfInterest:
    """Test the full geometric pipeline."""

    def test_scenario(self, extractor, raw_frame, raw_pixels):
        """Test the full pipeline on a portrait capture."""
        region = extractor.extract_region_of_interest(
            raw_frame, NormalizedRect(0, 0.1, 1, 0.8), 300, 500, rotation_degrees=90
        )
        # Rotated mapped frame is 1280 x 1200; box is 1/3 x 1/8 of it.
        # 426 x 160 is sometimes quoted for this case, but that takes the
        # height from the unrotated 1280 side. 150 matches the drawn guide box.
        assert region.width == 426
        assert region.height == 150

        rotated = cv2.rotate(raw_pixels[160:1440, :], cv2.ROTATE_90_CLOCKWISE)
        left, top, right, bottom = compute_crop_box(1280, 1200).bounds()
        assert np.array_equal(region.pixels, rotated[top:bottom, left:right])

    def test_rotation_defaults_to_orientation_tag(self, extractor, raw_frame):
        """Test the orientation tag is used when no angle is given."""
        explicit = extractor.extract_region_of_interest(
            raw_frame, NormalizedRect(0, 0.1, 1, 0.8), 300, 500, rotation_degrees=90
        )
        tagged = extractor.extract_region_of_interest(
            raw_frame, NormalizedRect(0, 0.1, 1, 0.8), 300, 500
        )
        assert np.array_equal(explicit.pixels, tagged.pixels)

    def test_is_idempotent(self, extractor, raw_frame):
        """Test the pipeline gives the same region twice."""
        args = (raw_frame, NormalizedRect(0.05, 0.1, 0.9, 0.8), 300, 500)
        first = extractor.extract_region_of_interest(*args)
        second = extractor.extract_region_of_interest(*args)
        assert np.array_equal(first.pixels, second.pixels)

    def test_view_size_does_not_move_box(self, extractor, raw_frame):
        """Test the box lands on the same pixels for any view size."""
        rect = NormalizedRect(0, 0, 1, 1)
        a = extractor.extract_region_of_interest(raw_frame, rect, 300, 500)
        b = extractor.extract_region_of_interest(raw_frame, rect, 1600, 1200)
        assert np.array_equal(a.pixels, b.pixels)

    def test_out_of_bounds_produces_no_frame(self, extractor, raw_frame):
        """Test an out-of-bounds rect stops the pipeline."""
        with pytest.raises(CropOutOfBounds):
            extractor.extract_region_of_interest(
                raw_frame, NormalizedRect(0.3, 0.3, 0.8, 0.5), 300, 500
            )

    def test_invalid_region_produces_no_frame(self, extractor, raw_frame):
        """Test an invalid rect stops the pipeline."""
        with pytest.raises(InvalidRegion):
            extractor.extract_region_of_interest(
                raw_frame, NormalizedRect(0, 0, 1.2, 1), 300, 500
            )

    def test_rotation_error_surfaces_verbatim(self, extractor, raw_frame):
        """Test rotation errors reach the caller unchanged."""
        with pytest.raises(RotationFailure) as exc_info:
            extractor.extract_region_of_interest(
                raw_frame, NormalizedRect(0, 0, 1, 1), 300, 500, rotation_degrees=30
            )
        assert exc_info.value.error_code == "ROTATION_FAILED"

    def test_invalid_view_size(self, extractor, raw_frame):
        """Test an empty view is invalid."""
        with pytest.raises(InvalidRegion):
            extractor.extract_region_of_interest(raw_frame, NormalizedRect.full(), 0, 500)


class TestFrame:
    """Test the frame value type."""

    def test_pixels_are_read_only(self, raw_pixels):
        """Test frame pixels cannot be written."""
        frame = Frame(raw_pixels)
        assert not frame.pixels.flags.writeable
        with pytest.raises(ValueError):
            frame.pixels[0, 0, 0] = 1

    def test_source_array_changes_do_not_leak(self):
        """Test writes to the source array do not reach the frame."""
        pixels = np.zeros((4, 4), dtype=np.uint8)
        frame = Frame(pixels)
        pixels[0, 0] = 255
        assert frame.pixels[0, 0] == 0

    def test_read_only_view_changes_do_not_leak(self):
        """Test writes through the base of a read-only view do not reach the frame."""
        base = np.zeros((4, 4), dtype=np.uint8)
        view = base.view()
        view.setflags(write=False)
        frame = Frame(view)
        base[0, 0] = 255
        assert frame.pixels[0, 0] == 0

    def test_crop_does_not_share_pixels(self, raw_pixels):
        """Test a crop owns its pixels."""
        frame = Frame(raw_pixels)
        cropped = frame.crop(PixelRect(0, 0, 10, 10))
        assert not np.shares_memory(cropped.pixels, frame.pixels)

    def test_orientation_is_normalized(self, raw_pixels):
        """Test the orientation tag is kept in [0, 360)."""
        assert Frame(raw_pixels, orientation=-90).orientation == 270
        assert Frame(raw_pixels, orientation=450).orientation == 90

    @pytest.mark.parametrize("orientation", [30, 90.5, "up"])
    def test_orientation_must_be_right_angle(self, raw_pixels, orientation):
        """Test invalid orientation tags raise RotationFailure."""
        with pytest.raises(RotationFailure) as exc_info:
            Frame(raw_pixels, orientation=orientation)
        assert exc_info.value.error_code == "ROTATION_FAILED"
        assert exc_info.value.http_status == 422

    def test_whole_float_orientation_is_accepted(self, raw_pixels):
        """Test a whole-number float tag is stored as an int."""
        frame = Frame(raw_pixels, orientation=180.0)
        assert frame.orientation == 180
        assert isinstance(frame.orientation, int)

    def test_crop_keeps_orientation(self, raw_pixels):
        """Test crop keeps the orientation tag."""
        frame = Frame(raw_pixels, orientation=180)
        cropped = frame.crop(PixelRect(10, 20, 30, 40))
        assert cropped.size == (30, 40)
        assert cropped.orientation == 180
        assert np.array_equal(cropped.pixels, raw_pixels[20:60, 10:40])

    def test_crop_empty_rect_is_out_of_bounds(self, raw_pixels):
        """Test a rect that rounds to nothing is out of bounds."""
        with pytest.raises(CropOutOfBounds):
            Frame(raw_pixels).crop(PixelRect(10, 10, 0.2, 5))

    def test_decode_round_trip(self, small_pixels):
        """Test decoding an encoded image keeps its pixels."""
        ok, buffer = cv2.imencode('.png', small_pixels)
        assert ok
        frame = Frame.from_bytes(buffer.tobytes(), orientation=90)
        assert np.array_equal(frame.pixels, small_pixels)
        assert frame.orientation == 90

    @pytest.mark.parametrize("data", [b"", b"definitely not an image"])
    def test_decode_rejects_garbage(self, data):
        """Test undecodable bytes raise ImageDecodeError."""
        with pytest.raises(ImageDecodeError):
            Frame.from_bytes(data)


class TestGeometry:
    """Test rectangle helpers."""

    def test_parse(self):
        """Test parsing an "x,y,w,h" string."""
        assert NormalizedRect.parse("0, 0.1, 1, 0.8") == NormalizedRect(0, 0.1, 1, 0.8)

    @pytest.mark.parametrize("text", ["", "0,0,1", "a,b,c,d", "0,0,1,1,1"])
    def test_parse_rejects_malformed(self, text):
        """Test malformed rect strings are invalid."""
        with pytest.raises(InvalidRegion):
            NormalizedRect.parse(text)

    def test_bounds_round_half_up(self):
        """Test pixel edges round half up."""
        assert PixelRect(0.5, 1.49, 2.0, 2.0).bounds() == (1, 1, 3, 3)

    def test_aspect_fill_crops_wider_axis(self):
        """Test aspect fill crops the overflowing axis."""
        rect = preview_rect_for_aspect_fill(1200, 1600, 300, 500)
        assert tuple(rect) == pytest.approx((0.1, 0.0, 0.8, 1.0))

    def test_aspect_fill_with_quarter_turn(self):
        """Test aspect fill accounts for display rotation."""
        # Stored landscape, shown portrait
        rect = preview_rect_for_aspect_fill(1600, 1200, 300, 500, rotation_degrees=90)
        assert tuple(rect) == pytest.approx((0.0, 0.1, 1.0, 0.8))

    def test_aspect_fill_same_ratio_is_full(self):
        """Test matching aspect ratios show the whole frame."""
        rect = preview_rect_for_aspect_fill(1200, 1600, 600, 800)
        assert tuple(rect) == pytest.approx((0.0, 0.0, 1.0, 1.0))


class TestOverlay:
    """Test the guide box drawing."""

    def test_draws_box_on_copy(self):
        """Test the guide box is drawn on a copy."""
        image = np.zeros((80, 120, 3), dtype=np.uint8)
        annotated = draw_crop_box(image)

        # compute_crop_box(120, 80) spans x 40..80, y 35..45
        assert annotated[35, 60].tolist() == [0, 255, 255]
        assert annotated[40, 60].tolist() == [0, 0, 0]
        assert not image.any()

    def test_accepts_read_only_frame_pixels(self, small_pixels):
        """Test drawing works on read-only frame pixels."""
        frame = Frame(small_pixels)
        annotated = draw_crop_box(frame.pixels)
        assert annotated.shape == small_pixels.shape

"""
Layer 2 — Image Readjustment
Component: Rectangle geometry
Responsibility: Normalized and pixel rectangles, the fixed ID crop box
"""
import math
from dataclasses import dataclass
from typing import Dict, Tuple

from error_handlers import InvalidRegion

# The ID number sits in a centered strip 1/3 wide and 1/8 tall
CROP_WIDTH_FRACTION = 1.0 / 3.0
CROP_HEIGHT_FRACTION = 1.0 / 8.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class PixelRect:
    """Rectangle in absolute pixel coordinates of one frame or view."""
    x: float
    y: float
    width: float
    height: float

    def __iter__(self):
        return iter((self.x, self.y, self.width, self.height))

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def scale(self, sx: float, sy: float) -> 'PixelRect':
        """Map this rectangle into a space scaled by (sx, sy)."""
        return PixelRect(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def bounds(self) -> Tuple[int, int, int, int]:
        """
        Integer pixel edges of the rectangle.

        Returns:
            (left, top, right, bottom), each edge rounded half-up
        """
        return (
            round_half_up(self.x),
            round_half_up(self.y),
            round_half_up(self.x + self.width),
            round_half_up(self.y + self.height),
        )

    def to_dict(self) -> Dict[str, float]:
        cx, cy = self.center
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "center_x": cx,
            "center_y": cy,
        }


@dataclass(frozen=True)
class NormalizedRect:
    """Rectangle in the [0,1] x [0,1] space of a reference view."""
    x: float
    y: float
    width: float
    height: float

    def __iter__(self):
        return iter((self.x, self.y, self.width, self.height))

    @classmethod
    def full(cls) -> 'NormalizedRect':
        return cls(0.0, 0.0, 1.0, 1.0)

    @classmethod
    def parse(cls, text: str) -> 'NormalizedRect':
        """
        Parse an "x,y,width,height" string.

        Raises:
            InvalidRegion: If the string does not hold four numbers
        """
        parts = [p.strip() for p in str(text).split(",")]
        if len(parts) != 4:
            raise InvalidRegion(str(text), reason="expected four comma-separated numbers")
        try:
            values = [float(p) for p in parts]
        except ValueError:
            raise InvalidRegion(str(text), reason="expected four comma-separated numbers")
        return cls(*values)

    def validate(self) -> 'NormalizedRect':
        """
        Check every component lies inside the unit interval.

        A rectangle whose components are all valid may still extend past
        the right or bottom edge (x + width > 1); that is reported later
        as CropOutOfBounds when the rectangle is applied to a frame.

        Raises:
            InvalidRegion: On non-finite, out-of-range or empty components
        """
        values = tuple(self)
        if not all(math.isfinite(v) for v in values):
            raise InvalidRegion(values, reason="components must be finite")
        if any(v < 0.0 or v > 1.0 for v in values):
            raise InvalidRegion(values, reason="components must lie within [0, 1]")
        if self.width <= 0.0 or self.height <= 0.0:
            raise InvalidRegion(values, reason="width and height must be positive")
        return self

    def to_pixels(self, width: float, height: float) -> PixelRect:
        return PixelRect(self.x * width, self.y * height, self.width * width, self.height * height)


def _check_size(width, height):
    try:
        values = (float(width), float(height))
    except (TypeError, ValueError):
        raise InvalidRegion(f"{width}x{height}", reason="size must be numeric")
    if not all(math.isfinite(v) and v > 0 for v in values):
        raise InvalidRegion((0, 0) + values, reason="size must be positive")


def compute_crop_box(width: float, height: float) -> PixelRect:
    """
    Generates a crop box for the center of a view or image. The crop box
    is 1/3 the width and 1/8 the height of the provided values.

    This is the only definition of where the ID number is expected: the
    on-screen guide and the crop of captured pixels both use it.

    Args:
        width: Width of the view or image
        height: Height of the view or image

    Returns:
        PixelRect: Crop box centered at (width / 2, height / 2)
    """
    _check_size(width, height)

    center_x = width / 2.0
    center_y = height / 2.0

    crop_w = CROP_WIDTH_FRACTION * width
    crop_h = CROP_HEIGHT_FRACTION * height

    return PixelRect(center_x - crop_w / 2.0, center_y - crop_h / 2.0, crop_w, crop_h)


def preview_rect_for_aspect_fill(frame_width, frame_height, view_width, view_height,
                                 rotation_degrees=0) -> NormalizedRect:
    """
    Portion of a frame visible in a view that scales it with aspect-fill.

    The view is filled completely and the overflowing axis of the frame is
    cut evenly on both sides.

    Args:
        frame_width: Frame width in pixels, as stored
        frame_height: Frame height in pixels, as stored
        view_width: Preview view width
        view_height: Preview view height
        rotation_degrees: Rotation applied to the frame before display;
            quarter turns show the stored frame with its axes swapped

    Returns:
        NormalizedRect: Visible region in stored-frame normalized coordinates
    """
    _check_size(frame_width, frame_height)
    _check_size(view_width, view_height)

    quarter_turn = int(rotation_degrees) % 180 == 90
    if quarter_turn:
        frame_width, frame_height = frame_height, frame_width

    scale = max(view_width / frame_width, view_height / frame_height)
    visible_w = min(1.0, (view_width / scale) / frame_width)
    visible_h = min(1.0, (view_height / scale) / frame_height)

    rect = NormalizedRect((1.0 - visible_w) / 2.0, (1.0 - visible_h) / 2.0, visible_w, visible_h)
    if quarter_turn:
        # Centered, so swapping axes is the same for either turn direction
        rect = NormalizedRect(rect.y, rect.x, rect.height, rect.width)
    return rect

"""
Layer 2 — Image Readjustment
Frame geometry and ID region extraction
"""
from .frame import Frame
from .geometry import (
    NormalizedRect,
    PixelRect,
    compute_crop_box,
    preview_rect_for_aspect_fill,
)
from .overlay import draw_crop_box
from .processor import RegionExtractor

__all__ = [
    'Frame',
    'NormalizedRect',
    'PixelRect',
    'RegionExtractor',
    'compute_crop_box',
    'draw_crop_box',
    'preview_rect_for_aspect_fill',
]

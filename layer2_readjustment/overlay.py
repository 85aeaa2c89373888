"""
Layer 2 — Image Readjustment
Component: Display overlay
Responsibility: Draw the ID guide box onto preview frames
"""
import cv2
import numpy as np

from .geometry import compute_crop_box

YELLOW = (0, 255, 255)


def draw_crop_box(image: np.ndarray, color=YELLOW, thickness: int = 2) -> np.ndarray:
    """
    Draw the crop box guide on a copy of an image

    Args:
        image: BGR preview image
        color: BGR line color (default: yellow)
        thickness: Line width in pixels

    Returns:
        numpy.ndarray: Annotated copy, input left untouched
    """
    annotated = image.copy()
    height, width = annotated.shape[:2]
    left, top, right, bottom = compute_crop_box(width, height).bounds()

    cv2.rectangle(annotated, (left, top), (right - 1, bottom - 1), color, thickness)
    return annotated

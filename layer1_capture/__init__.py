"""
Layer 1 — Capture
Camera handling and capture requests
"""
from .camera import Camera
from .session import CaptureSession

__all__ = ['Camera', 'CaptureSession']

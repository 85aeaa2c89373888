"""
Layer 3 — Recognition
Handles ID number recognition and result saving
"""
from .recognizer import IDRecognizer, extract_id_number
from .saver import ImageSaver

__all__ = ['IDRecognizer', 'ImageSaver', 'extract_id_number']

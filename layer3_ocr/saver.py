"""
Layer 3 — Recognition
Component: Image and JSON saver
Responsibility: Save extracted regions and results for traceability
"""
import os
import json
import cv2
import logging
from datetime import datetime

from error_handlers import ImageSaveError, JSONSaveError

logger = logging.getLogger(__name__)


class ImageSaver:
    """Handles saving extracted ID regions and recognition results"""

    def __init__(self, base_dir="captured_ids"):
        """
        Initialize saver

        Args:
            base_dir: Base directory (default: "captured_ids")

        Directory structure:
            captured_ids/
            ├── captured_images/  # PNG crops
            └── captured_json/    # JSON results
        """
        self.base_dir = base_dir
        self.images_dir = os.path.join(base_dir, "captured_images")
        self.json_dir = os.path.join(base_dir, "captured_json")

        self._ensure_directories()

        logger.info("ImageSaver initialized")
        logger.debug(f"  Images dir: {self.images_dir}")
        logger.debug(f"  JSON dir: {self.json_dir}")

    def _ensure_directories(self):
        for directory in [self.base_dir, self.images_dir, self.json_dir]:
            if not os.path.exists(directory):
                os.makedirs(directory)
                logger.info(f"Created directory: {directory}")

    def save_image(self, frame, prefix="student_id"):
        """
        Save a frame to captured_images/

        Args:
            frame: Frame to save
            prefix: Filename prefix (default: "student_id")

        Returns:
            dict: Contains timestamp, filepath, filename

        Raises:
            ImageSaveError: If OpenCV cannot write the file
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        filename = f"{prefix}_{timestamp}.png"
        filepath = os.path.join(self.images_dir, filename)

        logger.info(f"Saving image to: {filepath}")
        try:
            written = cv2.imwrite(filepath, frame.pixels)
        except cv2.error as e:
            raise ImageSaveError(filepath, e)
        if not written:
            raise ImageSaveError(filepath, "cv2.imwrite returned False")

        return {
            "timestamp": timestamp,
            "filepath": filepath,
            "filename": filename
        }

    def save_result_json(self, result_data, timestamp):
        """
        Save a recognition result to captured_json/

        Args:
            result_data: Dictionary containing the result
            timestamp: Timestamp string for filename

        Returns:
            str: Path to saved JSON file
        """
        json_filepath = os.path.join(self.json_dir, f"student_id_{timestamp}.json")

        full_data = {
            **result_data,
            "capture_time": datetime.now().isoformat()
        }

        logger.info(f"Saving JSON to: {json_filepath}")
        try:
            with open(json_filepath, 'w', encoding='utf-8') as f:
                json.dump(full_data, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError) as e:
            raise JSONSaveError(json_filepath, e)

        return json_filepath

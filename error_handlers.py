"""
Error Handling System
Provides consistent error responses across all layers
"""
import logging

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Base exception for scanner errors"""
    http_status = 422

    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Layer 1 Errors - Camera
class CameraError(ScannerError):
    """Camera-related errors"""
    http_status = 503


class CameraNotFoundError(CameraError):
    """Camera device not found"""
    def __init__(self, camera_index):
        super().__init__(
            message=f"Camera not found at /dev/video{camera_index}",
            error_code="CAMERA_NOT_FOUND",
            details={
                "camera_index": camera_index,
                "suggestion": "Check camera connection and device index"
            }
        )


class CameraInitError(CameraError):
    """Camera initialization failed"""
    def __init__(self, camera_index, reason=None):
        super().__init__(
            message=f"Failed to initialize camera at /dev/video{camera_index}",
            error_code="CAMERA_INIT_FAILED",
            details={
                "camera_index": camera_index,
                "reason": reason,
                "suggestion": "Check camera permissions and ensure no other app is using it"
            }
        )


class CameraNotInitializedError(CameraError):
    """Attempting to use camera before initialization"""
    def __init__(self):
        super().__init__(
            message="Camera not initialized. Please start the camera first.",
            error_code="CAMERA_NOT_INITIALIZED",
            details={
                "suggestion": "Call /start_camera endpoint first"
            }
        )


class FrameCaptureError(CameraError):
    """Failed to capture frame"""
    def __init__(self):
        super().__init__(
            message="Failed to capture frame from camera",
            error_code="FRAME_CAPTURE_FAILED",
            details={
                "suggestion": "Check camera connection or restart the camera"
            }
        )


class CapturePreemptedError(CameraError):
    """A newer capture request replaced this one"""
    http_status = 409

    def __init__(self):
        super().__init__(
            message="Capture was superseded by a newer capture request",
            error_code="CAPTURE_PREEMPTED",
            details={
                "suggestion": "Use the result of the most recent capture"
            }
        )


class InvalidParameterError(ScannerError):
    """Malformed request parameter"""
    http_status = 400

    def __init__(self, name, value, expected):
        super().__init__(
            message=f"Invalid value for '{name}': {value!r}",
            error_code="INVALID_PARAMETER",
            details={
                "parameter": name,
                "value": str(value),
                "expected": expected
            }
        )


class MissingImageError(ScannerError):
    """Request carries no image file"""
    http_status = 400

    def __init__(self, message, error_code):
        super().__init__(
            message=message,
            error_code=error_code,
            details={
                "suggestion": "Send the image as multipart/form-data field 'image'"
            }
        )


# Layer 2 Errors - Region extraction
class ProcessingError(ScannerError):
    """Image processing errors"""
    pass


class InvalidRegion(ProcessingError):
    """Normalized rectangle lies outside the unit square"""
    http_status = 400

    def __init__(self, rect, reason=None):
        values = rect if isinstance(rect, str) else list(rect)
        super().__init__(
            message=f"Region {values} is not a valid normalized rectangle",
            error_code="INVALID_REGION",
            details={
                "rect": values,
                "reason": reason,
                "suggestion": "Components must lie within [0, 1] and width/height must be positive"
            }
        )


class CropOutOfBounds(ProcessingError):
    """Pixel rectangle does not fit inside the frame"""
    def __init__(self, bounds, frame_size):
        super().__init__(
            message=f"Crop {bounds} exceeds frame of size {frame_size[0]}x{frame_size[1]}",
            error_code="CROP_OUT_OF_BOUNDS",
            details={
                "bounds": list(bounds),
                "frame_width": frame_size[0],
                "frame_height": frame_size[1],
                "suggestion": "Check that the preview region matches the captured frame"
            }
        )


class RotationFailure(ProcessingError):
    """Frame could not be rotated"""
    def __init__(self, degrees, reason):
        super().__init__(
            message=f"Failed to rotate frame by {degrees} degrees",
            error_code="ROTATION_FAILED",
            details={
                "degrees": degrees,
                "reason": str(reason),
                "suggestion": "Only right-angle rotations of readable images are supported"
            }
        )


class ImageDecodeError(ProcessingError):
    """Uploaded bytes are not a readable image"""
    http_status = 400

    def __init__(self, reason=None):
        super().__init__(
            message="Could not read image data",
            error_code="INVALID_IMAGE",
            details={
                "reason": reason,
                "suggestion": "Upload a JPEG or PNG image"
            }
        )


# Layer 3 Errors - Recognition
class RecognitionError(ScannerError):
    """Text recognition errors"""
    pass


class RecognitionUnavailable(RecognitionError):
    """OCR engine is not installed or not ready"""
    http_status = 503

    def __init__(self, reason=None):
        super().__init__(
            message="Text recognizer is not available",
            error_code="RECOGNITION_UNAVAILABLE",
            details={
                "reason": str(reason) if reason else None,
                "suggestion": "Install Tesseract or set TESSERACT_CMD"
            }
        )


class IDNumberNotFoundError(RecognitionError):
    """Recognized text holds no identification number"""
    def __init__(self, text):
        super().__init__(
            message="No ID number found in the recognized text",
            error_code="ID_NUMBER_NOT_FOUND",
            details={
                "text": text,
                "suggestion": "Align the ID number inside the yellow box and retry"
            }
        )


class RecognitionFailedError(RecognitionError):
    """OCR engine raised while reading the region"""
    def __init__(self, reason):
        super().__init__(
            message=f"Text recognition failed: {reason}",
            error_code="RECOGNITION_FAILED",
            details={
                "reason": str(reason),
                "suggestion": "Check image quality and lighting"
            }
        )


class SaveError(ScannerError):
    """File saving errors"""
    http_status = 500


class ImageSaveError(SaveError):
    """Failed to save image"""
    def __init__(self, filepath, reason):
        super().__init__(
            message=f"Failed to save image to {filepath}",
            error_code="IMAGE_SAVE_FAILED",
            details={
                "filepath": filepath,
                "reason": str(reason),
                "suggestion": "Check disk space and write permissions"
            }
        )


class JSONSaveError(SaveError):
    """Failed to save JSON"""
    def __init__(self, filepath, reason):
        super().__init__(
            message=f"Failed to save JSON to {filepath}",
            error_code="JSON_SAVE_FAILED",
            details={
                "filepath": filepath,
                "reason": str(reason),
                "suggestion": "Check disk space and write permissions"
            }
        )


# Error response helpers
def error_status(error):
    """HTTP status code for an exception"""
    if isinstance(error, ScannerError):
        return error.http_status
    return 500


def handle_error(error, log_message=None):
    """
    Handle error consistently across the application

    Args:
        error: Exception that occurred
        log_message: Optional custom log message

    Returns:
        dict: Error response for JSON serialization
    """
    if log_message:
        logger.error(log_message)

    if isinstance(error, ScannerError):
        # Known scanner error
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
        return error.to_dict()
    else:
        # Unexpected error
        logger.error(f"Unexpected error: {error}")
        logger.exception("Full traceback:")
        return {
            "success": False,
            "error": "An unexpected error occurred",
            "error_code": "UNEXPECTED_ERROR",
            "details": {
                "error_type": type(error).__name__,
                "error_message": str(error)
            }
        }

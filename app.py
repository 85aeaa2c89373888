"""
Student ID Scanner Web Application
Thin coordinator for layered ID number scanning.

Provides REST API for:
- Camera capture and preview with the ID guide box (local hardware)
- ID region extraction from captured or uploaded images
- ID number recognition on the extracted region
"""
from concurrent.futures import TimeoutError as FutureTimeoutError

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
import cv2
import time
import logging
import os

# Import layers
from layer1_capture import Camera, CaptureSession
from layer2_readjustment import (
    Frame,
    NormalizedRect,
    RegionExtractor,
    draw_crop_box,
    preview_rect_for_aspect_fill,
)
from layer3_ocr import IDRecognizer, ImageSaver

# Import error handling
from error_handlers import (
    FrameCaptureError,
    InvalidParameterError,
    MissingImageError,
    SaveError,
    ScannerError,
    error_status,
    handle_error,
)

# Configuration
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG').upper()
CAMERA_INDEX = int(os.environ.get('CAMERA_INDEX', 2))
CAMERA_WIDTH = int(os.environ.get('CAMERA_WIDTH', 1920))
CAMERA_HEIGHT = int(os.environ.get('CAMERA_HEIGHT', 1080))
CAPTURE_ROTATION = int(os.environ.get('CAPTURE_ROTATION', 90))  # Portrait capture
CAPTURE_TIMEOUT = float(os.environ.get('CAPTURE_TIMEOUT', 10))
PREVIEW_WIDTH = int(os.environ.get('PREVIEW_WIDTH', 960))
PREVIEW_HEIGHT = int(os.environ.get('PREVIEW_HEIGHT', 540))
TESSERACT_CMD = os.environ.get('TESSERACT_CMD')
TESSERACT_CONFIG = os.environ.get('TESSERACT_CONFIG', '--psm 7')
ID_PATTERN = os.environ.get('ID_PATTERN', r'N\d{8}')
SAVE_CAPTURES = os.environ.get('SAVE_CAPTURES', '1') == '1'
SAVE_DIR = os.environ.get('SAVE_DIR', 'Logs/captured_ids')

# Setup logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.DEBUG),
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for cross-origin requests from the kiosk front end
CORS(app, origins=["*"])


def displayed_size(width, height, rotation_degrees):
    """Size of a width x height image after rotating it for display"""
    if int(rotation_degrees) % 180 == 90:
        return height, width
    return width, height


class ScannerCoordinator:
    """
    Coordinates the scanning pipeline across layers
    Thin wrapper that delegates to layer-specific components
    """

    def __init__(self, camera_index, camera_width, camera_height, rotation,
                 tesseract_cmd, tesseract_config, id_pattern, save_dir=None):
        logger.info("Initializing ScannerCoordinator")

        self.rotation = rotation

        # Layer 1: Capture
        self.camera = Camera(camera_index=camera_index, width=camera_width, height=camera_height)
        self.session = CaptureSession(self.camera, orientation=rotation)

        # Layer 2: Region extraction
        self.extractor = RegionExtractor()

        # Layer 3: Recognition and traceability
        self.recognizer = IDRecognizer(
            tesseract_cmd=tesseract_cmd,
            config=tesseract_config,
            id_pattern=id_pattern
        )
        self.image_saver = ImageSaver(base_dir=save_dir) if save_dir else None

        logger.info("ScannerCoordinator initialized successfully")

    def initialize_camera(self):
        """
        Initialize camera (Layer 1)

        Raises:
            CameraError: If the device is missing or cannot be opened
        """
        return self.camera.initialize()

    def release_camera(self):
        """Release camera resources (Layer 1)"""
        self.camera.release()

    def get_preview_with_overlay(self, width=PREVIEW_WIDTH, height=PREVIEW_HEIGHT):
        """
        Get an upright preview frame with the ID guide box drawn on it

        Returns:
            numpy.ndarray or None: Annotated frame, None on error
        """
        try:
            preview = Frame(self.camera.get_preview_frame(width, height), self.rotation)
            upright = self.extractor.apply_orientation_correction(preview, self.rotation)
            return draw_crop_box(upright.pixels)
        except ScannerError as e:
            logger.debug(f"Failed to get overlay frame: {e}")
            return None

    def extract_region(self, frame, preview_rect=None, view_width=None, view_height=None,
                       rotation=None):
        """
        Layer 2: Isolate the ID number region of a frame

        Without a view size the frame is shown whole, so the view is the
        rotated frame itself. Without a preview rect the visible region is
        the aspect-fill of the frame in the view.
        """
        degrees = frame.orientation if rotation is None else rotation

        if view_width is None or view_height is None:
            view_width, view_height = displayed_size(frame.width, frame.height, degrees)

        if preview_rect is None:
            preview_rect = preview_rect_for_aspect_fill(
                frame.width, frame.height, view_width, view_height, degrees
            )

        return self.extractor.extract_region_of_interest(
            frame, preview_rect, view_width, view_height, rotation_degrees=degrees
        )

    def recognize(self, region, source):
        """
        Layer 3: Read the ID number and record the result

        Returns:
            dict: Success response
        """
        id_number = self.recognizer.scan_for_id_number(region)

        response = {
            "success": True,
            "id_number": id_number,
            "source": source,
            "region": {"width": region.width, "height": region.height},
        }

        # Saving is for traceability only - continues on failure
        if self.image_saver is not None:
            try:
                save_result = self.image_saver.save_image(region)
                response["image_path"] = save_result["filepath"]
                response["timestamp"] = save_result["timestamp"]
                self.image_saver.save_result_json(
                    {**response, "status": "success"}, save_result["timestamp"]
                )
            except SaveError as e:
                logger.warning(f"[Layer 3] Saving result failed: {e.message}")

        return response

    def capture_and_extract(self, timeout=CAPTURE_TIMEOUT):
        """
        Execute full scanning pipeline:
        Layer 1 -> Layer 2 -> Layer 3

        Returns:
            dict: Success response

        Raises:
            ScannerError: First error of any layer
        """
        logger.info("=" * 60)
        logger.info("Starting capture and extraction pipeline")

        logger.info("[Layer 1] Capturing frame...")
        try:
            raw_frame = self.session.capture(timeout=timeout)
        except FutureTimeoutError:
            logger.error(f"[Layer 1] No frame within {timeout}s")
            raise FrameCaptureError()
        logger.info(f"[Layer 1] Frame captured - {raw_frame.width}x{raw_frame.height}")

        # The web preview shows the whole frame
        logger.info("[Layer 2] Extracting ID region...")
        region = self.extract_region(raw_frame, NormalizedRect.full())

        logger.info("[Layer 3] Recognizing ID number...")
        response = self.recognize(region, source="camera")

        logger.info("[Pipeline] Success!")
        logger.info("=" * 60)
        return response

    def shutdown(self):
        self.session.close()
        self.recognizer.close()
        self.release_camera()


# Initialize scanner coordinator
logger.info("Starting application initialization")

scanner = ScannerCoordinator(
    camera_index=CAMERA_INDEX,
    camera_width=CAMERA_WIDTH,
    camera_height=CAMERA_HEIGHT,
    rotation=CAPTURE_ROTATION,
    tesseract_cmd=TESSERACT_CMD,
    tesseract_config=TESSERACT_CONFIG,
    id_pattern=ID_PATTERN,
    save_dir=SAVE_DIR if SAVE_CAPTURES else None
)


def error_response(error):
    return jsonify(handle_error(error)), error_status(error)


def _optional_number(name, cast=float):
    value = request.form.get(name)
    if value is None or value == '':
        return None
    try:
        return cast(value)
    except ValueError:
        raise InvalidParameterError(name, value, f"a {cast.__name__}")


def read_upload():
    """
    Parse a multipart upload into a frame plus pipeline options

    Form fields:
        image: Encoded image file (required)
        preview_rect: "x,y,width,height" visible region (optional)
        view_width, view_height: Preview view size (optional, together)
        rotation: Clockwise correction in degrees (default: CAPTURE_ROTATION)

    Returns:
        tuple: (Frame, options dict for ScannerCoordinator.extract_region)

    Raises:
        MissingImageError: If no file was uploaded
        InvalidParameterError: If a form field is malformed
    """
    if 'image' not in request.files:
        raise MissingImageError("No image file provided", "NO_IMAGE")

    image_file = request.files['image']
    if image_file.filename == '':
        raise MissingImageError("Empty filename", "EMPTY_FILENAME")

    rotation = _optional_number('rotation', int)
    if rotation is None:
        rotation = CAPTURE_ROTATION

    view_width = _optional_number('view_width')
    view_height = _optional_number('view_height')
    if (view_width is None) != (view_height is None):
        raise InvalidParameterError(
            'view_width' if view_width is None else 'view_height', None,
            "view_width and view_height given together"
        )

    preview_rect = request.form.get('preview_rect')
    if preview_rect:
        preview_rect = NormalizedRect.parse(preview_rect)
    else:
        preview_rect = None

    frame = Frame.from_bytes(image_file.read(), orientation=0)
    logger.info(f"Uploaded image {image_file.filename}: {frame.width}x{frame.height}")

    return frame, {
        "preview_rect": preview_rect,
        "view_width": view_width,
        "view_height": view_height,
        "rotation": rotation,
    }


# ============================================================================
# Flask Routes - Camera
# ============================================================================

@app.route('/video_feed')
def video_feed():
    """Video streaming route with the ID guide box overlay"""
    logger.info("Video feed with overlay requested")

    def generate():
        logger.info("Starting video stream generator with overlay")
        scanner.initialize_camera()

        while True:
            frame = scanner.get_preview_with_overlay()

            if frame is not None:
                ret, buffer = cv2.imencode('.jpg', frame)
                if ret:
                    yield (b'--frame\r\n'
                           b'Content-Type: image/jpeg\r\n\r\n' + buffer.tobytes() + b'\r\n')
            else:
                time.sleep(0.1)

    return Response(generate(), mimetype='multipart/x-mixed-replace; boundary=frame')


@app.route('/capture', methods=['POST'])
def capture():
    """Capture from camera and read the ID number"""
    logger.info("Capture request received from client")
    try:
        return jsonify(scanner.capture_and_extract())
    except Exception as e:
        logger.info("[Pipeline] Failed")
        return error_response(e)


@app.route('/start_camera', methods=['POST'])
def start_camera():
    """Initialize camera with error details"""
    logger.info("Start camera request received")

    try:
        success = scanner.initialize_camera()
        logger.info(f"Camera start result: {success}")
        return jsonify({"success": success})
    except Exception as e:
        return error_response(e)


@app.route('/stop_camera', methods=['POST'])
def stop_camera():
    """Stop camera"""
    logger.info("Stop camera request received")
    scanner.release_camera()
    return jsonify({"success": True})


# ============================================================================
# API Endpoints
# ============================================================================

@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint for service discovery and load balancers"""
    return jsonify({
        "status": "healthy",
        "service": "id-scanner",
        "version": "1.0.0"
    })


@app.route("/api/crop_box", methods=["GET"])
def api_crop_box():
    """
    Crop box for a view of the given size, for drawing the guide overlay

    Query:
        width, height: View size
    """
    try:
        width = request.args.get('width', type=float)
        height = request.args.get('height', type=float)
        if width is None or height is None:
            raise InvalidParameterError('width/height', request.args.to_dict(), "two numbers")

        box = scanner.extractor.compute_crop_box(width, height)
        return jsonify({"success": True, "crop_box": box.to_dict()})
    except Exception as e:
        return error_response(e)


@app.route("/api/region", methods=["POST"])
def api_region():
    """Return the extracted ID region of an uploaded image as PNG"""
    logger.info("API region request received")
    try:
        frame, options = read_upload()

        region = scanner.extract_region(frame, **options)
        return Response(region.to_png(), mimetype='image/png')
    except Exception as e:
        return error_response(e)


@app.route("/api/extract", methods=["POST"])
def api_extract_from_image():
    """
    Read the ID number from an uploaded image.

    Request:
        - multipart/form-data, see read_upload() for the fields

    Response:
        {
            "success": true,
            "id_number": "N12345678",
            "region": {"width": 426, "height": 150}
        }
    """
    logger.info("API extract request received")
    try:
        frame, options = read_upload()

        logger.info("[Layer 2] Extracting ID region...")
        region = scanner.extract_region(frame, **options)

        logger.info("[Layer 3] Recognizing ID number...")
        response = scanner.recognize(region, source="upload")

        logger.info("API extraction successful")
        return jsonify(response)
    except Exception as e:
        return error_response(e)


@app.route("/api/status", methods=["GET"])
def api_status():
    """Get service status and capabilities"""
    return jsonify({
        "success": True,
        "camera_open": scanner.camera.is_opened(),
        "recognizer_available": scanner.recognizer.is_available(),
        "capture_rotation": scanner.rotation,
        "saving_enabled": scanner.image_saver is not None,
        "endpoints": {
            "health": "/health",
            "crop_box": "/api/crop_box",
            "region": "/api/region",
            "extract": "/api/extract",
            "capture": "/capture",
            "video_feed": "/video_feed"
        }
    })


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == '__main__':
    logger.info("Flask server starting")
    logger.info(f"Camera: /dev/video{CAMERA_INDEX} at {CAMERA_WIDTH}x{CAMERA_HEIGHT}")
    logger.info(f"Capture rotation: {CAPTURE_ROTATION} degrees")
    try:
        app.run(host='0.0.0.0', port=5000, debug=False, threaded=True)
    finally:
        scanner.shutdown()

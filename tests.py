"""
Tests for the ID scanner Flask application.
"""
import json

import cv2
import numpy as np
import pytest

from error_handlers import RecognitionUnavailable


def post_image(client, upload, **fields):
    data = {'image': upload()}
    data.update({key: str(value) for key, value in fields.items()})
    return client.post('/api/extract', data=data, content_type='multipart/form-data')


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_ok(self, client):
        """Test /health returns OK status."""
        response = client.get('/health')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'

    def test_status_lists_endpoints(self, client, fake_recognizer):
        """Test /api/status reports capabilities and endpoints."""
        response = client.get('/api/status')
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['recognizer_available'] is True
        assert data['camera_open'] is False
        assert data['endpoints']['extract'] == '/api/extract'


class TestCropBoxEndpoint:
    """Test crop box endpoint used by the display overlay."""

    def test_crop_box(self, client):
        """Test /api/crop_box returns the centered guide box."""
        response = client.get('/api/crop_box?width=300&height=480')
        assert response.status_code == 200
        box = json.loads(response.data)['crop_box']
        assert box['width'] == pytest.approx(100)
        assert box['height'] == pytest.approx(60)
        assert box['center_x'] == pytest.approx(150)
        assert box['center_y'] == pytest.approx(240)

    def test_crop_box_requires_size(self, client):
        """Test /api/crop_box requires both width and height."""
        response = client.get('/api/crop_box?width=300')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_PARAMETER'

    def test_crop_box_rejects_zero_size(self, client):
        """Test /api/crop_box rejects an empty view."""
        response = client.get('/api/crop_box?width=0&height=480')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_REGION'


class TestExtractEndpoint:
    """Test ID extraction from uploaded images."""

    def test_extract_returns_id_number(self, client, fake_recognizer, png_upload):
        """Test /api/extract returns the recognized ID number."""
        response = post_image(client, png_upload, rotation=90)
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['id_number'] == 'N12345678'
        assert data['source'] == 'upload'
        # 300 x 400 upload shown rotated as 400 x 300
        assert data['region'] == {'width': 134, 'height': 38}

    def test_extract_hands_region_to_recognizer(self, client, fake_recognizer, png_upload, small_pixels):
        """Test the recognizer receives exactly the crop box region."""
        post_image(client, png_upload, rotation=0)
        region = fake_recognizer.regions[0]
        assert (region.width, region.height) == (100, 50)
        assert np.array_equal(region.pixels, small_pixels[175:225, 100:200])

    def test_extract_requires_image(self, client, fake_recognizer):
        """Test /api/extract requires an image file."""
        response = client.post('/api/extract', data={}, content_type='multipart/form-data')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'NO_IMAGE'

    def test_extract_rejects_json_body(self, client):
        """Test /api/extract rejects a JSON body."""
        response = client.post('/api/extract', json={'image': 'abc'})
        assert response.status_code == 400

    def test_extract_rejects_unreadable_image(self, client, fake_recognizer):
        """Test /api/extract rejects bytes that are not an image."""
        from io import BytesIO
        response = client.post(
            '/api/extract',
            data={'image': (BytesIO(b'not an image'), 'card.png')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_IMAGE'

    def test_invalid_region(self, client, fake_recognizer, png_upload):
        """Test a preview rect outside the unit square is a 400."""
        response = post_image(client, png_upload, preview_rect='0,0,1.2,1')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_REGION'
        assert fake_recognizer.regions == []

    def test_crop_out_of_bounds(self, client, fake_recognizer, png_upload):
        """Test a preview rect running past the frame edge is a 422."""
        response = post_image(client, png_upload, preview_rect='0.5,0,0.6,1')
        assert response.status_code == 422
        assert json.loads(response.data)['error_code'] == 'CROP_OUT_OF_BOUNDS'
        assert fake_recognizer.regions == []

    def test_unsupported_rotation(self, client, fake_recognizer, png_upload):
        """Test a non-right-angle rotation is a 422."""
        response = post_image(client, png_upload, rotation=45)
        assert response.status_code == 422
        assert json.loads(response.data)['error_code'] == 'ROTATION_FAILED'

    def test_malformed_rotation(self, client, fake_recognizer, png_upload):
        """Test a non-numeric rotation is a 400."""
        response = post_image(client, png_upload, rotation='sideways')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'INVALID_PARAMETER'

    def test_view_size_needs_both_sides(self, client, fake_recognizer, png_upload):
        """Test view_width without view_height is rejected."""
        response = post_image(client, png_upload, view_width=300)
        assert response.status_code == 400

    def test_recognizer_unavailable(self, client, fake_recognizer, png_upload):
        """Test a missing Tesseract binary is a 503."""
        fake_recognizer.error = RecognitionUnavailable("tesseract not installed")
        response = post_image(client, png_upload)
        assert response.status_code == 503
        assert json.loads(response.data)['error_code'] == 'RECOGNITION_UNAVAILABLE'


class TestRegionEndpoint:
    """Test region-only extraction."""

    def test_region_returns_png(self, client, png_upload, small_pixels):
        """Test /api/region returns the region as a PNG."""
        response = client.post(
            '/api/region',
            data={'image': png_upload(), 'rotation': '90', 'view_width': '400', 'view_height': '300'},
            content_type='multipart/form-data'
        )
        assert response.status_code == 200
        assert response.mimetype == 'image/png'

        region = cv2.imdecode(np.frombuffer(response.data, np.uint8), cv2.IMREAD_COLOR)
        rotated = cv2.rotate(small_pixels, cv2.ROTATE_90_CLOCKWISE)
        assert np.array_equal(region, rotated[131:169, 133:267])


class TestCameraEndpoints:
    """Test camera routes without hardware."""

    def test_capture_without_camera(self, client, fake_recognizer):
        """Test /capture fails cleanly before the camera starts."""
        response = client.post('/capture')
        assert response.status_code == 503
        data = json.loads(response.data)
        assert data['success'] is False
        assert data['error_code'] == 'CAMERA_NOT_INITIALIZED'

    def test_start_camera_missing_device(self, client):
        """Test /start_camera reports a missing device."""
        response = client.post('/start_camera')
        assert response.status_code == 503
        assert json.loads(response.data)['error_code'] == 'CAMERA_NOT_FOUND'

    def test_stop_camera(self, client):
        """Test /stop_camera succeeds without a running camera."""
        response = client.post('/stop_camera')
        assert json.loads(response.data) == {'success': True}


class TestErrorHandling:
    """Test error handling."""

    def test_missing_endpoint_returns_404(self, client):
        """Test unknown routes return 404."""
        response = client.get('/api/nonexistent')
        assert response.status_code == 404

    def test_method_not_allowed(self, client):
        """Test wrong HTTP method returns 405."""
        response = client.get('/api/extract')
        assert response.status_code == 405

"""End-to-end tests for POST /detect with a mocked classifier."""
import httpx
import pytest
from fastapi.testclient import TestClient

import app.main as main_module
from app.classifier.client import ClassifierClient
from app.config import reset_config
from app.gateway import DetectionGateway, get_gateway
from app.main import app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

CLASSIFIER_BODY = {
    "results": {
        "prediction_info": {
            "real": "14.58%",
            "artificial": "85.42%",
            "predicted_label": "artificial",
            "processing_time_ms": 1288.52,
        },
        "meta_info": {"filename": "photo.jpg", "original_format": "JPEG", "size": [800, 1066]},
    }
}


class RecordingHandler:
    def __init__(self, response=None):
        self.calls = []
        self.response = response or httpx.Response(200, json=CLASSIFIER_BODY)
        self.error = None

    def __call__(self, request):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def client(handler):
    """Test client whose gateway talks to a MockTransport classifier."""

    def gateway_override():
        classifier = ClassifierClient(
            upload_endpoint="http://classifier.test/up",
            url_endpoint="http://classifier.test/url",
            api_key="test-key",
            transport=httpx.MockTransport(handler),
        )
        return DetectionGateway(classifier)

    app.dependency_overrides[get_gateway] = gateway_override
    yield TestClient(app)
    app.dependency_overrides.pop(get_gateway, None)


class TestDetectUrl:
    """JSON {url} submissions."""

    def test_reference_scenario(self, client, handler):
        response = client.post("/detect", json={"url": "https://img.test/photo.jpg"})

        assert response.status_code == 200
        data = response.json()
        assert data["aiProbability"] == 85.42
        assert data["realProbability"] == 14.58
        assert data["final"] == "AI"
        assert data["processingTime"] == 1288.52
        assert data["metaInfo"]["dimensions"] == [800, 1066]
        assert data["rawResponse"] == CLASSIFIER_BODY
        assert len(handler.calls) == 1

    def test_api_prefix_alias(self, client, handler):
        response = client.post("/api/detect", json={"url": "https://img.test/photo.jpg"})
        assert response.status_code == 200
        assert len(handler.calls) == 1

    def test_invalid_url_is_400(self, client, handler):
        response = client.post("/detect", json={"url": "ftp://img.test/a.jpg"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid input"
        assert handler.calls == []

    def test_empty_json_is_400(self, client, handler):
        response = client.post("/detect", json={})
        assert response.status_code == 400
        assert handler.calls == []

    def test_non_object_json_is_400(self, client, handler):
        response = client.post("/detect", json=["https://img.test/a.jpg"])
        assert response.status_code == 400

    def test_malformed_json_is_400(self, client, handler):
        response = client.post(
            "/detect", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_unsupported_content_type_is_400(self, client, handler):
        response = client.post("/detect", content=b"url=x", headers={"Content-Type": "text/plain"})
        assert response.status_code == 400
        assert handler.calls == []


class TestDetectUpload:
    """Multipart image submissions."""

    def test_upload(self, client, handler):
        response = client.post("/detect", files={"image": ("photo.png", PNG_BYTES, "image/png")})

        assert response.status_code == 200
        assert response.json()["final"] == "AI"
        assert len(handler.calls) == 1
        assert PNG_BYTES in handler.calls[0].content

    def test_both_image_and_url_is_400(self, client, handler):
        response = client.post(
            "/detect",
            files={"image": ("photo.png", PNG_BYTES, "image/png")},
            data={"url": "https://img.test/a.jpg"},
        )
        assert response.status_code == 400
        assert handler.calls == []

    def test_missing_image_is_400(self, client, handler):
        response = client.post("/detect", files={"other": ("x.png", PNG_BYTES, "image/png")})

        assert response.status_code == 400
        assert "No image" in response.json()["details"]
        assert handler.calls == []

    def test_disallowed_type_is_400(self, client, handler):
        response = client.post("/detect", files={"image": ("doc.pdf", b"%PDF-1.4", "application/pdf")})
        assert response.status_code == 400
        assert handler.calls == []

    def test_oversize_is_400_without_outbound_call(self, client, handler, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_SIZE_BYTES", "2048")
        reset_config()

        def small_gateway():
            classifier = ClassifierClient(
                upload_endpoint="http://classifier.test/up",
                url_endpoint="http://classifier.test/url",
                api_key="test-key",
                transport=httpx.MockTransport(handler),
            )
            return DetectionGateway(classifier, max_upload_size=2048)

        app.dependency_overrides[get_gateway] = small_gateway
        big = PNG_BYTES + b"\x00" * 4096
        response = client.post("/detect", files={"image": ("big.png", big, "image/png")})

        assert response.status_code == 400
        assert "maximum size" in response.json()["details"]
        assert handler.calls == []

    def test_request_over_body_limit_is_413(self, client, handler, monkeypatch):
        monkeypatch.setattr(main_module, "MAX_REQUEST_SIZE_BYTES", 1000)
        big = PNG_BYTES + b"\x00" * 4096
        response = client.post("/detect", files={"image": ("big.png", big, "image/png")})

        assert response.status_code == 413
        assert handler.calls == []


class TestDetectErrors:
    """Classifier failures map to stable statuses."""

    def test_classifier_non_2xx_is_502(self, client, handler):
        handler.response = httpx.Response(500, text="boom")
        response = client.post("/detect", json={"url": "https://img.test/a.jpg"})

        assert response.status_code == 502
        assert response.json()["details"] == "Classifier returned 500"

    def test_bad_classifier_shape_is_500(self, client, handler):
        handler.response = httpx.Response(200, json={"unexpected": True})
        response = client.post("/detect", json={"url": "https://img.test/a.jpg"})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process image"

    def test_transport_failure_is_503_retryable(self, client, handler):
        handler.error = httpx.ConnectError("refused")
        response = client.post("/detect", json={"url": "https://img.test/a.jpg"})

        assert response.status_code == 503
        assert response.json()["retryable"] is True

    def test_missing_api_key_is_503(self, monkeypatch):
        monkeypatch.delenv("CLASSIFIER_API_KEY", raising=False)
        app.dependency_overrides.pop(get_gateway, None)

        response = TestClient(app).post("/detect", json={"url": "https://img.test/a.jpg"})

        assert response.status_code == 503
        assert "request_id" in response.json()

    def test_error_body_carries_request_id(self, client, handler):
        response = client.post(
            "/detect", json={"url": "nope"}, headers={"X-Request-Id": "req-123"}
        )

        assert response.status_code == 400
        assert response.json()["request_id"] == "req-123"
        assert response.headers["X-Request-Id"] == "req-123"

"""
End-to-end tests of the HTTP API with vendors faked out.
"""
import asyncio

import pytest
from cloudinary.exceptions import Error as CloudinaryError
from conftest import EDITED_URL, PHOTO_URL, VISION_URL, make_jpeg, read_events
from fastapi.testclient import TestClient

from main import app

from stylist_app.config import settings
from stylist_app.ratelimit.strategies import InMemoryRateLimiter
from stylist_app.services.gemini import MESSAGES
from stylist_app.services.nanobanana import UNAVAILABLE_MESSAGE
from stylist_app.storage.registry import RegistryRecord

NANO_URL = "https://nano.example.com/edit"


@pytest.fixture
def nanobanana(web, monkeypatch):
    """A working NanoBanana endpoint returning EDITED_URL"""
    monkeypatch.setattr(settings, "nanobanana_url", NANO_URL)
    web.add_json("POST", NANO_URL, {"editedUrl": EDITED_URL, "note": "Hecho"})
    web.add_image(EDITED_URL, make_jpeg(640, 640, color=(30, 60, 90)))
    return web


EDIT_BODY = {
    "imageUrl": PHOTO_URL,
    "sessionId": "s1",
    "intent": {
        "locale": "es",
        "change": [{"type": "beard_style", "value": "stubble"}],
        "instruction": "barba stubble",
    },
}


class TestRoot:
    """Test service endpoints"""

    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    def test_health(self, client: TestClient):
        assert client.get("/health").json()["status"] == "healthy"

    def test_unexpected_error_is_json(self, client: TestClient, stylist, monkeypatch):
        async def broken(image_url):
            raise RuntimeError("vision client exploded")

        monkeypatch.setattr(stylist, "moderate", broken)
        raw_client = TestClient(app, raise_server_exceptions=False)

        response = raw_client.post("/api/moderate", json={"imageUrl": PHOTO_URL})

        assert response.status_code == 500
        assert response.json() == {"error": "INTERNAL_ERROR", "message": "vision client exploded"}
        assert read_events("api.error")[0]["errorType"] == "RuntimeError"


class TestUpload:
    """Test photo upload"""

    def test_upload_photo(self, client: TestClient, storage):
        files = {"file": ("my selfie.jpg", make_jpeg(800, 600), "image/jpeg")}

        response = client.post("/api/upload", files=files, data={"sessionId": "s1"})
        assert response.status_code == 200

        data = response.json()
        assert data["sessionId"] == "s1"
        assert data["imageUrl"].startswith("/uploads/upload_")
        assert data["imageUrl"].endswith("_my_selfie.jpg")
        assert data["publicId"].startswith("local:upload_")
        assert data["canonicalUrl"] == data["imageUrl"]
        assert (data["width"], data["height"]) == (800, 600)
        assert (storage.uploads_dir / data["publicId"][len("local:"):]).exists()

    def test_upload_opens_session(self, client: TestClient):
        files = {"file": ("a.jpg", make_jpeg(), "image/jpeg")}

        data = client.post("/api/upload", files=files).json()

        assert len(data["sessionId"]) == 32

    def test_upload_too_small(self, client: TestClient):
        files = {"file": ("tiny.jpg", make_jpeg(64, 64), "image/jpeg")}

        response = client.post("/api/upload", files=files)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "INVALID_IMAGE"
        assert data["message"].startswith("Image too small")
        assert data["details"]["width"] == 64

    def test_upload_wrong_type(self, client: TestClient):
        files = {"file": ("notes.txt", b"hello", "text/plain")}

        response = client.post("/api/upload", files=files)

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid file type")

    def test_upload_without_file(self, client: TestClient):
        response = client.post("/api/upload", data={"sessionId": "s1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "No file provided"


class TestAnalyze:
    """Test photo analysis"""

    def test_analyze_and_cache(self, client: TestClient):
        body = {"imageUrl": PHOTO_URL, "sessionId": "s1", "locale": "es"}

        first = client.post("/api/analyze", json=body)
        assert first.status_code == 200
        data = first.json()
        assert data["cached"] is False
        assert data["workingUrl"] == PHOTO_URL
        assert data["analysis"]["faceOk"] is True
        assert data["analysis"]["advisoryText"] == MESSAGES["es"]["face_default"]

        second = client.post("/api/analyze", json=body).json()
        assert second["cached"] is True
        assert second["analysis"] == data["analysis"]

    def test_locale_is_part_of_cache_key(self, client: TestClient):
        client.post("/api/analyze", json={"imageUrl": PHOTO_URL, "sessionId": "s1", "locale": "es"})

        data = client.post("/api/analyze", json={"imageUrl": PHOTO_URL, "sessionId": "s1", "locale": "en"}).json()

        assert data["cached"] is False
        assert data["analysis"]["advisoryText"] == MESSAGES["en"]["face_default"]

    def test_unreachable_image(self, client: TestClient):
        response = client.post("/api/analyze", json={"imageUrl": "https://images.example.com/gone.jpg"})

        assert response.status_code == 400
        assert response.json()["message"] == "Failed to fetch image (HTTP 404)"

    def test_missing_image_url(self, client: TestClient):
        response = client.post("/api/analyze", json={"sessionId": "s1"})

        assert response.status_code == 400
        assert response.json() == {"error": "MISSING_IMAGE_URL", "message": "imageUrl is required"}

    def test_unknown_locale_uses_default(self, client: TestClient):
        response = client.post("/api/analyze", json={"imageUrl": PHOTO_URL, "locale": "fr"})

        assert response.status_code == 200
        assert response.json()["analysis"]["advisoryText"] == MESSAGES["es"]["face_default"]

    def test_rate_limit(self, client: TestClient, stylist):
        stylist.limiter = InMemoryRateLimiter(limit=1, window_seconds=60)
        body = {"imageUrl": PHOTO_URL, "sessionId": "s1"}

        assert client.post("/api/analyze", json=body).status_code == 200
        response = client.post("/api/analyze", json=body)

        assert response.status_code == 429
        assert response.json()["error"] == "RATE_LIMIT_EXCEEDED"
        assert int(response.headers["retry-after"]) >= 1

    def test_insufficient_credits(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings, "enforce_credits", True)
        monkeypatch.setattr(settings, "credit_cost_analysis", 20)

        response = client.post("/api/analyze", json={"imageUrl": PHOTO_URL, "sessionId": "s1"})

        assert response.status_code == 402
        assert response.json() == {
            "error": "INSUFFICIENT_CREDITS",
            "message": "Insufficient credits. Required: 20, Available: 10",
            "required": 20,
            "available": 10,
        }


class TestIterate:
    """Test edit iterations"""

    def test_iterate(self, client: TestClient, nanobanana, registry):
        body = {"originalImageUrl": PHOTO_URL, "userText": "barba stubble", "sessionId": "s1"}

        response = client.post("/api/iterate", json=body)
        assert response.status_code == 200

        data = response.json()
        assert data["editedUrl"].startswith("/uploads/edited_iter_")
        assert data["publicId"].startswith("local:edited_iter_")
        assert data["note"] == "Hecho"
        assert data["instruction"] == "barba stubble"
        assert data["cached"] is False
        assert [r.public_id for r in registry.load()] == [data["publicId"]]

        again = client.post("/api/iterate", json=body).json()
        assert again["cached"] is True
        assert again["editedUrl"] == data["editedUrl"]
        assert len(nanobanana.calls("POST", NANO_URL)) == 1

    def test_suggested_text_wins_over_user_text(self, client: TestClient, nanobanana):
        body = {
            "originalImageUrl": PHOTO_URL,
            "userText": "algo",
            "analysis": {"suggestedText": "Aplicar corte con fade y barba stubble."},
        }

        data = client.post("/api/iterate", json=body).json()

        assert data["instruction"] == "Aplicar corte con fade y barba stubble."

    def test_missing_parameters(self, client: TestClient):
        response = client.post("/api/iterate", json={"originalImageUrl": PHOTO_URL})

        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_PARAMETERS"

    def test_no_editor_is_unavailable(self, client: TestClient):
        body = {"originalImageUrl": PHOTO_URL, "userText": "pelo corto"}

        response = client.post("/api/iterate", json=body)

        assert response.status_code == 503
        assert response.json()["message"] == UNAVAILABLE_MESSAGE

    def test_moderation_blocks(self, client: TestClient, nanobanana, monkeypatch):
        monkeypatch.setattr(settings, "google_vision_api_key", "vision-key")
        nanobanana.add_json("POST", VISION_URL, {"responses": [{"faceAnnotations": []}]})

        response = client.post("/api/iterate", json={"originalImageUrl": PHOTO_URL, "userText": "pelo corto"})

        assert response.status_code == 403
        assert response.json()["error"] == "MODERATION_BLOCKED"
        assert response.json()["reason"] == "no_face"
        assert nanobanana.calls("POST", NANO_URL) == []

    def test_moderation_can_be_disabled(self, client: TestClient, nanobanana, monkeypatch):
        monkeypatch.setattr(settings, "moderation_enabled", False)
        monkeypatch.setattr(settings, "google_vision_api_key", "vision-key")

        response = client.post("/api/iterate", json={"originalImageUrl": PHOTO_URL, "userText": "pelo corto"})

        assert response.status_code == 200
        assert nanobanana.calls("POST", VISION_URL) == []

    def test_previous_image_is_deleted(self, client: TestClient, nanobanana, storage):
        previous = asyncio.run(storage.upload(b"old edit", "edited_iter_1.jpg"))
        body = {
            "originalImageUrl": PHOTO_URL,
            "userText": "pelo corto",
            "prevPublicId": previous.public_id,
        }

        response = client.post("/api/iterate", json=body)

        assert response.status_code == 200
        assert not (storage.uploads_dir / "edited_iter_1.jpg").exists()

    def test_edited_image_fetch_failure(self, client: TestClient, web, monkeypatch):
        monkeypatch.setattr(settings, "nanobanana_url", NANO_URL)
        web.add_json("POST", NANO_URL, {"editedUrl": "https://cdn.example.com/expired.png"})

        response = client.post("/api/iterate", json={"originalImageUrl": PHOTO_URL, "userText": "pelo corto"})

        assert response.status_code == 502
        assert response.json()["error"] == "failed_to_fetch_edited_image"
        assert "404" in response.json()["detail"]

    def test_edited_image_upload_failure(self, client: TestClient, nanobanana, storage, monkeypatch):
        async def failing_upload(data, filename):
            raise CloudinaryError("Upload failed: 500")

        monkeypatch.setattr(storage, "upload", failing_upload)

        response = client.post("/api/iterate", json={"originalImageUrl": PHOTO_URL, "userText": "pelo corto"})

        assert response.status_code == 502
        assert response.json()["error"] == "failed_to_fetch_edited_image"
        assert response.json()["detail"] == "Upload failed: 500"


class TestEdit:
    """Test structured edits"""

    def test_edit(self, client: TestClient, nanobanana, registry):
        response = client.post("/api/edit", json=EDIT_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["editedUrl"].startswith("/uploads/edited_")
        assert data["note"] == "Hecho"
        assert data["credits"] == 999
        assert len(registry.load()) == 1

    def test_edit_charges_credits(self, client: TestClient, nanobanana, monkeypatch):
        monkeypatch.setattr(settings, "enforce_credits", True)
        monkeypatch.setattr(settings, "credit_cost_generation", 3)

        data = client.post("/api/edit", json=EDIT_BODY).json()

        assert data["credits"] == 7

    def test_edit_without_credits(self, client: TestClient, nanobanana, monkeypatch):
        monkeypatch.setattr(settings, "enforce_credits", True)
        monkeypatch.setattr(settings, "credit_cost_generation", 11)

        response = client.post("/api/edit", json=EDIT_BODY)

        assert response.status_code == 402
        assert response.json() == {"error": "insufficient_credits", "message": "Insufficient credits", "remaining": 10}

    def test_edit_failure(self, client: TestClient):
        response = client.post("/api/edit", json=EDIT_BODY)

        assert response.status_code == 500
        assert response.json()["error"] == "edit_failed"
        assert response.json()["note"] == UNAVAILABLE_MESSAGE

    def test_edit_requires_intent(self, client: TestClient):
        response = client.post("/api/edit", json={"imageUrl": PHOTO_URL, "sessionId": "s1"})

        assert response.status_code == 422


class TestImageUtilities:
    """Test moderation, metadata, resize and cleanup endpoints"""

    def test_moderate(self, client: TestClient):
        response = client.post("/api/moderate", json={"imageUrl": PHOTO_URL})

        assert response.json() == {"ok": True, "reason": None}

    def test_image_metadata(self, client: TestClient):
        response = client.post("/api/image-metadata", json={"imageUrl": PHOTO_URL})

        assert response.status_code == 200
        assert response.json() == {"width": 512, "height": 512, "format": "JPEG"}

    def test_image_metadata_unreachable(self, client: TestClient):
        response = client.post("/api/image-metadata", json={"imageUrl": "https://images.example.com/gone.jpg"})

        assert response.status_code == 502

    def test_resize_is_cached(self, client: TestClient, web):
        body = {"imageUrl": PHOTO_URL, "targetWidth": 256, "targetHeight": 256}

        first = client.post("/api/resize-image", json=body)
        second = client.post("/api/resize-image", json=body)

        assert first.status_code == 200
        assert first.headers["content-type"] == "image/jpeg"
        assert first.content == second.content
        assert len(web.calls("GET", PHOTO_URL)) == 1

    def test_resize_rejects_bad_size(self, client: TestClient):
        response = client.post("/api/resize-image", json={"imageUrl": PHOTO_URL, "targetWidth": 0, "targetHeight": 10})

        assert response.status_code == 422

    def test_cleanup(self, client: TestClient, storage, registry):
        stored = asyncio.run(storage.upload(b"x", "edited_9.jpg"))
        asyncio.run(registry.append(RegistryRecord(public_id=stored.public_id, url=stored.url)))

        response = client.post("/api/cleanup", json={"publicId": stored.public_id})

        assert response.json() == {"ok": True}
        assert not (storage.uploads_dir / "edited_9.jpg").exists()
        assert registry.load() == []

    def test_cleanup_without_id(self, client: TestClient):
        assert client.post("/api/cleanup", json={}).json() == {"ok": True}


class TestCreditsAndMetrics:
    """Test the credits and metrics endpoints"""

    def test_balance(self, client: TestClient):
        data = client.get("/api/credits/s1").json()

        assert data == {"ok": True, "sessionId": "s1", "remaining": 10}

    def test_consume(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings, "enforce_credits", True)
        monkeypatch.setattr(settings, "credit_cost_generation", 4)

        first = client.post("/api/credits/consume", json={"sessionId": "s1", "action": "generate"}).json()
        client.post("/api/credits/consume", json={"sessionId": "s1"})
        third = client.post("/api/credits/consume", json={"sessionId": "s1"}).json()

        assert first == {"ok": True, "sessionId": "s1", "remaining": 6}
        assert third == {"ok": False, "sessionId": "s1", "remaining": 2}

    def test_consume_in_free_mode(self, client: TestClient):
        data = client.post("/api/credits/consume", json={"sessionId": "s1"}).json()

        assert data["remaining"] == 999

    def test_metrics(self, client: TestClient):
        client.post("/api/metrics", json={"event": "slider.used", "position": 0.4})
        client.post("/api/metrics", json={"event": "slider.used"})
        client.post("/api/metrics", json={})

        data = client.get("/api/metrics").json()

        assert data == {"ok": True, "data": {"slider.used": 2, "unknown": 1}}


class TestAdmin:
    """Test registry admin and diagnostics"""

    def test_registry_list_and_delete(self, client: TestClient, nanobanana):
        edited = client.post("/api/edit", json=EDIT_BODY).json()

        listing = client.get("/api/admin/registry").json()
        assert listing["ok"] is True
        assert [r["publicId"] for r in listing["data"]] == [edited["publicId"]]
        assert listing["data"][0]["sessionId"] == "s1"

        response = client.request("DELETE", "/api/admin/registry", json={"publicId": edited["publicId"]})
        assert response.json() == {"ok": True, "removed": edited["publicId"]}
        assert client.get("/api/admin/registry").json()["data"] == []

    def test_registry_delete_requires_id(self, client: TestClient):
        response = client.request("DELETE", "/api/admin/registry", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "missing publicId"

    def test_debug_env(self, client: TestClient, monkeypatch):
        assert not any(client.get("/api/debug/env").json().values())

        monkeypatch.setattr(settings, "gemini_api_key", "secret")
        data = client.get("/api/debug/env").json()

        assert data["geminiApiKeyPresent"] is True
        assert data["googleVisionApiKeyPresent"] is True
        assert data["cloudinaryConfigured"] is False
        assert "secret" not in str(data)

    def test_cache_stats(self, client: TestClient):
        client.post("/api/analyze", json={"imageUrl": PHOTO_URL, "sessionId": "s1"})

        assert client.get("/api/cache/stats").json() == {"ok": True, "data": {"type": "in-memory", "size": 1}}

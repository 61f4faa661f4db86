"""
Test configuration and fixtures for the AI stylist service.
This centralizes all test setup, making individual tests clean.

Vendor APIs never get called: outbound HTTP goes through an
httpx.MockTransport (FakeWeb) and Gemini through fake client objects.
"""

import io
import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from main import app
from stylist_app import dependencies
from stylist_app.cache.factory import CacheFactory
from stylist_app.cache.service import CacheService
from stylist_app.cache.strategies import InMemoryCache
from stylist_app.config import settings
from stylist_app.credits.factory import CreditStoreFactory
from stylist_app.credits.service import CreditService
from stylist_app.credits.strategies import InMemoryCreditStore
from stylist_app.observability.metrics import metrics
from stylist_app.ratelimit.factory import RateLimiterFactory
from stylist_app.ratelimit.strategies import InMemoryRateLimiter
from stylist_app.services.gemini import VisionAnalyzer
from stylist_app.services.nanobanana import ImageEditorClient
from stylist_app.services.stylist_service import StylistService
from stylist_app.storage.factory import StorageFactory
from stylist_app.storage.registry import GeneratedImageRegistry
from stylist_app.storage.strategies import LocalStorage

PHOTO_URL = "https://images.example.com/photo.jpg"
EDITED_URL = "https://cdn.example.com/edited.png"
VISION_URL = "https://vision.googleapis.com/v1/images:annotate"


def make_jpeg(width: int = 512, height: int = 512, color=(120, 90, 60)) -> bytes:
    """Encode a solid-colour JPEG"""
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="JPEG")
    return out.getvalue()


async def no_sleep(_delay: float) -> None:
    return None


class FakeWeb:
    """
    Programmable stand-in for every remote host the service talks to.

    Routes are keyed by (method, scheme://host/path); query strings are
    ignored. A route holds a list of responses that are served in order,
    the last one repeating.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def _key(self, method: str, url: str):
        parsed = httpx.URL(url)
        return method.upper(), f"{parsed.scheme}://{parsed.host}{parsed.path}"

    def add(self, method: str, url: str, *responses):
        self.routes[self._key(method, url)] = list(responses)

    def add_image(self, url: str, data: bytes = None, content_type: str = "image/jpeg"):
        body = data if data is not None else make_jpeg()
        self.add("GET", url, (200, body, {"content-type": content_type}))

    def add_json(self, method: str, url: str, payload, status: int = 200):
        self.add(method, url, (status, payload, {}))

    def calls(self, method: str, url: str):
        key = self._key(method, url)
        return [r for r in self.requests if self._key(r.method, str(r.url)) == key]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = self._key(request.method, str(request.url))
        responses = self.routes.get(key)
        if not responses:
            return httpx.Response(404, json={"error": "not found"})

        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        status, body, headers = response
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body, headers=headers)
        return httpx.Response(status, content=body, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeModels:
    """Replaces genai.Client().models"""

    def __init__(self, text=None, image: bytes = None, error: Exception = None):
        self.text = text
        self.image = image
        self.error = error
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        parts = []
        if self.image is not None:
            parts.append(SimpleNamespace(inline_data=SimpleNamespace(data=self.image, mime_type="image/png")))
        return SimpleNamespace(
            text=self.text,
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
        )


class FakeGenaiClient:
    def __init__(self, text=None, image: bytes = None, error: Exception = None):
        self.models = FakeModels(text=text, image=image, error=error)

    @classmethod
    def returning_json(cls, payload: dict):
        return cls(text=json.dumps(payload))


class FakeRedis:
    """Dict-backed subset of redis.Redis (values stored as bytes)"""

    def __init__(self, fail: bool = False):
        self.store = {}
        self.expirations = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise ConnectionError("redis is down")

    def get(self, key):
        self._check()
        return self.store.get(key)

    def set(self, key, value):
        self._check()
        self.store[key] = str(value).encode("utf-8")
        return True

    def setex(self, key, ttl, value):
        self.set(key, value)
        self.expirations[key] = ttl
        return True

    def delete(self, key):
        self._check()
        return 1 if self.store.pop(key, None) is not None else 0

    def exists(self, key):
        self._check()
        return 1 if key in self.store else 0

    def incr(self, key):
        self._check()
        value = int(self.store.get(key, b"0")) + 1
        self.store[key] = str(value).encode("utf-8")
        return value

    def expire(self, key, seconds):
        self._check()
        self.expirations[key] = seconds
        return True


class FakeClock:
    """Manually advanced time source"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def read_events(phase: str = None):
    """Parsed events from the current test's event log"""
    from stylist_app.observability.logger import event_logger

    events = event_logger.read_logs(limit=10000)
    if phase is None:
        return events
    return [e for e in events if e.get("phase") == phase]


def _reset_singletons():
    for factory in (CacheFactory, RateLimiterFactory, CreditStoreFactory, StorageFactory):
        factory.clear_instance()
    for provider in (
        dependencies.get_cache,
        dependencies.get_rate_limiter,
        dependencies.get_credit_store,
        dependencies.get_storage,
        dependencies.get_registry,
        dependencies.get_analyzer,
    ):
        provider.cache_clear()
    metrics.reset()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """
    Point every file path at a temp dir and switch vendors off.
    Tests opt in to a vendor by setting its key on `settings`.
    """
    overrides = {
        "log_dir": str(tmp_path / "logs"),
        "uploads_dir": str(tmp_path / "uploads"),
        "resize_cache_dir": str(tmp_path / "uploads" / "resize-cache"),
        "registry_path": str(tmp_path / "data" / "generated_images.json"),
        "gemini_api_key": "",
        "gemini_rest_url": "",
        "nanobanana_url": "",
        "nanobanana_api_key": "",
        "google_vision_api_key": "",
        "cloudinary_url": "",
        "cloudinary_cloud_name": "",
        "cloudinary_api_key": "",
        "cloudinary_api_secret": "",
        "betterstack_log_endpoint": None,
        "betterstack_token": None,
        "cache_enabled": True,
        "cache_backend": "memory",
        "rate_limit_enabled": True,
        "rate_limit_backend": "memory",
        "rate_limit_per_minute": 10,
        "credits_backend": "memory",
        "enforce_credits": False,
        "starting_credits": 10,
        "credit_cost_analysis": 0,
        "credit_cost_generation": 0,
        "moderation_enabled": True,
        "watermark_enabled": True,
        "privacy_mode": False,
        "default_locale": "es",
        "analysis_mode": "face",
        "base_url": "http://testserver",
        "ai_max_retries": 2,
        "ai_retry_initial_delay": 0.0,
    }
    for name, value in overrides.items():
        monkeypatch.setattr(settings, name, value)

    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def web():
    """Fake remote hosts with the user's photo already published"""
    fake = FakeWeb()
    fake.add_image(PHOTO_URL)
    return fake


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "uploads"))


@pytest.fixture
def registry():
    return GeneratedImageRegistry(settings.registry_path)


@pytest.fixture
def credit_service():
    return CreditService(InMemoryCreditStore())


@pytest.fixture
def cache_service():
    return CacheService(InMemoryCache())


@pytest.fixture
def stylist(web, storage, registry, credit_service, cache_service):
    """StylistService wired to in-memory strategies and the fake web"""
    return StylistService(
        storage=storage,
        cache=cache_service,
        limiter=InMemoryRateLimiter(settings.rate_limit_per_minute, settings.rate_limit_window_seconds),
        credits=credit_service,
        registry=registry,
        analyzer=VisionAnalyzer(transport=web.transport),
        editor=ImageEditorClient(storage, transport=web.transport, sleep=no_sleep),
        transport=web.transport,
    )


@pytest.fixture(scope="function")
def client(stylist, storage, registry, credit_service, cache_service):
    """
    Create a test client with the service dependencies overridden.
    This is the main fixture that API tests will use.
    """
    app.dependency_overrides[dependencies.get_stylist_service] = lambda: stylist
    app.dependency_overrides[dependencies.get_storage] = lambda: storage
    app.dependency_overrides[dependencies.get_registry] = lambda: registry
    app.dependency_overrides[dependencies.get_credit_service] = lambda: credit_service
    app.dependency_overrides[dependencies.get_cache_service] = lambda: cache_service

    # Create test client
    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()

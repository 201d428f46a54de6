"""
Pytest configuration and fixtures.
"""

import asyncio
import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from replicate.helpers import FileOutput

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "testing"
os.environ["DEBUG"] = "true"
os.environ["GOOGLE_API_KEY"] = ""
os.environ["REPLICATE_API_TOKEN"] = ""

from services.operation_poller import PollerConfig  # noqa: E402
from services.orchestrator import GenerationService  # noqa: E402
from services.providers.base import ProviderFamily  # noqa: E402
from services.providers.google import ImagenAdapter, VeoAdapter  # noqa: E402
from services.providers.replicate import (  # noqa: E402
    ReplicateImageAdapter,
    ReplicateUpscaleAdapter,
)

GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com"
TEST_API_KEY = "test-google-key"


# ============ Polling ============


class FakeScheduler:
    """Scheduler that never sleeps and records every requested wait."""

    def __init__(self, cancel_on_wait: int | None = None):
        self.waits: list[float] = []
        self._cancel_on_wait = cancel_on_wait

    async def wait(self, seconds: float, cancel_event: asyncio.Event | None = None) -> bool:
        self.waits.append(seconds)
        if cancel_event is not None and self._cancel_on_wait == len(self.waits):
            cancel_event.set()
        return cancel_event is not None and cancel_event.is_set()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


# ============ Provider Mocks ============


def sdk_file_output(url: str) -> FileOutput:
    """A real replicate SDK file output; its url is a plain string attribute."""
    return FileOutput(url, MagicMock())


@pytest.fixture
def mock_replicate_client() -> MagicMock:
    """Replicate client whose async_run returns one SDK file output."""
    client = MagicMock()
    client.async_run = AsyncMock(return_value=[sdk_file_output("https://x/1.webp")])
    return client


class GoogleRoutes:
    """
    Scripted responses for the Google REST API.

    ``operations`` is consumed one payload per status poll.
    """

    def __init__(self):
        self.predict_response: tuple[int, Any] = (200, {"predictions": []})
        self.submit_response: tuple[int, Any] = (200, {"name": "operations/op-123"})
        self.operations: list[dict] = []
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith(":predict"):
            status, body = self.predict_response
        elif path.endswith(":predictLongRunning"):
            status, body = self.submit_response
        elif "/operations/" in path:
            status, body = 200, self.operations.pop(0)
        else:
            status, body = 404, {"error": {"message": f"unknown path {path}"}}
        return httpx.Response(status, json=body)

    @property
    def poll_count(self) -> int:
        return sum(1 for r in self.requests if "/operations/" in r.url.path)


@pytest.fixture
def google_routes() -> GoogleRoutes:
    return GoogleRoutes()


@pytest.fixture
def google_client(google_routes: GoogleRoutes) -> httpx.AsyncClient:
    """httpx client backed by the scripted Google routes."""
    return httpx.AsyncClient(
        transport=httpx.MockTransport(google_routes.handler),
        base_url=GOOGLE_BASE_URL,
        headers={"x-goog-api-key": TEST_API_KEY},
    )


# ============ Service ============


@pytest.fixture
def make_service(
    mock_replicate_client: MagicMock,
    google_client: httpx.AsyncClient,
    fake_scheduler: FakeScheduler,
) -> Callable[..., GenerationService]:
    """Factory for a GenerationService wired to mocked providers."""

    def _make(
        authenticated_hosts: tuple[str, ...] = ("generativelanguage.googleapis.com",),
        max_attempts: int = 60,
        enhancer: Any = None,
    ) -> GenerationService:
        adapters = {
            ProviderFamily.SYNC_IMAGE: ReplicateImageAdapter(mock_replicate_client),
            ProviderFamily.IMAGE_EDIT: ImagenAdapter(google_client, TEST_API_KEY),
            ProviderFamily.UPSCALE: ReplicateUpscaleAdapter(mock_replicate_client),
            ProviderFamily.LONG_RUNNING_VIDEO: VeoAdapter(
                google_client, TEST_API_KEY, authenticated_hosts=authenticated_hosts
            ),
        }
        return GenerationService(
            adapters,
            poller_config=PollerConfig(interval=3.0, max_attempts=max_attempts),
            scheduler=fake_scheduler,
            enhancer=enhancer,
            upscale_model="upscale",
        )

    return _make


@pytest.fixture
def service(make_service) -> GenerationService:
    return make_service()


# ============ App Fixtures ============


@pytest.fixture
def app():
    from api.main import app

    app.state.rate_limiter.reset()
    yield app
    app.dependency_overrides.clear()
    app.state.rate_limiter.reset()


@pytest.fixture
def client(app, service) -> TestClient:
    """Synchronous test client using the mocked GenerationService."""
    from api.dependencies import get_generation_service

    app.dependency_overrides[get_generation_service] = lambda: service
    return TestClient(app)

"""
Unit tests for the Google Imagen and Veo adapters.

Requests go through httpx.MockTransport, so the real request/response
handling of the adapters is exercised.
"""

import json

import httpx
import pytest

from core.exceptions import (
    ProviderError,
    ProviderErrorKind,
    SafetyRejectedError,
    ValidationError,
)
from services.providers.base import (
    GenerationRequest,
    OperationHandle,
    ProviderFamily,
    ProviderTarget,
    QualityTier,
)
from services.providers.google import ImagenAdapter, VeoAdapter

BASE_URL = "https://generativelanguage.googleapis.com"

IMAGEN_TARGET = ProviderTarget(
    family=ProviderFamily.IMAGE_EDIT,
    provider="google",
    endpoint_model="models/imagen-4.0-generate-001",
)
VEO_TARGET = ProviderTarget(
    family=ProviderFamily.LONG_RUNNING_VIDEO,
    provider="google",
    endpoint_model="models/veo-2.0-generate-001",
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)


def _responder(status: int, body, captured: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=body)

    return handler


# ============ Imagen ============


class TestImagenAdapter:
    async def test_predict_request_shape(self):
        captured = []
        adapter = ImagenAdapter(
            _client(_responder(200, {"predictions": [{"bytesBase64Encoded": "AAAA"}]}, captured)),
            "key",
        )
        request = GenerationRequest(
            prompt="a red cube",
            model_id="image-edit-standard",
            aspect_ratio="3:2",
            output_count=2,
        )

        data = await adapter.invoke(request, IMAGEN_TARGET)

        assert data["predictions"][0]["bytesBase64Encoded"] == "AAAA"
        sent = captured[0]
        assert sent.url.path == "/v1beta/models/imagen-4.0-generate-001:predict"
        body = json.loads(sent.content)
        assert body["instances"] == [{"prompt": "a red cube"}]
        assert body["parameters"] == {"sampleCount": 2, "aspectRatio": "4:3"}

    @pytest.mark.parametrize(
        "requested,sent",
        [("3:2", "4:3"), ("4:5", "3:4"), ("16:9", "16:9"), ("9:16", "9:16"), ("21:9", "1:1")],
    )
    async def test_aspect_ratio_mapping(self, requested, sent):
        adapter = ImagenAdapter(None, "key")
        request = GenerationRequest(prompt="p", model_id="imagen", aspect_ratio=requested)

        body = await adapter.build_body(request)

        assert body["parameters"]["aspectRatio"] == sent

    async def test_configurable_fallback(self):
        adapter = ImagenAdapter(None, "key", aspect_ratio_fallback="16:9")
        request = GenerationRequest(prompt="p", model_id="imagen", aspect_ratio="21:9")

        body = await adapter.build_body(request)

        assert body["parameters"]["aspectRatio"] == "16:9"

    async def test_data_url_prefix_stripped(self):
        adapter = ImagenAdapter(None, "key")
        request = GenerationRequest(
            prompt="p", model_id="imagen", input_image="data:image/jpeg;base64,QUJD"
        )

        body = await adapter.build_body(request)

        assert body["instances"][0]["image"] == {
            "bytesBase64Encoded": "QUJD",
            "mimeType": "image/jpeg",
        }

    async def test_bare_base64_passed_through(self):
        adapter = ImagenAdapter(None, "key")
        request = GenerationRequest(prompt="p", model_id="imagen", input_image="QUJD")

        body = await adapter.build_body(request)

        assert body["instances"][0]["image"] == {"bytesBase64Encoded": "QUJD"}

    async def test_safety_filtered_prediction(self):
        adapter = ImagenAdapter(
            _client(_responder(200, {"predictions": [{"raiFilteredReason": "blocked: minors"}]})),
            "key",
        )

        with pytest.raises(SafetyRejectedError) as exc_info:
            await adapter.invoke(GenerationRequest(prompt="p", model_id="imagen"), IMAGEN_TARGET)

        assert exc_info.value.reason == "blocked: minors"

    async def test_empty_predictions_malformed(self):
        adapter = ImagenAdapter(_client(_responder(200, {"predictions": []})), "key")

        with pytest.raises(ProviderError) as exc_info:
            await adapter.invoke(GenerationRequest(prompt="p", model_id="imagen"), IMAGEN_TARGET)

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED

    async def test_explicit_error_rejected(self):
        body = {"error": {"code": 400, "message": "Invalid aspect ratio"}}
        adapter = ImagenAdapter(_client(_responder(400, body)), "key")

        with pytest.raises(ProviderError) as exc_info:
            await adapter.invoke(GenerationRequest(prompt="p", model_id="imagen"), IMAGEN_TARGET)

        assert exc_info.value.kind is ProviderErrorKind.REJECTED
        assert exc_info.value.message == "Invalid aspect ratio"

    async def test_bare_5xx_is_transport(self):
        adapter = ImagenAdapter(_client(_responder(503, b"upstream down")), "key")

        with pytest.raises(ProviderError) as exc_info:
            await adapter.invoke(GenerationRequest(prompt="p", model_id="imagen"), IMAGEN_TARGET)

        assert exc_info.value.kind is ProviderErrorKind.TRANSPORT

    async def test_connection_failure_is_transport(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = ImagenAdapter(_client(handler), "key")

        with pytest.raises(ProviderError) as exc_info:
            await adapter.invoke(GenerationRequest(prompt="p", model_id="imagen"), IMAGEN_TARGET)

        assert exc_info.value.kind is ProviderErrorKind.TRANSPORT

    async def test_undecodable_body_malformed(self):
        adapter = ImagenAdapter(_client(_responder(200, b"<html>")), "key")

        with pytest.raises(ProviderError) as exc_info:
            await adapter.invoke(GenerationRequest(prompt="p", model_id="imagen"), IMAGEN_TARGET)

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED

    async def test_ultra_quality_still_predicts(self):
        adapter = ImagenAdapter(
            _client(_responder(200, {"predictions": [{"bytesBase64Encoded": "AAAA"}]})), "key"
        )
        request = GenerationRequest(prompt="p", model_id="imagen", quality_tier=QualityTier.ULTRA)

        data = await adapter.invoke(request, IMAGEN_TARGET)

        assert len(data["predictions"]) == 1

    def test_availability(self):
        assert ImagenAdapter(None, "key").is_available is False
        assert ImagenAdapter(_client(_responder(200, {})), None).is_available is False
        assert ImagenAdapter(_client(_responder(200, {})), "key").is_available is True


# ============ Input image download ============

PUBLIC_IMAGE_URL = "http://93.184.216.34/cat.png"


def _fetcher(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestInputImageDownload:
    async def test_public_url_inlined(self):
        captured = []
        fetcher = _fetcher(_responder(200, b"PNG", captured))
        adapter = ImagenAdapter(None, "key", image_fetch_client=fetcher)
        request = GenerationRequest(prompt="p", model_id="imagen", input_image=PUBLIC_IMAGE_URL)

        body = await adapter.build_body(request)

        assert body["instances"][0]["image"] == {
            "bytesBase64Encoded": "UE5H",
            "mimeType": "image/png",
        }
        assert str(captured[0].url) == PUBLIC_IMAGE_URL

    @pytest.mark.parametrize(
        "url",
        [
            "http://169.254.169.254/latest/meta-data/",
            "http://127.0.0.1:8080/admin",
            "http://10.0.0.5/image.png",
            "http://192.168.1.20/image.png",
            "http://[::1]/image.png",
            "http://localhost/image.png",
        ],
    )
    async def test_non_public_hosts_rejected(self, url):
        captured = []
        fetcher = _fetcher(_responder(200, b"PNG", captured))
        adapter = ImagenAdapter(None, "key", image_fetch_client=fetcher)
        request = GenerationRequest(prompt="p", model_id="imagen", input_image=url)

        with pytest.raises(ValidationError):
            await adapter.build_body(request)

        assert captured == []

    async def test_declared_size_over_cap_rejected(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b"x" * 64))
        adapter = ImagenAdapter(None, "key", max_input_image_bytes=8, image_fetch_client=fetcher)
        request = GenerationRequest(prompt="p", model_id="imagen", input_image=PUBLIC_IMAGE_URL)

        with pytest.raises(ValidationError) as exc_info:
            await adapter.build_body(request)

        assert exc_info.value.details["max_bytes"] == 8

    async def test_streamed_size_over_cap_rejected(self):
        async def chunks():
            for _ in range(8):
                yield b"x" * 4

        # No content-length: the cap applies while reading
        fetcher = _fetcher(lambda request: httpx.Response(200, content=chunks()))
        adapter = VeoAdapter(None, "key", max_input_image_bytes=16, image_fetch_client=fetcher)
        request = GenerationRequest(prompt="p", model_id="veo", input_image=PUBLIC_IMAGE_URL)

        with pytest.raises(ValidationError):
            await adapter.build_body(request)

    async def test_redirect_not_followed(self):
        fetcher = _fetcher(
            lambda request: httpx.Response(
                302, headers={"location": "http://169.254.169.254/latest/meta-data/"}
            )
        )
        adapter = ImagenAdapter(None, "key", image_fetch_client=fetcher)
        request = GenerationRequest(prompt="p", model_id="imagen", input_image=PUBLIC_IMAGE_URL)

        with pytest.raises(ValidationError):
            await adapter.build_body(request)


# ============ Veo ============


class TestVeoAdapter:
    async def test_submit_returns_handle(self):
        captured = []
        adapter = VeoAdapter(
            _client(_responder(200, {"name": "models/veo/operations/abc"}, captured)), "key"
        )
        request = GenerationRequest(
            prompt="a drone shot", model_id="video-standard", aspect_ratio="16:9"
        )

        handle = await adapter.submit(request, VEO_TARGET)

        assert isinstance(handle, OperationHandle)
        assert handle.id == "models/veo/operations/abc"
        assert handle.attempts == 0
        sent = captured[0]
        assert sent.url.path == "/v1beta/models/veo-2.0-generate-001:predictLongRunning"
        body = json.loads(sent.content)
        assert body["parameters"] == {"aspectRatio": "16:9"}

    async def test_invoke_only_submits(self):
        captured = []
        adapter = VeoAdapter(_client(_responder(200, {"name": "operations/x"}, captured)), "key")

        await adapter.invoke(GenerationRequest(prompt="p", model_id="veo"), VEO_TARGET)

        assert len(captured) == 1

    async def test_unsupported_ratio_omitted(self):
        adapter = VeoAdapter(None, "key")

        body = await adapter.build_body(
            GenerationRequest(prompt="p", model_id="veo", aspect_ratio="3:2")
        )

        assert body["parameters"] == {}

    async def test_missing_operation_name_malformed(self):
        adapter = VeoAdapter(_client(_responder(200, {"metadata": {}})), "key")

        with pytest.raises(ProviderError) as exc_info:
            await adapter.submit(GenerationRequest(prompt="p", model_id="veo"), VEO_TARGET)

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED

    async def test_fetch_operation(self):
        captured = []
        body = {"name": "operations/x", "done": False}
        adapter = VeoAdapter(_client(_responder(200, body, captured)), "key")

        payload = await adapter.fetch_operation("operations/x")

        assert payload["done"] is False
        assert captured[0].method == "GET"
        assert captured[0].url.path == "/v1beta/operations/x"

    @pytest.mark.parametrize(
        "uri,expected",
        [
            (
                "https://generativelanguage.googleapis.com/v1beta/files/abc:download?alt=media",
                "https://generativelanguage.googleapis.com/v1beta/files/abc:download?alt=media&key=secret",
            ),
            (
                "https://generativelanguage.googleapis.com/v1beta/files/abc",
                "https://generativelanguage.googleapis.com/v1beta/files/abc?key=secret",
            ),
            (
                "https://generativelanguage.googleapis.com/files/abc?key=already",
                "https://generativelanguage.googleapis.com/files/abc?key=already",
            ),
            ("https://storage.example.com/clip.mp4", "https://storage.example.com/clip.mp4"),
        ],
    )
    def test_sign_url(self, uri, expected):
        adapter = VeoAdapter(None, "secret")

        assert adapter.sign_url(uri) == expected

    def test_sign_url_custom_hosts(self):
        adapter = VeoAdapter(None, "secret", authenticated_hosts=["v"])

        assert adapter.sign_url("https://v/clip.mp4") == "https://v/clip.mp4?key=secret"

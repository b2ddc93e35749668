"""Tests for the fetch, AI and storage integrations with their transports faked."""

import json
from types import SimpleNamespace

import httpx
import pytest

from app.core.config import settings
from app.core.exceptions import FetchError, RegenerationError, StorageUploadError, ValuationServiceError
from app.services.gemini_appraisal import GeminiAppraisalService, REGENERATION_PROMPT
from app.services.image_fetch import FetchedImage, ImageFetcher
from app.services.storage import StorageService, build_result_path

from tests.conftest import TRUSTED_URL, TRUSTED_URL_2

IMAGES = [FetchedImage(url=TRUSTED_URL, data=b"\xff\xd8jpeg", mime_type="image/jpeg")]

VALUATION = {
    "itemName": "First Edition Novel",
    "author": "F. Scott Fitzgerald",
    "era": "1925",
    "category": "Book",
    "description": "Original cloth binding.",
    "priceRange": {"low": 1500, "high": 4000},
    "currency": "USD",
    "reasoning": "Auction records for comparable copies.",
    "references": [{"title": "AbeBooks", "url": "https://www.abebooks.com/"}],
}


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error:
            raise self.error
        return self.response


def _service(response=None, error=None):
    models = FakeModels(response, error)
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return GeminiAppraisalService(client=client), models


def _image_response(parts, finish_reason="STOP"):
    return SimpleNamespace(candidates=[
        SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason=finish_reason)
    ])


class TestGeminiAppraise:
    """Test structured valuation parsing."""

    @pytest.mark.asyncio
    async def test_parses_structured_response(self):
        service, models = _service(SimpleNamespace(text=json.dumps(VALUATION)))

        result = await service.appraise(IMAGES, "Fair")

        assert result.item_name == "First Edition Novel"
        assert result.price_range.low == 1500
        assert result.references[0].title == "AbeBooks"
        call = models.calls[0]
        assert call["model"] == settings.GEMINI_VALUATION_MODEL
        assert call["contents"][-1] == "User-specified Condition: Fair"
        assert call["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_empty_text(self):
        service, _ = _service(SimpleNamespace(text="  "))
        with pytest.raises(ValuationServiceError) as exc_info:
            await service.appraise(IMAGES, "Good")
        assert exc_info.value.message == "No text response from AI"

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        service, _ = _service(SimpleNamespace(text="{not json"))
        with pytest.raises(ValuationServiceError):
            await service.appraise(IMAGES, "Good")

    @pytest.mark.asyncio
    async def test_inverted_price_range(self):
        payload = dict(VALUATION, priceRange={"low": 500, "high": 100})
        service, _ = _service(SimpleNamespace(text=json.dumps(payload)))
        with pytest.raises(ValuationServiceError):
            await service.appraise(IMAGES, "Good")

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        service, _ = _service(error=ConnectionError("reset by peer"))
        with pytest.raises(ValuationServiceError) as exc_info:
            await service.appraise(IMAGES, "Good")
        assert "reset by peer" in exc_info.value.message


class TestGeminiRegenerate:
    """Test image regeneration decoding."""

    @pytest.mark.asyncio
    async def test_returns_first_inline_image(self):
        parts = [
            SimpleNamespace(inline_data=None, text="Here is the image"),
            SimpleNamespace(inline_data=SimpleNamespace(data=b"\x89PNG", mime_type="image/png")),
        ]
        service, models = _service(_image_response(parts))

        image = await service.regenerate_image(IMAGES)

        assert image.data == b"\x89PNG"
        assert image.extension == "png"
        assert models.calls[0]["contents"][-1] == REGENERATION_PROMPT
        assert models.calls[0]["model"] == settings.GEMINI_IMAGE_MODEL

    @pytest.mark.asyncio
    async def test_no_image_part(self):
        service, _ = _service(_image_response([SimpleNamespace(inline_data=None)], finish_reason="SAFETY"))
        with pytest.raises(RegenerationError) as exc_info:
            await service.regenerate_image(IMAGES)
        assert exc_info.value.message == "No image generated. Finish Reason: SAFETY"
        assert not exc_info.value.fatal

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        service, _ = _service(error=TimeoutError())
        with pytest.raises(RegenerationError):
            await service.regenerate_image(IMAGES)


class TestImageFetcher:
    """Test parallel image download."""

    @pytest.mark.asyncio
    async def test_fetches_all_in_order(self):
        def handler(request):
            name = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, content=name.encode(), headers={"content-type": "image/webp; q=1"})

        fetcher = ImageFetcher(transport=httpx.MockTransport(handler))
        images = await fetcher.fetch_all([TRUSTED_URL, TRUSTED_URL_2])

        assert [image.url for image in images] == [TRUSTED_URL, TRUSTED_URL_2]
        assert images[0].data == b"front.jpg"
        assert images[0].mime_type == "image/webp"

    @pytest.mark.asyncio
    async def test_non_success_status_fails_batch(self):
        def handler(request):
            if request.url.path.endswith("back.jpg"):
                return httpx.Response(404)
            return httpx.Response(200, content=b"ok")

        fetcher = ImageFetcher(transport=httpx.MockTransport(handler))
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_all([TRUSTED_URL, TRUSTED_URL_2])
        assert exc_info.value.message == f"Failed to fetch image: {TRUSTED_URL_2}"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        fetcher = ImageFetcher(transport=httpx.MockTransport(handler))
        with pytest.raises(FetchError):
            await fetcher.fetch_all([TRUSTED_URL])

    @pytest.mark.asyncio
    async def test_missing_content_type_defaults_to_jpeg(self):
        fetcher = ImageFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"x")))
        images = await fetcher.fetch_all([TRUSTED_URL])
        assert images[0].mime_type == "image/jpeg"


class TestStorage:
    """Test path layout and the local backend."""

    def test_result_path_layout(self):
        path = build_result_path("user-9", "webp")
        prefix, name = path.rsplit("/", 1)
        assert prefix == "user-9/results"
        assert name.startswith("result-")
        assert name.endswith(".webp")
        assert build_result_path("user-9") != build_result_path("user-9")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            StorageService(backend="ftp")

    @pytest.mark.asyncio
    async def test_local_upload_and_read_back(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path))
        monkeypatch.setattr(settings, "API_BASE_URL", "http://api.test/")
        storage = StorageService(backend="local")

        url = await storage.upload_bytes(b"png-bytes", "user-1/results/result-1-abc.png")

        assert url == "http://api.test/files/user-1/results/result-1-abc.png"
        assert (tmp_path / "user-1" / "results" / "result-1-abc.png").read_bytes() == b"png-bytes"
        assert await storage.get_file("user-1/results/result-1-abc.png") == b"png-bytes"

    @pytest.mark.asyncio
    async def test_local_read_rejects_traversal(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path / "uploads"))
        storage = StorageService(backend="local")

        with pytest.raises(FileNotFoundError):
            await storage.get_file("../secrets.txt")

    @pytest.mark.asyncio
    async def test_backend_failure_is_wrapped(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path))
        storage = StorageService(backend="local")
        monkeypatch.setattr(storage, "_upload_local", lambda data, path, content_type: 1 / 0)

        with pytest.raises(StorageUploadError) as exc_info:
            await storage.upload_bytes(b"x", "user-1/results/r.png")
        assert not exc_info.value.fatal

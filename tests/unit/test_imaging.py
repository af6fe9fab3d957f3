"""Unit tests for image decoding and downloading."""
import asyncio

import httpx
import pytest
from PIL import Image

from product_studio.config import settings
from product_studio.core.errors import ImageDecodeError
from product_studio.core.imaging import ImageRole, decode_data_url, open_image, to_data_url
from product_studio.services import downloader as downloader_module
from product_studio.services.downloader import ImageDownloader

from conftest import png_bytes


class TestOpenImage:
    """Test local source decoding."""

    def test_pil_image_passes_through(self, product_image):
        assert open_image(product_image) is product_image

    def test_bytes(self, product_image):
        assert open_image(png_bytes(product_image)).size == (64, 64)

    def test_path(self, product_image, tmp_path):
        path = tmp_path / "image.png"
        product_image.save(path)

        assert open_image(path).size == (64, 64)

    def test_data_url(self, product_image):
        url = to_data_url(product_image)

        assert url.startswith("data:image/png;base64,")
        assert open_image(url).size == (64, 64)

    def test_percent_encoded_data_url(self):
        assert decode_data_url("data:text/plain,a%20b") == b"a b"

    @pytest.mark.parametrize("source", [b"", b"garbage", "data:image/png;base64,@@@", "/no/such/file.png"])
    def test_undecodable_sources(self, source):
        with pytest.raises(ImageDecodeError) as exc_info:
            open_image(source, ImageRole.BACKGROUND)

        assert exc_info.value.role == "background"

    def test_remote_urls_are_not_fetched_here(self):
        with pytest.raises(ImageDecodeError):
            open_image("https://example.com/a.png")

    def test_oversized_images_are_downscaled(self, monkeypatch):
        monkeypatch.setattr(settings, "MAX_IMAGE_SIZE", 32)
        image = open_image(png_bytes(Image.new("RGB", (128, 64))))

        assert image.size == (32, 16)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestImageDownloader:
    """Test remote downloads against a mocked transport."""

    def test_download(self, monkeypatch, product_image):
        payload = png_bytes(product_image)
        monkeypatch.setattr(downloader_module, "_client", mock_client(lambda request: httpx.Response(200, content=payload)))

        image = asyncio.run(ImageDownloader(initial_backoff=0).fetch("https://cdn.example.com/p.png"))

        assert image.size == (64, 64)

    def test_retries_then_succeeds(self, monkeypatch, product_image):
        payload = png_bytes(product_image)
        calls = []

        def handler(request):
            calls.append(request.url)
            if len(calls) < 2:
                return httpx.Response(503)
            return httpx.Response(200, content=payload)

        monkeypatch.setattr(downloader_module, "_client", mock_client(handler))
        image = asyncio.run(ImageDownloader(max_retries=3, initial_backoff=0).download("https://cdn.example.com/p.png"))

        assert image.size == (64, 64)
        assert len(calls) == 2

    def test_gives_up_with_role(self, monkeypatch):
        monkeypatch.setattr(downloader_module, "_client", mock_client(lambda request: httpx.Response(404)))

        with pytest.raises(ImageDecodeError) as exc_info:
            asyncio.run(
                ImageDownloader(max_retries=2, initial_backoff=0).download("https://x.test/bg.jpg", ImageRole.BACKGROUND)
            )

        assert exc_info.value.role == "background"
        assert "HTTP 404" in str(exc_info.value)

    def test_undecodable_payload_is_not_retried(self, monkeypatch):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(200, content=b"<html>")

        monkeypatch.setattr(downloader_module, "_client", mock_client(handler))

        with pytest.raises(ImageDecodeError) as exc_info:
            asyncio.run(ImageDownloader(max_retries=3, initial_backoff=0).download("https://x.test/page"))

        assert len(calls) == 1
        assert exc_info.value.source == "https://x.test/page"


class TestSourceRestrictions:
    """Test which local sources a downloader accepts."""

    def test_paths_allowed_by_default(self, product_image, tmp_path):
        path = tmp_path / "image.png"
        product_image.save(path)

        assert asyncio.run(ImageDownloader().fetch(str(path))).size == (64, 64)

    @pytest.mark.parametrize("as_path", [False, True])
    def test_paths_rejected_when_disabled(self, product_image, tmp_path, as_path):
        path = tmp_path / "private.png"
        product_image.save(path)
        source = path if as_path else str(path)

        with pytest.raises(ImageDecodeError) as exc_info:
            asyncio.run(ImageDownloader(allow_paths=False).fetch(source, ImageRole.BACKGROUND))

        assert exc_info.value.role == "background"

    def test_data_urls_and_images_still_accepted(self, product_image):
        downloader = ImageDownloader(allow_paths=False)

        assert asyncio.run(downloader.fetch(to_data_url(product_image))).size == (64, 64)
        assert asyncio.run(downloader.fetch(product_image)) is product_image

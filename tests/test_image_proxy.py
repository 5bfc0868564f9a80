"""
Тесты прокси изображений.

Внешние запросы подменяются через httpx.MockTransport.
"""

import functools

import httpx
import pytest

from storefront.core.config import settings
from storefront.core.exceptions import ForbiddenError, ValidationError
from storefront.services import image_proxy

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeUpstream:
    """Внешний хост: ответы по пути и журнал запросов."""

    def __init__(self):
        self.requested = []
        self.responses = {}

    def __call__(self, request):
        self.requested.append(request)
        if request.url.path == "/down.png":
            raise httpx.ConnectError("connection refused", request=request)
        response = self.responses.get(request.url.path)
        if isinstance(response, httpx.Response):
            return response
        status, content, headers = response or (200, PNG_BYTES, {"content-type": "image/png"})
        return httpx.Response(status, content=content, headers=headers)


@pytest.fixture(autouse=True)
def cdn(monkeypatch):
    monkeypatch.setattr(settings, "CDN_BASE_URL", "https://cdn.example.com/media")


@pytest.fixture
def upstream(monkeypatch):
    fake = FakeUpstream()
    monkeypatch.setattr(
        image_proxy,
        "fetch_image",
        functools.partial(image_proxy.fetch_image, transport=httpx.MockTransport(fake)),
    )
    return fake


class TestNormalizeUrl:
    def test_missing(self):
        with pytest.raises(ValidationError, match="Missing url parameter"):
            image_proxy.normalize_url(None)

    @pytest.mark.parametrize("url", ["ftp://cdn.example.com/a.png", "not a url", "https://"])
    def test_invalid(self, url):
        with pytest.raises(ValidationError):
            image_proxy.normalize_url(url)

    def test_decodes_percent_encoding(self):
        url = image_proxy.normalize_url("https%3A%2F%2Fcdn.example.com%2Fdress.jpg")

        assert url == "https://cdn.example.com/dress.jpg"

    def test_allow_list(self, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_PROXY_ALLOWED_HOSTS", "example.com, images.shop")

        assert image_proxy.normalize_url("https://cdn.example.com/a.png")
        assert image_proxy.normalize_url("https://IMAGES.SHOP/a.png")
        with pytest.raises(ForbiddenError):
            image_proxy.normalize_url("https://evil-example.com/a.png")

    def test_defaults_to_cdn_host(self):
        assert image_proxy.normalize_url("https://img.cdn.example.com/a.png")
        with pytest.raises(ForbiddenError):
            image_proxy.normalize_url("http://anything.test/a.png")

    def test_nothing_configured_rejects_every_host(self, monkeypatch):
        monkeypatch.setattr(settings, "CDN_BASE_URL", "")

        with pytest.raises(ForbiddenError):
            image_proxy.normalize_url("https://cdn.example.com/a.png")


class TestProxyEndpoint:
    def test_proxies_image(self, client, upstream):
        response = client.get("/api/v1/image", params={"url": "https://cdn.example.com/dress.png"})

        assert response.status_code == 200
        assert response.content == PNG_BYTES
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "public, max-age=31536000, immutable"
        assert response.headers["access-control-allow-origin"] == "*"
        assert upstream.requested[0].headers["accept"] == "image/*"

    def test_default_content_type(self, client, upstream):
        upstream.responses["/raw"] = (200, b"bytes", {})

        response = client.get("/api/v1/image", params={"url": "https://cdn.example.com/raw"})

        assert response.headers["content-type"] == "image/jpeg"

    def test_missing_url(self, client, upstream):
        response = client.get("/api/v1/image")

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing url parameter"
        assert upstream.requested == []

    def test_host_not_allowed(self, client, upstream):
        response = client.get("/api/v1/image", params={"url": "https://other.test/a.png"})

        assert response.status_code == 403
        assert upstream.requested == []

    def test_upstream_status_passed_through(self, client, upstream):
        upstream.responses["/gone.png"] = (404, b"", {})

        response = client.get("/api/v1/image", params={"url": "https://cdn.example.com/gone.png"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Backend error: Not Found"

    def test_network_error(self, client, upstream):
        response = client.get("/api/v1/image", params={"url": "https://cdn.example.com/down.png"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to fetch image"

    def test_declared_size_over_limit(self, client, upstream, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_PROXY_MAX_BYTES", 8)

        response = client.get("/api/v1/image", params={"url": "https://cdn.example.com/big.png"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Image is too large"

    def test_streamed_size_over_limit(self, client, upstream, monkeypatch):
        monkeypatch.setattr(settings, "IMAGE_PROXY_MAX_BYTES", 8)
        # Без Content-Length размер считается по прочитанным байтам
        upstream.responses["/chunked.png"] = httpx.Response(
            200, stream=httpx.ByteStream(PNG_BYTES * 4)
        )

        response = client.get(
            "/api/v1/image", params={"url": "https://cdn.example.com/chunked.png"}
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "Image is too large"

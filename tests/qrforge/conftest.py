"""Shared fixtures for qrforge tests."""

import base64
import io

import httpx
import pytest
from PIL import Image

from qrforge.assets import AssetResolver, ResolvedAsset
from qrforge.canvas import CanvasConfiguration
from qrforge.rendering import QrSymbolRenderer, Rasterizer
from qrforge.session import RenderSession

ASSET_HOST = "assets.test"
BACKGROUND_URL = f"https://{ASSET_HOST}/background.png"
TEXT_URL = f"https://{ASSET_HOST}/notes.txt"
MISSING_URL = f"https://{ASSET_HOST}/missing.png"
UNREACHABLE_URL = "https://nonexistent.invalid/x.png"


def make_png(width: int = 40, height: int = 20, color=(255, 0, 0, 255)) -> bytes:
    """Encode a solid-colour PNG."""
    output_stream = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(output_stream, format="png")
    return output_stream.getvalue()


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


@pytest.fixture
def png_bytes() -> bytes:
    """A 40x20 red PNG."""
    return make_png()


@pytest.fixture
def png_data_url(png_bytes) -> str:
    return to_data_url(png_bytes)


@pytest.fixture
def red_asset() -> ResolvedAsset:
    """A resolved 40x20 red asset."""
    data = make_png()
    return ResolvedAsset(
        data_url=to_data_url(data),
        mime_type="image/png",
        image=Image.new("RGBA", (40, 20), (255, 0, 0, 255)),
        source="test",
    )


@pytest.fixture
def default_config() -> CanvasConfiguration:
    return CanvasConfiguration()


class RecordingHandler:
    """httpx.MockTransport handler serving a few fixed assets."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.png = make_png(64, 32, (0, 128, 0, 255))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.url.host.endswith(".invalid"):
            raise httpx.ConnectError("Name or service not known", request=request)
        if url == BACKGROUND_URL:
            return httpx.Response(200, content=self.png, headers={"content-type": "image/png"})
        if url == TEXT_URL:
            return httpx.Response(200, content=b"just some text", headers={"content-type": "text/plain"})
        return httpx.Response(404, content=b"not found")


@pytest.fixture
def asset_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def resolver(asset_handler) -> AssetResolver:
    """Resolver whose network is served by the recording handler."""
    return AssetResolver(timeout=5.0, transport=httpx.MockTransport(asset_handler))


@pytest.fixture
def session(resolver) -> RenderSession:
    return RenderSession(
        resolver=resolver,
        symbol_renderer=QrSymbolRenderer(supersample=1),
        rasterizer=Rasterizer(),
    )

"""Asset resolution for canvas layers.

Turns a layer's declared source into a decoded, embeddable asset:

- Data URIs are decoded in place
- Local uploads (bytes, paths, binary file objects) are read fully
- Remote URLs are fetched anonymously with httpx, decoded and re-encoded
  as PNG data URIs

Resolutions are independent. A failure is raised as AssetResolutionError
for that one source; resolve_many() turns failures into per-layer
warnings so one broken image never blocks the rest of a render cycle.
"""

import asyncio
import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping, Union

import httpx
import PIL.Image

from qrforge.config import Settings, settings as default_settings
from qrforge.exceptions import AssetResolutionError

logger = logging.getLogger(__name__)

AssetSource = Union[str, bytes, bytearray, Path, BinaryIO]
"The valid source types for a layer asset"

HTTP_PROTOCOL_URL_HEADER = "http://"
HTTPS_PROTOCOL_URL_HEADER = "https://"
DATA_URL_HEADER = "data:"
SVG_MIME = "image/svg+xml"

_IMAGE_URL_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg|bmp|ico)(\?.*)?$", re.IGNORECASE)


@dataclass
class ResolvedAsset:
    """A decoded asset ready for compositing."""

    data_url: str
    mime_type: str
    image: PIL.Image.Image  # RGBA
    source: str = ""

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass
class AssetWarning:
    """A non-fatal, per-layer resolution failure."""

    layer_id: str
    source: str
    message: str

    def __str__(self) -> str:
        return f"Layer {self.layer_id}: {self.message}"


def is_valid_image_url(url: str) -> bool:
    """Check if a URL looks like an image (by extension or data URI)."""
    return bool(_IMAGE_URL_PATTERN.search(url)) or "data:image/" in url


def describe_source(source: AssetSource) -> str:
    """Short printable description of a source for messages."""
    if isinstance(source, str):
        return source if len(source) <= 80 else source[:77] + "..."
    if isinstance(source, Path):
        return str(source)
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return f"<{getattr(source, 'name', type(source).__name__)}>"


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Split a data URL into its payload and MIME type.

    Args:
        data_url: Data URL like 'data:image/png;base64,...'

    Returns:
        Tuple of (payload bytes, MIME type)

    Raises:
        ValueError: If the data URL is malformed
    """
    if not data_url.startswith(DATA_URL_HEADER):
        raise ValueError("Invalid data URL format - must start with 'data:'")
    if "," not in data_url:
        raise ValueError("Invalid data URL format - missing comma separator")

    header, encoded = data_url.split(",", 1)
    mime_part = header[len(DATA_URL_HEADER):]
    params = mime_part.split(";")
    mime_type = params[0] or "text/plain"
    if "base64" in params[1:]:
        try:
            return base64.b64decode(encoded, validate=False), mime_type
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload: {exc}") from exc
    from urllib.parse import unquote_to_bytes

    return unquote_to_bytes(encoded), mime_type


def encode_data_url(data: bytes, mime_type: str) -> str:
    """Build a base64 data URL from raw bytes."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def _looks_like_svg(data: bytes) -> bool:
    head = data[:512].lstrip().lower()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head)


def _check_pixels(width: int, height: int, max_pixels: int) -> None:
    if width * height > max_pixels:
        raise ValueError(
            f"Image of {width}x{height} pixels exceeds the limit of {max_pixels} pixels"
        )


def decode_image(
    data: bytes, mime_type: str | None = None, max_pixels: int | None = None
) -> tuple[PIL.Image.Image, str]:
    """
    Decode image bytes into an RGBA PIL image.

    SVG payloads are rasterized at their declared size. The declared size
    is checked against ``max_pixels`` before any pixels are decoded.

    Args:
        data: Encoded image bytes
        mime_type: MIME type hint
        max_pixels: Largest allowed width * height (default MAX_ASSET_PIXELS)

    Returns:
        Tuple of (RGBA image, detected MIME type)

    Raises:
        ValueError: If the payload is not a decodable image or too large
    """
    if not data:
        raise ValueError("Empty image data")
    max_pixels = default_settings.MAX_ASSET_PIXELS if max_pixels is None else max_pixels
    if mime_type == SVG_MIME or _looks_like_svg(data):
        from qrforge.rendering.markup import intrinsic_svg_size, render_svg_document

        svg = data.decode("utf-8", errors="replace")
        _check_pixels(*intrinsic_svg_size(svg), max_pixels)
        try:
            image = render_svg_document(svg)
        except Exception as exc:
            raise ValueError(f"SVG could not be rendered: {exc}") from exc
        return image, SVG_MIME
    try:
        with PIL.Image.open(io.BytesIO(data)) as opened:
            _check_pixels(opened.width, opened.height, max_pixels)
            opened.load()
            detected = PIL.Image.MIME.get(opened.format or "", mime_type or "application/octet-stream")
            return opened.convert("RGBA"), detected
    except (PIL.UnidentifiedImageError, PIL.Image.DecompressionBombError, OSError) as exc:
        raise ValueError(f"Not a decodable image: {exc}") from exc


def _png_data_url(image: PIL.Image.Image) -> str:
    output_stream = io.BytesIO()
    image.save(output_stream, format="png")
    return encode_data_url(output_stream.getvalue(), "image/png")


def _read_local(source: AssetSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, Path):
        return source.read_bytes()
    data = source.read()
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("File object must be opened in binary mode")
    return bytes(data)


async def read_file_as_data_url(file: Union[bytes, bytearray, Path, BinaryIO]) -> str:
    """
    Read a local upload fully into a data URL.

    The original bytes are kept; the MIME type is detected from the content.

    Args:
        file: Raw bytes, a path or a binary file object

    Returns:
        Data URL string

    Raises:
        AssetResolutionError: If the input is unreadable or not an image
    """
    try:
        data = _read_local(file)
        _, mime_type = decode_image(data)
    except (OSError, ValueError) as exc:
        raise AssetResolutionError(
            f"Unreadable file: {exc}", source=describe_source(file)
        ) from exc
    return encode_data_url(data, mime_type)


class AssetResolver:
    """Resolves layer sources into decoded assets.

    Remote fetches use a fresh httpx.AsyncClient per request so no cookies
    or credentials carry over between fetches, and the client is closed on
    every exit path. Successful remote results are memoized per exact URL
    for the lifetime of the resolver.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: bool = True,
        settings: Settings | None = None,
    ):
        """
        Args:
            timeout: Seconds before a remote asset counts as failed
            transport: Optional httpx transport (e.g. httpx.MockTransport)
            cache: Memoize successful remote fetches per URL
            settings: Settings to use instead of the module defaults
        """
        self._settings = settings or default_settings
        self.timeout = self._settings.ASSET_TIMEOUT if timeout is None else timeout
        self._transport = transport
        self._cache_enabled = cache
        self._cache: dict[str, ResolvedAsset] = {}

    def clear_cache(self) -> None:
        """Forget all memoized remote assets."""
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def resolve(self, source: AssetSource, *, layer_id: str | None = None) -> ResolvedAsset:
        """
        Resolve a single source.

        Args:
            source: Data URL, http(s) URL, raw bytes, path or binary file
            layer_id: Layer the source belongs to (for error reporting)

        Returns:
            The resolved asset

        Raises:
            AssetResolutionError: If the source cannot be fetched or decoded
        """
        description = describe_source(source)
        try:
            if isinstance(source, str):
                if source.startswith(DATA_URL_HEADER):
                    return self._resolve_data_url(source)
                if source.startswith((HTTP_PROTOCOL_URL_HEADER, HTTPS_PROTOCOL_URL_HEADER)):
                    return await self._resolve_remote(source)
                raise ValueError("Unsupported source, expected a data URL or http(s) URL")
            data = _read_local(source)
            image, mime_type = decode_image(data, max_pixels=self._settings.MAX_ASSET_PIXELS)
            return ResolvedAsset(
                data_url=encode_data_url(data, mime_type),
                mime_type=mime_type,
                image=image,
                source=description,
            )
        except asyncio.TimeoutError as exc:
            raise AssetResolutionError(
                f"Timed out after {self.timeout:g}s loading {description}",
                source=description,
                layer_id=layer_id,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise AssetResolutionError(
                f"HTTP {exc.response.status_code} loading {description}",
                source=description,
                layer_id=layer_id,
            ) from exc
        except httpx.HTTPError as exc:
            reason = str(exc) or type(exc).__name__
            raise AssetResolutionError(
                f"Network error loading {description}: {reason}",
                source=description,
                layer_id=layer_id,
            ) from exc
        except (OSError, ValueError) as exc:
            raise AssetResolutionError(
                f"Failed to load {description}: {exc}",
                source=description,
                layer_id=layer_id,
            ) from exc

    def _resolve_data_url(self, data_url: str) -> ResolvedAsset:
        data, mime_type = decode_data_url(data_url)
        image, detected = decode_image(data, mime_type, self._settings.MAX_ASSET_PIXELS)
        return ResolvedAsset(
            data_url=data_url,
            mime_type=detected,
            image=image,
            source=describe_source(data_url),
        )

    async def _resolve_remote(self, url: str) -> ResolvedAsset:
        cached = self._cache.get(url) if self._cache_enabled else None
        if cached is not None:
            logger.debug(f"Asset cache hit: {url}")
            return cached

        data, content_type = await asyncio.wait_for(self._fetch(url), timeout=self.timeout)
        image, _ = decode_image(data, content_type or None, self._settings.MAX_ASSET_PIXELS)
        # Re-encode so the asset is self-contained like a canvas readback
        asset = ResolvedAsset(
            data_url=_png_data_url(image),
            mime_type="image/png",
            image=image,
            source=url,
        )
        if self._cache_enabled:
            self._cache[url] = asset
        return asset

    async def _fetch(self, url: str) -> tuple[bytes, str]:
        logger.debug(f"Fetching asset: {url}")
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self._settings.USER_AGENT},
            transport=self._transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            data = response.content
        if len(data) > self._settings.MAX_ASSET_BYTES:
            raise ValueError(
                f"Asset is {len(data)} bytes, limit is {self._settings.MAX_ASSET_BYTES}"
            )
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        return data, content_type

    async def resolve_many(
        self, requests: Mapping[str, AssetSource]
    ) -> tuple[dict[str, ResolvedAsset], list[AssetWarning]]:
        """
        Resolve several sources concurrently and wait for all of them.

        Args:
            requests: Sources keyed by layer id

        Returns:
            Tuple of (assets keyed by layer id, warnings for failed layers)
        """
        layer_ids = list(requests)
        results = await asyncio.gather(
            *(self.resolve(requests[layer_id], layer_id=layer_id) for layer_id in layer_ids),
            return_exceptions=True,
        )

        assets: dict[str, ResolvedAsset] = {}
        warnings: list[AssetWarning] = []
        for layer_id, result in zip(layer_ids, results):
            if isinstance(result, AssetResolutionError):
                logger.warning(f"Asset for layer {layer_id} failed: {result}")
                warnings.append(
                    AssetWarning(layer_id=layer_id, source=result.source, message=str(result))
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                assets[layer_id] = result
        return assets, warnings

    async def get_image_info(self, source: AssetSource) -> tuple[int, int]:
        """
        Get the pixel size of an image source.

        Returns:
            Tuple of (width, height)
        """
        asset = await self.resolve(source)
        return asset.width, asset.height

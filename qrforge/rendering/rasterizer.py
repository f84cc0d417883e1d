"""Rasterizer and exporter.

Turns a VisualTree into an encoded image:

1. snapshot: paint every node bottom to top onto a canvas of
   round(width * scale) x round(height * scale) pixels
2. optional rounded-corner clip, radius scaled and clamped to half the
   shorter side
3. encode to PNG (alpha kept) or JPEG (flattened onto the canvas colour)

Either a complete ExportResult is returned or RasterizationError is
raised; nothing is emitted partially.
"""

import base64
import io
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Literal

from PIL import Image, ImageDraw

from qrforge.canvas import ExportSpec
from qrforge.config import Settings, settings as default_settings
from qrforge.exceptions import RasterizationError

from .colors import parse_color
from .compositor import ImagePayload, MarkupPayload, NodeKind, TextPayload, VisualNode, VisualTree
from .fonts import FontRegistry
from .markup import render_markup
from .text import render_text_block

if TYPE_CHECKING:
    from qrforge.assets import AssetWarning

logger = logging.getLogger(__name__)

ExportFormat = Literal["png", "jpg"]

MIME_TYPES = {"png": "image/png", "jpg": "image/jpeg"}


@dataclass
class ExportResult:
    """An encoded canvas image and the layer warnings of its render cycle."""

    data: bytes
    mime_type: str
    width: int
    height: int
    scale: float
    warnings: list["AssetWarning"] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Encoded size in bytes."""
        return len(self.data)

    @property
    def extension(self) -> str:
        return "jpg" if self.mime_type == "image/jpeg" else "png"

    @property
    def data_url(self) -> str:
        """Data URL string 'data:image/png;base64,...'."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def default_filename(self) -> str:
        """File name like 'qr-code-1700000000000.png' (millisecond timestamp)."""
        return f"qr-code-{int(time.time() * 1000)}.{self.extension}"

    def save(self, target: str | Path | None = None) -> Path:
        """
        Write the encoded image to disk.

        :param target: File path or directory. A directory (or None for the
            working directory) gets the default file name.
        :return: The path written
        """
        path = Path(target) if target is not None else Path.cwd()
        if path.is_dir():
            path = path / self.default_filename()
        path.write_bytes(self.data)
        logger.info(f"Saved {self.size} bytes to {path}")
        return path


def effective_corner_radius(width: float, height: float, radius: float, scale: float = 1.0) -> float:
    """
    Corner radius in output pixels.

    The radius is multiplied by the scale factor and clamped to half the
    shorter side so opposing corners never overlap.

    Args:
        width: Output width in pixels
        height: Output height in pixels
        radius: Radius in canvas pixels
        scale: Output pixels per canvas pixel

    Returns:
        Radius in pixels, 0 when no rounding applies
    """
    if radius <= 0:
        return 0.0
    return min(radius * scale, width / 2, height / 2)


def _with_opacity(image: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1:
        return image
    alpha = image.getchannel("A").point(lambda a: round(a * opacity))
    faded = image.copy()
    faded.putalpha(alpha)
    return faded


def _composite_at(canvas: Image.Image, tile: Image.Image, left: int, top: int) -> None:
    """Alpha-composite a tile onto the canvas, clipping at the canvas edges."""
    crop_left, crop_top = max(0, -left), max(0, -top)
    crop_right = min(tile.width, canvas.width - left)
    crop_bottom = min(tile.height, canvas.height - top)
    if crop_right <= crop_left or crop_bottom <= crop_top:
        return
    if (crop_left, crop_top, crop_right, crop_bottom) != (0, 0, tile.width, tile.height):
        tile = tile.crop((crop_left, crop_top, crop_right, crop_bottom))
    canvas.alpha_composite(tile, (left + crop_left, top + crop_top))


def fit_image(image: Image.Image, width: int, height: int, mode: str) -> tuple[Image.Image, int, int]:
    """
    Fit an image into a box.

    Modes:
        fill: stretch to the box, ignoring the aspect ratio
        contain: largest aspect-preserving size inside the box, centred
        cover: smallest aspect-preserving size covering the box, centred
            and cropped

    Returns:
        Tuple of (fitted image, x offset, y offset) relative to the box
    """
    if mode == "fill":
        return image.resize((width, height), Image.Resampling.LANCZOS), 0, 0

    if mode == "cover":
        ratio = max(width / image.width, height / image.height)
    else:
        ratio = min(width / image.width, height / image.height)
    scaled_size = (max(1, round(image.width * ratio)), max(1, round(image.height * ratio)))
    scaled = image.resize(scaled_size, Image.Resampling.LANCZOS)

    if mode == "cover":
        left = (scaled.width - width) // 2
        top = (scaled.height - height) // 2
        return scaled.crop((left, top, left + width, top + height)), 0, 0
    return scaled, (width - scaled.width) // 2, (height - scaled.height) // 2


class Rasterizer:
    """Paints visual trees and encodes the result."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings
        self._painters: dict[NodeKind, Callable[[Image.Image, VisualNode, float], None]] = {
            NodeKind.IMAGE: self._paint_image,
            NodeKind.TEXT: self._paint_text,
            NodeKind.MARKUP: self._paint_markup,
            NodeKind.SYMBOL: self._paint_symbol,
        }

    # --- Snapshot ---

    def snapshot(self, tree: VisualTree | None, scale: float | None = None) -> Image.Image:
        """
        Paint a visual tree into an RGBA image.

        Args:
            tree: Visual tree to paint
            scale: Output pixels per canvas pixel (default DEFAULT_SCALE)

        Returns:
            RGBA image of round(width * scale) x round(height * scale)

        Raises:
            RasterizationError: Missing tree, non-positive scale, zero-area
                canvas or a node that cannot be painted
        """
        if tree is None:
            raise RasterizationError("No visual tree to snapshot")
        scale = self.settings.DEFAULT_SCALE if scale is None else scale
        if scale <= 0:
            raise RasterizationError(f"Scale must be positive, got {scale:g}")

        width, height = round(tree.width * scale), round(tree.height * scale)
        if width <= 0 or height <= 0:
            raise RasterizationError(f"Zero-area canvas ({tree.width:g}x{tree.height:g})")

        canvas = Image.new("RGBA", (width, height), parse_color(tree.background, (255, 255, 255, 255)))
        for node in tree.nodes:
            if node.opacity <= 0:
                continue
            try:
                self._painters[node.kind](canvas, node, scale)
            except (OSError, ValueError) as e:
                raise RasterizationError(
                    f"Failed to paint {node.kind.value} layer {node.layer_id}: {e}"
                ) from e
        return canvas

    @staticmethod
    def _box(node: VisualNode, scale: float) -> tuple[int, int, int, int]:
        return (
            round(node.x * scale),
            round(node.y * scale),
            round(node.width * scale),
            round(node.height * scale),
        )

    def _paint_image(self, canvas: Image.Image, node: VisualNode, scale: float) -> None:
        payload: ImagePayload = node.payload
        left, top, width, height = self._box(node, scale)
        if width <= 0 or height <= 0:
            return
        fitted, dx, dy = fit_image(payload.asset.image, width, height, payload.mode)
        _composite_at(canvas, _with_opacity(fitted.convert("RGBA"), node.opacity), left + dx, top + dy)

    def _paint_text(self, canvas: Image.Image, node: VisualNode, scale: float) -> None:
        payload: TextPayload = node.payload
        font_size = payload.font_size * scale
        if font_size <= 0:
            return
        font = FontRegistry.get_font(payload.font_family, round(font_size), bold=payload.bold)
        block = render_text_block(
            payload.lines,
            font,
            parse_color(payload.color),
            align=payload.align,
            line_height=font_size * payload.line_height,
        )
        left, top, _, _ = self._box(node, scale)
        _composite_at(canvas, _with_opacity(block, node.opacity), left, top)

    def _paint_markup(self, canvas: Image.Image, node: VisualNode, scale: float) -> None:
        payload: MarkupPayload = node.payload
        left, top, width, height = self._box(node, scale)
        if width <= 0 or height <= 0:
            return
        rendered = render_markup(payload.content, width, height, scale=scale)
        _composite_at(canvas, _with_opacity(rendered, node.opacity), left, top)

    def _paint_symbol(self, canvas: Image.Image, node: VisualNode, scale: float) -> None:
        left, top, side, _ = self._box(node, scale)
        if side <= 0:
            return
        rendered = node.payload.rasterize(side)
        _composite_at(canvas, _with_opacity(rendered, node.opacity), left, top)

    # --- Post-processing ---

    def apply_rounded_corners(self, image: Image.Image, radius: float, scale: float = 1.0) -> Image.Image:
        """
        Clip an image to a rounded rectangle.

        Radius 0 or below returns the input unchanged. Otherwise the image
        is drawn into a new transparent surface through a rounded-rectangle
        mask.

        Args:
            image: Snapshot to clip
            radius: Corner radius in canvas pixels
            scale: Output pixels per canvas pixel

        Returns:
            Clipped RGBA image of the same size
        """
        if radius <= 0:
            return image
        pixel_radius = effective_corner_radius(image.width, image.height, radius, scale)

        mask = Image.new("L", image.size, 0)
        ImageDraw.Draw(mask).rounded_rectangle(
            (0, 0, image.width - 1, image.height - 1), radius=pixel_radius, fill=255
        )
        clipped = Image.new("RGBA", image.size, (0, 0, 0, 0))
        clipped.paste(image, (0, 0), mask)
        return clipped

    # --- Encoding ---

    def encode(self, image: Image.Image, format: str = "png", quality: float = 0.9, scale: float = 1.0) -> ExportResult:
        """
        Encode an image.

        PNG keeps the alpha channel. JPEG is flattened onto the canvas
        background colour and written at quality round(quality * 100).

        Args:
            image: RGBA image
            format: 'png' or 'jpg' ('jpeg' accepted)
            quality: 0.0 - 1.0, used by JPEG
            scale: Scale the image was painted at (recorded in the result)

        Returns:
            ExportResult

        Raises:
            RasterizationError: Unknown format, quality outside [0, 1] or an
                encoder failure
        """
        format = format.lower().lstrip(".")
        if format == "jpeg":
            format = "jpg"
        if format not in MIME_TYPES:
            raise RasterizationError(f"Unsupported export format '{format}'")
        if not 0 <= quality <= 1:
            raise RasterizationError(f"Export quality must be within [0, 1], got {quality:g}")

        output_stream = io.BytesIO()
        try:
            if format == "jpg":
                background = Image.new("RGBA", image.size, parse_color(self.settings.CANVAS_BACKGROUND))
                background.alpha_composite(image.convert("RGBA"))
                background.convert("RGB").save(output_stream, format="jpeg", quality=round(quality * 100))
            else:
                image.save(output_stream, format="png")
        except (OSError, ValueError) as e:
            raise RasterizationError(f"Encoding {format} failed: {e}") from e

        data = output_stream.getvalue()
        if not data:
            raise RasterizationError(f"Encoding {format} produced no data")
        return ExportResult(
            data=data,
            mime_type=MIME_TYPES[format],
            width=image.width,
            height=image.height,
            scale=scale,
        )

    # --- Pipeline ---

    def rasterize(
        self,
        tree: VisualTree | None,
        export: ExportSpec,
        *,
        scale: float | None = None,
        quality: float | None = None,
        border_radius: float | None = None,
        format: ExportFormat | str | None = None,
    ) -> ExportResult:
        """
        Snapshot, clip and encode a visual tree.

        Overrides apply to this call only; ``export`` is not modified.

        Args:
            tree: Visual tree to rasterize
            export: Export settings of the configuration
            scale: Override of the scale factor (default DEFAULT_SCALE)
            quality: Override of export.quality
            border_radius: Override of export.border_radius
            format: Override of export.format

        Returns:
            ExportResult carrying the tree's asset warnings
        """
        scale = self.settings.DEFAULT_SCALE if scale is None else scale
        quality = export.quality if quality is None else quality
        border_radius = export.border_radius if border_radius is None else border_radius
        format = export.format if format is None else format

        # Fail before painting
        if not 0 <= quality <= 1:
            raise RasterizationError(f"Export quality must be within [0, 1], got {quality:g}")

        image = self.snapshot(tree, scale)
        image = self.apply_rounded_corners(image, border_radius, scale)
        result = self.encode(image, format, quality, scale=scale)
        result.warnings = list(tree.warnings)
        logger.debug(
            f"Rasterized {result.width}x{result.height} {result.mime_type} "
            f"({result.size} bytes, scale {scale:g})"
        )
        return result


__all__ = [
    "ExportResult",
    "Rasterizer",
    "effective_corner_radius",
    "fit_image",
]

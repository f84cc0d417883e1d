"""QR symbol rendering.

The module matrix comes from the ``qrcode`` library (no quiet zone; the
symbol's own ``margin`` in canvas pixels is used instead). Everything
visual is drawn here with PIL and numpy:

- background: solid colour or gradient over the whole symbol
- data modules: one of six dot shapes, neighbour-aware for rounded kinds
- finder patterns: outer corner squares and inner corner dots, styled
  independently, gradients spanning each 7x7 finder box
- optional logo centred in the symbol, with the modules under it hidden

A QrSymbol keeps the matrix and style so it can be rasterized sharply at
whatever pixel size the caller needs.
"""

import io
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import qrcode
import qrcode.constants
from qrcode.exceptions import DataOverflowError
from PIL import Image, ImageDraw

from qrforge.canvas import ErrorCorrectionLevel, Gradient, ImageOptions, QrSpec
from qrforge.config import settings
from qrforge.exceptions import SymbolGenerationError

from .colors import parse_color

logger = logging.getLogger(__name__)

_EC_CONSTANTS = {
    ErrorCorrectionLevel.L: qrcode.constants.ERROR_CORRECT_L,
    ErrorCorrectionLevel.M: qrcode.constants.ERROR_CORRECT_M,
    ErrorCorrectionLevel.Q: qrcode.constants.ERROR_CORRECT_Q,
    ErrorCorrectionLevel.H: qrcode.constants.ERROR_CORRECT_H,
}

FINDER_SIZE = 7
FINDER_DOT_SIZE = 3
MAX_VERSION = 40


def finder_origins(module_count: int) -> list[tuple[int, int]]:
    """Top-left (row, col) of the three finder patterns."""
    far = module_count - FINDER_SIZE
    return [(0, 0), (0, far), (far, 0)]


def _in_finder(row: int, col: int, module_count: int) -> bool:
    for origin_row, origin_col in finder_origins(module_count):
        if origin_row <= row < origin_row + FINDER_SIZE and origin_col <= col < origin_col + FINDER_SIZE:
            return True
    return False


def gradient_fill(gradient: Gradient, width: int, height: int, fallback: str) -> Image.Image:
    """
    Render a gradient descriptor into an RGBA image.

    Linear gradients run through the centre at ``rotation`` radians, spanning
    the projection of the box onto that direction. Radial gradients run from
    the centre to half the shorter side.

    Args:
        gradient: Gradient descriptor
        width: Output width
        height: Output height
        fallback: Colour used when the gradient has no stops

    Returns:
        RGBA image of the gradient
    """
    stops = sorted(gradient.color_stops, key=lambda stop: stop.offset)
    if not stops:
        return Image.new("RGBA", (width, height), parse_color(fallback))

    offsets = np.clip(np.array([stop.offset for stop in stops], dtype=np.float64), 0.0, 1.0)
    colors = np.array([parse_color(stop.color) for stop in stops], dtype=np.float64)

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    cx, cy = width / 2.0, height / 2.0
    xs += 0.5 - cx
    ys += 0.5 - cy

    if gradient.type == "radial":
        radius = max(min(width, height) / 2.0, 1e-6)
        t = np.sqrt(xs * xs + ys * ys) / radius
    else:
        cos_r, sin_r = math.cos(gradient.rotation), math.sin(gradient.rotation)
        span = max(abs(width * cos_r) + abs(height * sin_r), 1e-6)
        t = (xs * cos_r + ys * sin_r) / span + 0.5
    t = np.clip(t, 0.0, 1.0)

    pixels = np.empty((height, width, 4), dtype=np.uint8)
    for channel in range(4):
        pixels[..., channel] = np.round(np.interp(t, offsets, colors[:, channel])).astype(np.uint8)
    return Image.fromarray(pixels, "RGBA")


def _region_fill(options: Any, width: int, height: int) -> Image.Image:
    if options.gradient is not None:
        return gradient_fill(options.gradient, width, height, options.color)
    return Image.new("RGBA", (width, height), parse_color(options.color))


@dataclass
class _Grid:
    """Pixel geometry of the module grid at one raster size."""

    module_count: int
    offset: float
    module: float

    def edge(self, index: int) -> int:
        return int(round(self.offset + index * self.module))

    def box(self, row: int, col: int, rows: int = 1, cols: int = 1) -> tuple[int, int, int, int]:
        """Inclusive pixel box covering a block of modules."""
        return (
            self.edge(col),
            self.edge(row),
            self.edge(col + cols) - 1,
            self.edge(row + rows) - 1,
        )


@dataclass
class QrSymbol:
    """A generated QR matrix together with its styling."""

    matrix: np.ndarray
    spec: QrSpec
    version: int
    logo: Optional[Image.Image] = None
    supersample: int = field(default_factory=lambda: settings.QR_SUPERSAMPLE)

    @property
    def module_count(self) -> int:
        return int(self.matrix.shape[0])

    @property
    def image_options(self) -> ImageOptions:
        return self.spec.image_options or ImageOptions()

    def hidden_modules(self) -> tuple[int, int]:
        """
        Module range [start, stop) hidden behind the logo on both axes.

        Returns (0, 0) when nothing is hidden.
        """
        if self.logo is None or not self.image_options.hide_background_dots:
            return 0, 0
        count = self.module_count
        drawable = max(self.spec.size - 2 * self.spec.margin, 1e-6)
        module = drawable / count
        logo_side = self.spec.logo_fraction() * drawable
        hidden = math.ceil((logo_side + 2 * self.image_options.margin) / module)
        # Same parity as the grid so the hidden block stays centred
        if hidden % 2 != count % 2:
            hidden += 1
        hidden = max(0, min(hidden, count - 2 * FINDER_SIZE))
        start = (count - hidden) // 2
        return start, start + hidden

    def is_dark(self, row: int, col: int) -> bool:
        count = self.module_count
        if row < 0 or col < 0 or row >= count or col >= count:
            return False
        if _in_finder(row, col, count):
            return False
        start, stop = self.hidden_modules()
        if start <= row < stop and start <= col < stop:
            return False
        return bool(self.matrix[row, col])

    def rasterize(self, pixel_size: int) -> Image.Image:
        """
        Draw the symbol into a square RGBA image.

        Args:
            pixel_size: Side of the output in pixels

        Returns:
            RGBA image of pixel_size x pixel_size
        """
        pixel_size = max(1, int(pixel_size))
        supersample = max(1, self.supersample)
        side = pixel_size * supersample
        units = side / self.spec.size if self.spec.size > 0 else 1.0

        margin = min(max(self.spec.margin, 0) * units, (side - 1) / 2)
        grid = _Grid(
            module_count=self.module_count,
            offset=margin,
            module=(side - 2 * margin) / self.module_count,
        )

        image = _region_fill(self.spec.background_options, side, side)
        self._paint_dots(image, grid)
        self._paint_finders(image, grid)
        if self.logo is not None:
            self._paint_logo(image, grid, units)

        if supersample > 1:
            image = image.resize((pixel_size, pixel_size), Image.Resampling.LANCZOS)
        return image

    def _paint_dots(self, image: Image.Image, grid: _Grid) -> None:
        options = self.spec.dots_options
        mask = Image.new("L", image.size, 0)
        draw = ImageDraw.Draw(mask)
        for row in range(self.module_count):
            for col in range(self.module_count):
                if self.is_dark(row, col):
                    self._draw_dot(draw, grid, row, col, options.type)
        image.paste(_region_fill(options, *image.size), (0, 0), mask)

    def _draw_dot(self, draw: ImageDraw.ImageDraw, grid: _Grid, row: int, col: int, kind: str) -> None:
        box = grid.box(row, col)
        if box[2] < box[0] or box[3] < box[1]:
            return
        if kind == "square":
            draw.rectangle(box, fill=255)
            return
        if kind == "dots":
            draw.ellipse(box, fill=255)
            return

        top = not self.is_dark(row - 1, col)
        bottom = not self.is_dark(row + 1, col)
        left = not self.is_dark(row, col - 1)
        right = not self.is_dark(row, col + 1)
        # (top-left, top-right, bottom-right, bottom-left) corner exposure
        exposed = (top and left, top and right, bottom and right, bottom and left)
        side = box[2] - box[0] + 1

        if kind == "rounded":
            radius, corners = side * 0.25, exposed
        elif kind == "extra-rounded":
            radius, corners = side * 0.5, exposed
        elif kind == "classy":
            radius, corners = side * 0.35, (exposed[0], False, exposed[2], False)
        else:  # classy-rounded
            radius, corners = side * 0.5, (exposed[0], False, exposed[2], False)

        if radius < 1 or not any(corners):
            draw.rectangle(box, fill=255)
        else:
            draw.rounded_rectangle(box, radius=radius, fill=255, corners=corners)

    def _paint_finders(self, image: Image.Image, grid: _Grid) -> None:
        squares = self.spec.corners_square_options
        dots = self.spec.corners_dot_options
        for origin_row, origin_col in finder_origins(self.module_count):
            outer = grid.box(origin_row, origin_col, FINDER_SIZE, FINDER_SIZE)
            inner = grid.box(origin_row + 1, origin_col + 1, FINDER_SIZE - 2, FINDER_SIZE - 2)
            center = grid.box(origin_row + 2, origin_col + 2, FINDER_DOT_SIZE, FINDER_DOT_SIZE)

            self._paint_shape(image, squares, outer, squares.type, hole=inner)
            self._paint_shape(image, dots, center, dots.type)

    def _paint_shape(
        self,
        image: Image.Image,
        options: Any,
        box: tuple[int, int, int, int],
        kind: str,
        hole: tuple[int, int, int, int] | None = None,
    ) -> None:
        """Fill one finder shape; the gradient spans the shape's own box."""
        width, height = box[2] - box[0] + 1, box[3] - box[1] + 1
        if width <= 0 or height <= 0:
            return
        mask = Image.new("L", (width, height), 0)
        draw = ImageDraw.Draw(mask)
        local = (0, 0, width - 1, height - 1)
        module = width / (FINDER_SIZE if hole is not None else FINDER_DOT_SIZE)

        self._draw_finder_part(draw, local, kind, module * 2.5, 255)
        if hole is not None and hole[2] >= hole[0] and hole[3] >= hole[1]:
            local_hole = (hole[0] - box[0], hole[1] - box[1], hole[2] - box[0], hole[3] - box[1])
            self._draw_finder_part(draw, local_hole, kind, module * 1.5, 0)

        image.paste(_region_fill(options, width, height), (box[0], box[1]), mask)

    @staticmethod
    def _draw_finder_part(draw: ImageDraw.ImageDraw, box, kind: str, radius: float, fill: int) -> None:
        if kind == "dot":
            draw.ellipse(box, fill=fill)
        elif kind == "extra-rounded" and radius >= 1:
            draw.rounded_rectangle(box, radius=radius, fill=fill)
        else:
            draw.rectangle(box, fill=fill)

    def _paint_logo(self, image: Image.Image, grid: _Grid, units: float) -> None:
        drawable = grid.module * grid.module_count
        target = self.spec.logo_fraction() * drawable
        target = max(0.0, target - 2 * self.image_options.margin * units)
        if target < 1:
            return
        logo = self.logo
        ratio = min(target / logo.width, target / logo.height)
        size = (max(1, round(logo.width * ratio)), max(1, round(logo.height * ratio)))
        fitted = logo.convert("RGBA").resize(size, Image.Resampling.LANCZOS)
        x = round((image.width - size[0]) / 2)
        y = round((image.height - size[1]) / 2)
        image.alpha_composite(fitted, (x, y))

    def to_png(self, pixel_size: int | None = None) -> bytes:
        """Encode the symbol as PNG (default: its own size in canvas pixels)."""
        size = pixel_size or max(1, round(self.spec.size))
        output_stream = io.BytesIO()
        self.rasterize(size).save(output_stream, format="png")
        return output_stream.getvalue()

    def to_data_url(self, pixel_size: int | None = None) -> str:
        """PNG data URL of the symbol."""
        from qrforge.assets.resolver import encode_data_url

        return encode_data_url(self.to_png(pixel_size), "image/png")


class QrSymbolRenderer:
    """Builds QrSymbol objects from a QrSpec."""

    def __init__(self, supersample: int | None = None):
        self.supersample = settings.QR_SUPERSAMPLE if supersample is None else supersample

    def build_matrix(self, spec: QrSpec) -> tuple[np.ndarray, int]:
        """
        Encode the QR content into a module matrix.

        Args:
            spec: QR definition

        Returns:
            Tuple of (boolean matrix without quiet zone, version)

        Raises:
            SymbolGenerationError: On empty content, an invalid version or
                content that does not fit the chosen version and level
        """
        if not spec.content:
            raise SymbolGenerationError("QR content must not be empty")

        options = spec.qr_options
        type_number = options.type_number
        if type_number < 0 or type_number > MAX_VERSION:
            raise SymbolGenerationError(
                f"Invalid QR version {type_number}, expected 0 (auto) to {MAX_VERSION}"
            )

        level = ErrorCorrectionLevel(options.error_correction_level)
        qr = qrcode.QRCode(
            version=type_number or None,
            error_correction=_EC_CONSTANTS[level],
            box_size=1,
            border=0,
        )
        try:
            qr.add_data(spec.content)
            qr.make(fit=type_number == 0)
        except DataOverflowError as e:
            raise SymbolGenerationError(
                f"Content of {len(spec.content)} characters exceeds QR capacity "
                f"at error correction level {level.value}"
            ) from e
        except ValueError as e:
            raise SymbolGenerationError(f"QR encoding failed: {e}") from e

        matrix = np.array(qr.get_matrix(), dtype=bool)
        return matrix, int(qr.version)

    def render(self, spec: QrSpec, logo: Any = None) -> QrSymbol:
        """
        Generate the styled symbol for a QR definition.

        Args:
            spec: QR definition
            logo: Optional logo, a PIL image or a resolved asset

        Returns:
            QrSymbol ready for rasterization

        Raises:
            SymbolGenerationError: If no symbol can be produced
        """
        if spec.size <= 0:
            raise SymbolGenerationError(f"QR size must be positive, got {spec.size:g}")
        matrix, version = self.build_matrix(spec)
        logo_image = getattr(logo, "image", logo)
        logger.debug(
            f"QR symbol version {version} ({matrix.shape[0]} modules), "
            f"level {ErrorCorrectionLevel(spec.qr_options.error_correction_level).value}"
        )
        return QrSymbol(
            matrix=matrix,
            spec=spec,
            version=version,
            logo=logo_image,
            supersample=self.supersample,
        )


__all__ = ["QrSymbol", "QrSymbolRenderer", "finder_origins", "gradient_fill"]

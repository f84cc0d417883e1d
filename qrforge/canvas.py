"""
CanvasConfiguration - Declarative description of one QR canvas.

A configuration contains:
- The QR definition (content, geometry, per-region styling, logo)
- Background image layers
- Text layers
- Markup (HTML/SVG) layers
- Export settings (canvas size, format, quality, corner radius)

Configurations are values: every update helper returns a new
configuration and leaves the receiver and its collections untouched.
Range checks are not performed here; see qrforge.formats.validate().
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import settings
from .layers import (
    BackgroundLayer,
    BaseLayer,
    MarkupLayer,
    Position,
    Size,
    TextLayer,
    apply_updates,
)


class ErrorCorrectionLevel(str, Enum):
    """QR error correction levels, from least to most redundancy."""
    L = "L"
    M = "M"
    Q = "Q"
    H = "H"

    @property
    def rank(self) -> int:
        """Ordinal strength (L=0 < M=1 < Q=2 < H=3)."""
        return list(ErrorCorrectionLevel).index(self)


class _StyleModel(BaseModel):
    """Common config for the style models."""

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=False,
        extra='ignore',
    )


class ColorStop(_StyleModel):
    """One colour stop of a gradient (offset 0.0-1.0)."""
    offset: float = Field(default=0.0)
    color: str = Field(default='#000000')


class Gradient(_StyleModel):
    """
    Gradient descriptor.

    Rotation is in radians and only applies to linear gradients.
    """
    type: Literal['linear', 'radial'] = Field(default='linear')
    rotation: float = Field(default=0.0)
    color_stops: list[ColorStop] = Field(default_factory=list, alias='colorStops')


class DotsOptions(_StyleModel):
    """Style of the data modules."""
    color: str = Field(default='#0000ff')
    type: Literal[
        'square', 'dots', 'rounded', 'extra-rounded', 'classy', 'classy-rounded'
    ] = Field(default='square')
    gradient: Optional[Gradient] = Field(default=None)


class BackgroundOptions(_StyleModel):
    """Style of the symbol background."""
    color: str = Field(default='#ffffff')
    gradient: Optional[Gradient] = Field(default=None)


class CornersSquareOptions(_StyleModel):
    """Style of the three finder-pattern outer squares."""
    color: str = Field(default='#0000ff')
    type: Literal['square', 'extra-rounded', 'dot'] = Field(default='square')
    gradient: Optional[Gradient] = Field(default=None)


class CornersDotOptions(_StyleModel):
    """Style of the dot inside each finder pattern."""
    color: str = Field(default='#000000')
    type: Literal['square', 'dot'] = Field(default='square')
    gradient: Optional[Gradient] = Field(default=None)


class QrOptions(_StyleModel):
    """Encoding options. typeNumber 0 selects the smallest fitting version."""
    type_number: int = Field(default=0, alias='typeNumber')
    mode: Literal['Numeric', 'Alphanumeric', 'Byte', 'Kanji'] = Field(default='Byte')
    error_correction_level: ErrorCorrectionLevel = Field(
        default=ErrorCorrectionLevel.M, alias='errorCorrectionLevel'
    )


class ImageOptions(_StyleModel):
    """Logo embedding options."""
    hide_background_dots: bool = Field(default=True, alias='hideBackgroundDots')
    image_size: float = Field(default=0.4, alias='imageSize')
    margin: float = Field(default=5)
    cross_origin: str = Field(default='anonymous', alias='crossOrigin')


class Logo(_StyleModel):
    """Logo drawn in the middle of the symbol. size is in canvas pixels."""
    src: str = Field(default='')
    size: float = Field(default=0)


class QrSpec(_StyleModel):
    """
    QR code definition.

    Serialization format:
    {
        "content": "https://example.com",
        "size": 200,
        "position": {"x": 50, "y": 50},
        "margin": 4,
        "dotsOptions": {"color": "#0000ff", "type": "square"},
        "backgroundOptions": {"color": "#ffffff"},
        "cornersSquareOptions": {"color": "#0000ff", "type": "square"},
        "cornersDotOptions": {"color": "#000000", "type": "square"},
        "qrOptions": {"typeNumber": 0, "mode": "Byte", "errorCorrectionLevel": "M"},
        "imageOptions": {...},   // optional
        "logo": {"src": "...", "size": 60}   // optional
    }
    """
    content: str = Field(default='https://example.com')
    size: float = Field(default=200)
    position: Position = Field(default_factory=lambda: Position(x=50, y=50))
    margin: float = Field(default=4)
    dots_options: DotsOptions = Field(default_factory=DotsOptions, alias='dotsOptions')
    background_options: BackgroundOptions = Field(
        default_factory=BackgroundOptions, alias='backgroundOptions'
    )
    corners_square_options: CornersSquareOptions = Field(
        default_factory=CornersSquareOptions, alias='cornersSquareOptions'
    )
    corners_dot_options: CornersDotOptions = Field(
        default_factory=CornersDotOptions, alias='cornersDotOptions'
    )
    qr_options: QrOptions = Field(default_factory=QrOptions, alias='qrOptions')
    image_options: Optional[ImageOptions] = Field(default=None, alias='imageOptions')
    logo: Optional[Logo] = Field(default=None)

    def logo_fraction(self) -> float:
        """Logo side relative to the symbol side."""
        if self.logo is not None and self.logo.size > 0 and self.size > 0:
            return self.logo.size / self.size
        if self.image_options is not None:
            return self.image_options.image_size
        return ImageOptions().image_size


class ExportSpec(_StyleModel):
    """
    Export settings.

    Serialization format:
    {"width": 800, "height": 600, "format": "png", "quality": 0.9, "borderRadius": 0}
    """
    width: int = Field(default=800)
    height: int = Field(default=600)
    format: Literal['png', 'jpg'] = Field(default='png')
    quality: float = Field(default=0.9)
    border_radius: float = Field(default=0, alias='borderRadius')

    @field_validator('format', mode='before')
    @classmethod
    def _normalize_format(cls, v: Any) -> Any:
        """Accept 'jpeg' as a spelling of 'jpg'."""
        if isinstance(v, str):
            v = v.lower().lstrip('.')
            return 'jpg' if v == 'jpeg' else v
        return v


def calculate_default_qr_settings(
    canvas_width: float,
    canvas_height: float,
    qr_ratio: float | None = None,
) -> tuple[Position, float]:
    """
    Compute a centred QR placement for a canvas.

    Args:
        canvas_width: Canvas width in pixels
        canvas_height: Canvas height in pixels
        qr_ratio: QR side relative to the shorter canvas side

    Returns:
        Tuple of (position, size)
    """
    ratio = settings.DEFAULT_QR_RATIO if qr_ratio is None else qr_ratio
    qr_size = min(canvas_width, canvas_height) * ratio
    position = Position(
        x=(canvas_width - qr_size) / 2,
        y=(canvas_height - qr_size) / 2,
    )
    return position, qr_size


class CanvasConfiguration(BaseModel):
    """
    Root aggregate describing a full canvas.

    Serialization format:
    {
        "qr": {...},
        "backgrounds": [...],
        "texts": [...],
        "htmlModules": [...],
        "export": {...}
    }
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=False,
        extra='ignore',
    )

    qr: QrSpec = Field(default_factory=QrSpec)
    backgrounds: list[BackgroundLayer] = Field(default_factory=list)
    texts: list[TextLayer] = Field(default_factory=list)
    html_modules: list[MarkupLayer] = Field(default_factory=list, alias='htmlModules')
    export: ExportSpec = Field(default_factory=ExportSpec)

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the camelCase interchange dictionary."""
        return self.model_dump(by_alias=True, mode='json', exclude_none=True)

    # --- Lookup ---

    def all_layers(self) -> list[BaseLayer]:
        """All user layers: backgrounds, then texts, then markup."""
        return [*self.backgrounds, *self.texts, *self.html_modules]

    def get_layer(self, layer_id: str) -> Optional[BaseLayer]:
        """
        Get a layer by ID.

        Args:
            layer_id: Layer ID to find

        Returns:
            Layer or None if not found
        """
        for layer in self.all_layers():
            if layer.id == layer_id:
                return layer
        return None

    # --- QR and export ---

    def update_qr(self, **changes: Any) -> 'CanvasConfiguration':
        """Return a copy with some QR fields replaced."""
        return self.model_copy(update={'qr': apply_updates(self.qr, changes)})

    def update_export(self, **changes: Any) -> 'CanvasConfiguration':
        """Return a copy with some export fields replaced."""
        return self.model_copy(update={'export': apply_updates(self.export, changes)})

    def center_qr(self, qr_ratio: float | None = None) -> 'CanvasConfiguration':
        """Return a copy with the QR centred and sized to the canvas."""
        position, size = calculate_default_qr_settings(
            self.export.width, self.export.height, qr_ratio
        )
        return self.update_qr(position=position, size=size)

    # --- Backgrounds ---

    def add_background(self, src: str, **overrides: Any) -> 'CanvasConfiguration':
        """
        Append a background layer covering the whole canvas.

        The new layer is the last entry of ``backgrounds`` in the result.
        """
        layer = BackgroundLayer(
            src=src,
            size=Size(width=self.export.width, height=self.export.height),
        )
        if overrides:
            layer = layer.with_updates(**overrides)
        return self.model_copy(update={'backgrounds': [*self.backgrounds, layer]})

    def update_background(self, layer_id: str, **changes: Any) -> 'CanvasConfiguration':
        """Return a copy with one background layer updated."""
        return self._update_layer('backgrounds', layer_id, changes)

    def remove_background(self, layer_id: str) -> 'CanvasConfiguration':
        """Return a copy without the given background layer."""
        return self._remove_layer('backgrounds', layer_id)

    # --- Texts ---

    def add_text(self, **overrides: Any) -> 'CanvasConfiguration':
        """Append a text layer with default styling."""
        layer = TextLayer(content='New text', position=Position(x=100, y=100))
        if overrides:
            layer = layer.with_updates(**overrides)
        return self.model_copy(update={'texts': [*self.texts, layer]})

    def update_text(self, layer_id: str, **changes: Any) -> 'CanvasConfiguration':
        """Return a copy with one text layer updated."""
        return self._update_layer('texts', layer_id, changes)

    def remove_text(self, layer_id: str) -> 'CanvasConfiguration':
        """Return a copy without the given text layer."""
        return self._remove_layer('texts', layer_id)

    # --- Markup ---

    def add_html_module(self, **overrides: Any) -> 'CanvasConfiguration':
        """Append a markup layer with placeholder content."""
        layer = MarkupLayer(
            content='<div>HTML content</div>',
            position=Position(x=200, y=200),
            size=Size(width=200, height=100),
        )
        if overrides:
            layer = layer.with_updates(**overrides)
        return self.model_copy(update={'html_modules': [*self.html_modules, layer]})

    def update_html_module(self, layer_id: str, **changes: Any) -> 'CanvasConfiguration':
        """Return a copy with one markup layer updated."""
        return self._update_layer('html_modules', layer_id, changes)

    def remove_html_module(self, layer_id: str) -> 'CanvasConfiguration':
        """Return a copy without the given markup layer."""
        return self._remove_layer('html_modules', layer_id)

    # --- Helpers ---

    def _update_layer(
        self, collection: str, layer_id: str, changes: dict[str, Any]
    ) -> 'CanvasConfiguration':
        layers = list(getattr(self, collection))
        for index, layer in enumerate(layers):
            if layer.id == layer_id:
                layers[index] = layer.with_updates(**changes)
                return self.model_copy(update={collection: layers})
        raise KeyError(f"No layer '{layer_id}' in {collection}")

    def _remove_layer(self, collection: str, layer_id: str) -> 'CanvasConfiguration':
        layers = [layer for layer in getattr(self, collection) if layer.id != layer_id]
        return self.model_copy(update={collection: layers})

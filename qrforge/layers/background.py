"""
BackgroundLayer - Image layer drawn behind or between other layers.

The source is either an inline data URI (uploaded file) or a remote URL.
Remote sources are resolved into inline data by the asset resolver before
compositing.
"""

from typing import Any, ClassVar, Literal

from pydantic import Field, field_validator

from .base import BaseLayer, LayerKind, Size

FitMode = Literal['fill', 'contain', 'cover']

# Accepted spellings of fit modes, mapped to their canonical name
_FIT_MODE_ALIASES = {
    'stretch': 'fill',
}


class BackgroundLayer(BaseLayer):
    """
    Background image layer.

    Serialization format:
    {
        "id": "uuid",
        "src": "data:image/png;base64,..." | "https://...",
        "position": {"x": 0, "y": 0},
        "size": {"width": 800, "height": 600},
        "mode": "fill",
        "zIndex": 1,
        "opacity": 1.0
    }

    Fit modes:
    - fill (alias stretch): stretch to the box, ignoring aspect ratio
    - contain: scale to fit inside the box, keeping aspect ratio, centred
    - cover: scale to cover the box, keeping aspect ratio, cropped
    """

    kind: ClassVar[LayerKind] = LayerKind.BACKGROUND

    src: str = Field(default='')
    size: Size = Field(default_factory=Size)
    mode: FitMode = Field(default='fill')
    z_index: int = Field(default=1, alias='zIndex')

    @field_validator('mode', mode='before')
    @classmethod
    def _normalize_mode(cls, v: Any) -> Any:
        """Map alternative fit mode names to the canonical ones."""
        if isinstance(v, str):
            return _FIT_MODE_ALIASES.get(v.lower(), v.lower())
        return v

    def is_remote(self) -> bool:
        """Check if the source has to be fetched over the network."""
        return self.src.startswith(('http://', 'https://'))

    def has_content(self) -> bool:
        """Check if layer has a source and a drawable area."""
        return bool(self.src) and self.size.width > 0 and self.size.height > 0

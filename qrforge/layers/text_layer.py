"""
TextLayer - Single block of styled text.

Text is laid out with preserved line breaks. The block shrinks to its
widest line, and textAlign aligns the lines inside that block.
"""

from typing import Any, ClassVar, Literal

from pydantic import Field, field_validator

from .base import BaseLayer, LayerKind

AlignKind = Literal['left', 'center', 'right']


class TextLayer(BaseLayer):
    """
    Text layer.

    Serialization format:
    {
        "id": "uuid",
        "content": "Hello",
        "position": {"x": 100, "y": 100},
        "fontSize": 24,
        "color": "#000000",
        "fontFamily": "Arial",
        "fontWeight": 400,
        "zIndex": 10,
        "opacity": 1.0,
        "textAlign": "left",
        "lineHeight": 1.2
    }
    """

    kind: ClassVar[LayerKind] = LayerKind.TEXT

    content: str = Field(default='')
    font_size: int = Field(default=24, alias='fontSize')
    color: str = Field(default='#000000')
    font_family: str = Field(default='Arial', alias='fontFamily')
    font_weight: int = Field(default=400, alias='fontWeight')
    z_index: int = Field(default=10, alias='zIndex')
    text_align: AlignKind = Field(default='left', alias='textAlign')
    line_height: float = Field(default=1.2, alias='lineHeight')

    @field_validator('font_weight', mode='before')
    @classmethod
    def _coerce_weight(cls, v: Any) -> Any:
        """Accept CSS keyword weights."""
        if v == 'normal':
            return 400
        if v == 'bold':
            return 700
        return v

    @property
    def lines(self) -> list[str]:
        """Content split into lines (line breaks are preserved)."""
        return self.content.splitlines() or ['']

    def is_bold(self) -> bool:
        """Check if the weight maps to a bold face."""
        return self.font_weight >= 600

    def has_content(self) -> bool:
        """Check if layer has visible text."""
        return bool(self.content.strip())

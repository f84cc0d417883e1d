"""
MarkupLayer - Layer holding a block of raw markup.

The markup is placed into the visual tree verbatim. It is never sanitized:
callers that accept untrusted input must sanitize it before building the
layer.
"""

from typing import ClassVar

from pydantic import Field

from .base import BaseLayer, LayerKind, Size


class MarkupLayer(BaseLayer):
    """
    Markup (HTML/SVG) layer.

    Serialization format:
    {
        "id": "uuid",
        "content": "<div>HTML content</div>",
        "position": {"x": 200, "y": 200},
        "size": {"width": 200, "height": 100},
        "zIndex": 5,
        "opacity": 1.0
    }
    """

    kind: ClassVar[LayerKind] = LayerKind.MARKUP

    content: str = Field(default='')
    size: Size = Field(default_factory=Size)
    z_index: int = Field(default=5, alias='zIndex')

    def is_svg(self) -> bool:
        """Check if the markup is a standalone SVG document."""
        head = self.content.lstrip()[:256].lower()
        return head.startswith('<svg') or (head.startswith('<?xml') and '<svg' in head)

    def has_content(self) -> bool:
        """Check if layer has markup and a drawable area."""
        return bool(self.content.strip()) and self.size.width > 0 and self.size.height > 0

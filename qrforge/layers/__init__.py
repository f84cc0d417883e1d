"""
Canvas Layer Models

Pydantic models for the user layers of a QR canvas, matching the JSON
interchange format.

Layer Hierarchy:
    BaseLayer (abstract)
    ├── BackgroundLayer (kind: 'background')
    ├── TextLayer (kind: 'text')
    └── MarkupLayer (kind: 'html')
"""

from .base import (
    KIND_ORDER,
    BaseLayer,
    LayerKind,
    Position,
    Size,
    apply_updates,
    new_layer_id,
)
from .background import BackgroundLayer, FitMode
from .markup_layer import MarkupLayer
from .text_layer import AlignKind, TextLayer

# Layer kind registry for deserialization
_LAYER_REGISTRY: dict[LayerKind, type[BaseLayer]] = {
    LayerKind.BACKGROUND: BackgroundLayer,
    LayerKind.TEXT: TextLayer,
    LayerKind.MARKUP: MarkupLayer,
}


def get_layer_class(kind: LayerKind | str) -> type[BaseLayer]:
    """
    Get the layer class for a layer kind.

    Args:
        kind: Layer kind ('background', 'text', 'html')

    Returns:
        Layer class

    Raises:
        ValueError: If the kind is unknown
    """
    return _LAYER_REGISTRY[LayerKind(kind)]


def layer_from_dict(kind: LayerKind | str, data: dict) -> BaseLayer:
    """
    Create a layer instance from a serialized dictionary.

    Args:
        kind: Layer kind the data belongs to
        data: Serialized layer data (camelCase or snake_case keys)

    Returns:
        Layer instance of the appropriate type
    """
    return get_layer_class(kind).model_validate(data)


__all__ = [
    # Base
    'BaseLayer',
    'LayerKind',
    'KIND_ORDER',
    'Position',
    'Size',
    # Layer types
    'BackgroundLayer',
    'FitMode',
    'TextLayer',
    'AlignKind',
    'MarkupLayer',
    # Utilities
    'apply_updates',
    'new_layer_id',
    'get_layer_class',
    'layer_from_dict',
]

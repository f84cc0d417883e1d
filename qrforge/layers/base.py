"""
BaseLayer - Abstract base model for all canvas layer types.

Provides shared properties for all layers:
- Identity: id (assigned at creation, never changes)
- Placement: position (canvas pixels, origin top-left)
- Stacking: zIndex (higher paints later)
- Appearance: opacity

Uses Pydantic v2 with camelCase aliases so the JSON form matches the
interchange format produced by the browser tool.
"""

from enum import Enum
from typing import Any, ClassVar, TypeVar
import uuid

from pydantic import BaseModel, ConfigDict, Field


class LayerKind(str, Enum):
    """Layer kind tags. The declaration order is the stacking tie-break order."""
    BACKGROUND = "background"
    TEXT = "text"
    MARKUP = "html"


#: Tie-break rank used when two layers share a zIndex
KIND_ORDER: dict[LayerKind, int] = {kind: index for index, kind in enumerate(LayerKind)}

ModelT = TypeVar('ModelT', bound=BaseModel)


def new_layer_id() -> str:
    """Allocate a new globally unique layer identifier."""
    return str(uuid.uuid4())


def _alias_map(model_class: type[BaseModel]) -> dict[str, str]:
    """Map both field names and aliases to the serialized key."""
    mapping: dict[str, str] = {}
    for name, info in model_class.model_fields.items():
        key = info.alias or name
        mapping[name] = key
        mapping[key] = key
    return mapping


def apply_updates(model: ModelT, changes: dict[str, Any]) -> ModelT:
    """
    Return a copy of a model with some fields replaced.

    Accepts snake_case field names as well as camelCase aliases. The
    receiver is left untouched.

    Args:
        model: Model to copy
        changes: Field values to replace

    Returns:
        New model instance of the same type

    Raises:
        ValueError: If a key does not name a field of the model
    """
    model_class = type(model)
    keys = _alias_map(model_class)
    data = model.model_dump(by_alias=True)
    for key, value in changes.items():
        if key not in keys:
            raise ValueError(f"Unknown field '{key}' for {model_class.__name__}")
        if isinstance(value, BaseModel):
            value = value.model_dump(by_alias=True)
        data[keys[key]] = value
    return model_class.model_validate(data)


class Position(BaseModel):
    """Point in canvas pixel space."""
    x: float = Field(default=0)
    y: float = Field(default=0)


class Size(BaseModel):
    """Width and height in canvas pixels."""
    width: float = Field(default=0)
    height: float = Field(default=0)


class BaseLayer(BaseModel):
    """
    Base model for all layer types.

    Serializes to:
    {
        "id": "uuid",
        "position": {"x": 0, "y": 0},
        "zIndex": 1,
        "opacity": 1.0,
        ...kind specific properties
    }

    The kind is not written to JSON; the collection a layer is stored in
    (backgrounds, texts, htmlModules) identifies it.
    """

    model_config = ConfigDict(
        # Allow both snake_case and camelCase input
        populate_by_name=True,
        # Ranges are checked by validate(), not on construction
        validate_assignment=False,
        # Allow extra fields for forward compatibility
        extra='ignore',
        use_enum_values=True,
    )

    kind: ClassVar[LayerKind]

    id: str = Field(default_factory=new_layer_id)
    position: Position = Field(default_factory=Position)
    z_index: int = Field(default=0, alias='zIndex')
    opacity: float = Field(default=1.0)

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the camelCase interchange dictionary."""
        return self.model_dump(by_alias=True, mode='json', exclude_none=True)

    def with_updates(self, **changes: Any) -> 'BaseLayer':
        """
        Return an updated copy of this layer.

        Args:
            **changes: Field values keyed by field name or alias

        Returns:
            New layer with the same id

        Raises:
            ValueError: On unknown fields or an attempt to change the id
        """
        if 'id' in changes and changes['id'] != self.id:
            raise ValueError(f"Layer id is immutable (layer {self.id})")
        return apply_updates(self, changes)

    def get_bounds(self) -> dict[str, float]:
        """
        Get the bounds of this layer in canvas coordinates.

        Returns:
            Dict with x, y, width, height
        """
        size = getattr(self, 'size', None)
        return {
            'x': self.position.x,
            'y': self.position.y,
            'width': size.width if size is not None else 0,
            'height': size.height if size is not None else 0,
        }

    def stacking_key(self) -> tuple[int, int]:
        """Sort key placing this layer by zIndex, then by kind."""
        return (self.z_index, KIND_ORDER[self.kind])

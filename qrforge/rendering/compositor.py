"""Layer compositor.

Builds the visual tree for one render cycle from a configuration, the
assets resolved for it and the generated QR symbol. Composition is pure:
no network or file access and no pixel work happens here.

Stacking:
    All user layers are flattened (backgrounds, then texts, then markup,
    each in insertion order) and stably sorted by zIndex, so equal zIndex
    values keep that kind order. The QR symbol is appended last and is
    always on top.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from qrforge.canvas import CanvasConfiguration
from qrforge.config import settings
from qrforge.layers import BackgroundLayer, BaseLayer, MarkupLayer, TextLayer

if TYPE_CHECKING:
    from qrforge.assets import AssetWarning, ResolvedAsset
    from .qr_symbol import QrSymbol

logger = logging.getLogger(__name__)

SYMBOL_LAYER_ID = "qr"


class NodeKind(str, Enum):
    """Visual node kinds; the rasterizer dispatches on these."""
    IMAGE = "image"
    TEXT = "text"
    MARKUP = "markup"
    SYMBOL = "symbol"


@dataclass
class ImagePayload:
    asset: "ResolvedAsset"
    mode: str = "fill"


@dataclass
class TextPayload:
    lines: list[str]
    font_size: float
    color: str
    font_family: str
    bold: bool = False
    align: str = "left"
    line_height: float = 1.2


@dataclass
class MarkupPayload:
    content: str


@dataclass
class VisualNode:
    """One positioned element of the visual tree.

    Attributes:
        kind: What the payload holds
        layer_id: Layer the node was built from ("qr" for the symbol)
        x, y: Top-left corner in canvas pixels
        width, height: Box size in canvas pixels. Text nodes have width 0
            and are sized by their content when drawn.
        opacity: Per-node opacity (0.0 - 1.0), never inherited
        z_index: Stacking key of the source layer
        payload: Kind specific data
    """
    kind: NodeKind
    layer_id: str
    x: float
    y: float
    width: float
    height: float
    opacity: float = 1.0
    z_index: int = 0
    payload: Any = None


@dataclass
class VisualTree:
    """Ordered visual nodes of one canvas, bottom to top."""
    width: float
    height: float
    background: str = field(default_factory=lambda: settings.CANVAS_BACKGROUND)
    nodes: list[VisualNode] = field(default_factory=list)
    warnings: list["AssetWarning"] = field(default_factory=list)
    generation: int = 0

    @property
    def layer_ids(self) -> list[str]:
        """Layer ids in paint order."""
        return [node.layer_id for node in self.nodes]

    def find(self, layer_id: str) -> VisualNode | None:
        for node in self.nodes:
            if node.layer_id == layer_id:
                return node
        return None


def order_layers(config: CanvasConfiguration) -> list[BaseLayer]:
    """
    User layers in paint order, bottom to top.

    sorted() is stable, so ties keep the flattened order
    (background < text < markup, then insertion order).
    """
    return sorted(config.all_layers(), key=lambda layer: layer.z_index)


def _background_node(layer: BackgroundLayer, asset: "ResolvedAsset") -> VisualNode:
    return VisualNode(
        kind=NodeKind.IMAGE,
        layer_id=layer.id,
        x=layer.position.x,
        y=layer.position.y,
        width=layer.size.width,
        height=layer.size.height,
        opacity=layer.opacity,
        z_index=layer.z_index,
        payload=ImagePayload(asset=asset, mode=layer.mode),
    )


def _text_node(layer: TextLayer) -> VisualNode:
    lines = layer.lines
    return VisualNode(
        kind=NodeKind.TEXT,
        layer_id=layer.id,
        x=layer.position.x,
        y=layer.position.y,
        width=0,
        height=layer.font_size * layer.line_height * len(lines),
        opacity=layer.opacity,
        z_index=layer.z_index,
        payload=TextPayload(
            lines=lines,
            font_size=layer.font_size,
            color=layer.color,
            font_family=layer.font_family,
            bold=layer.is_bold(),
            align=layer.text_align,
            line_height=layer.line_height,
        ),
    )


def _markup_node(layer: MarkupLayer) -> VisualNode:
    return VisualNode(
        kind=NodeKind.MARKUP,
        layer_id=layer.id,
        x=layer.position.x,
        y=layer.position.y,
        width=layer.size.width,
        height=layer.size.height,
        opacity=layer.opacity,
        z_index=layer.z_index,
        payload=MarkupPayload(content=layer.content),
    )


def symbol_node(config: CanvasConfiguration, symbol: "QrSymbol") -> VisualNode:
    """The QR symbol node, occupying the declared QR box."""
    qr = config.qr
    return VisualNode(
        kind=NodeKind.SYMBOL,
        layer_id=SYMBOL_LAYER_ID,
        x=qr.position.x,
        y=qr.position.y,
        width=qr.size,
        height=qr.size,
        opacity=1.0,
        z_index=max((layer.z_index for layer in config.all_layers()), default=0) + 1,
        payload=symbol,
    )


def compose(
    config: CanvasConfiguration,
    assets: Mapping[str, "ResolvedAsset"],
    symbol: "QrSymbol | None",
    *,
    warnings: Iterable["AssetWarning"] = (),
    generation: int = 0,
) -> VisualTree:
    """
    Build the visual tree for a configuration.

    Background layers without a resolved asset are left out; their
    failures are expected to be among ``warnings``. Empty text and markup
    layers are left out as well.

    Args:
        config: Canvas configuration (read only)
        assets: Resolved background assets keyed by layer id
        symbol: Generated QR symbol, drawn on top of everything
        warnings: Per-layer asset warnings of this cycle
        generation: Render cycle counter the tree belongs to

    Returns:
        VisualTree with nodes bottom to top
    """
    tree = VisualTree(
        width=config.export.width,
        height=config.export.height,
        warnings=list(warnings),
        generation=generation,
    )

    for layer in order_layers(config):
        if isinstance(layer, BackgroundLayer):
            asset = assets.get(layer.id)
            if asset is None:
                logger.debug(f"Background {layer.id} has no asset, skipped")
                continue
            tree.nodes.append(_background_node(layer, asset))
        elif isinstance(layer, TextLayer):
            if layer.has_content():
                tree.nodes.append(_text_node(layer))
        elif isinstance(layer, MarkupLayer):
            if layer.has_content():
                tree.nodes.append(_markup_node(layer))

    if symbol is not None:
        tree.nodes.append(symbol_node(config, symbol))

    logger.debug(f"Composed {len(tree.nodes)} nodes for generation {generation}")
    return tree


__all__ = [
    "ImagePayload",
    "MarkupPayload",
    "NodeKind",
    "TextPayload",
    "VisualNode",
    "VisualTree",
    "compose",
    "order_layers",
    "symbol_node",
]

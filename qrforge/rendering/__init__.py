"""
Rendering: QR symbol generation, composition and rasterization.

Pipeline:
    QrSymbolRenderer.render()  ->  QrSymbol
    compose(config, assets, symbol)  ->  VisualTree
    Rasterizer.rasterize(tree, export)  ->  ExportResult
"""

from .compositor import (
    ImagePayload,
    MarkupPayload,
    NodeKind,
    TextPayload,
    VisualNode,
    VisualTree,
    compose,
    order_layers,
)
from .fonts import FontRegistry
from .markup import extract_text, render_markup, render_svg
from .qr_symbol import QrSymbol, QrSymbolRenderer
from .rasterizer import ExportResult, Rasterizer, effective_corner_radius

__all__ = [
    'ExportResult',
    'FontRegistry',
    'ImagePayload',
    'MarkupPayload',
    'NodeKind',
    'QrSymbol',
    'QrSymbolRenderer',
    'Rasterizer',
    'TextPayload',
    'VisualNode',
    'VisualTree',
    'compose',
    'effective_corner_radius',
    'extract_text',
    'order_layers',
    'render_markup',
    'render_svg',
]

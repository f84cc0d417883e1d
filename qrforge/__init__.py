"""
qrforge - QR canvas composition and export.

Composes a styled QR symbol with background images, text and markup
layers on a fixed-size canvas and rasterizes the result to PNG or JPEG.

Example:
    from qrforge import CanvasConfiguration, RenderSession

    config = CanvasConfiguration().add_text(content="Scan me")
    result = await RenderSession().export(config, scale=2)
    result.save("qr.png")
"""

from .assets import AssetResolver, AssetWarning, ResolvedAsset, read_file_as_data_url
from .canvas import (
    CanvasConfiguration,
    ErrorCorrectionLevel,
    ExportSpec,
    Gradient,
    QrSpec,
    calculate_default_qr_settings,
)
from .config import Settings, settings
from .exceptions import (
    AssetResolutionError,
    ConfigurationParseError,
    QRForgeError,
    RasterizationError,
    SymbolGenerationError,
)
from .formats import ValidationResult, deserialize, serialize, validate
from .layers import BackgroundLayer, MarkupLayer, TextLayer
from .rendering import ExportResult, QrSymbolRenderer, Rasterizer, compose
from .session import RenderResult, RenderSession

__version__ = "0.1.0"

__all__ = [
    # Configuration
    'CanvasConfiguration',
    'QrSpec',
    'ExportSpec',
    'Gradient',
    'ErrorCorrectionLevel',
    'BackgroundLayer',
    'TextLayer',
    'MarkupLayer',
    'calculate_default_qr_settings',
    # Pipeline
    'AssetResolver',
    'AssetWarning',
    'ResolvedAsset',
    'read_file_as_data_url',
    'QrSymbolRenderer',
    'Rasterizer',
    'ExportResult',
    'compose',
    'RenderSession',
    'RenderResult',
    # Exchange
    'serialize',
    'deserialize',
    'validate',
    'ValidationResult',
    # Errors
    'QRForgeError',
    'AssetResolutionError',
    'SymbolGenerationError',
    'RasterizationError',
    'ConfigurationParseError',
    # Settings
    'Settings',
    'settings',
]

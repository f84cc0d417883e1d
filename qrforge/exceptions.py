"""Exception classes for canvas rendering and export."""


class QRForgeError(Exception):
    """Base exception for qrforge errors."""

    pass


class AssetResolutionError(QRForgeError):
    """Raised when a layer's source could not be fetched or decoded.

    Only the affected layer is dropped; the render cycle carries on.
    """

    def __init__(self, message: str, *, source: str = "", layer_id: str | None = None):
        super().__init__(message)
        self.source = source
        self.layer_id = layer_id


class SymbolGenerationError(QRForgeError):
    """Raised when the QR content and options cannot produce a symbol."""

    pass


class RasterizationError(QRForgeError):
    """Raised when a snapshot or encode step fails."""

    pass


class ConfigurationParseError(QRForgeError):
    """Raised for malformed serialized configurations."""

    pass

"""Configuration exchange formats."""

from .exchange import (
    QR_OUT_OF_BOUNDS,
    ValidationResult,
    deserialize,
    load_config,
    save_config,
    serialize,
    validate,
)

__all__ = [
    'QR_OUT_OF_BOUNDS',
    'ValidationResult',
    'deserialize',
    'load_config',
    'save_config',
    'serialize',
    'validate',
]

"""
Configuration exchange - JSON import/export and validation.

Format: a single JSON object mirroring CanvasConfiguration:
{
    "qr": {...},
    "backgrounds": [...],
    "texts": [...],
    "htmlModules": [...],
    "export": {...}
}

Inline asset data (data URLs) is carried inline, so configurations with
embedded images can be large.

Example usage:
    text = serialize(config)
    config = deserialize(text)

    result = validate(config)
    if not result.is_valid:
        print(result.errors)
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from qrforge.canvas import CanvasConfiguration
from qrforge.exceptions import ConfigurationParseError

QR_OUT_OF_BOUNDS = "QR code is out of bounds of the canvas"


@dataclass
class ValidationResult:
    """Outcome of validate(). Not an exception."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors)}

    def __bool__(self) -> bool:
        return self.is_valid


def serialize(config: CanvasConfiguration) -> str:
    """
    Serialize a configuration to JSON text.

    Output is deterministic: camelCase keys in model field order, two-space
    indentation, unset optional fields omitted.
    """
    return json.dumps(config.to_api_dict(), indent=2, ensure_ascii=False)


def deserialize(text: Union[str, bytes]) -> CanvasConfiguration:
    """
    Parse JSON text into a configuration.

    Args:
        text: JSON text as produced by serialize()

    Returns:
        New CanvasConfiguration

    Raises:
        ConfigurationParseError: On malformed JSON or a shape mismatch. No
            partially populated configuration is ever returned.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationParseError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationParseError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    try:
        return CanvasConfiguration.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationParseError(f"Invalid configuration: {problems}") from e


def save_config(config: CanvasConfiguration, path: Union[str, Path]) -> Path:
    """Write a configuration to a JSON file."""
    path = Path(path)
    path.write_text(serialize(config), encoding="utf-8")
    return path


def load_config(path: Union[str, Path]) -> CanvasConfiguration:
    """
    Read a configuration from a JSON file.

    Raises:
        ConfigurationParseError: If the file is unreadable or malformed
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationParseError(f"Cannot read {path}: {e}") from e
    return deserialize(text)


def validate(config: CanvasConfiguration) -> ValidationResult:
    """
    Check a configuration and collect every violated rule.

    Checks run in a fixed order and never stop at the first failure, so
    repeated calls on the same configuration return identical results.

    Args:
        config: Configuration to check (not modified)

    Returns:
        ValidationResult with one message per violation
    """
    errors: list[str] = []
    qr = config.qr
    export = config.export

    if not qr.content:
        errors.append("QR content must not be empty")

    if export.width <= 0 or export.height <= 0:
        errors.append("Canvas size must be greater than 0")

    if qr.position.x < 0 or qr.position.y < 0:
        errors.append("QR position must not be negative")
    if qr.position.x >= export.width or qr.position.y >= export.height:
        errors.append("QR position is outside the canvas")

    if qr.size <= 0:
        errors.append("QR size must be greater than 0")
    elif qr.position.x + qr.size > export.width or qr.position.y + qr.size > export.height:
        errors.append(QR_OUT_OF_BOUNDS)

    if not 0 <= export.quality <= 1:
        errors.append(f"Export quality must be within [0, 1], got {export.quality:g}")

    for index, background in enumerate(config.backgrounds, start=1):
        if not background.src:
            errors.append(f"Background {index} is missing a source")
        if background.size.width <= 0 or background.size.height <= 0:
            errors.append(f"Background {index} size must be greater than 0")
        if not 0 <= background.opacity <= 1:
            errors.append(f"Background {index} opacity must be within [0, 1]")

    return ValidationResult(is_valid=not errors, errors=errors)

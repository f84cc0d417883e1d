"""Application configuration."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Asset fetching
    ASSET_TIMEOUT: float = 10.0  # Seconds before a slow asset counts as failed
    MAX_ASSET_BYTES: int = 20 * 1024 * 1024  # Max remote image payload
    MAX_ASSET_PIXELS: int = 50_000_000  # Max decoded width * height of an asset
    USER_AGENT: str = "qrforge/0.1"

    # Rasterization
    DEFAULT_SCALE: float = 2.0  # Live preview scale factor
    CANVAS_BACKGROUND: str = "#FFFFFF"
    QR_SUPERSAMPLE: int = 2
    MARKUP_SUPERSAMPLE: int = 2

    # Text rendering
    DEFAULT_FONT_FAMILY: str = "Arial"
    FONT_SEARCH_PATHS: list[Path] = Field(
        default_factory=lambda: [
            Path("/usr/share/fonts"),
            Path("/usr/local/share/fonts"),
            Path.home() / ".fonts",
            Path("/Library/Fonts"),
            Path("C:/Windows/Fonts"),
        ]
    )

    # Layout defaults
    DEFAULT_QR_RATIO: float = 0.6  # QR side relative to the shorter canvas side

    model_config = {"env_prefix": "QRFORGE_"}


settings = Settings()

"""
Font registry for text layers.

This module provides a font registry that:
1. Resolves CSS-like family names to TrueType files on the search paths
2. Picks a bold face for weights of 600 and above
3. Falls back to common system fonts, then to Pillow's built-in font
4. Caches font handles per (family, size, bold)
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import RLock

import PIL.ImageFont

from qrforge.config import settings

logger = logging.getLogger(__name__)

FontHandle = PIL.ImageFont.FreeTypeFont | PIL.ImageFont.ImageFont

# Families tried when the requested one is not installed
FALLBACK_FAMILIES = ["Arial", "Helvetica", "DejaVuSans", "LiberationSans", "Roboto"]

# Known file stems for families whose files do not follow "<Family>.ttf"
_KNOWN_FILES: dict[str, tuple[list[str], list[str]]] = {
    "arial": (["arial", "Arial"], ["arialbd", "Arial Bold", "Arial-Bold"]),
    "helvetica": (["Helvetica"], ["Helvetica-Bold"]),
    "dejavusans": (["DejaVuSans"], ["DejaVuSans-Bold"]),
    "liberationsans": (["LiberationSans-Regular"], ["LiberationSans-Bold"]),
    "timesnewroman": (["times", "Times New Roman"], ["timesbd", "Times New Roman Bold"]),
    "couriernew": (["cour", "Courier New"], ["courbd", "Courier New Bold"]),
    "georgia": (["georgia", "Georgia"], ["georgiab", "Georgia Bold"]),
    "verdana": (["verdana", "Verdana"], ["verdanab", "Verdana Bold"]),
}

_FONT_SUFFIXES = (".ttf", ".otf", ".ttc")


def _normalize_family(family: str) -> str:
    """Normalize a CSS family name: first entry, no quotes, spaces or dashes."""
    first = family.split(",")[0].strip().strip("'\"")
    return first.replace(" ", "").replace("-", "").lower()


class FontRegistry:
    """
    Manages the fonts used for text layers.

    Font files are indexed lazily from the configured search paths the first
    time a font is requested.
    """

    access_lock = RLock()
    "Multi-thread access lock"
    _index: dict[str, Path] | None = None
    "Lower-case file stem to font path"
    _cached_fonts: dict[tuple[str, int, bool], FontHandle] = {}
    "Loaded font handles"

    @classmethod
    def _build_index(cls) -> dict[str, Path]:
        index: dict[str, Path] = {}
        for root in settings.FONT_SEARCH_PATHS:
            if not root.is_dir():
                continue
            try:
                for path in root.rglob("*"):
                    if path.suffix.lower() in _FONT_SUFFIXES:
                        index.setdefault(path.stem.lower(), path)
            except OSError as e:
                logger.debug(f"Skipping font directory {root}: {e}")
        logger.debug(f"Indexed {len(index)} font files")
        return index

    @classmethod
    def _ensure_index(cls) -> dict[str, Path]:
        with cls.access_lock:
            if cls._index is None:
                cls._index = cls._build_index()
            return cls._index

    @classmethod
    def reset(cls) -> None:
        """Drop the file index and all cached handles."""
        with cls.access_lock:
            cls._index = None
            cls._cached_fonts.clear()

    @classmethod
    def _candidate_stems(cls, family: str, bold: bool) -> list[str]:
        key = _normalize_family(family)
        regular, bold_files = _KNOWN_FILES.get(key, ([], []))
        raw = family.split(",")[0].strip().strip("'\"")
        compact = raw.replace(" ", "")
        if bold:
            return [*bold_files, f"{compact}-Bold", f"{compact}bd", f"{raw} Bold"]
        return [*regular, compact, f"{compact}-Regular", raw]

    @classmethod
    def _load(cls, family: str, size: int, bold: bool) -> FontHandle | None:
        index = cls._ensure_index()
        for stem in cls._candidate_stems(family, bold):
            path = index.get(stem.lower())
            if path is not None:
                try:
                    return PIL.ImageFont.truetype(str(path), size)
                except OSError as e:
                    logger.warning(f"Failed to load font from {path}: {e}")
            # Pillow also searches the platform font directories by file name
            try:
                return PIL.ImageFont.truetype(f"{stem}.ttf", size)
            except OSError:
                continue
        return None

    @classmethod
    def get_font(cls, family: str | None, size: int, bold: bool = False) -> FontHandle:
        """
        Get a font handle for a family, size and weight.

        :param family: CSS-like family name, e.g. "Arial" or "'Open Sans', sans-serif"
        :param size: Size in pixels
        :param bold: Request the bold face
        :return: The closest available font. Never None.
        """
        family = family or settings.DEFAULT_FONT_FAMILY
        size = max(1, int(round(size)))
        cache_key = (_normalize_family(family), size, bold)

        with cls.access_lock:
            if cache_key in cls._cached_fonts:
                return cls._cached_fonts[cache_key]

        font = cls._load(family, size, bold)
        if font is None and bold:
            font = cls._load(family, size, False)
        if font is None:
            for fallback in FALLBACK_FAMILIES:
                font = cls._load(fallback, size, bold) or cls._load(fallback, size, False)
                if font is not None:
                    logger.debug(f"Font '{family}' not found, using '{fallback}'")
                    break
        if font is None:
            logger.debug(f"No TrueType font for '{family}', using the built-in font")
            font = PIL.ImageFont.load_default(size=size)

        with cls.access_lock:
            cls._cached_fonts[cache_key] = font
        return font


__all__ = ["FontRegistry", "FontHandle"]

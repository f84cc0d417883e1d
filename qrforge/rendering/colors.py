"""CSS colour parsing for the renderers."""

import logging
import re
from typing import Any

from PIL import ImageColor

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]

TRANSPARENT: RGBA = (0, 0, 0, 0)

_RGBA_FUNC = re.compile(
    r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)",
    re.IGNORECASE,
)


def parse_color(color: Any, default: RGBA = (0, 0, 0, 255)) -> RGBA:
    """
    Parse a colour into an RGBA tuple.

    Accepts:
    - Hex strings: '#f00', '#FF0000', '#FF000080'
    - CSS functions: 'rgb(255, 0, 0)', 'rgba(255, 0, 0, 0.5)'
    - Named colours and 'transparent'
    - RGB or RGBA tuples/lists (0-255)

    Unparseable values log a debug message and yield ``default``.

    Returns:
        RGBA tuple (0-255)
    """
    if isinstance(color, (list, tuple)):
        values = [int(c) for c in color[:4]]
        if len(values) == 3:
            values.append(255)
        return tuple(values)  # type: ignore[return-value]
    if not isinstance(color, str) or not color.strip():
        return default

    text = color.strip()
    if text.lower() == "transparent":
        return TRANSPARENT

    match = _RGBA_FUNC.fullmatch(text)
    if match:
        r, g, b = (min(255, int(float(v))) for v in match.group(1, 2, 3))
        alpha = match.group(4)
        if alpha is None:
            a = 255
        elif alpha.endswith("%"):
            a = round(float(alpha[:-1]) * 2.55)
        else:
            a = round(float(alpha) * 255)
        return (r, g, b, max(0, min(255, a)))

    try:
        rgb = ImageColor.getrgb(text)
    except ValueError:
        logger.debug(f"Unparseable colour {color!r}, using default")
        return default
    if len(rgb) == 3:
        return (*rgb, 255)
    return rgb  # type: ignore[return-value]

"""Text block layout and drawing with PIL."""

import math
from typing import Literal

from PIL import Image, ImageDraw

from .colors import RGBA
from .fonts import FontHandle


def font_metrics(font: FontHandle) -> tuple[int, int]:
    """Return (ascent, descent) for a font."""
    if hasattr(font, "getmetrics"):
        return font.getmetrics()
    bbox = font.getbbox("Ag")
    return int(bbox[3]), 0


def measure_line(font: FontHandle, line: str) -> int:
    """Advance width of one line in pixels."""
    if not line:
        return 0
    return int(math.ceil(font.getlength(line)))


def wrap_text(text: str, font: FontHandle, max_width: float) -> list[str]:
    """
    Greedy word wrap.

    Explicit line breaks are kept. A single word wider than max_width is
    left on its own line rather than split.
    """
    lines: list[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if measure_line(font, candidate) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


def render_text_block(
    lines: list[str],
    font: FontHandle,
    color: RGBA,
    *,
    align: Literal["left", "center", "right"] = "left",
    line_height: float,
    width: int | None = None,
) -> Image.Image:
    """
    Draw lines of text onto a transparent RGBA image.

    Each line occupies a box of ``line_height`` pixels with the glyphs
    centred vertically inside it (half-leading above and below).

    Args:
        lines: Text lines, top to bottom
        font: Font handle
        color: Fill colour
        align: Horizontal alignment of each line inside the block
        line_height: Line box height in pixels
        width: Block width. Defaults to the widest line.

    Returns:
        RGBA image of the text block
    """
    widths = [measure_line(font, line) for line in lines]
    block_width = max(1, width if width is not None else max(widths, default=0))
    block_height = max(1, int(math.ceil(line_height * len(lines))))

    image = Image.new("RGBA", (block_width, block_height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    ascent, descent = font_metrics(font)
    half_leading = (line_height - (ascent + descent)) / 2

    for index, (line, line_width) in enumerate(zip(lines, widths)):
        if not line:
            continue
        if align == "center":
            x = (block_width - line_width) / 2
        elif align == "right":
            x = block_width - line_width
        else:
            x = 0
        y = index * line_height + half_leading
        draw.text((x, y), line, font=font, fill=color)

    return image

"""Markup layer rendering.

SVG markup is rendered with resvg. resvg is the only SVG renderer used
here; do not switch to CairoSVG or librsvg.

Other markup has no layout engine behind it. Its text content is
extracted (block elements and <br> become line breaks) and drawn with the
font registry, honouring a handful of inline styles on the elements
(color, font-size, font-weight, font-family, text-align,
background-color). Markup is never sanitized.
"""

import io
import logging
import re
from html.parser import HTMLParser

from PIL import Image
from resvg_py import svg_to_bytes

from qrforge.config import settings

from .colors import parse_color
from .fonts import FontRegistry
from .text import render_text_block, wrap_text

logger = logging.getLogger(__name__)

DEFAULT_SVG_SIZE = (300, 150)
DEFAULT_FONT_SIZE = 16

_SVG_TAG = re.compile(r"<(/?)svg\b[^>]*?(/?)>", re.IGNORECASE)
_PX_LENGTH = re.compile(r"^\s*([\d.]+)\s*(px)?\s*$", re.IGNORECASE)

_BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
    "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
    "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p", "pre",
    "section", "table", "tr", "ul",
}
_SKIPPED_TAGS = {"script", "style", "head", "title", "template"}
_HEADING_SIZES = {"h1": 32, "h2": 24, "h3": 19, "h4": 16, "h5": 13, "h6": 11}


def _normalize_svg_dimensions(svg_content: str, width: int, height: int) -> str:
    """Normalize SVG dimensions to pixel values.

    Some SVGs use units like mm, cm, in, pt, etc. which resvg may not handle
    well without explicit pixel dimensions. This function replaces the
    width/height attributes on the root <svg> element with pixel values.

    Args:
        svg_content: Raw SVG string
        width: Target width in pixels
        height: Target height in pixels

    Returns:
        SVG string with normalized dimensions
    """
    svg_tag_match = re.search(r'(<svg[^>]*>)', svg_content, re.IGNORECASE | re.DOTALL)
    if not svg_tag_match:
        return svg_content

    svg_tag = svg_tag_match.group(1)
    new_svg_tag = re.sub(
        r'\bwidth\s*=\s*["\'][^"\']*["\']',
        f'width="{width}"',
        svg_tag,
        count=1
    )
    new_svg_tag = re.sub(
        r'\bheight\s*=\s*["\'][^"\']*["\']',
        f'height="{height}"',
        new_svg_tag,
        count=1
    )

    # Missing attributes are added before the closing >
    if 'width=' not in new_svg_tag.lower():
        new_svg_tag = new_svg_tag.replace('>', f' width="{width}">', 1)
    if 'height=' not in new_svg_tag.lower():
        new_svg_tag = new_svg_tag.replace('>', f' height="{height}">', 1)

    return svg_content.replace(svg_tag, new_svg_tag, 1)


def intrinsic_svg_size(svg_content: str) -> tuple[int, int]:
    """Declared pixel size of an SVG document, or the 300x150 default."""
    svg_tag_match = re.search(r'<svg[^>]*>', svg_content, re.IGNORECASE | re.DOTALL)
    if not svg_tag_match:
        return DEFAULT_SVG_SIZE
    tag = svg_tag_match.group(0)

    def attribute(name: str) -> float | None:
        match = re.search(rf'\b{name}\s*=\s*["\']([^"\']*)["\']', tag)
        if match is None:
            return None
        length = _PX_LENGTH.match(match.group(1))
        return float(length.group(1)) if length else None

    width, height = attribute("width"), attribute("height")
    if width and height:
        return max(1, round(width)), max(1, round(height))

    view_box = re.search(r'\bviewBox\s*=\s*["\']([^"\']*)["\']', tag)
    if view_box:
        parts = re.split(r'[\s,]+', view_box.group(1).strip())
        if len(parts) == 4:
            vb_width, vb_height = float(parts[2]), float(parts[3])
            if vb_width > 0 and vb_height > 0:
                if width:
                    return max(1, round(width)), max(1, round(width * vb_height / vb_width))
                if height:
                    return max(1, round(height * vb_width / vb_height)), max(1, round(height))
                return max(1, round(vb_width)), max(1, round(vb_height))
    return DEFAULT_SVG_SIZE


def render_svg(svg_content: str, width: int, height: int, supersample: int = 2) -> Image.Image:
    """Render an SVG string to an RGBA image using resvg.

    Args:
        svg_content: SVG string to render
        width: Output width in pixels
        height: Output height in pixels
        supersample: Render at this multiple then downscale for quality

    Returns:
        RGBA image of exactly width x height
    """
    supersample = max(1, supersample)
    svg_content = _normalize_svg_dimensions(svg_content, width, height)

    png_bytes = svg_to_bytes(
        svg_string=svg_content,
        width=width * supersample,
        height=height * supersample,
    )

    image = Image.open(io.BytesIO(bytes(png_bytes)))
    image = image.convert('RGBA')

    if image.size != (width, height):
        image = image.resize((width, height), Image.Resampling.LANCZOS)
    return image


def render_svg_document(svg_content: str) -> Image.Image:
    """Render a standalone SVG at its declared size."""
    width, height = intrinsic_svg_size(svg_content)
    return render_svg(svg_content, width, height, supersample=1)


class _TextExtractor(HTMLParser):
    """Collects visible text and the first inline style of note."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self.styles: dict[str, str] = {}
        self.heading: str | None = None
        self.bold = False
        self._skip_depth = 0

    def _line_break(self):
        if self.parts and not self.parts[-1].endswith("\n"):
            self.parts.append("\n")

    def handle_starttag(self, tag, attrs):
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1
            return
        if tag == "br":
            self.parts.append("\n")
            return
        if tag in _BLOCK_TAGS:
            self._line_break()
        if tag in _HEADING_SIZES and self.heading is None:
            self.heading = tag
        if tag in ("b", "strong") or tag in _HEADING_SIZES:
            self.bold = True
        for name, value in attrs:
            if name == "style" and value:
                for declaration in value.split(";"):
                    if ":" in declaration:
                        key, _, val = declaration.partition(":")
                        self.styles.setdefault(key.strip().lower(), val.strip())

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag in _SKIPPED_TAGS:
            self._skip_depth -= 1

    def handle_endtag(self, tag):
        if tag in _SKIPPED_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
        elif tag in _BLOCK_TAGS:
            self._line_break()

    def handle_data(self, data):
        if self._skip_depth:
            return
        text = re.sub(r"\s+", " ", data)
        if text.strip() or (self.parts and not self.parts[-1].endswith(("\n", " "))):
            self.parts.append(text)

    def text(self) -> str:
        lines = "".join(self.parts).split("\n")
        return "\n".join(line.strip() for line in lines).strip("\n")


def extract_text(markup: str) -> str:
    """Extract the visible text of an HTML fragment, keeping line breaks."""
    parser = _TextExtractor()
    parser.feed(markup)
    parser.close()
    return parser.text()


def _css_px(value: str | None, default: float) -> float:
    if value is None:
        return default
    match = _PX_LENGTH.match(value)
    return float(match.group(1)) if match else default


def render_html_text(markup: str, width: int, height: int, scale: float = 1.0) -> Image.Image:
    """
    Draw the text content of an HTML fragment into a width x height box.

    Args:
        markup: HTML fragment
        width: Box width in output pixels
        height: Box height in output pixels
        scale: Output pixels per canvas pixel (applied to font sizes)

    Returns:
        RGBA image of exactly width x height; overflowing text is clipped
    """
    parser = _TextExtractor()
    parser.feed(markup)
    parser.close()
    styles = parser.styles

    surface = Image.new("RGBA", (width, height), parse_color(styles.get("background-color"), (0, 0, 0, 0)))
    text = parser.text()
    if not text:
        return surface

    base_size = _HEADING_SIZES.get(parser.heading or "", DEFAULT_FONT_SIZE)
    font_size = _css_px(styles.get("font-size"), base_size) * scale
    weight = styles.get("font-weight", "")
    bold = parser.bold or weight == "bold" or (weight.isdigit() and int(weight) >= 600)
    font = FontRegistry.get_font(styles.get("font-family"), round(font_size), bold=bold)

    align = styles.get("text-align", "left")
    if align not in ("left", "center", "right"):
        align = "left"

    lines = wrap_text(text, font, width)
    block = render_text_block(
        lines,
        font,
        parse_color(styles.get("color")),
        align=align,
        line_height=font_size * 1.2,
        width=width,
    )
    surface.alpha_composite(block.crop((0, 0, width, min(height, block.height))))
    return surface


def find_svg_element(markup: str) -> str | None:
    """
    Return the first top-level <svg> element of a markup string.

    Nested <svg> elements are kept inside their parent; a self-closing
    root is returned on its own. None if there is no complete element.
    """
    depth = 0
    start = None
    for match in _SVG_TAG.finditer(markup):
        closing, self_closing = match.group(1), match.group(2)
        if start is None:
            if closing:
                continue
            start = match.start()
            if self_closing:
                return match.group(0)
            depth = 1
        elif closing:
            depth -= 1
            if depth == 0:
                return markup[start:match.end()]
        elif not self_closing:
            depth += 1
    return None


def render_markup(markup: str, width: int, height: int, scale: float = 1.0) -> Image.Image:
    """
    Render a markup layer's content into a box of the given pixel size.

    Standalone SVG (or an <svg> element embedded in HTML) is rendered with
    resvg at the box size. Anything else, or SVG that resvg
    rejects, is drawn as text.

    Args:
        markup: Raw markup
        width: Box width in output pixels
        height: Box height in output pixels
        scale: Output pixels per canvas pixel

    Returns:
        RGBA image of exactly width x height
    """
    width, height = max(1, width), max(1, height)
    svg_element = find_svg_element(markup)
    if svg_element is not None:
        try:
            return render_svg(
                svg_element, width, height, supersample=settings.MARKUP_SUPERSAMPLE
            )
        except Exception as e:
            logger.warning(f"SVG markup could not be rendered, drawing its text instead: {e}")
    return render_html_text(markup, width, height, scale=scale)


__all__ = [
    "extract_text",
    "find_svg_element",
    "intrinsic_svg_size",
    "render_html_text",
    "render_markup",
    "render_svg",
    "render_svg_document",
]

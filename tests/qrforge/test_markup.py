"""Tests for markup rendering, fonts and colour parsing."""

import numpy as np
import pytest

from qrforge.rendering import FontRegistry, extract_text, render_markup, render_svg
from qrforge.rendering.colors import parse_color
from qrforge.rendering.markup import (
    _normalize_svg_dimensions,
    find_svg_element,
    intrinsic_svg_size,
    render_svg_document,
)

RED_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="10mm" height="5mm" viewBox="0 0 20 10">'
    '<rect width="20" height="10" fill="#ff0000"/></svg>'
)


class TestExtractText:
    """Tests for extract_text()."""

    def test_block_elements_break_lines(self):
        text = extract_text('<div><p>Hello</p><p>World<br>again</p></div>')
        assert text == 'Hello\nWorld\nagain'

    def test_inline_elements_join(self):
        assert extract_text('<span>Scan</span> <b>me</b>') == 'Scan me'

    def test_whitespace_collapsed(self):
        assert extract_text('<p>  a   lot\n of   space </p>') == 'a lot of space'

    def test_scripts_and_styles_ignored(self):
        text = extract_text('<style>p { color: red }</style><p>shown</p><script>hidden()</script>')
        assert text == 'shown'

    def test_entities_decoded(self):
        assert extract_text('<p>Fish &amp; Chips</p>') == 'Fish & Chips'


class TestSvg:
    """Tests for SVG rendering with resvg."""

    def test_normalize_replaces_units(self):
        normalized = _normalize_svg_dimensions(RED_SVG, 40, 20)
        assert 'width="40"' in normalized
        assert 'height="20"' in normalized
        assert 'mm' not in normalized

    def test_normalize_adds_missing(self):
        normalized = _normalize_svg_dimensions('<svg viewBox="0 0 1 1"></svg>', 8, 9)
        assert 'width="8"' in normalized
        assert 'height="9"' in normalized

    def test_render_exact_size(self):
        image = render_svg(RED_SVG, 40, 20)
        assert image.size == (40, 20)
        assert image.mode == 'RGBA'
        assert image.getpixel((20, 10)) == (255, 0, 0, 255)

    def test_intrinsic_size(self):
        assert intrinsic_svg_size('<svg width="64" height="32"></svg>') == (64, 32)
        assert intrinsic_svg_size('<svg viewBox="0 0 30 15"></svg>') == (30, 15)
        assert intrinsic_svg_size('<svg width="60" viewBox="0 0 30 15"></svg>') == (60, 30)
        assert intrinsic_svg_size('<svg></svg>') == (300, 150)

    def test_render_document(self):
        svg = (
            '<svg xmlns="http://www.w3.org/2000/svg" width="16" height="8">'
            '<rect width="16" height="8" fill="#0000ff"/></svg>'
        )
        image = render_svg_document(svg)
        assert image.size == (16, 8)
        assert image.getpixel((8, 4)) == (0, 0, 255, 255)


class TestFindSvgElement:
    """Tests for find_svg_element()."""

    def test_nested_kept_whole(self):
        markup = '<div><svg id="outer"><svg id="inner"></svg><rect/></svg></div>'
        assert find_svg_element(markup) == '<svg id="outer"><svg id="inner"></svg><rect/></svg>'

    def test_self_closing_root(self):
        assert find_svg_element('<p>x</p><svg width="4" /><svg></svg>') == '<svg width="4" />'

    def test_stray_closing_tag_skipped(self):
        assert find_svg_element('</svg><SVG></SVG>') == '<SVG></SVG>'

    def test_none(self):
        assert find_svg_element('<div>no vector here</div>') is None
        assert find_svg_element('<svg><rect/>') is None


class TestRenderMarkup:
    """Tests for render_markup()."""

    def test_svg_markup_fills_box(self):
        image = render_markup(RED_SVG, 100, 100)
        assert image.size == (100, 100)
        assert image.getpixel((50, 50)) == (255, 0, 0, 255)

    def test_svg_inside_html(self):
        image = render_markup(f'<div class="logo">{RED_SVG}</div>', 30, 30)
        assert image.getpixel((15, 15)) == (255, 0, 0, 255)

    def test_nested_svg_rendered_whole(self):
        markup = (
            '<div><svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">'
            '<svg width="5" height="10"><rect width="5" height="10" fill="#0000ff"/></svg>'
            '<rect x="5" width="5" height="10" fill="#ff0000"/>'
            '</svg></div>'
        )
        image = render_markup(markup, 20, 20)
        assert image.getpixel((5, 10)) == (0, 0, 255, 255)
        assert image.getpixel((15, 10)) == (255, 0, 0, 255)

    def test_html_text_drawn(self):
        image = render_markup('<div style="color: #000000; font-size: 20px">Hello</div>', 200, 50)
        pixels = np.array(image)
        assert image.size == (200, 50)
        assert (pixels[..., 3] > 128).any()

    def test_html_background_colour(self):
        image = render_markup('<div style="background-color: #00ff00"></div>', 10, 10)
        assert image.getpixel((5, 5)) == (0, 255, 0, 255)

    def test_empty_html_transparent(self):
        image = render_markup('<div></div>', 10, 10)
        assert image.getpixel((5, 5))[3] == 0

    def test_overflow_clipped(self):
        markup = '<p>' + ' '.join(['word'] * 200) + '</p>'
        assert render_markup(markup, 60, 30).size == (60, 30)


class TestParseColor:
    """Tests for parse_color()."""

    @pytest.mark.parametrize('value, expected', [
        ('#ff0000', (255, 0, 0, 255)),
        ('#f00', (255, 0, 0, 255)),
        ('#ff000080', (255, 0, 0, 128)),
        ('rgb(0, 128, 255)', (0, 128, 255, 255)),
        ('rgba(0, 0, 0, 0.5)', (0, 0, 0, 128)),
        ('white', (255, 255, 255, 255)),
        ('transparent', (0, 0, 0, 0)),
        ((1, 2, 3), (1, 2, 3, 255)),
    ])
    def test_formats(self, value, expected):
        assert parse_color(value) == expected

    def test_unparseable_uses_default(self):
        assert parse_color('not-a-colour', (9, 9, 9, 9)) == (9, 9, 9, 9)
        assert parse_color(None) == (0, 0, 0, 255)


class TestFontRegistry:
    """Tests for FontRegistry."""

    def test_always_returns_a_font(self):
        font = FontRegistry.get_font('Definitely Not Installed', 18)
        assert font.getlength('abc') > 0

    def test_cached(self):
        first = FontRegistry.get_font('Arial', 21)
        assert FontRegistry.get_font('Arial', 21) is first

    def test_css_family_list(self):
        font = FontRegistry.get_font("'Open Sans', sans-serif", 16, bold=True)
        assert font.getlength('x') > 0

"""Tests for the layer models and CanvasConfiguration."""

import pytest

from qrforge.canvas import (
    CanvasConfiguration,
    ErrorCorrectionLevel,
    ExportSpec,
    QrSpec,
    calculate_default_qr_settings,
)
from qrforge.layers import (
    BackgroundLayer,
    LayerKind,
    MarkupLayer,
    Position,
    TextLayer,
    get_layer_class,
    layer_from_dict,
)


class TestLayerDefaults:
    """Tests for layer defaults and aliases."""

    def test_ids_are_unique(self):
        """Every new layer gets its own id."""
        ids = {TextLayer().id for _ in range(20)}
        assert len(ids) == 20

    def test_text_defaults(self):
        """Text layers default to 24px black Arial at weight 400."""
        layer = TextLayer()
        assert layer.font_size == 24
        assert layer.color == '#000000'
        assert layer.font_family == 'Arial'
        assert layer.font_weight == 400
        assert layer.z_index == 10
        assert layer.text_align == 'left'
        assert layer.line_height == 1.2

    def test_camel_case_input(self):
        """Layers accept camelCase keys."""
        layer = TextLayer.model_validate({'content': 'Hi', 'fontSize': 30, 'zIndex': 3})
        assert layer.font_size == 30
        assert layer.z_index == 3

    def test_keyword_font_weight(self):
        """CSS weight keywords are converted to numbers."""
        assert TextLayer(font_weight='bold').font_weight == 700
        assert TextLayer(font_weight='normal').font_weight == 400
        assert TextLayer(font_weight=600).is_bold()

    def test_stretch_is_fill(self):
        """'stretch' is accepted as a fit mode and stored as 'fill'."""
        layer = BackgroundLayer(src='data:,', mode='stretch')
        assert layer.mode == 'fill'

    def test_serializes_with_aliases(self):
        """API dicts use camelCase keys and omit the kind."""
        data = MarkupLayer(content='<b>x</b>').to_api_dict()
        assert data['zIndex'] == 5
        assert 'z_index' not in data
        assert 'kind' not in data

    def test_text_lines_keep_breaks(self):
        """Line breaks in content are preserved."""
        assert TextLayer(content='a\nb\n\nc').lines == ['a', 'b', '', 'c']

    def test_markup_detects_svg(self):
        """Standalone SVG markup is recognized."""
        assert MarkupLayer(content='  <svg viewBox="0 0 1 1"></svg>').is_svg()
        assert not MarkupLayer(content='<div>no</div>').is_svg()


class TestLayerRegistry:
    """Tests for the layer kind registry."""

    def test_lookup_by_kind(self):
        assert get_layer_class('html') is MarkupLayer
        assert get_layer_class(LayerKind.BACKGROUND) is BackgroundLayer

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            get_layer_class('video')

    def test_layer_from_dict(self):
        layer = layer_from_dict('text', {'content': 'Hello', 'fontSize': 12})
        assert isinstance(layer, TextLayer)
        assert layer.font_size == 12


class TestLayerUpdates:
    """Tests for with_updates()."""

    def test_returns_new_layer(self):
        """Updates never mutate the receiver."""
        layer = TextLayer(content='before')
        updated = layer.with_updates(content='after', fontSize=40)
        assert layer.content == 'before'
        assert updated.content == 'after'
        assert updated.font_size == 40
        assert updated.id == layer.id

    def test_nested_model_value(self):
        """Nested models may be passed as model instances."""
        layer = TextLayer().with_updates(position=Position(x=5, y=6))
        assert layer.position.x == 5
        assert layer.position.y == 6

    def test_id_is_immutable(self):
        layer = TextLayer()
        with pytest.raises(ValueError):
            layer.with_updates(id='other')

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            TextLayer().with_updates(fontStyle='italic')


class TestCanvasConfiguration:
    """Tests for the root aggregate."""

    def test_defaults(self, default_config):
        """A new configuration has one default QR and no layers."""
        assert default_config.qr.content == 'https://example.com'
        assert default_config.qr.size == 200
        assert default_config.qr.position.x == 50
        assert default_config.qr.margin == 4
        assert default_config.qr.dots_options.color == '#0000ff'
        assert default_config.qr.qr_options.error_correction_level == ErrorCorrectionLevel.M
        assert default_config.all_layers() == []
        assert default_config.export == ExportSpec()

    def test_error_correction_rank(self):
        ranks = [level.rank for level in ErrorCorrectionLevel]
        assert ranks == [0, 1, 2, 3]

    def test_jpeg_is_jpg(self):
        assert ExportSpec(format='JPEG').format == 'jpg'

    def test_add_background_covers_canvas(self, default_config):
        """New backgrounds are sized to the canvas."""
        config = default_config.add_background('data:image/png;base64,AAAA')
        layer = config.backgrounds[-1]
        assert layer.size.width == 800
        assert layer.size.height == 600
        assert layer.position.x == 0
        assert layer.z_index == 1
        assert layer.mode == 'fill'
        assert default_config.backgrounds == []

    def test_add_text_defaults(self, default_config):
        config = default_config.add_text()
        layer = config.texts[0]
        assert layer.content == 'New text'
        assert (layer.position.x, layer.position.y) == (100, 100)

    def test_add_with_overrides(self, default_config):
        config = default_config.add_html_module(content='<p>hi</p>', zIndex=50)
        layer = config.html_modules[0]
        assert layer.content == '<p>hi</p>'
        assert layer.z_index == 50
        assert layer.size.width == 200
        assert layer.size.height == 100

    def test_update_layer(self, default_config):
        """Updates replace one layer and leave sibling collections alone."""
        config = default_config.add_text().add_background('data:,x')
        text_id = config.texts[0].id
        updated = config.update_text(text_id, content='Changed', color='#ff0000')

        assert updated.texts[0].content == 'Changed'
        assert updated.texts[0].color == '#ff0000'
        assert config.texts[0].content == 'New text'
        assert updated.backgrounds == config.backgrounds

    def test_update_unknown_id(self, default_config):
        with pytest.raises(KeyError):
            default_config.update_text('nope', content='x')

    def test_remove_layer(self, default_config):
        config = default_config.add_text().add_text()
        first, second = config.texts
        removed = config.remove_text(first.id)
        assert [layer.id for layer in removed.texts] == [second.id]
        assert len(config.texts) == 2

    def test_remove_unknown_id(self, default_config):
        """Removing an unknown id yields an equal configuration."""
        config = default_config.add_text()
        assert config.remove_text('nope') == config

    def test_get_layer(self, default_config):
        config = default_config.add_text().add_html_module()
        markup_id = config.html_modules[0].id
        assert config.get_layer(markup_id) is config.html_modules[0]
        assert config.get_layer('missing') is None

    def test_all_layers_order(self, default_config):
        """Layers are flattened background, text, markup."""
        config = default_config.add_html_module().add_text().add_background('data:,x')
        kinds = [layer.kind for layer in config.all_layers()]
        assert kinds == [LayerKind.BACKGROUND, LayerKind.TEXT, LayerKind.MARKUP]

    def test_update_qr_and_export(self, default_config):
        config = default_config.update_qr(content='hello', size=120)
        assert config.qr.size == 120
        assert config.qr.content == 'hello'
        assert default_config.qr.content == 'https://example.com'

        config = config.update_export(width=400, borderRadius=12)
        assert config.export.width == 400
        assert config.export.border_radius == 12

    def test_update_qr_nested_options(self, default_config):
        config = default_config.update_qr(qrOptions={'errorCorrectionLevel': 'H'})
        assert config.qr.qr_options.error_correction_level == ErrorCorrectionLevel.H

    def test_center_qr(self, default_config):
        config = default_config.center_qr()
        assert config.qr.size == pytest.approx(360)
        assert config.qr.position.x == pytest.approx(220)
        assert config.qr.position.y == pytest.approx(120)


class TestDefaultQrSettings:
    """Tests for calculate_default_qr_settings()."""

    def test_centred(self):
        position, size = calculate_default_qr_settings(1000, 500, 0.5)
        assert size == 250
        assert position.x == 375
        assert position.y == 125


class TestQrSpec:
    """Tests for QrSpec helpers."""

    def test_logo_fraction_from_logo_size(self):
        spec = QrSpec.model_validate({'size': 200, 'logo': {'src': 'data:,', 'size': 50}})
        assert spec.logo_fraction() == 0.25

    def test_logo_fraction_from_image_options(self):
        spec = QrSpec.model_validate({'imageOptions': {'imageSize': 0.3}})
        assert spec.logo_fraction() == 0.3

    def test_logo_fraction_default(self):
        assert QrSpec().logo_fraction() == 0.4

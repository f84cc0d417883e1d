"""Tests for layer ordering and visual tree composition."""

import pytest

from qrforge.assets import AssetWarning
from qrforge.canvas import CanvasConfiguration
from qrforge.rendering import NodeKind, QrSymbolRenderer, compose, order_layers
from qrforge.rendering.compositor import SYMBOL_LAYER_ID


@pytest.fixture
def symbol(default_config):
    return QrSymbolRenderer(supersample=1).render(default_config.qr)


@pytest.fixture
def mixed_config(png_data_url) -> CanvasConfiguration:
    """Layers with zIndex [5, 1, 5, 3] as [background, text, markup, background]."""
    return (
        CanvasConfiguration()
        .add_background(png_data_url, zIndex=5)
        .add_text(content='label', zIndex=1)
        .add_html_module(content='<p>block</p>', zIndex=5)
        .add_background(png_data_url, zIndex=3)
    )


class TestOrderLayers:
    """Tests for order_layers()."""

    def test_stacking_scenario(self, mixed_config):
        """Sorted by zIndex; equal zIndex keeps background before markup."""
        first_bg, second_bg = mixed_config.backgrounds
        text = mixed_config.texts[0]
        markup = mixed_config.html_modules[0]

        ordered = [layer.id for layer in order_layers(mixed_config)]
        assert ordered == [text.id, second_bg.id, first_bg.id, markup.id]

    def test_ties_keep_kind_then_insertion_order(self):
        config = (
            CanvasConfiguration()
            .add_html_module(zIndex=0)
            .add_text(content='b', zIndex=0)
            .add_text(content='a', zIndex=0)
            .add_background('data:,x', zIndex=0)
        )
        ordered = [layer.id for layer in order_layers(config)]
        expected = [
            config.backgrounds[0].id,
            config.texts[0].id,
            config.texts[1].id,
            config.html_modules[0].id,
        ]
        assert ordered == expected

    def test_empty(self, default_config):
        assert order_layers(default_config) == []


class TestCompose:
    """Tests for compose()."""

    def test_symbol_on_top(self, mixed_config, red_asset, symbol):
        """The QR node is last even when layers have huge zIndex values."""
        config = mixed_config.update_text(mixed_config.texts[0].id, zIndex=100000)
        assets = {layer.id: red_asset for layer in config.backgrounds}
        tree = compose(config, assets, symbol)

        assert tree.nodes[-1].kind == NodeKind.SYMBOL
        assert tree.nodes[-1].layer_id == SYMBOL_LAYER_ID
        assert tree.layer_ids[-2] == config.texts[0].id

    def test_symbol_geometry(self, default_config, symbol):
        tree = compose(default_config, {}, symbol)
        node = tree.find(SYMBOL_LAYER_ID)
        assert (node.x, node.y, node.width, node.height) == (50, 50, 200, 200)
        assert node.payload is symbol

    def test_tree_size(self, default_config, symbol):
        tree = compose(default_config.update_export(width=320, height=240), {}, symbol)
        assert (tree.width, tree.height) == (320, 240)

    def test_missing_asset_omitted(self, mixed_config, red_asset, symbol):
        """Backgrounds without an asset are left out; the rest still renders."""
        first_bg, second_bg = mixed_config.backgrounds
        warning = AssetWarning(layer_id=first_bg.id, source='x', message='failed')
        tree = compose(mixed_config, {second_bg.id: red_asset}, symbol, warnings=[warning])

        assert first_bg.id not in tree.layer_ids
        assert second_bg.id in tree.layer_ids
        assert tree.warnings == [warning]
        assert tree.nodes[-1].kind == NodeKind.SYMBOL

    def test_node_kinds(self, mixed_config, red_asset, symbol):
        assets = {layer.id: red_asset for layer in mixed_config.backgrounds}
        tree = compose(mixed_config, assets, symbol)
        kinds = [node.kind for node in tree.nodes]
        assert kinds == [
            NodeKind.TEXT,
            NodeKind.IMAGE,
            NodeKind.IMAGE,
            NodeKind.MARKUP,
            NodeKind.SYMBOL,
        ]

    def test_opacity_is_per_node(self, png_data_url, red_asset, symbol):
        config = (
            CanvasConfiguration()
            .add_background(png_data_url, opacity=0.5)
            .add_text(content='x', opacity=0.25)
        )
        assets = {config.backgrounds[0].id: red_asset}
        tree = compose(config, assets, symbol)
        assert tree.find(config.backgrounds[0].id).opacity == 0.5
        assert tree.find(config.texts[0].id).opacity == 0.25
        assert tree.find(SYMBOL_LAYER_ID).opacity == 1.0

    def test_empty_layers_skipped(self, default_config, symbol):
        config = default_config.add_text(content='   ').add_html_module(content='')
        tree = compose(config, {}, symbol)
        assert tree.layer_ids == [SYMBOL_LAYER_ID]

    def test_text_payload(self, default_config, symbol):
        config = default_config.add_text(content='a\nb', fontSize=20, fontWeight=700, textAlign='right')
        node = compose(config, {}, symbol).find(config.texts[0].id)
        assert node.payload.lines == ['a', 'b']
        assert node.payload.bold is True
        assert node.payload.align == 'right'
        assert node.height == pytest.approx(48)

    def test_does_not_modify_config(self, mixed_config, red_asset, symbol):
        before = mixed_config.model_copy(deep=True)
        compose(mixed_config, {}, symbol)
        assert mixed_config == before

    def test_generation_recorded(self, default_config, symbol):
        assert compose(default_config, {}, symbol, generation=7).generation == 7

"""Tests for configuration exchange and validation."""

import json

import pytest

from qrforge.canvas import CanvasConfiguration
from qrforge.exceptions import ConfigurationParseError
from qrforge.formats import (
    QR_OUT_OF_BOUNDS,
    deserialize,
    load_config,
    save_config,
    serialize,
    validate,
)


@pytest.fixture
def layered_config(png_data_url) -> CanvasConfiguration:
    return (
        CanvasConfiguration()
        .add_background(png_data_url, mode='contain', opacity=0.5)
        .add_text(content='Line one\nLine two', fontWeight=700, textAlign='center')
        .add_html_module(content='<div style="color: red">Hi</div>')
        .update_qr(
            content='WIFI:S:test;;',
            dotsOptions={
                'type': 'rounded',
                'color': '#112233',
                'gradient': {
                    'type': 'linear',
                    'rotation': 0.5,
                    'colorStops': [
                        {'offset': 0, 'color': '#000000'},
                        {'offset': 1, 'color': '#ff0000'},
                    ],
                },
            },
            logo={'src': png_data_url, 'size': 40},
        )
        .update_export(format='jpg', quality=0.75, borderRadius=16)
    )


class TestSerialize:
    """Tests for serialize()."""

    def test_top_level_keys(self, default_config):
        data = json.loads(serialize(default_config))
        assert list(data) == ['qr', 'backgrounds', 'texts', 'htmlModules', 'export']

    def test_camel_case_keys(self, layered_config):
        data = json.loads(serialize(layered_config))
        assert 'dotsOptions' in data['qr']
        assert data['qr']['qrOptions']['errorCorrectionLevel'] == 'M'
        assert data['texts'][0]['fontWeight'] == 700
        assert data['export']['borderRadius'] == 16

    def test_omits_unset_optionals(self, default_config):
        data = json.loads(serialize(default_config))
        assert 'logo' not in data['qr']
        assert 'imageOptions' not in data['qr']

    def test_inline_data_kept(self, layered_config, png_data_url):
        assert png_data_url in serialize(layered_config)

    def test_deterministic(self, layered_config):
        assert serialize(layered_config) == serialize(layered_config)


class TestDeserialize:
    """Tests for deserialize()."""

    def test_round_trip(self, layered_config):
        """deserialize(serialize(config)) equals config."""
        restored = deserialize(serialize(layered_config))
        assert restored == layered_config
        assert restored.texts[0].id == layered_config.texts[0].id

    def test_round_trip_default(self, default_config):
        assert deserialize(serialize(default_config)) == default_config

    def test_accepts_bytes(self, default_config):
        assert deserialize(serialize(default_config).encode('utf-8')) == default_config

    def test_partial_document_uses_defaults(self):
        config = deserialize('{"qr": {"content": "abc"}}')
        assert config.qr.content == 'abc'
        assert config.qr.size == 200
        assert config.export.width == 800

    def test_invalid_json(self):
        with pytest.raises(ConfigurationParseError, match='Invalid JSON'):
            deserialize('{"qr": ')

    def test_not_an_object(self):
        with pytest.raises(ConfigurationParseError, match='JSON object'):
            deserialize('[1, 2, 3]')

    def test_shape_mismatch(self):
        """Type errors name the offending field."""
        with pytest.raises(ConfigurationParseError, match='export'):
            deserialize('{"export": {"width": "wide"}}')

    def test_range_not_checked(self):
        """Out-of-range values parse; validate() reports them."""
        config = deserialize('{"export": {"quality": 2.0}}')
        assert config.export.quality == 2.0


class TestFileIO:
    """Tests for save_config() / load_config()."""

    def test_save_and_load(self, tmp_path, layered_config):
        path = save_config(layered_config, tmp_path / 'canvas.json')
        assert load_config(path) == layered_config

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationParseError):
            load_config(tmp_path / 'missing.json')


class TestValidate:
    """Tests for validate()."""

    def test_default_is_valid(self, default_config):
        result = validate(default_config)
        assert result.is_valid
        assert result.errors == []
        assert result.to_dict() == {'isValid': True, 'errors': []}

    @pytest.mark.parametrize('quality', [0, 1, 0.5])
    def test_quality_bounds_inclusive(self, default_config, quality):
        assert validate(default_config.update_export(quality=quality)).is_valid

    @pytest.mark.parametrize('quality', [1.5, -0.1, 2.0])
    def test_quality_out_of_range(self, default_config, quality):
        result = validate(default_config.update_export(quality=quality))
        assert not result.is_valid
        assert any('quality' in error.lower() for error in result.errors)

    def test_qr_out_of_bounds(self, default_config):
        config = default_config.update_qr(position={'x': 700, 'y': 50})
        result = validate(config)
        assert not result.is_valid
        assert QR_OUT_OF_BOUNDS in result.errors

    def test_qr_exactly_fits(self, default_config):
        config = default_config.update_qr(position={'x': 600, 'y': 400}, size=200)
        assert validate(config).is_valid

    def test_empty_content(self, default_config):
        result = validate(default_config.update_qr(content=''))
        assert result.errors == ['QR content must not be empty']

    def test_negative_position(self, default_config):
        result = validate(default_config.update_qr(position={'x': -1, 'y': 0}))
        assert 'QR position must not be negative' in result.errors

    def test_zero_canvas(self, default_config):
        result = validate(default_config.update_export(width=0))
        assert 'Canvas size must be greater than 0' in result.errors

    def test_background_rules(self, default_config):
        config = default_config.add_background('', opacity=1.5, size={'width': 0, 'height': 10})
        result = validate(config)
        assert result.errors == [
            'Background 1 is missing a source',
            'Background 1 size must be greater than 0',
            'Background 1 opacity must be within [0, 1]',
        ]

    def test_errors_accumulate(self, default_config):
        config = default_config.update_qr(content='', position={'x': 790, 'y': 10}).update_export(quality=3)
        result = validate(config)
        assert len(result.errors) == 3
        assert not result

    def test_idempotent(self, default_config):
        config = default_config.update_export(quality=-1).update_qr(content='')
        assert validate(config) == validate(config)

    def test_does_not_modify(self, default_config):
        config = default_config.update_export(quality=5)
        before = serialize(config)
        validate(config)
        assert serialize(config) == before

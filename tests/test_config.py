"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest
import yaml

from lisa_wdm.config import (
    LookupTableConfig,
    PipelineConfig,
    ProjectorConfig,
    TrackerConfig,
    WaveletConfig,
    load_config,
)

DEFAULT_CONFIG = Path(__file__).parent.parent / "config" / "default.yaml"


class TestWaveletConfig:
    """Test the tiling constants."""

    def test_defaults(self):
        config = WaveletConfig()
        assert config.n_layers == 1536
        assert config.oversample == 16

    def test_odd_layer_count_rejected(self):
        with pytest.raises(ValueError, match="even"):
            WaveletConfig(pixel_duration=15.0, sample_cadence=1.0)

    def test_fractional_ratio_rejected(self):
        with pytest.raises(ValueError):
            WaveletConfig(pixel_duration=10.5, sample_cadence=1.0)

    @pytest.mark.parametrize("kwargs", [
        {"pixel_duration": 0.0},
        {"sample_cadence": -1.0},
        {"oversample": 3},
        {"oversample": 0},
        {"filter_steepness": 0.0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            WaveletConfig(**kwargs)


class TestSectionValidation:
    """Test the remaining sections."""

    def test_lookup(self):
        with pytest.raises(ValueError):
            LookupTableConfig(frequency_steps=1)
        with pytest.raises(ValueError):
            LookupTableConfig(n_workers=0)

    def test_tracker(self):
        with pytest.raises(ValueError):
            TrackerConfig(segment_padding=-1)
        assert TrackerConfig().max_fdot is None

    def test_projector(self):
        with pytest.raises(ValueError, match="Unknown projection method"):
            ProjectorConfig(method="fast")
        with pytest.raises(ValueError):
            ProjectorConfig(phase_step_growth=0.5)


class TestPipelineConfig:
    """Test the nested config and YAML loading."""

    def test_from_empty_dict(self):
        config = PipelineConfig.from_dict(None)
        assert config == PipelineConfig()

    def test_partial_sections(self):
        config = PipelineConfig.from_dict({
            "projector": {"method": "table"},
            "duration": 1e6,
        })
        assert config.projector.method == "table"
        assert config.projector.taper_pixels == ProjectorConfig().taper_pixels
        assert config.duration == 1e6

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown config sections"):
            PipelineConfig.from_dict({"training": {}})

    def test_unknown_key(self):
        with pytest.raises(TypeError):
            PipelineConfig.from_dict({"wavelet": {"n_scales": 64}})

    def test_round_trip_through_yaml(self, tmp_path):
        config = PipelineConfig(tracker=TrackerConfig(max_fdot=1e-12))
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config.to_dict()))

        assert load_config(path) == config

    def test_default_file_matches_defaults(self):
        assert load_config(DEFAULT_CONFIG) == PipelineConfig()

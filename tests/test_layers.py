"""
Tests for the layered segment transform.

The layered transform of a heterodyned tone must reproduce the
whole-volume coefficients at the pixels both can compute.
"""

import numpy as np
import pytest

from lisa_wdm.wavelets.basis import WaveletBasis
from lisa_wdm.wavelets.layers import (
    LayeredTransform,
    heterodyne_frequency,
    segment_sample_count,
    transform_layers,
)
from lisa_wdm.wavelets.transform import forward_transform_fourier

# Tone periodic on every segment used below (41 cycles per 256 s)
TONE_FREQUENCY = 41 / 256
TONE_PHASE = 0.7


@pytest.fixture
def basis():
    return WaveletBasis(n_time=64, n_layers=16, sample_cadence=1.0, oversample=16)


@pytest.fixture
def whole_volume(basis):
    """Whole-volume coefficients of the tone, shape (NT, NF)."""
    t = np.arange(basis.n_samples) * basis.sample_cadence
    tone = np.cos(2 * np.pi * TONE_FREQUENCY * t + TONE_PHASE)
    return basis.to_grid(forward_transform_fourier(basis, tone))


def heterodyned_tone(basis, layer_min, n_layers, n_time, time_offset):
    transform = LayeredTransform(basis, layer_min, n_layers, taper_pixels=0.0)
    times = transform.sample_times(n_time, time_offset)
    tau = times - times[0]
    phase = 2 * np.pi * TONE_FREQUENCY * times + TONE_PHASE
    return np.cos(phase - 2 * np.pi * transform.reference_frequency * tau)


class TestTransformLayers:
    """Test equivalence with the whole-volume transform."""

    def test_full_timeline(self, basis, whole_volume):
        series = heterodyned_tone(basis, 4, 3, basis.n_time, 0)
        layers = transform_layers(basis, series, layer_min=4, n_layers=3)

        assert layers.shape == (basis.n_time, 3)
        scale = np.max(np.abs(whole_volume))
        assert np.allclose(layers, whole_volume[:, 4:7], atol=1e-10 * scale)

    @pytest.mark.parametrize("time_offset", [0, 5, 32])
    def test_sub_segment(self, basis, whole_volume, time_offset):
        """A segment starting at any pixel maps onto absolute pixels."""
        n_time = 16
        series = heterodyned_tone(basis, 4, 3, n_time, time_offset)
        layers = transform_layers(basis, series, layer_min=4, n_layers=3, time_offset=time_offset)

        expected = whole_volume[time_offset:time_offset + n_time, 4:7]
        scale = np.max(np.abs(whole_volume))
        assert np.allclose(layers, expected, atol=1e-10 * scale)

    def test_single_layer(self, basis, whole_volume):
        series = heterodyned_tone(basis, 5, 1, basis.n_time, 0)
        layers = transform_layers(basis, series, layer_min=5, n_layers=1)
        assert np.allclose(layers[:, 0], whole_volume[:, 5], atol=1e-10 * np.max(np.abs(whole_volume)))

    def test_taper_only_changes_edges(self, basis):
        series = heterodyned_tone(basis, 4, 3, basis.n_time, 0)
        plain = transform_layers(basis, series, 4, 3)
        tapered = transform_layers(basis, series, 4, 3, taper_alpha=0.25)

        assert tapered.shape == plain.shape
        assert np.all(np.isfinite(tapered))
        assert not np.allclose(tapered[:4], plain[:4])
        assert np.sum(tapered ** 2) < np.sum(plain ** 2)

    def test_invalid_layers(self, basis):
        series = np.zeros(segment_sample_count(16, 3))
        with pytest.raises(ValueError):
            transform_layers(basis, series, layer_min=0, n_layers=3)
        with pytest.raises(ValueError):
            transform_layers(basis, series, layer_min=14, n_layers=3)
        with pytest.raises(ValueError):
            transform_layers(basis, series[:-1], layer_min=4, n_layers=3)


class TestLayeredTransform:
    """Test the LayeredTransform wrapper."""

    def test_reference_frequency(self, basis):
        transform = LayeredTransform(basis, layer_min=4, n_layers=3)
        assert transform.reference_frequency == pytest.approx(3 * basis.bandwidth)
        assert heterodyne_frequency(basis, 4) == pytest.approx(3 * basis.bandwidth)

    def test_sample_times(self, basis):
        transform = LayeredTransform(basis, layer_min=4, n_layers=3)
        times = transform.sample_times(16, time_offset=5, start_time=10.0)

        assert len(times) == segment_sample_count(16, 3) == 64
        assert times[0] == pytest.approx(10.0 + 5 * basis.cadence)
        assert np.allclose(np.diff(times), basis.cadence / 4)

    def test_taper_alpha(self, basis):
        transform = LayeredTransform(basis, layer_min=4, n_layers=3, taper_pixels=4.0)
        assert transform.taper_alpha(64) == pytest.approx(0.125)
        assert transform.taper_alpha(4) == 1.0

    def test_full_timeline_segment_untapered(self, basis, whole_volume):
        """A segment covering the whole timeline is periodic, so no taper is applied."""
        series = heterodyned_tone(basis, 4, 3, basis.n_time, 0)
        transform = LayeredTransform(basis, layer_min=4, n_layers=3, taper_pixels=4.0)

        scale = np.max(np.abs(whole_volume))
        assert np.allclose(transform(series), whole_volume[:, 4:7], atol=1e-10 * scale)

    def test_only_interior_edges_tapered(self, basis):
        transform = LayeredTransform(basis, layer_min=4, n_layers=3, taper_pixels=4.0)
        alpha = transform.taper_alpha(16)

        at_start = heterodyned_tone(basis, 4, 3, 16, 0)
        assert np.array_equal(
            transform(at_start, time_offset=0),
            transform_layers(basis, at_start, 4, 3, taper_alpha=alpha, taper_edges=(False, True)),
        )

        at_end = heterodyned_tone(basis, 4, 3, 16, basis.n_time - 16)
        assert np.array_equal(
            transform(at_end, time_offset=basis.n_time - 16),
            transform_layers(
                basis, at_end, 4, 3, time_offset=basis.n_time - 16,
                taper_alpha=alpha, taper_edges=(True, False),
            ),
        )

        inside = heterodyned_tone(basis, 4, 3, 16, 24)
        assert np.array_equal(
            transform(inside, time_offset=24),
            transform_layers(basis, inside, 4, 3, time_offset=24, taper_alpha=alpha),
        )

    def test_taper_edges_flags(self, basis):
        series = heterodyned_tone(basis, 4, 3, 16, 24)
        plain = transform_layers(basis, series, 4, 3, time_offset=24)
        neither = transform_layers(basis, series, 4, 3, time_offset=24, taper_alpha=0.5, taper_edges=(False, False))
        assert np.array_equal(neither, plain)

        start_only = transform_layers(basis, series, 4, 3, time_offset=24, taper_alpha=0.5, taper_edges=(True, False))
        assert not np.allclose(start_only[:2], plain[:2])

    def test_call_matches_function(self, basis):
        series = heterodyned_tone(basis, 4, 3, 16, 5)
        transform = LayeredTransform(basis, layer_min=4, n_layers=3, taper_pixels=0.0)
        assert np.array_equal(
            transform(series, time_offset=5),
            transform_layers(basis, series, 4, 3, time_offset=5),
        )

    def test_invalid_range(self, basis):
        with pytest.raises(ValueError):
            LayeredTransform(basis, layer_min=0, n_layers=2)
        with pytest.raises(ValueError):
            LayeredTransform(basis, layer_min=10, n_layers=8)

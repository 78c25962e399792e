"""
Tests for the whole-volume WDM transforms.
"""

import numpy as np
import pytest

from lisa_wdm.wavelets.basis import WaveletBasis, is_cosine_pixel
from lisa_wdm.wavelets.transform import (
    WDMTransform,
    forward_transform,
    forward_transform_fourier,
    inverse_transform_fourier,
    inverse_transform_time,
    plot_wavelet_pixels,
)


def make_basis(oversample=16, sample_cadence=1.0):
    return WaveletBasis(n_time=64, n_layers=16, sample_cadence=sample_cadence, oversample=oversample)


@pytest.fixture
def basis():
    return make_basis()


@pytest.fixture
def noise():
    np.random.seed(42)
    return np.random.randn(64 * 16)


class TestFourierTransform:
    """Test the exact Fourier-domain forward transform and the inverse."""

    def test_round_trip(self, basis, noise):
        pixels = forward_transform_fourier(basis, noise)
        assert pixels.shape == (basis.n_samples,)

        recovered = inverse_transform_time(basis, pixels)
        assert np.allclose(recovered, noise, atol=1e-10)

    def test_energy_exact(self, noise):
        """sum(w^2) equals the integral of x(t)^2 dt."""
        basis = make_basis(sample_cadence=2.0)
        pixels = forward_transform_fourier(basis, noise)
        assert np.sum(pixels ** 2) == pytest.approx(basis.sample_cadence * np.sum(noise ** 2), rel=1e-10)

    def test_coefficients_scale_with_sqrt_cadence(self, noise):
        """basis.scale = sqrt(dt) is the only normalization applied to coefficients."""
        unit = forward_transform_fourier(make_basis(sample_cadence=1.0), noise)
        coarse = forward_transform_fourier(make_basis(sample_cadence=4.0), noise)
        assert np.allclose(coarse, 2.0 * unit)

        recovered = inverse_transform_time(make_basis(sample_cadence=4.0), coarse)
        assert np.allclose(recovered, noise)

    def test_basis_functions_orthonormal(self, basis):
        """Each pixel synthesizes a unit-norm function that maps back onto itself."""
        for i, j in [(0, 0), (1, 0), (10, 3), (11, 3), (31, 15), (40, 8)]:
            pixels = np.zeros(basis.n_samples)
            k = basis.pixel_index(i, j)
            pixels[k] = 1.0

            series = inverse_transform_time(basis, pixels)
            assert np.sum(series ** 2) * basis.sample_cadence == pytest.approx(1.0)

            back = forward_transform_fourier(basis, series)
            expected = np.zeros(basis.n_samples)
            expected[k] = 1.0
            assert np.allclose(back, expected, atol=1e-10)

    def test_spectrum_convention(self, basis, noise):
        pixels = forward_transform_fourier(basis, noise)
        spectrum = inverse_transform_fourier(basis, pixels)
        assert len(spectrum) == basis.n_samples // 2 + 1
        assert np.allclose(spectrum, np.fft.rfft(noise), atol=1e-9)

    def test_tone_lands_in_its_layer(self, basis):
        """A tone at the centre of layer 5 only populates layer 5."""
        n = np.arange(basis.n_samples)
        tone = np.cos(2 * np.pi * 5 * basis.bandwidth * n * basis.sample_cadence + 0.3)
        grid = basis.to_grid(forward_transform_fourier(basis, tone))

        power = np.sum(grid ** 2, axis=0)
        assert power[5] == pytest.approx(np.sum(power))
        assert power[5] == pytest.approx(0.5 * basis.duration)

    def test_parity_isolation(self, basis):
        """Even pixels only respond to the cosine part of a tone, odd pixels to the sine part."""
        n = np.arange(basis.n_samples)
        phase = 2 * np.pi * 5 * basis.bandwidth * n * basis.sample_cadence
        i = np.arange(basis.n_time)
        even = is_cosine_pixel(i, 5)

        cosine = basis.to_grid(forward_transform_fourier(basis, np.cos(phase)))[:, 5]
        sine = basis.to_grid(forward_transform_fourier(basis, np.sin(phase)))[:, 5]

        assert np.allclose(cosine[~even], 0.0, atol=1e-10)
        assert np.allclose(sine[even], 0.0, atol=1e-10)
        assert np.all(np.abs(cosine[even]) > 0.1)
        assert np.all(np.abs(sine[~even]) > 0.1)


class TestTimeDomainTransform:
    """Test the oversampled time-domain forward transform."""

    def test_matches_fourier_at_full_window(self, noise):
        """With the window as long as the data the two forward paths agree."""
        basis = make_basis(oversample=32)
        assert basis.n_window == basis.n_samples

        time_pixels = forward_transform(basis, noise)
        fourier_pixels = forward_transform_fourier(basis, noise)
        assert np.allclose(time_pixels, fourier_pixels, atol=1e-10)

    def test_round_trip_improves_with_oversampling(self, noise):
        errors = []
        for oversample in [4, 8, 16, 32]:
            basis = make_basis(oversample=oversample)
            recovered = inverse_transform_time(basis, forward_transform(basis, noise))
            errors.append(np.max(np.abs(recovered - noise)))

        assert all(later < earlier for earlier, later in zip(errors, errors[1:]))
        assert errors[-1] < 1e-8

    def test_energy_white_noise(self):
        """Coefficient energy of white noise matches sigma^2 * N * dt."""
        np.random.seed(42)
        sigma = 2.0
        basis = WaveletBasis(n_time=128, n_layers=32, sample_cadence=0.5, oversample=16)
        data = sigma * np.random.randn(basis.n_samples)

        pixels = forward_transform(basis, data)
        expected = sigma ** 2 * basis.n_samples * basis.sample_cadence
        assert np.sum(pixels ** 2) == pytest.approx(expected, rel=0.1)


class TestInputHandling:
    """Test input validation and truncation."""

    def test_longer_input_truncated(self, basis, noise):
        extended = np.concatenate([noise, np.ones(100)])
        assert np.array_equal(
            forward_transform_fourier(basis, extended), forward_transform_fourier(basis, noise)
        )

    def test_short_input_rejected(self, basis):
        with pytest.raises(ValueError):
            forward_transform(basis, np.zeros(basis.n_samples - 1))
        with pytest.raises(ValueError):
            forward_transform_fourier(basis, np.zeros((2, basis.n_samples)))

    def test_pixel_count_checked(self, basis):
        with pytest.raises(ValueError):
            inverse_transform_time(basis, np.zeros(basis.n_samples + 1))


class TestWDMTransform:
    """Test the transform wrapper."""

    def test_methods(self, basis, noise):
        exact = WDMTransform(basis, method="fourier")
        approximate = WDMTransform(basis, method="time")

        assert np.allclose(exact.inverse(exact.forward(noise)), noise, atol=1e-10)
        assert np.allclose(approximate.forward(noise), exact.forward(noise), atol=1e-2)
        assert len(exact.inverse_spectrum(exact.forward(noise))) == basis.n_samples // 2 + 1

    def test_invalid_method(self, basis):
        with pytest.raises(ValueError):
            WDMTransform(basis, method="wavelet")

    def test_plot(self, basis, noise, tmp_path):
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        save_path = tmp_path / "pixels.png"
        fig = plot_wavelet_pixels(basis, forward_transform_fourier(basis, noise), save_path=str(save_path))
        assert save_path.exists()
        plt.close(fig)

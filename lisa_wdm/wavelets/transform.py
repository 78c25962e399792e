"""
Whole-volume WDM wavelet transforms.

Maps a dense time series of NT*NF samples to the flat array of NT*NF
wavelet coefficients (k = i + j*NT) and back.

Two forward paths are provided:
1. Time domain: for each time pixel, window an oversampled stretch of data
   centred on the pixel, take its real FFT and read off one value per
   layer. Approximate; the error falls as the oversampling grows.
2. Fourier domain: one real FFT of the data, then one inverse FFT of
   length NT per layer. Exact for the (orthonormal) basis.

The inverse is the adjoint synthesis, accumulated in the Fourier domain.
Coefficients carry the physical scale sqrt(dt), so that sum(w^2) equals
the integral of x(t)^2 dt.
"""

import logging
from typing import Optional

import numpy as np

from .basis import (
    SQRT2,
    WaveletBasis,
    parity_embed,
    parity_select,
    time_shift_sign,
)

logger = logging.getLogger(__name__)


def _two_sided(spectrum: np.ndarray, bins: np.ndarray, n_total: int) -> np.ndarray:
    """Read a one-sided (rfft) spectrum at arbitrary integer bins using Hermitian symmetry."""
    folded = np.mod(bins, n_total)
    upper = folded > n_total // 2
    values = spectrum[np.where(upper, n_total - folded, folded)]
    return np.where(upper, np.conj(values), values)


def layer_amplitudes(
    spectrum: np.ndarray,
    n_total: int,
    center: int,
    frequency_window: np.ndarray,
) -> np.ndarray:
    """
    Complex amplitudes of one layer at every time pixel of a series.

    Computes S_i = sum_n x[n] phi[n - i NF] exp(-i w_j n) from the rfft
    of x: the spectrum around the layer centre is weighted by the filter
    and brought back to the pixel grid with an inverse FFT.

    Parameters
    ----------
    spectrum : np.ndarray
        ``np.fft.rfft`` of the series
    n_total : int
        Number of samples in the series
    center : int
        Fourier bin of the layer centre
    frequency_window : np.ndarray
        Filter on the series' Fourier grid (``WaveletBasis.frequency_window``)

    Returns
    -------
    np.ndarray
        Complex amplitudes, one per time pixel of the series
    """
    n_time = 2 * (len(frequency_window) - 1)
    half = n_time // 2
    offsets = np.arange(1 - half, half)

    packed = np.zeros(n_time, dtype=np.complex128)
    packed[offsets % n_time] = frequency_window[np.abs(offsets)] * _two_sided(
        spectrum, center + offsets, n_total
    )
    return np.fft.ifft(packed) * (n_time / n_total)


def _check_data(basis: WaveletBasis, data: np.ndarray) -> np.ndarray:
    data = np.asarray(data, dtype=float)
    if data.ndim != 1 or len(data) < basis.n_samples:
        raise ValueError(
            f"Expected a 1-d series of at least {basis.n_samples} samples, got shape {data.shape}"
        )
    if len(data) > basis.n_samples:
        logger.debug(f"Truncating {len(data)} samples to {basis.n_samples}")
        data = data[:basis.n_samples]
    return data


def forward_transform(basis: WaveletBasis, data: np.ndarray) -> np.ndarray:
    """
    Time-domain forward transform.

    Parameters
    ----------
    basis : WaveletBasis
        Basis to project onto
    data : np.ndarray
        Time series sampled at ``basis.sample_cadence``; extra samples
        beyond NT*NF are ignored

    Returns
    -------
    np.ndarray
        Flat coefficient array of length NT*NF
    """
    data = _check_data(basis, data)
    n_time, n_layers = basis.n_time, basis.n_layers
    n_window = basis.n_window
    half = n_window // 2

    layers = np.arange(1, n_layers)
    bins = layers * basis.oversample
    offsets = np.arange(n_window)

    wave = np.zeros((n_time, n_layers))
    for i in range(n_time):
        # Periodically wrapped stretch of data centred on pixel i
        idx = (i * n_layers - half + offsets) % basis.n_samples
        spectrum = np.fft.rfft(data[idx] * basis.window)

        wave[i, 1:] = SQRT2 * parity_select(spectrum[bins], i, layers)
        if i % 2 == 0:
            wave[i, 0] = spectrum[0].real
            wave[i + 1, 0] = spectrum[half].real

    return basis.to_flat(wave * basis.scale)


def forward_transform_fourier(basis: WaveletBasis, data: np.ndarray) -> np.ndarray:
    """
    Fourier-domain forward transform (exact).

    Parameters
    ----------
    basis : WaveletBasis
        Basis to project onto
    data : np.ndarray
        Time series sampled at ``basis.sample_cadence``

    Returns
    -------
    np.ndarray
        Flat coefficient array of length NT*NF
    """
    data = _check_data(basis, data)
    n_time, n_layers, n_samples = basis.n_time, basis.n_layers, basis.n_samples

    spectrum = np.fft.rfft(data)
    window = basis.frequency_window()
    pixels = np.arange(n_time)

    wave = np.zeros((n_time, n_layers))
    for j in range(1, n_layers):
        amplitudes = layer_amplitudes(spectrum, n_samples, j * n_time // 2, window)
        wave[:, j] = SQRT2 * parity_select(time_shift_sign(pixels, j) * amplitudes, pixels, j)

    # Half-bandwidth edge layers
    dc = layer_amplitudes(spectrum, n_samples, 0, window)
    nyquist = layer_amplitudes(spectrum, n_samples, n_samples // 2, window)
    wave[0::2, 0] = dc[0::2].real
    wave[1::2, 0] = nyquist[0::2].real

    return basis.to_flat(wave * basis.scale)


def inverse_transform_fourier(basis: WaveletBasis, pixels: np.ndarray) -> np.ndarray:
    """
    Inverse transform to the Fourier domain.

    Each layer's coefficients are turned into its band of the spectrum
    with one FFT of length NT, weighted by the filter, and accumulated.
    Neighbouring layers overlap on their ramps.

    Parameters
    ----------
    basis : WaveletBasis
        Basis the coefficients belong to
    pixels : np.ndarray
        Flat coefficient array of length NT*NF

    Returns
    -------
    np.ndarray
        One-sided spectrum in ``np.fft.rfft`` convention (length NT*NF/2 + 1)
    """
    wave = basis.to_grid(np.asarray(pixels, dtype=float)) / basis.scale
    n_time, n_layers, n_samples = basis.n_time, basis.n_layers, basis.n_samples
    half = n_time // 2

    window = basis.frequency_window()
    offsets = np.arange(1 - half, half)
    weights = window[np.abs(offsets)]
    pixels_i = np.arange(n_time)

    spectrum = np.zeros(n_samples // 2 + 1, dtype=np.complex128)
    for j in range(1, n_layers):
        packed = time_shift_sign(pixels_i, j) * parity_embed(wave[:, j], pixels_i, j)
        transformed = np.fft.fft(packed)
        spectrum[j * half + offsets] += (SQRT2 / 2) * weights * transformed[offsets % n_time]

    # DC layer lives on even pixels of column 0, Nyquist on odd ones
    positive = np.arange(half)
    packed = np.zeros(n_time)
    packed[0::2] = wave[0::2, 0]
    spectrum[positive] += window[positive] * np.fft.fft(packed)[positive]

    packed = np.zeros(n_time)
    packed[0::2] = wave[1::2, 0]
    spectrum[n_samples // 2 - positive] += window[positive] * np.conj(np.fft.fft(packed)[positive])

    return spectrum


def inverse_transform_time(basis: WaveletBasis, pixels: np.ndarray) -> np.ndarray:
    """Inverse transform to a time series of NT*NF samples."""
    spectrum = inverse_transform_fourier(basis, pixels)
    return np.fft.irfft(spectrum, n=basis.n_samples)


class WDMTransform:
    """
    Whole-volume WDM transform bound to one basis.

    Parameters
    ----------
    basis : WaveletBasis
        Basis shared by all calls
    method : str
        Forward path, "time" (oversampled window) or "fourier" (exact)
    """

    def __init__(self, basis: WaveletBasis, method: str = "time"):
        if method not in ("time", "fourier"):
            raise ValueError(f"Unknown transform method: {method}")
        self.basis = basis
        self.method = method

        logger.info(f"WDMTransform initialized")
        logger.info(f"  Basis: {basis.n_time} x {basis.n_layers}")
        logger.info(f"  Forward method: {method}")

    def forward(self, data: np.ndarray) -> np.ndarray:
        """Dense time series -> flat coefficients."""
        if self.method == "fourier":
            return forward_transform_fourier(self.basis, data)
        return forward_transform(self.basis, data)

    def inverse(self, pixels: np.ndarray) -> np.ndarray:
        """Flat coefficients -> time series."""
        return inverse_transform_time(self.basis, pixels)

    def inverse_spectrum(self, pixels: np.ndarray) -> np.ndarray:
        """Flat coefficients -> one-sided spectrum."""
        return inverse_transform_fourier(self.basis, pixels)


def plot_wavelet_pixels(
    basis: WaveletBasis,
    pixels: np.ndarray,
    start_time: float = 0.0,
    save_path: Optional[str] = None,
):
    """
    Plot the (time, frequency) map of a coefficient array.

    Parameters
    ----------
    basis : WaveletBasis
        Basis of the coefficients
    pixels : np.ndarray
        Flat coefficient array
    start_time : float
        Time of the first sample in seconds
    save_path : str, optional
        Path to save figure
    """
    import matplotlib.pyplot as plt

    wave = basis.to_grid(pixels)
    times = basis.pixel_time(np.arange(basis.n_time), start_time)
    freqs = basis.layer_frequency(np.arange(basis.n_layers))

    fig, ax = plt.subplots(figsize=(12, 6))
    im = ax.pcolormesh(times, freqs, wave.T, shading='auto', cmap='RdBu_r')
    ax.set_xlabel('Time [s]')
    ax.set_ylabel('Frequency [Hz]')
    ax.set_title(f'WDM coefficients ({basis.n_time} x {basis.n_layers})')
    plt.colorbar(im, ax=ax, label='Coefficient')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Plot saved to {save_path}")

    return fig

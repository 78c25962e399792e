"""
Layered segment transform.

A single source usually occupies a handful of layers out of thousands.
Instead of transforming the full-rate series, the caller heterodynes the
signal down by f0 = (layer_min - 1) * DF and samples it at
DT / (n_layers + 1), so the requested layers land on layer offsets
1..n_layers of a small series. One real FFT of that series then gives
every requested layer via the same per-layer kernel the whole-volume
transform uses.

The series may also cover only part of the timeline: a segment of
n_time pixels starting at absolute pixel ``time_offset``. Coefficients
are returned for absolute pixels, with the same parity convention as the
whole-volume transform.
"""

import logging
from typing import Tuple

import numpy as np
from scipy.signal.windows import tukey

from .basis import SQRT2, WaveletBasis, parity_select, time_shift_sign
from .transform import layer_amplitudes

logger = logging.getLogger(__name__)


def segment_sample_count(n_time: int, n_layers: int) -> int:
    """Number of samples of a heterodyned series covering n_time pixels and n_layers layers."""
    return n_time * (n_layers + 1)


def heterodyne_frequency(basis: WaveletBasis, layer_min: int) -> float:
    """Reference frequency removed from a signal before a layered transform."""
    return (layer_min - 1) * basis.bandwidth


def transform_layers(
    basis: WaveletBasis,
    series: np.ndarray,
    layer_min: int,
    n_layers: int,
    time_offset: int = 0,
    taper_alpha: float = 0.0,
    taper_edges: Tuple[bool, bool] = (True, True),
) -> np.ndarray:
    """
    Forward transform of a heterodyned series over a run of layers.

    Parameters
    ----------
    basis : WaveletBasis
        Basis the coefficients belong to
    series : np.ndarray
        Real series of n_time * (n_layers + 1) samples spaced
        DT / (n_layers + 1), starting at the centre of pixel ``time_offset``
        and heterodyned by ``heterodyne_frequency(basis, layer_min)``
        relative to its first sample
    layer_min : int
        First absolute layer to compute (>= 1)
    n_layers : int
        Number of contiguous layers
    time_offset : int
        Absolute time pixel of the first segment pixel
    taper_alpha : float
        Tukey taper fraction applied before the FFT (0 disables it)
    taper_edges : tuple of bool
        Whether to taper the (start, end) of the series. Edges that sit on
        the ends of the timeline are left untapered, since the whole-volume
        transform is periodic there too.

    Returns
    -------
    np.ndarray
        Coefficients of shape (n_time, n_layers), indexed by
        (relative time pixel, layer offset)
    """
    series = np.asarray(series, dtype=float)
    n_total = len(series)
    if n_layers < 1:
        raise ValueError(f"n_layers must be >= 1, got {n_layers}")
    if layer_min < 1 or layer_min + n_layers > basis.n_layers:
        raise ValueError(
            f"Layers [{layer_min}, {layer_min + n_layers}) outside the interior "
            f"layers of a {basis.n_layers}-layer basis"
        )
    if n_total % (n_layers + 1):
        raise ValueError(
            f"Series length {n_total} is not a multiple of n_layers + 1 = {n_layers + 1}"
        )
    n_time = n_total // (n_layers + 1)

    if taper_alpha > 0 and any(taper_edges):
        taper = tukey(n_total, alpha=min(taper_alpha, 1.0))
        half = n_total // 2
        if not taper_edges[0]:
            taper[:half] = 1.0
        if not taper_edges[1]:
            taper[half:] = 1.0
        series = series * taper

    spectrum = np.fft.rfft(series)
    window = basis.frequency_window(n_time)
    pixels = np.arange(n_time) + time_offset

    coefficients = np.zeros((n_time, n_layers))
    for offset in range(1, n_layers + 1):
        layer = layer_min + offset - 1
        amplitudes = layer_amplitudes(spectrum, n_total, offset * n_time // 2, window)
        # Local time origin sits time_offset pixels into the timeline
        if (layer * time_offset) % 2:
            amplitudes = -amplitudes
        coefficients[:, offset - 1] = SQRT2 * parity_select(
            time_shift_sign(pixels, layer) * amplitudes, pixels, layer
        )

    return coefficients * basis.scale


class LayeredTransform:
    """
    Layered segment transform for a fixed run of layers.

    Parameters
    ----------
    basis : WaveletBasis
        Shared basis
    layer_min : int
        First absolute layer
    n_layers : int
        Number of layers
    taper_pixels : float
        Tukey taper width, in time pixels, at each end of a segment that
        does not touch the ends of the timeline
    """

    def __init__(
        self,
        basis: WaveletBasis,
        layer_min: int,
        n_layers: int,
        taper_pixels: float = 4.0,
    ):
        if layer_min < 1 or layer_min + n_layers > basis.n_layers:
            raise ValueError(f"Layers [{layer_min}, {layer_min + n_layers}) out of range")
        self.basis = basis
        self.layer_min = layer_min
        self.n_layers = n_layers
        self.taper_pixels = taper_pixels
        self.reference_frequency = heterodyne_frequency(basis, layer_min)
        logger.debug(
            f"LayeredTransform: layers {layer_min}..{layer_min + n_layers - 1}, "
            f"f0={self.reference_frequency:.6e} Hz"
        )

    def sample_times(self, n_time: int, time_offset: int = 0, start_time: float = 0.0) -> np.ndarray:
        """Sample times (s) of the heterodyned series for a segment."""
        n_total = segment_sample_count(n_time, self.n_layers)
        step = self.basis.cadence / (self.n_layers + 1)
        return self.basis.pixel_time(time_offset, start_time) + step * np.arange(n_total)

    def taper_alpha(self, n_time: int) -> float:
        return min(1.0, 2.0 * self.taper_pixels / n_time)

    def __call__(self, series: np.ndarray, time_offset: int = 0) -> np.ndarray:
        n_time = len(series) // (self.n_layers + 1)
        return transform_layers(
            self.basis,
            series,
            self.layer_min,
            self.n_layers,
            time_offset=time_offset,
            taper_alpha=self.taper_alpha(n_time),
            taper_edges=(time_offset > 0, time_offset + n_time < self.basis.n_time),
        )

"""
Wilson-Daubechies-Meyer (WDM) wavelet basis.

The observation is tiled into NT time pixels of duration DT and NF
frequency layers of bandwidth DF = 1/(2 DT). The tiling is critically
sampled: every pixel (i, j) stores one real number,

- (i + j) even: cosine-type value (real part of the layer spectrum)
- (i + j) odd: sine-type value (negated imaginary part)

The DC and Nyquist layers have half the usual bandwidth. They share
column j = 0: DC values sit on even time pixels, Nyquist values on odd
ones.

Flat pixel index convention: k = i + j * NT.

The basis is built once and is read-only afterwards, so it can be shared
between threads.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np
from scipy.special import betainc

from ..config import WaveletConfig

logger = logging.getLogger(__name__)

SQRT2 = np.sqrt(2.0)


def phitilde(omega: np.ndarray, n_layers: int, steepness: float = 4.0) -> np.ndarray:
    """
    Prototype frequency-domain filter of the WDM basis.

    Flat (equal to one) for |omega| < A, an incomplete-beta shaped cosine
    ramp for A <= |omega| < A + B and zero beyond, with A = dOmega/4 and
    B = dOmega/2. Neighbouring layers are power complementary:
    phitilde(w)^2 + phitilde(dOmega - w)^2 = 1 on the ramp.

    Parameters
    ----------
    omega : np.ndarray
        Angular frequency in radians per data sample
    n_layers : int
        Number of frequency layers NF (dOmega = pi / NF)
    steepness : float
        Incomplete beta parameter controlling the ramp shape

    Returns
    -------
    np.ndarray
        Filter values, same shape as ``omega``
    """
    omega = np.abs(np.atleast_1d(np.asarray(omega, dtype=float)))
    d_omega = np.pi / n_layers
    outer = d_omega / 2
    inner = (d_omega - outer) / 2

    values = np.zeros_like(omega)
    values[omega < inner] = 1.0
    ramp = (omega >= inner) & (omega < inner + outer)
    x = (omega[ramp] - inner) / outer
    values[ramp] = np.cos(0.5 * np.pi * betainc(steepness, steepness, x))
    return values


@lru_cache(maxsize=32)
def _frequency_window(n_time: int, n_layers: int, steepness: float) -> np.ndarray:
    # Fourier bins of a series spanning n_time pixels are 2 pi / (n_time NF) apart
    omega = 2 * np.pi * np.arange(n_time // 2 + 1) / (n_time * n_layers)
    window = phitilde(omega, n_layers, steepness)
    power = window[0] ** 2 + 2 * np.sum(window[1:] ** 2)
    window *= np.sqrt(n_time * n_layers / power)
    window.flags.writeable = False
    return window


def _time_window(n_layers: int, oversample: int, steepness: float) -> np.ndarray:
    n_window = 2 * oversample * n_layers
    bins = np.fft.fftfreq(n_window) * n_window
    spectrum = phitilde(2 * np.pi * bins / n_window, n_layers, steepness)
    norm = np.sqrt(n_window / np.sum(spectrum ** 2))

    # Centre the window: sample n_window//2 is the pixel centre
    window = np.fft.fftshift(np.real(np.fft.ifft(spectrum))) * norm
    return window


def is_cosine_pixel(i, j) -> np.ndarray:
    """True where pixel (i, j) holds a cosine-type (even parity) value."""
    return (np.asarray(i) + np.asarray(j)) % 2 == 0


def parity_select(z, i, j) -> np.ndarray:
    """
    Extract the stored real value from a complex layer amplitude.

    Real part for even (i + j), negated imaginary part for odd (i + j).
    Every transform and the lookup-table path go through this helper.
    """
    z = np.asarray(z)
    return np.where(is_cosine_pixel(i, j), np.real(z), -np.imag(z))


def parity_embed(values, i, j) -> np.ndarray:
    """Adjoint of :func:`parity_select`: lift stored values back to complex amplitudes."""
    values = np.asarray(values, dtype=float)
    return np.where(is_cosine_pixel(i, j), values + 0j, -1j * values)


def time_shift_sign(i, j) -> np.ndarray:
    """(-1)^(i j): modulation phase of layer j at the centre of time pixel i."""
    return np.where((np.asarray(i) * np.asarray(j)) % 2 == 0, 1.0, -1.0)


@dataclass(frozen=True)
class PixelWindow:
    """Contiguous range [kmin, kmax) of flat pixel indices held in memory."""
    kmin: int
    kmax: int

    @property
    def size(self) -> int:
        return self.kmax - self.kmin

    def contains(self, k) -> np.ndarray:
        k = np.asarray(k)
        return (k >= self.kmin) & (k < self.kmax)


class WaveletBasis:
    """
    Immutable WDM basis configuration.

    Parameters
    ----------
    n_time : int
        Number of time pixels NT (even)
    n_layers : int
        Number of frequency layers NF (even)
    sample_cadence : float
        Data sampling interval dt in seconds; DT = NF * dt
    oversample : int
        Time-domain window length in units of 2*NF samples (even)
    steepness : float
        Ramp parameter of the prototype filter
    """

    def __init__(
        self,
        n_time: int,
        n_layers: int,
        sample_cadence: float,
        oversample: int = 16,
        steepness: float = 4.0,
    ):
        if n_time < 2 or n_time % 2:
            raise ValueError(f"n_time must be an even number >= 2, got {n_time}")
        if n_layers < 2 or n_layers % 2:
            raise ValueError(f"n_layers must be an even number >= 2, got {n_layers}")
        if oversample < 2 or oversample % 2:
            raise ValueError(f"oversample must be an even integer >= 2, got {oversample}")
        max_oversample = max(2, n_time // 2 - (n_time // 2) % 2)
        if oversample > max_oversample:
            logger.warning(
                f"oversample={oversample} needs a window longer than the data; "
                f"clamping to {max_oversample}"
            )
            oversample = max_oversample

        self.n_time = int(n_time)
        self.n_layers = int(n_layers)
        self.sample_cadence = float(sample_cadence)
        self.oversample = int(oversample)
        self.steepness = float(steepness)

        self.n_samples = self.n_time * self.n_layers
        self.cadence = self.n_layers * self.sample_cadence  # DT
        self.bandwidth = 1.0 / (2.0 * self.cadence)  # DF
        self.duration = self.n_time * self.cadence

        # Filter half-widths in rad/s
        d_omega = 2 * np.pi * self.bandwidth
        self.filter_outer = d_omega / 2  # B
        self.filter_inner = (d_omega - self.filter_outer) / 2  # A
        self.filter_bandwidth = (self.filter_inner + self.filter_outer) / np.pi  # Hz, two sided

        # Coefficients are scaled so that sum(w^2) = integral x(t)^2 dt
        self.scale = np.sqrt(self.sample_cadence)

        self.n_window = 2 * self.oversample * self.n_layers
        self.window_duration = self.n_window * self.sample_cadence
        self.window = _time_window(self.n_layers, self.oversample, self.steepness)
        self.window.flags.writeable = False

        logger.info(f"WaveletBasis initialized")
        logger.info(f"  Pixels: {self.n_time} x {self.n_layers} (time x frequency)")
        logger.info(f"  Cadence: {self.cadence:.1f} s, bandwidth: {self.bandwidth:.3e} Hz")
        logger.info(f"  Window: {self.n_window} samples (oversample={self.oversample})")

    @classmethod
    def from_duration(cls, duration: float, config: Optional[WaveletConfig] = None) -> "WaveletBasis":
        """
        Build the basis covering an observation of the given duration.

        The duration is floored to a whole, even number of time pixels.
        """
        config = config or WaveletConfig()
        n_time = int(np.floor(duration / config.pixel_duration + 1e-9))
        n_time -= n_time % 2
        if n_time < 2:
            raise ValueError(
                f"Duration {duration} s is shorter than two pixels of {config.pixel_duration} s"
            )
        if not np.isclose(n_time * config.pixel_duration, duration):
            logger.debug(
                f"Flooring duration {duration} s to {n_time * config.pixel_duration} s "
                f"({n_time} pixels)"
            )
        return cls(
            n_time=n_time,
            n_layers=config.n_layers,
            sample_cadence=config.sample_cadence,
            oversample=config.oversample,
            steepness=config.filter_steepness,
        )

    # ---------- filter ----------

    def phitilde(self, frequency: np.ndarray) -> np.ndarray:
        """Prototype filter evaluated at physical frequencies in Hz."""
        omega = 2 * np.pi * np.asarray(frequency, dtype=float) * self.sample_cadence
        return phitilde(omega, self.n_layers, self.steepness)

    def frequency_window(self, n_time: Optional[int] = None) -> np.ndarray:
        """
        Normalized filter on the Fourier grid of a series spanning n_time pixels.

        Entry p is the filter at p / (n_time DT) Hz, for p = 0..n_time/2.
        Only |p| < 3 n_time / 8 is non-zero.
        """
        n_time = self.n_time if n_time is None else int(n_time)
        if n_time < 2 or n_time % 2:
            raise ValueError(f"Segment length must be an even number of pixels, got {n_time}")
        return _frequency_window(n_time, self.n_layers, self.steepness)

    # ---------- pixel bookkeeping ----------

    def pixel_index(self, i, j):
        """Flat index k = i + j*NT of time pixel i in layer j."""
        return np.asarray(i) + np.asarray(j) * self.n_time

    def pixel_coords(self, k) -> Tuple[np.ndarray, np.ndarray]:
        """Inverse of :meth:`pixel_index`: returns (i, j)."""
        j, i = np.divmod(np.asarray(k), self.n_time)
        return i, j

    def layer_frequency(self, j):
        """Centre frequency of layer j in Hz."""
        return np.asarray(j) * self.bandwidth

    def pixel_time(self, i, start_time: float = 0.0):
        """Centre time of time pixel i in seconds."""
        return start_time + np.asarray(i) * self.cadence

    def to_flat(self, wave: np.ndarray) -> np.ndarray:
        """(NT, NF) coefficient grid -> flat array with k = i + j*NT."""
        wave = np.asarray(wave)
        if wave.shape != (self.n_time, self.n_layers):
            raise ValueError(f"Expected grid of shape {(self.n_time, self.n_layers)}, got {wave.shape}")
        return np.ascontiguousarray(wave.T).reshape(-1)

    def to_grid(self, pixels: np.ndarray) -> np.ndarray:
        """Flat array -> (NT, NF) coefficient grid."""
        pixels = np.asarray(pixels)
        if pixels.shape != (self.n_samples,):
            raise ValueError(f"Expected {self.n_samples} pixels, got shape {pixels.shape}")
        return pixels.reshape(self.n_layers, self.n_time).T

    def pixel_window(self, layer_min: int = 1, layer_max: Optional[int] = None) -> PixelWindow:
        """
        Window of whole layers [layer_min, layer_max).

        The default keeps layers 1..NF-2, dropping the half-bandwidth edge
        column and the top layer.
        """
        layer_max = self.n_layers - 1 if layer_max is None else layer_max
        if not 0 <= layer_min < layer_max <= self.n_layers:
            raise ValueError(f"Invalid layer range [{layer_min}, {layer_max})")
        return PixelWindow(
            kmin=int(self.pixel_index(0, layer_min)),
            kmax=int(self.pixel_index(0, layer_max)),
        )

    def __repr__(self) -> str:
        return (
            f"WaveletBasis(n_time={self.n_time}, n_layers={self.n_layers}, "
            f"cadence={self.cadence}, oversample={self.oversample})"
        )

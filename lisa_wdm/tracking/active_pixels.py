"""
Active-pixel tracking for a single source.

Given the instantaneous frequency and f-dot of a source at every time
pixel centre (one row per channel), the tracker works out:

1. The layers occupied at each time pixel, widened by the filter's half
   support, the frequency sweep across the window and a Doppler guard
2. A TimeFrequencyTrack: for each occupied layer, a power-of-two run of
   time pixels covering where the layer is active
3. The sparse list of flat pixel indices (relative to kmin) inside the
   retained window, plus a reverse lookup from index to list position

Time pixels whose frequency or f-dot cannot be represented (non-finite,
outside (0, (NF-1) DF), outside the f-dot bounds, or channels spread
wider than the Doppler guard) are skipped for all channels.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..config import TrackerConfig
from ..wavelets.basis import PixelWindow, WaveletBasis

logger = logging.getLogger(__name__)


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n."""
    return 1 << max(0, int(np.ceil(np.log2(max(n, 1)))))


@dataclass
class TimeFrequencyTrack:
    """Per-layer time segments of one source."""
    min_layer: int
    max_layer: int
    segment_start: np.ndarray  # First time pixel of each layer's segment
    segment_size: np.ndarray  # Power-of-two length (0 for unoccupied layers)
    segment_midpoint: np.ndarray  # Centre time pixel (-1 for unoccupied layers)

    @property
    def layers(self) -> np.ndarray:
        return np.arange(self.min_layer, self.max_layer + 1)

    def segment(self, layer: int) -> Tuple[int, int]:
        """(start, size) of the segment of an absolute layer."""
        n = layer - self.min_layer
        return int(self.segment_start[n]), int(self.segment_size[n])

    def occupied(self, layer: int) -> bool:
        n = layer - self.min_layer
        return 0 <= n < len(self.segment_size) and self.segment_size[n] > 0

    @classmethod
    def empty(cls) -> "TimeFrequencyTrack":
        none = np.zeros(0, dtype=int)
        return cls(0, -1, none, none.copy(), none.copy())


@dataclass
class ActivePixels:
    """Sparse pixel list of one source with its bookkeeping."""
    window: PixelWindow
    indices: np.ndarray  # Flat indices relative to window.kmin
    lookup: np.ndarray  # Position in ``indices`` for each window index, -1 if absent
    layer_lo: np.ndarray  # Lowest layer at each time pixel (-1 where skipped)
    layer_hi: np.ndarray  # Highest layer at each time pixel (-1 where skipped)
    valid: np.ndarray  # Time pixels that were representable
    track: TimeFrequencyTrack

    @property
    def count(self) -> int:
        return len(self.indices)

    def absolute_indices(self) -> np.ndarray:
        return self.indices + self.window.kmin

    def position(self, k) -> np.ndarray:
        """List position of absolute flat indices (-1 if not listed)."""
        k = np.asarray(k)
        inside = self.window.contains(k)
        positions = np.full(k.shape, -1, dtype=int)
        positions[inside] = self.lookup[k[inside] - self.window.kmin]
        return positions


class ActivePixelTracker:
    """
    Computes the active pixels of a source.

    Parameters
    ----------
    basis : WaveletBasis
        Shared basis
    window : PixelWindow, optional
        Retained pixel range; defaults to ``basis.pixel_window()``
    config : TrackerConfig, optional
        Guard margins
    fdot_bounds : tuple of float, optional
        Exclusive (min, max) f-dot range that can be represented, e.g. the
        range of a lookup table. Defaults to +/- ``config.max_fdot``.
    """

    def __init__(
        self,
        basis: WaveletBasis,
        window: Optional[PixelWindow] = None,
        config: Optional[TrackerConfig] = None,
        fdot_bounds: Optional[Tuple[float, float]] = None,
    ):
        self.basis = basis
        self.window = window or basis.pixel_window()
        self.config = config or TrackerConfig()
        if fdot_bounds is None and self.config.max_fdot is not None:
            fdot_bounds = (-self.config.max_fdot, self.config.max_fdot)
        self.fdot_bounds = fdot_bounds
        self.frequency_limit = (basis.n_layers - 1) * basis.bandwidth
        self.capacity = self._capacity()

        logger.debug(
            f"ActivePixelTracker: window [{self.window.kmin}, {self.window.kmax}), "
            f"capacity {self.capacity}"
        )

    def half_bandwidth(self, fdot) -> np.ndarray:
        """Half width (Hz) of the band a wavelet with this f-dot responds to."""
        return 0.5 * (self.basis.filter_bandwidth + np.abs(fdot) * self.basis.window_duration)

    def _window_layers(self) -> int:
        n_time = self.basis.n_time
        return (self.window.kmax - 1) // n_time - self.window.kmin // n_time + 1

    def _capacity(self) -> int:
        """Upper bound on the number of listed pixels for any source."""
        per_pixel = self._window_layers()
        if self.fdot_bounds is not None:
            fdot_max = max(abs(self.fdot_bounds[0]), abs(self.fdot_bounds[1]))
            spread = 4 * self.config.doppler_fraction * self.frequency_limit
            width = spread + 2 * float(self.half_bandwidth(fdot_max))
            per_pixel = min(per_pixel, int(np.floor(width / self.basis.bandwidth)) + 2)
        return int(min(self.window.size, self.basis.n_time * per_pixel))

    def layer_ranges(self, frequency: np.ndarray, fdot: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Occupied layer range at every time pixel.

        Parameters
        ----------
        frequency : np.ndarray
            Instantaneous frequency, shape (n_channels, NT)
        fdot : np.ndarray
            Frequency derivative, shape (n_channels, NT)

        Returns
        -------
        layer_lo, layer_hi : np.ndarray
            Inclusive layer range per time pixel (-1 where skipped)
        valid : np.ndarray
            Time pixels that could be represented
        """
        frequency = np.atleast_2d(np.asarray(frequency, dtype=float))
        fdot = np.atleast_2d(np.asarray(fdot, dtype=float))
        if frequency.shape != fdot.shape or frequency.shape[1] != self.basis.n_time:
            raise ValueError(
                f"Expected frequency and fdot of shape (n_channels, {self.basis.n_time}), "
                f"got {frequency.shape} and {fdot.shape}"
            )
        doppler = self.config.doppler_fraction

        valid = np.all(np.isfinite(frequency), axis=0) & np.all(np.isfinite(fdot), axis=0)
        f = np.where(valid, frequency, 0.0)
        fd = np.where(valid, fdot, 0.0)

        f_lo = f.min(axis=0)
        f_hi = f.max(axis=0)
        valid &= (f_lo > 0) & (f_hi < self.frequency_limit)
        valid &= (f_hi - f_lo) <= 2 * doppler * f_hi + 1e-6 * self.basis.bandwidth
        if self.fdot_bounds is not None:
            valid &= (fd.min(axis=0) > self.fdot_bounds[0]) & (fd.max(axis=0) < self.fdot_bounds[1])

        half_width = self.half_bandwidth(np.abs(fd).max(axis=0))
        layer_lo = np.ceil((f_lo * (1 - doppler) - half_width) / self.basis.bandwidth).astype(int)
        layer_hi = np.floor((f_hi * (1 + doppler) + half_width) / self.basis.bandwidth).astype(int)
        layer_lo = np.clip(layer_lo, 0, self.basis.n_layers - 1)
        layer_hi = np.clip(layer_hi, 0, self.basis.n_layers - 1)

        layer_lo[~valid] = -1
        layer_hi[~valid] = -1
        n_skipped = int(np.sum(~valid))
        if n_skipped:
            logger.debug(f"Skipping {n_skipped}/{self.basis.n_time} time pixels outside the representable range")
        return layer_lo, layer_hi, valid

    def _segments(self, layer_lo: np.ndarray, layer_hi: np.ndarray, valid: np.ndarray) -> TimeFrequencyTrack:
        n_time = self.basis.n_time
        first_layer = self.window.kmin // n_time
        last_layer = (self.window.kmax - 1) // n_time
        if not np.any(valid):
            return TimeFrequencyTrack.empty()

        min_layer = max(int(layer_lo[valid].min()), first_layer)
        max_layer = min(int(layer_hi[valid].max()), last_layer)
        if max_layer < min_layer:
            return TimeFrequencyTrack.empty()

        n = max_layer - min_layer + 1
        start = np.zeros(n, dtype=int)
        size = np.zeros(n, dtype=int)
        midpoint = np.full(n, -1, dtype=int)

        padding = self.config.segment_padding
        for m, layer in enumerate(range(min_layer, max_layer + 1)):
            times = np.nonzero(valid & (layer_lo <= layer) & (layer_hi >= layer))[0]
            if len(times) == 0:
                continue
            first, last = times[0], times[-1]
            span = last - first + 1 + 2 * padding
            size[m] = min(n_time, next_power_of_two(max(span, 2)))
            centre = (first + last + 1) // 2
            start[m] = int(np.clip(centre - size[m] // 2, 0, n_time - size[m]))
            midpoint[m] = start[m] + size[m] // 2

        return TimeFrequencyTrack(min_layer, max_layer, start, size, midpoint)

    def track(self, frequency: np.ndarray, fdot: np.ndarray) -> ActivePixels:
        """
        List the active pixels of a source.

        Parameters
        ----------
        frequency : np.ndarray
            Instantaneous frequency at time pixel centres, shape (n_channels, NT)
        fdot : np.ndarray
            Frequency derivative at time pixel centres, shape (n_channels, NT)

        Returns
        -------
        ActivePixels
            Sparse list ordered by time pixel, then layer
        """
        n_time = self.basis.n_time
        layer_lo, layer_hi, valid = self.layer_ranges(frequency, fdot)

        times = np.nonzero(valid)[0]
        counts = layer_hi[times] - layer_lo[times] + 1
        total = int(counts.sum())
        steps = np.arange(total) - np.repeat(np.cumsum(counts) - counts, counts)
        i = np.repeat(times, counts)
        j = np.repeat(layer_lo[times], counts) + steps

        k = self.basis.pixel_index(i, j)
        indices = (k[self.window.contains(k)] - self.window.kmin).astype(int)

        lookup = np.full(self.window.size, -1, dtype=int)
        lookup[indices] = np.arange(len(indices))

        return ActivePixels(
            window=self.window,
            indices=indices,
            lookup=lookup,
            layer_lo=layer_lo,
            layer_hi=layer_hi,
            valid=valid,
            track=self._segments(layer_lo, layer_hi, valid),
        )

"""
Lookup table of wavelet responses to locally linear chirps.

Around the centre of a time pixel a slowly evolving signal looks like
a cos(psi + 2 pi df tau + pi fdot tau^2), where df is the offset of the
instantaneous frequency from the layer centre. Its wavelet coefficient is

    even (i + j): Re[a e^{i psi} T(df, fdot)]
    odd  (i + j): -Im[a e^{i psi} T(df, fdot)]

with T(df, fdot) = sqrt(dt / 2) sum_l phi[l] exp(i (2 pi df tau_l + pi fdot tau_l^2)).
T only depends on the basis, so it is tabulated once on a grid of
(df, fdot) and interpolated bilinearly afterwards.

The table is only valid strictly inside its tabulated f-dot range;
callers must skip samples outside it.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import numpy as np
from tqdm import tqdm

from ..config import LookupTableConfig
from .basis import SQRT2, WaveletBasis

logger = logging.getLogger(__name__)

_ROW_CHUNK = 64  # Frequency rows evaluated per matrix product


class WaveletLookupTable:
    """
    Tabulated wavelet response over frequency offset and f-dot.

    Parameters
    ----------
    basis : WaveletBasis
        Basis whose time-domain window is tabulated
    config : LookupTableConfig, optional
        Grid resolution and build settings
    """

    def __init__(self, basis: WaveletBasis, config: Optional[LookupTableConfig] = None):
        self.basis = basis
        self.config = config or LookupTableConfig()

        n_fdot = self.config.fdot_steps
        self.frequency_step = basis.filter_bandwidth / self.config.frequency_steps
        self.fdot_step = basis.bandwidth / basis.window_duration * self.config.fdot_spacing
        self.fdot = self.fdot_step * (np.arange(n_fdot) - n_fdot / 2)
        self.fdot_min = float(self.fdot[0])
        self.fdot_max = float(self.fdot[-1])

        # Frequency samples per slice: filter support plus the sweep across the window
        counts = (
            (basis.filter_bandwidth + np.abs(self.fdot) * basis.window_duration) / self.frequency_step
        ).astype(int)
        counts += counts % 2
        self.n_frequency = counts

        self.values = self._build()
        self.values.flags.writeable = False
        self.fdot.flags.writeable = False
        self.n_frequency.flags.writeable = False

        logger.info(f"WaveletLookupTable built")
        logger.info(f"  Frequency step: {self.frequency_step:.3e} Hz")
        logger.info(f"  f-dot range: [{self.fdot_min:.3e}, {self.fdot_max:.3e}] Hz/s ({n_fdot} slices)")
        logger.info(f"  Table size: {self.values.shape}")

    def _build(self) -> np.ndarray:
        n_fdot = len(self.fdot)
        slices = range(n_fdot)
        progress = dict(total=n_fdot, desc="Building wavelet table", disable=not self.config.progress)

        # Slices are independent, so they can be built concurrently
        if self.config.n_workers > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_workers) as pool:
                rows = list(tqdm(pool.map(self._build_slice, slices), **progress))
        else:
            rows = [self._build_slice(n) for n in tqdm(slices, **progress)]

        values = np.zeros((n_fdot, int(self.n_frequency.max())), dtype=np.complex128)
        for n, row in enumerate(rows):
            values[n, :len(row)] = row
        return values

    def _build_slice(self, index: int) -> np.ndarray:
        basis = self.basis
        n_f = int(self.n_frequency[index])
        offsets = self.frequency_offsets(index)
        tau = (np.arange(basis.n_window) - basis.n_window // 2) * basis.sample_cadence
        chirp = np.pi * self.fdot[index] * tau ** 2

        row = np.empty(n_f, dtype=np.complex128)
        for start in range(0, n_f, _ROW_CHUNK):
            stop = min(start + _ROW_CHUNK, n_f)
            phase = 2 * np.pi * offsets[start:stop, None] * tau[None, :] + chirp[None, :]
            row[start:stop] = np.exp(1j * phase) @ basis.window
        return row * (basis.scale / SQRT2)

    def frequency_offsets(self, index: int) -> np.ndarray:
        """Frequency offsets (Hz) from the layer centre tabulated in slice ``index``."""
        n_f = int(self.n_frequency[index])
        return (np.arange(n_f) - n_f // 2 + 0.5) * self.frequency_step

    def in_range(self, fdot) -> np.ndarray:
        """True where f-dot lies strictly inside the tabulated range."""
        fdot = np.asarray(fdot, dtype=float)
        return (fdot > self.fdot_min) & (fdot < self.fdot_max)

    def half_bandwidth(self, fdot) -> np.ndarray:
        """Half width (Hz) of the frequency offsets tabulated for a given f-dot."""
        counts = (
            (self.basis.filter_bandwidth + np.abs(fdot) * self.basis.window_duration) / self.frequency_step
        ).astype(int)
        counts += counts % 2
        return 0.5 * (counts - 1) * self.frequency_step

    def _interpolate_offset(self, index: np.ndarray, offset: np.ndarray) -> np.ndarray:
        n_f = self.n_frequency[index]
        x = offset / self.frequency_step - 0.5
        lower = np.floor(x)
        dx = x - lower
        m = lower.astype(int) + n_f // 2

        inside = (m >= 0) & (m < n_f - 1)
        m = np.where(inside, m, 0)
        values = (1 - dx) * self.values[index, m] + dx * self.values[index, m + 1]
        return np.where(inside, values, 0.0)

    def evaluate(self, frequency_offset, fdot) -> Tuple[np.ndarray, np.ndarray]:
        """
        Interpolate the table.

        Parameters
        ----------
        frequency_offset : array_like
            Instantaneous frequency minus layer centre frequency (Hz)
        fdot : array_like
            Frequency derivative (Hz/s)

        Returns
        -------
        values : np.ndarray
            Complex table values T; zero outside the tabulated offsets
        valid : np.ndarray
            False where f-dot (or the offset) cannot be represented; values
            there are zero and should be skipped
        """
        frequency_offset, fdot = np.broadcast_arrays(
            np.asarray(frequency_offset, dtype=float), np.asarray(fdot, dtype=float)
        )
        valid = self.in_range(fdot) & np.isfinite(frequency_offset)
        offset = np.where(valid, frequency_offset, 0.0)

        y = np.where(valid, (fdot - self.fdot_min) / self.fdot_step, 0.0)
        lower = np.clip(np.floor(y).astype(int), 0, len(self.fdot) - 2)
        dy = y - lower

        values = (1 - dy) * self._interpolate_offset(lower, offset)
        values += dy * self._interpolate_offset(lower + 1, offset)
        return np.where(valid, values, 0.0), valid

"""
Projection of a single source onto the wavelet basis.

Pipeline for one call:

1. Sample the waveform family on its native coarse grid
2. Apply the response model to get per-channel amplitude and phase
3. Cubic-spline the response; frequency and f-dot at every time pixel
   centre come from the first and second derivatives of the phase
4. List the active pixels with the tracker
5. Compute coefficients with one of two strategies:
   - "exact": heterodyne each (segment, band) group of layers and run the
     layered segment transform
   - "table": interpolate the chirp lookup table at each listed pixel
6. Scatter the result into a SparseWaveform through the reverse lookup

A projector only reads the basis, the table and its collaborators; every
call works on private arrays, so one projector can serve many threads.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.interpolate import CubicSpline

from ..config import ProjectorConfig, TrackerConfig
from ..sources.response import ExtrinsicParameters, IdentityResponse, ResponseModel
from ..sources.waveforms import SourceParameters, WaveformFamily
from ..tracking.active_pixels import ActivePixels, ActivePixelTracker
from ..wavelets.basis import PixelWindow, WaveletBasis, parity_select
from ..wavelets.layers import LayeredTransform
from ..wavelets.lookup import WaveletLookupTable

logger = logging.getLogger(__name__)


@dataclass
class SparseWaveform:
    """
    Sparse per-channel wavelet coefficients of one source.

    Only the first ``count`` entries of ``indices`` and ``values`` are
    meaningful. Indices are flat pixel indices relative to ``window.kmin``.
    """
    window: PixelWindow
    indices: np.ndarray  # (capacity,)
    values: np.ndarray  # (n_channels, capacity)
    count: int = 0

    @classmethod
    def allocate(cls, window: PixelWindow, n_channels: int, capacity: int) -> "SparseWaveform":
        return cls(
            window=window,
            indices=np.zeros(capacity, dtype=int),
            values=np.zeros((n_channels, capacity)),
        )

    @property
    def capacity(self) -> int:
        return len(self.indices)

    @property
    def n_channels(self) -> int:
        return self.values.shape[0]

    @property
    def active_indices(self) -> np.ndarray:
        return self.indices[:self.count]

    @property
    def active_values(self) -> np.ndarray:
        return self.values[:, :self.count]

    def clear(self):
        self.count = 0
        self.values[:] = 0.0

    def dense(self) -> np.ndarray:
        """Coefficients on the full window, shape (n_channels, window.size)."""
        out = np.zeros((self.n_channels, self.window.size))
        out[:, self.active_indices] = self.active_values
        return out

    def inner_product(self, other: "SparseWaveform", weights=None) -> float:
        """
        Sum over channels and shared pixels of w * a * b.

        Parameters
        ----------
        other : SparseWaveform
            Second waveform on the same window
        weights : float or np.ndarray, optional
            Scalar, per-channel (n_channels,) or per-pixel
            (n_channels, window.size) weights, e.g. inverse noise variances

        Returns
        -------
        float
            Weighted inner product; pixels listed by only one side
            contribute nothing
        """
        if other.window != self.window:
            raise ValueError(f"Windows differ: {self.window} vs {other.window}")
        if other.n_channels != self.n_channels:
            raise ValueError(f"Channel counts differ: {self.n_channels} vs {other.n_channels}")

        shared, ia, ib = np.intersect1d(
            self.active_indices, other.active_indices, assume_unique=True, return_indices=True
        )
        products = self.values[:, ia] * other.values[:, ib]
        if weights is not None:
            weights = np.asarray(weights, dtype=float)
            if weights.ndim == 2:
                weights = weights[:, shared]
            elif weights.ndim == 1:
                weights = weights[:, None]
            products = products * weights
        return float(np.sum(products))

    def power(self, weights=None) -> float:
        return self.inner_product(self, weights)

    def snr(self, weights=None) -> float:
        """Optimal signal-to-noise ratio sqrt(<h|h>) for inverse-variance weights."""
        return float(np.sqrt(self.power(weights)))

    def match(self, other: "SparseWaveform", weights=None) -> float:
        """
        Normalized overlap <a|b> / sqrt(<a|a><b|b>).

        Returns 0 when either waveform has no power, e.g. a source that
        could not be projected.
        """
        norm = np.sqrt(self.power(weights) * other.power(weights))
        if norm == 0:
            return 0.0
        return self.inner_product(other, weights) / float(norm)


@dataclass
class _ResponseSplines:
    """Interpolants of one source's per-channel response."""
    amplitude: List[CubicSpline]
    phase: List[CubicSpline]

    def amplitude_at(self, channel: int, time: np.ndarray) -> np.ndarray:
        values = self.amplitude[channel](time)
        return np.where(np.isfinite(values), values, 0.0)

    def phase_at(self, channel: int, time: np.ndarray, derivative: int = 0) -> np.ndarray:
        return self.phase[channel](time, derivative)


class WaveletProjector:
    """
    Projects sources of one waveform family onto the wavelet basis.

    Parameters
    ----------
    basis : WaveletBasis
        Shared basis
    family : WaveformFamily
        Waveform-family collaborator
    response : ResponseModel, optional
        Response collaborator; defaults to a single-channel IdentityResponse
    config : ProjectorConfig, optional
        Strategy and grid settings
    window : PixelWindow, optional
        Retained pixel range; defaults to ``basis.pixel_window()``
    table : WaveletLookupTable, optional
        Table used by the "table" strategy; built on demand if missing
    tracker_config : TrackerConfig, optional
        Guard margins of the active-pixel tracker
    """

    def __init__(
        self,
        basis: WaveletBasis,
        family: WaveformFamily,
        response: Optional[ResponseModel] = None,
        config: Optional[ProjectorConfig] = None,
        window: Optional[PixelWindow] = None,
        table: Optional[WaveletLookupTable] = None,
        tracker_config: Optional[TrackerConfig] = None,
    ):
        self.basis = basis
        self.family = family
        self.response = response or IdentityResponse()
        self.config = config or ProjectorConfig()

        fdot_bounds = None
        if self.config.method == "table":
            if table is None:
                table = WaveletLookupTable(basis)
            if table.basis is not basis:
                raise ValueError("Lookup table was built for a different basis")
            fdot_bounds = (table.fdot_min, table.fdot_max)
        self.table = table

        self.tracker = ActivePixelTracker(basis, window, tracker_config, fdot_bounds)
        self.window = self.tracker.window
        self.capacity = self.tracker.capacity
        self.n_channels = self.response.n_channels
        self.pixel_times = basis.pixel_time(np.arange(basis.n_time), self.config.start_time)

        logger.info(f"WaveletProjector initialized")
        logger.info(f"  Family: {family.name}, channels: {self.response.channels}")
        logger.info(f"  Method: {self.config.method}, capacity: {self.capacity} pixels")

    def allocate(self) -> SparseWaveform:
        """Output buffer large enough for any source."""
        return SparseWaveform.allocate(self.window, self.n_channels, self.capacity)

    # ---------- response ----------

    def _time_span(self) -> Tuple[float, float]:
        margin = self.config.spline_margin * self.basis.cadence
        return self.pixel_times[0] - margin, self.pixel_times[-1] + self.basis.cadence + margin

    def _splines(self, params: SourceParameters, extrinsic: ExtrinsicParameters) -> Optional[_ResponseSplines]:
        t_start, t_stop = self._time_span()
        grid = self.family.coarse_grid(params, t_start, t_stop, self.config)
        samples = self.family.evaluate(params, grid)
        response = self.response.respond(samples, extrinsic)

        amplitudes, phases = [], []
        for c in range(response.n_channels):
            time = response.time
            amplitude = response.amplitude[c]
            phase = response.phase[c]

            bad_amplitude = ~np.isfinite(amplitude)
            if np.any(bad_amplitude):
                logger.warning(f"Channel {c}: {int(bad_amplitude.sum())} non-finite amplitudes set to 0")
                amplitude = np.where(bad_amplitude, 0.0, amplitude)

            usable = np.isfinite(phase) & np.isfinite(time)
            if not np.all(usable):
                logger.warning(f"Channel {c}: dropping {int(np.sum(~usable))} non-finite phase samples")
            time, first = np.unique(time[usable], return_index=True)
            if len(time) < 2:
                logger.warning(f"Channel {c}: fewer than two usable samples, source not projected")
                return None

            amplitudes.append(CubicSpline(time, amplitude[usable][first], extrapolate=False))
            phases.append(CubicSpline(time, phase[usable][first], extrapolate=False))
        return _ResponseSplines(amplitudes, phases)

    def track(
        self, params: SourceParameters, extrinsic: Optional[ExtrinsicParameters] = None
    ) -> Tuple[Optional[_ResponseSplines], Optional[ActivePixels]]:
        """Response interpolants and active pixels of a source."""
        splines = self._splines(params, extrinsic or ExtrinsicParameters())
        if splines is None:
            return None, None

        shape = (self.n_channels, self.basis.n_time)
        frequency = np.empty(shape)
        fdot = np.empty(shape)
        for c in range(self.n_channels):
            frequency[c] = splines.phase_at(c, self.pixel_times, 1) / (2 * np.pi)
            fdot[c] = splines.phase_at(c, self.pixel_times, 2) / (2 * np.pi)
        return splines, self.tracker.track(frequency, fdot)

    # ---------- strategies ----------

    def _segment_band(self, active: ActivePixels, start: int, size: int, layers: List[int]) -> Tuple[int, int]:
        """Layers spanned by the signal inside a segment, clamped to the interior layers."""
        valid = active.valid[start:start + size]
        lo = [min(layers)] + list(active.layer_lo[start:start + size][valid])
        hi = [max(layers)] + list(active.layer_hi[start:start + size][valid])
        band_min = max(1, int(min(lo)))
        band_max = min(self.basis.n_layers - 1, int(max(hi)))
        return band_min, band_max

    def _project_exact(self, splines: _ResponseSplines, active: ActivePixels) -> np.ndarray:
        basis = self.basis
        track = active.track
        values = np.zeros((self.n_channels, active.count))

        # Layers sharing a segment are computed by one layered transform
        groups: Dict[Tuple[int, int], List[int]] = {}
        for layer in track.layers:
            if layer < 1 or not track.occupied(layer):
                continue
            groups.setdefault(track.segment(layer), []).append(int(layer))

        for (start, size), layers in groups.items():
            band_min, band_max = self._segment_band(active, start, size, layers)
            transform = LayeredTransform(basis, band_min, band_max - band_min + 1, self.config.taper_pixels)
            times = transform.sample_times(size, start, self.config.start_time)
            carrier = 2 * np.pi * transform.reference_frequency * (times - times[0])

            i = np.arange(start, start + size)
            for c in range(self.n_channels):
                h = splines.amplitude_at(c, times) * np.cos(splines.phase_at(c, times) - carrier)
                h = np.where(np.isfinite(h), h, 0.0)
                coefficients = transform(h, time_offset=start)

                for layer in layers:
                    positions = active.position(basis.pixel_index(i, layer))
                    listed = positions >= 0
                    values[c, positions[listed]] = coefficients[listed, layer - band_min]

            logger.debug(
                f"Segment [{start}, {start + size}) layers {layers}: band {band_min}..{band_max}"
            )
        return values

    def _project_table(self, splines: _ResponseSplines, active: ActivePixels) -> np.ndarray:
        basis = self.basis
        i, j = basis.pixel_coords(active.absolute_indices())
        times = self.pixel_times[i]
        values = np.zeros((self.n_channels, active.count))

        for c in range(self.n_channels):
            amplitude = splines.amplitude_at(c, times)
            phase = splines.phase_at(c, times)
            frequency = splines.phase_at(c, times, 1) / (2 * np.pi)
            fdot = splines.phase_at(c, times, 2) / (2 * np.pi)

            response, valid = self.table.evaluate(frequency - basis.layer_frequency(j), fdot)
            valid &= np.isfinite(phase)
            phasor = amplitude * np.exp(1j * np.where(valid, phase, 0.0)) * response
            values[c] = np.where(valid, parity_select(phasor, i, j), 0.0)
        return values

    # ---------- entry point ----------

    def project(
        self,
        params: SourceParameters,
        extrinsic: Optional[ExtrinsicParameters] = None,
        out: Optional[SparseWaveform] = None,
    ) -> SparseWaveform:
        """
        Sparse wavelet coefficients of one source.

        Parameters
        ----------
        params : SourceParameters
            Intrinsic parameters understood by the waveform family
        extrinsic : ExtrinsicParameters, optional
            Sky location and orientation; zeros by default
        out : SparseWaveform, optional
            Buffer to fill; must come from :meth:`allocate` (or be at
            least as large). A new buffer is allocated if omitted.

        Returns
        -------
        SparseWaveform
            The filled buffer; ``count`` is 0 if nothing could be projected
        """
        if out is None:
            out = self.allocate()
        elif out.window != self.window or out.n_channels != self.n_channels or out.capacity < self.capacity:
            raise ValueError(
                f"Output buffer (window {out.window}, {out.n_channels} channels, capacity "
                f"{out.capacity}) does not fit this projector (window {self.window}, "
                f"{self.n_channels} channels, capacity {self.capacity})"
            )
        out.clear()

        splines, active = self.track(params, extrinsic)
        if active is None or active.count == 0:
            return out

        if self.config.method == "table":
            values = self._project_table(splines, active)
        else:
            values = self._project_exact(splines, active)

        out.count = active.count
        out.indices[:active.count] = active.indices
        out.values[:, :active.count] = values
        return out

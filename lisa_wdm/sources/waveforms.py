"""
Waveform families for LISA sources.

Implements simplified analytical families used by the projector:
- Galactic Binaries (GBs): nearly monochromatic, native time grid
- Chirping binaries: leading-order post-Newtonian inspiral, native
  frequency grid (can also be sampled on an adaptive time grid)

Each family returns barycentric amplitude/phase/frequency samples on a
caller-specified time or frequency grid. Families are selected by name
with ``get_waveform_family``.

Note: These are analytical approximations, not full numerical relativity
waveforms. Sky location, inclination and polarization are applied by the
response model, not here.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

import numpy as np

from ..config import ProjectorConfig

logger = logging.getLogger(__name__)

# Physical constants
G = 6.674e-11  # m^3 kg^-1 s^-2
C = 2.998e8  # m/s
M_SUN = 1.989e30  # kg
PC = 3.086e16  # m
T_SUN = G * M_SUN / C ** 3  # Solar mass in seconds

_MAX_GRID_SAMPLES = 100000


@dataclass
class SourceParameters:
    """Base class for source parameters."""
    pass


@dataclass
class GalacticBinaryParameters(SourceParameters):
    """Galactic Binary parameters."""
    f_gw: float  # GW frequency in Hz at t = 0
    amplitude: float  # Strain amplitude
    f_dot: float = 0.0  # Frequency derivative in Hz/s
    phi_0: float = 0.0  # Phase at t = 0


@dataclass
class ChirpingBinaryParameters(SourceParameters):
    """Inspiralling binary parameters."""
    m1: float  # Primary mass in solar masses
    m2: float  # Secondary mass in solar masses
    distance: float  # Luminosity distance in Gpc
    t_c: float  # Coalescence time in seconds
    phi_c: float = 0.0  # Coalescence phase

    @property
    def chirp_mass(self) -> float:
        """Chirp mass in seconds."""
        return T_SUN * (self.m1 * self.m2) ** 0.6 / (self.m1 + self.m2) ** 0.2

    @property
    def total_mass(self) -> float:
        """Total mass in seconds."""
        return T_SUN * (self.m1 + self.m2)


@dataclass
class WaveformSamples:
    """Barycentric waveform samples, ordered by time."""
    time: np.ndarray  # Seconds
    frequency: np.ndarray  # Hz
    amplitude: np.ndarray  # Strain
    phase: np.ndarray  # Radians, h = amplitude * cos(phase)

    def __len__(self) -> int:
        return len(self.time)

    def sorted(self) -> "WaveformSamples":
        order = np.argsort(self.time, kind="stable")
        return WaveformSamples(
            time=self.time[order],
            frequency=self.frequency[order],
            amplitude=self.amplitude[order],
            phase=self.phase[order],
        )


class WaveformFamily:
    """
    Interface of a waveform family.

    Subclasses set ``name`` and ``native_grid`` ("time" or "frequency")
    and implement :meth:`evaluate`, :meth:`frequency_band` and
    :meth:`coarse_grid`.
    """

    name = ""
    native_grid = "time"

    def evaluate(self, params: SourceParameters, grid: np.ndarray, kind: Optional[str] = None) -> WaveformSamples:
        """Sample the waveform on a time grid (s) or frequency grid (Hz)."""
        raise NotImplementedError

    def frequency_band(self, params: SourceParameters, t_start: float, t_stop: float) -> Tuple[float, float]:
        """Frequencies (Hz) at which the signal enters and leaves [t_start, t_stop]."""
        raise NotImplementedError

    def coarse_grid(
        self,
        params: SourceParameters,
        t_start: float,
        t_stop: float,
        config: ProjectorConfig,
        kind: Optional[str] = None,
    ) -> np.ndarray:
        """Grid on which to sample the waveform before interpolation."""
        raise NotImplementedError

    @staticmethod
    def _check_kind(kind: str):
        if kind not in ("time", "frequency"):
            raise ValueError(f"Unknown grid kind: {kind}")


class GalacticBinaryFamily(WaveformFamily):
    """Slowly chirping monochromatic binary."""

    name = "galactic_binary"
    native_grid = "time"

    def evaluate(self, params: GalacticBinaryParameters, grid: np.ndarray, kind: Optional[str] = None) -> WaveformSamples:
        kind = kind or self.native_grid
        self._check_kind(kind)
        grid = np.asarray(grid, dtype=float)

        if kind == "frequency":
            if params.f_dot == 0:
                raise ValueError("A monochromatic binary cannot be sampled on a frequency grid")
            times = (grid - params.f_gw) / params.f_dot
        else:
            times = grid

        # Frequency evolution (slowly chirping)
        f_t = params.f_gw + params.f_dot * times

        # Phase evolution
        phase = 2 * np.pi * (params.f_gw * times + 0.5 * params.f_dot * times ** 2) + params.phi_0

        return WaveformSamples(
            time=times,
            frequency=f_t,
            amplitude=np.full_like(times, params.amplitude),
            phase=phase,
        ).sorted()

    def frequency_band(self, params: GalacticBinaryParameters, t_start: float, t_stop: float) -> Tuple[float, float]:
        f_start = params.f_gw + params.f_dot * t_start
        f_stop = params.f_gw + params.f_dot * t_stop
        return min(f_start, f_stop), max(f_start, f_stop)

    def coarse_grid(
        self,
        params: GalacticBinaryParameters,
        t_start: float,
        t_stop: float,
        config: ProjectorConfig,
        kind: Optional[str] = None,
    ) -> np.ndarray:
        kind = kind or self.native_grid
        self._check_kind(kind)
        if kind == "frequency":
            f_lo, f_hi = self.frequency_band(params, t_start, t_stop)
            return np.linspace(f_lo, f_hi, config.n_frequency_samples)
        return np.linspace(t_start, t_stop, config.n_time_samples)


class ChirpingBinaryFamily(WaveformFamily):
    """
    Leading-order post-Newtonian inspiral.

    The signal is truncated at the innermost stable circular orbit; later
    samples carry zero amplitude.
    """

    name = "chirping_binary"
    native_grid = "frequency"

    @staticmethod
    def isco_frequency(params: ChirpingBinaryParameters) -> float:
        """GW frequency at the innermost stable circular orbit."""
        return 1.0 / (6 ** 1.5 * np.pi * params.total_mass)

    @staticmethod
    def time_to_merger(params: ChirpingBinaryParameters, frequency) -> np.ndarray:
        mc = params.chirp_mass
        return 5 * mc * (8 * np.pi * mc * np.asarray(frequency, dtype=float)) ** (-8 / 3)

    @staticmethod
    def frequency_at(params: ChirpingBinaryParameters, time) -> np.ndarray:
        """Instantaneous GW frequency; NaN at or after coalescence."""
        mc = params.chirp_mass
        tau = params.t_c - np.asarray(time, dtype=float)
        with np.errstate(invalid="ignore", divide="ignore"):
            f = (5 * mc / tau) ** (3 / 8) / (8 * np.pi * mc)
        return np.where(tau > 0, f, np.nan)

    def _phase(self, params: ChirpingBinaryParameters, tau: np.ndarray) -> np.ndarray:
        return params.phi_c - 2 * (tau / (5 * params.chirp_mass)) ** (5 / 8)

    def _amplitude(self, params: ChirpingBinaryParameters, frequency: np.ndarray) -> np.ndarray:
        # h_0 = (G M_chirp / c^2)^(5/3) * (pi f / c)^(2/3) / distance
        distance_m = params.distance * 1e9 * PC
        return C * params.chirp_mass ** (5 / 3) * (np.pi * frequency) ** (2 / 3) / distance_m

    def evaluate(self, params: ChirpingBinaryParameters, grid: np.ndarray, kind: Optional[str] = None) -> WaveformSamples:
        kind = kind or self.native_grid
        self._check_kind(kind)
        grid = np.asarray(grid, dtype=float)
        f_isco = self.isco_frequency(params)
        tau_isco = float(self.time_to_merger(params, f_isco))

        if kind == "frequency":
            frequency = np.minimum(grid, f_isco)
            tau = self.time_to_merger(params, frequency)
            amplitude = self._amplitude(params, frequency)
        else:
            tau = np.maximum(params.t_c - grid, tau_isco)
            frequency = (5 * params.chirp_mass / tau) ** (3 / 8) / (8 * np.pi * params.chirp_mass)
            amplitude = np.where(params.t_c - grid >= tau_isco, self._amplitude(params, frequency), 0.0)

        return WaveformSamples(
            time=params.t_c - tau if kind == "frequency" else grid,
            frequency=frequency,
            amplitude=amplitude,
            phase=self._phase(params, tau),
        ).sorted()

    def frequency_band(
        self,
        params: ChirpingBinaryParameters,
        t_start: float,
        t_stop: float,
        f_nyquist: Optional[float] = None,
    ) -> Tuple[float, float]:
        t_segment = t_stop - t_start
        f_isco = self.isco_frequency(params)

        fmin = float(self.frequency_at(params, t_start))
        if fmin != fmin:
            logger.warning(
                f"Source merges before the segment starts (t_c={params.t_c:.3e} s); "
                f"using fmin = 1/T = {1.0 / t_segment:.3e} Hz"
            )
            fmin = 1.0 / t_segment
        fmin = min(max(fmin, 1.0 / t_segment), f_isco)

        if params.t_c > t_stop:
            fmax = float(self.frequency_at(params, t_stop))
        else:
            fmax = f_isco
        if fmax != fmax:
            logger.warning(f"Could not evaluate stopping frequency; using ISCO frequency {f_isco:.3e} Hz")
            fmax = f_isco
        fmax = min(fmax, f_isco)
        if f_nyquist is not None and fmax > f_nyquist:
            fmax = f_nyquist
        if fmax <= fmin:
            fmax = 2.0 * fmin
        return fmin, fmax

    def adaptive_time_grid(
        self,
        params: ChirpingBinaryParameters,
        t_start: float,
        t_stop: float,
        config: ProjectorConfig,
    ) -> np.ndarray:
        """
        Time grid with roughly constant phase advance per step.

        Works backwards from merger (or t_stop) with dt = phase_step / omega,
        capped at ``max_time_step``; once further than ``growth_onset``
        total masses from merger the phase step grows geometrically.
        """
        tau_isco = float(self.time_to_merger(params, self.isco_frequency(params)))
        t = min(params.t_c - tau_isco, t_stop)
        phase_step = config.phase_step

        times = []
        while len(times) < _MAX_GRID_SAMPLES:
            times.append(t)
            if t < t_start:
                break
            omega = 2 * np.pi * float(self.frequency_at(params, t))
            dt = min(phase_step / omega, config.max_time_step)
            t -= dt
            if params.t_c - t > config.growth_onset * params.total_mass:
                phase_step *= config.phase_step_growth
        else:
            logger.warning(f"Adaptive time grid truncated at {_MAX_GRID_SAMPLES} samples")

        # Post-merger samples keep the spline defined up to t_stop
        grid = np.array(times[::-1])
        if grid[-1] < t_stop:
            tail = np.linspace(grid[-1], t_stop, 4)[1:]
            grid = np.concatenate([grid, tail])
        return grid

    def coarse_grid(
        self,
        params: ChirpingBinaryParameters,
        t_start: float,
        t_stop: float,
        config: ProjectorConfig,
        kind: Optional[str] = None,
    ) -> np.ndarray:
        kind = kind or self.native_grid
        self._check_kind(kind)
        if kind == "time":
            return self.adaptive_time_grid(params, t_start, t_stop, config)
        fmin, fmax = self.frequency_band(params, t_start, t_stop)
        return np.geomspace(fmin, fmax, config.n_frequency_samples)


WAVEFORM_FAMILIES: Dict[str, Type[WaveformFamily]] = {
    GalacticBinaryFamily.name: GalacticBinaryFamily,
    ChirpingBinaryFamily.name: ChirpingBinaryFamily,
}


def get_waveform_family(name: str) -> WaveformFamily:
    """Instantiate a waveform family by name."""
    try:
        return WAVEFORM_FAMILIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown waveform family '{name}'. Available: {sorted(WAVEFORM_FAMILIES)}"
        ) from None

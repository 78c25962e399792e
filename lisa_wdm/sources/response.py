"""
Detector response models.

A response model turns barycentric waveform samples into per-channel
amplitude and phase, h_c(t) = A_c(t) cos(Phi_c(t)), on the same coarse
grid. Two models share one interface:

- IdentityResponse: every channel sees the barycentric signal unchanged
- LongWavelengthResponse: static antenna pattern for two orthogonal
  channels plus the annual Doppler phase of a heliocentric orbit
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .waveforms import WaveformSamples

logger = logging.getLogger(__name__)

AU = 1.496e11  # m
C = 2.998e8  # m/s
YEAR = 31557600.0  # s


@dataclass
class ExtrinsicParameters:
    """Sky location and orientation of a source."""
    ecliptic_latitude: float = 0.0  # beta, radians
    ecliptic_longitude: float = 0.0  # lambda, radians
    inclination: float = 0.0  # iota, radians
    polarization: float = 0.0  # psi, radians


@dataclass
class ChannelResponse:
    """Detector-frame amplitude and phase per channel."""
    time: np.ndarray  # (n,)
    amplitude: np.ndarray  # (n_channels, n)
    phase: np.ndarray  # (n_channels, n)
    channels: Tuple[str, ...]

    @property
    def n_channels(self) -> int:
        return len(self.channels)


class ResponseModel:
    """Interface of a response model."""

    channels: Tuple[str, ...] = ()

    @property
    def n_channels(self) -> int:
        return len(self.channels)

    def respond(self, samples: WaveformSamples, extrinsic: ExtrinsicParameters) -> ChannelResponse:
        raise NotImplementedError


class IdentityResponse(ResponseModel):
    """Passes the barycentric amplitude and phase to every channel."""

    def __init__(self, channels: Sequence[str] = ("X",)):
        if len(channels) == 0:
            raise ValueError("IdentityResponse needs at least one channel")
        self.channels = tuple(channels)

    def respond(self, samples: WaveformSamples, extrinsic: ExtrinsicParameters) -> ChannelResponse:
        n = self.n_channels
        return ChannelResponse(
            time=samples.time,
            amplitude=np.tile(samples.amplitude, (n, 1)),
            phase=np.tile(samples.phase, (n, 1)),
            channels=self.channels,
        )


class LongWavelengthResponse(ResponseModel):
    """
    Low-frequency response of two orthogonal channels "A" and "E".

    The antenna pattern is evaluated for a fixed detector orientation, the
    second channel rotated by 45 degrees about the detector normal. The
    detector's orbit around the Sun adds a phase
    2 pi f (AU / c) cos(beta) cos(2 pi t / year + orbit_phase - lambda),
    which shifts the frequency by at most f * 2 pi AU / (c year) ~ 1e-4 f.

    Parameters
    ----------
    doppler : bool
        Include the annual Doppler phase
    orbit_phase : float
        Orbital phase of the detector at t = 0 (radians)
    """

    channels = ("A", "E")

    def __init__(self, doppler: bool = True, orbit_phase: float = 0.0):
        self.doppler = doppler
        self.orbit_phase = orbit_phase

    def antenna_patterns(self, extrinsic: ExtrinsicParameters) -> Tuple[np.ndarray, np.ndarray]:
        """Plus and cross antenna patterns of each channel."""
        theta = np.pi / 2 - extrinsic.ecliptic_latitude
        phi = extrinsic.ecliptic_longitude - np.array([0.0, np.pi / 4])
        psi = extrinsic.polarization

        cos_theta = np.cos(theta)
        a = 0.5 * (1 + cos_theta ** 2) * np.cos(2 * phi)
        b = cos_theta * np.sin(2 * phi)
        f_plus = a * np.cos(2 * psi) - b * np.sin(2 * psi)
        f_cross = a * np.sin(2 * psi) + b * np.cos(2 * psi)
        return f_plus, f_cross

    def doppler_phase(self, time: np.ndarray, frequency: np.ndarray, extrinsic: ExtrinsicParameters) -> np.ndarray:
        orbit = 2 * np.pi * time / YEAR + self.orbit_phase - extrinsic.ecliptic_longitude
        return 2 * np.pi * frequency * (AU / C) * np.cos(extrinsic.ecliptic_latitude) * np.cos(orbit)

    def respond(self, samples: WaveformSamples, extrinsic: ExtrinsicParameters) -> ChannelResponse:
        f_plus, f_cross = self.antenna_patterns(extrinsic)
        cos_iota = np.cos(extrinsic.inclination)

        # h = A [p cos(Phi) + q sin(Phi)] = A |p + iq| cos(Phi - arg(p + iq))
        in_phase = f_plus * 0.5 * (1 + cos_iota ** 2)
        quadrature = f_cross * cos_iota
        gain = np.hypot(in_phase, quadrature)
        shift = np.arctan2(quadrature, in_phase)

        phase = samples.phase[None, :] - shift[:, None]
        if self.doppler:
            phase = phase + self.doppler_phase(samples.time, samples.frequency, extrinsic)[None, :]

        return ChannelResponse(
            time=samples.time,
            amplitude=gain[:, None] * samples.amplitude[None, :],
            phase=phase,
            channels=self.channels,
        )

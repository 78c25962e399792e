"""
Configuration for the LISA WDM wavelet pipeline.

All numerical tuning knobs live here as dataclass defaults. Several of
them (phase steps, padding margins, taper widths) are engineering choices
rather than derived physics, so they are exposed instead of hard-coded.

Configs can be loaded from YAML:

    config = load_config("config/default.yaml")
    basis = WaveletBasis.from_duration(duration, config.wavelet)
"""

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class WaveletConfig:
    """Constants defining the wavelet tiling."""
    pixel_duration: float = 7680.0  # Seconds per time pixel (DT)
    sample_cadence: float = 5.0  # Seconds per data sample (dt)
    oversample: int = 16  # Window length in units of 2*NF samples
    filter_steepness: float = 4.0  # Incomplete beta a=b parameter of the ramp

    def __post_init__(self):
        if self.pixel_duration <= 0 or self.sample_cadence <= 0:
            raise ValueError("pixel_duration and sample_cadence must be positive")
        ratio = self.pixel_duration / self.sample_cadence
        if abs(ratio - round(ratio)) > 1e-9 * ratio:
            raise ValueError(
                f"pixel_duration ({self.pixel_duration}) must be a whole number "
                f"of samples ({self.sample_cadence} s)"
            )
        if int(round(ratio)) % 2:
            raise ValueError(f"Number of frequency layers must be even, got {int(round(ratio))}")
        if self.oversample < 2 or self.oversample % 2:
            raise ValueError(f"oversample must be an even integer >= 2, got {self.oversample}")
        if self.filter_steepness <= 0:
            raise ValueError("filter_steepness must be positive")

    @property
    def n_layers(self) -> int:
        return int(round(self.pixel_duration / self.sample_cadence))


@dataclass
class LookupTableConfig:
    """Grid used to tabulate wavelet responses to chirping signals."""
    frequency_steps: int = 400  # Samples across the filter bandwidth
    fdot_steps: int = 50  # Number of frequency-derivative slices
    fdot_spacing: float = 0.1  # f-dot step in units of DF / window duration
    n_workers: int = 1  # Threads used while building
    progress: bool = False  # Show a tqdm progress bar while building

    def __post_init__(self):
        if self.frequency_steps < 2 or self.fdot_steps < 2:
            raise ValueError("Lookup table needs at least 2 steps on each axis")
        if self.fdot_spacing <= 0:
            raise ValueError("fdot_spacing must be positive")
        if self.n_workers < 1:
            raise ValueError("n_workers must be >= 1")


@dataclass
class TrackerConfig:
    """Guard margins used when listing active pixels."""
    doppler_fraction: float = 1e-4  # Orbital velocity / c
    segment_padding: int = 4  # Extra time pixels kept on each side of a layer's segment
    max_fdot: Optional[float] = None  # |f-dot| limit in Hz/s (None: unlimited)

    def __post_init__(self):
        if self.doppler_fraction < 0:
            raise ValueError("doppler_fraction must be non-negative")
        if self.segment_padding < 0:
            raise ValueError("segment_padding must be non-negative")


@dataclass
class ProjectorConfig:
    """Settings for projecting a source onto the wavelet basis."""
    method: str = "exact"  # "exact" (heterodyne + layered transform) or "table"
    start_time: float = 0.0  # Time of the first sample in seconds

    # Heterodyne path
    taper_pixels: float = 4.0  # Tukey taper width at segment edges inside the timeline, in pixels
    spline_margin: int = 2  # Coarse grid extends this many pixels past the data

    # Coarse grids handed to the waveform families
    n_time_samples: int = 128
    n_frequency_samples: int = 256
    phase_step: float = 0.5  # Radians between adaptive time samples
    max_time_step: float = 2.0e5  # Seconds
    phase_step_growth: float = 1.1  # Step growth factor far from merger
    growth_onset: float = 100.0  # Distance from merger (total-mass times) where growth starts

    def __post_init__(self):
        if self.method not in ("exact", "table"):
            raise ValueError(f"Unknown projection method: {self.method}")
        if self.taper_pixels < 0:
            raise ValueError("taper_pixels must be non-negative")
        if self.n_time_samples < 4 or self.n_frequency_samples < 4:
            raise ValueError("Coarse grids need at least 4 samples")
        if self.phase_step <= 0 or self.max_time_step <= 0 or self.phase_step_growth < 1:
            raise ValueError("Invalid adaptive time-grid settings")


@dataclass
class PipelineConfig:
    """Bundle of all configuration sections."""
    wavelet: WaveletConfig = field(default_factory=WaveletConfig)
    lookup: LookupTableConfig = field(default_factory=LookupTableConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    projector: ProjectorConfig = field(default_factory=ProjectorConfig)
    duration: float = 31457280.0  # Observation time in seconds (4096 pixels)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PipelineConfig":
        """Build a config from a nested dictionary, e.g. parsed YAML."""
        data = dict(data or {})
        sections = {
            "wavelet": WaveletConfig,
            "lookup": LookupTableConfig,
            "tracker": TrackerConfig,
            "projector": ProjectorConfig,
        }
        unknown = set(data) - set(sections) - {"duration"}
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        kwargs = {name: section(**(data.get(name) or {})) for name, section in sections.items()}
        if "duration" in data:
            kwargs["duration"] = float(data["duration"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """
    Load a pipeline configuration from a YAML file.

    Parameters
    ----------
    path : str or Path
        YAML file with optional ``wavelet``, ``lookup``, ``tracker``,
        ``projector`` sections and a top-level ``duration``.

    Returns
    -------
    PipelineConfig
        Parsed configuration; missing entries take their defaults.
    """
    path = Path(path)
    with open(path, "r") as f:
        data = yaml.safe_load(f)

    config = PipelineConfig.from_dict(data)
    logger.info(f"Loaded configuration from {path}")
    logger.debug(f"  Configuration: {config.to_dict()}")
    return config

"""
WDM wavelet representation of LISA data and sources.

Builds a critically sampled time-frequency wavelet basis, transforms dense
series to and from it, and projects individual sources onto a sparse set
of active pixels for likelihood evaluation.
"""

from .config import (
    LookupTableConfig,
    PipelineConfig,
    ProjectorConfig,
    TrackerConfig,
    WaveletConfig,
    load_config,
)

__version__ = "0.1.0"

"""
Source collaborators: waveform families and detector response models.
"""

from .response import (
    ChannelResponse,
    ExtrinsicParameters,
    IdentityResponse,
    LongWavelengthResponse,
    ResponseModel,
)
from .waveforms import (
    ChirpingBinaryFamily,
    ChirpingBinaryParameters,
    GalacticBinaryFamily,
    GalacticBinaryParameters,
    WaveformFamily,
    WaveformSamples,
    get_waveform_family,
)

__all__ = [
    "ChannelResponse",
    "ExtrinsicParameters",
    "IdentityResponse",
    "LongWavelengthResponse",
    "ResponseModel",
    "ChirpingBinaryFamily",
    "ChirpingBinaryParameters",
    "GalacticBinaryFamily",
    "GalacticBinaryParameters",
    "WaveformFamily",
    "WaveformSamples",
    "get_waveform_family",
]

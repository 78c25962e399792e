"""
Waveform-to-wavelet projection.
"""

from .projector import SparseWaveform, WaveletProjector

"""
WDM wavelet basis and transforms for LISA data.

Includes the basis construction, whole-volume forward/inverse transforms,
the narrow-band layered segment transform and the chirp lookup table.
"""

from .basis import (
    PixelWindow,
    WaveletBasis,
    is_cosine_pixel,
    parity_embed,
    parity_select,
    phitilde,
    time_shift_sign,
)
from .layers import LayeredTransform, heterodyne_frequency, segment_sample_count, transform_layers
from .lookup import WaveletLookupTable
from .transform import (
    WDMTransform,
    forward_transform,
    forward_transform_fourier,
    inverse_transform_fourier,
    inverse_transform_time,
    plot_wavelet_pixels,
)

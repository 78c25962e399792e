"""
Active-pixel bookkeeping for single sources.
"""

from .active_pixels import ActivePixels, ActivePixelTracker, TimeFrequencyTrack, next_power_of_two

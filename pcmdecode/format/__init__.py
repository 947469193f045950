"""Sample and stream format descriptions."""

from .audio_format import AudioFormat, layout_for_channels
from .sample_format import Packing, SampleFormat, SampleType, iter_formats, pick_best_format

__all__ = [
    "AudioFormat",
    "Packing",
    "SampleFormat",
    "SampleType",
    "iter_formats",
    "layout_for_channels",
    "pick_best_format",
]

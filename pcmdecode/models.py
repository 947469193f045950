"""Serialisable descriptions of decoded streams and buffers."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


@dataclass
class StreamInfo(DataClassORJSONMixin):
    """Audio stream selected for decoding."""

    path: str
    """Path of the media file."""
    codec: str
    """Decoder name (e.g., 'mp3float', 'pcm_s16le')."""
    sample_format: str
    """Sample format the decoder outputs (FFmpeg name)."""
    sample_rate: int
    """Sample rate in Hz."""
    channels: int
    """Number of channels in the stream."""
    layout: str
    """FFmpeg channel layout name."""
    estimated_samples: int
    """Sample count estimated from the container duration."""
    duration_us: int | None = None
    """Container duration in microseconds, if known."""

    class Config(BaseConfig):
        """Config for serialising stream info."""

        omit_none = True


@dataclass
class BufferInfo(DataClassORJSONMixin):
    """Shape of a decoded PCM buffer."""

    sample_format: str
    """Sample format of the buffer (FFmpeg name)."""
    sample_rate: int
    """Sample rate in Hz."""
    channels: int
    """Number of channels."""
    samples: int
    """Valid samples per channel."""
    capacity: int
    """Samples per channel allocated."""

    @property
    def duration(self) -> float:
        """Return the decoded length in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self.samples / self.sample_rate

"""Complete shape of a PCM stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import av

from .sample_format import SampleFormat

if TYPE_CHECKING:
    from pcmdecode.container import AudioContainer


_DEFAULT_LAYOUTS = {
    1: "mono",
    2: "stereo",
    3: "2.1",
    4: "4.0",
    5: "5.0",
    6: "5.1",
    7: "6.1",
    8: "7.1",
}


def layout_for_channels(channels: int) -> str:
    """Return FFmpeg's default channel layout name for ``channels``."""
    if channels <= 0:
        raise ValueError("channels must be positive")
    # "<n>c" selects FFmpeg's default layout for counts without a named one
    return _DEFAULT_LAYOUTS.get(channels, f"{channels}c")


@dataclass(frozen=True)
class AudioFormat:
    """Audio format of a PCM stream."""

    layout: str
    """FFmpeg channel layout name (e.g., 'mono', 'stereo')."""
    sample_format: SampleFormat
    """Encoding of the individual samples."""
    sample_rate: int
    """Sample rate in Hz (e.g., 44100, 48000)."""

    @property
    def channels(self) -> int:
        """Return the number of channels in the layout."""
        return int(av.AudioLayout(self.layout).nb_channels)

    @classmethod
    def from_container(cls, container: AudioContainer) -> AudioFormat:
        """Return the format samples must have to be stored in ``container``."""
        return cls(
            layout=layout_for_channels(container.channels),
            sample_format=SampleFormat.from_container(container),
            sample_rate=container.sample_rate,
        )

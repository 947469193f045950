"""Sample format and channel conversion for decoded frames."""

from __future__ import annotations

import logging

import av

from pcmdecode.container import WriteCursor
from pcmdecode.errors import DecodeFaultError
from pcmdecode.format import AudioFormat

logger = logging.getLogger(__name__)


class Converter:
    """
    Convert decoded frames from a source format into a destination format.

    Wraps an ``av.AudioResampler`` targeting the destination sample format and
    layout. The sample rate is never changed, so every input frame converts to
    the same number of samples.
    """

    def __init__(self, src: AudioFormat, dst: AudioFormat) -> None:
        """
        Create a converter.

        Args:
            src: Format of the decoded frames.
            dst: Format of the buffer being filled.
        """
        if dst.sample_format.sample_type is None:
            raise ValueError("Cannot convert to the NONE sample format")
        self.src = src
        self.dst = dst
        self._resampler = av.AudioResampler(
            format=dst.sample_format.name,
            layout=dst.layout,
            rate=dst.sample_rate,
        )
        logger.debug(
            "Converting %s/%s to %s/%s at %s Hz",
            src.sample_format,
            src.layout,
            dst.sample_format,
            dst.layout,
            dst.sample_rate,
        )

    def convert(self, frame: av.AudioFrame, cursor: WriteCursor) -> int:
        """
        Convert ``frame`` into the memory behind ``cursor``.

        Returns:
            Number of samples per channel written.
        """
        try:
            out_frames = self._resampler.resample(frame)
        except (av.error.FFmpegError, ValueError) as err:
            # ValueError: frame does not match the resampler setup
            raise DecodeFaultError(f"Failed to convert frame: {err}") from err

        written = 0
        for out_frame in out_frames:
            try:
                cursor.write_planes(out_frame.planes, out_frame.samples, start=written)
            except ValueError as err:
                raise DecodeFaultError(f"Converted frame does not fit the buffer: {err}") from err
            written += out_frame.samples
        return written

    def flush(self) -> list[av.AudioFrame]:
        """
        Return the converted samples still buffered in the resampler.

        The frames are already in the destination format. The converter can
        not be used afterwards.
        """
        try:
            out_frames = self._resampler.resample(None)
        except (av.error.FFmpegError, ValueError) as err:
            raise DecodeFaultError(f"Failed to flush converter: {err}") from err
        return [out_frame for out_frame in out_frames if out_frame is not None]

"""Decode a whole audio stream into an in-memory PCM buffer."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import av

from pcmdecode.container import AudioContainer, WriteCursor
from pcmdecode.converter import Converter
from pcmdecode.errors import DecodeFaultError, DecodeSetupError
from pcmdecode.format import AudioFormat, Packing, SampleFormat, SampleType, pick_best_format
from pcmdecode.input import Input, Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReaderConfig:
    """Shape of the PCM buffer a reader produces."""

    sample_type: SampleType
    """Numeric kind of the output samples."""
    packing: Packing
    """Interleaved or planar output layout."""
    channels: int | None = None
    """Explicit output channel count."""
    default_channels: int | None = None
    """Channel count used when ``channels`` is not given."""

    def __post_init__(self) -> None:
        """Validate the channel counts."""
        for name in ("channels", "default_channels"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive")

    @property
    def sample_format(self) -> SampleFormat:
        """Return the requested sample format."""
        return SampleFormat.from_type(self.sample_type, self.packing)

    def resolve_channels(self, source_channels: int) -> int:
        """Return the output channel count for a source with ``source_channels``."""
        if self.channels is not None:
            return self.channels
        if self.default_channels is not None:
            return self.default_channels
        return source_channels


class Reader:
    """
    Decode driver filling an :class:`AudioContainer` from an :class:`Input`.

    The buffer is pre-sized from the input's duration estimate and grown as
    frames arrive. A reader decodes once: :meth:`read` consumes it.
    """

    def __init__(self, input_: Input, config: ReaderConfig) -> None:
        """
        Prepare the output buffer and, if needed, a converter.

        Args:
            input_: Opened input; the reader takes ownership of it.
            config: Requested output shape.
        """
        self._input = input_
        self._config = config
        channels = config.resolve_channels(input_.channels)

        self._output = AudioContainer.zeros(
            channels,
            input_.estimated_sample_count(),
            config.sample_type,
            config.packing,
            sample_rate=input_.sample_rate,
        )

        self._converter: Converter | None = None
        if input_.sample_format != config.sample_format or channels != input_.channels:
            try:
                self._converter = input_.converter(AudioFormat.from_container(self._output))
            except (av.error.FFmpegError, ValueError, TypeError) as err:
                raise DecodeSetupError(
                    f"Could not convert {input_.sample_format} x {input_.channels} to "
                    f"{config.sample_format} x {channels}: {err}"
                ) from err
        logger.debug(
            "Decoding %s as %s x %s (%s)",
            input_.path,
            config.sample_format,
            channels,
            "converted" if self._converter else "direct copy",
        )

        self._cursor = WriteCursor.empty(self._output)
        self._sample_count = 0
        self._consumed = False

    @classmethod
    def open(
        cls,
        path: str | os.PathLike[str],
        sample_type: SampleType,
        packing: Packing,
        channels: int | None = None,
        *,
        default_channels: int | None = None,
    ) -> Reader:
        """
        Open ``path`` for decoding into the given sample type and packing.

        The decoder is asked for the matching sample format when it supports
        it; otherwise frames are converted.
        """
        config = ReaderConfig(sample_type, packing, channels, default_channels)
        preferred = config.sample_format
        input_ = Input.open(path, lambda formats: pick_best_format(formats, preferred))
        try:
            return cls(input_, config)
        except BaseException:
            input_.close()
            raise

    @property
    def channels(self) -> int:
        """Return the output channel count."""
        return self._output.channels

    @property
    def sample_format(self) -> SampleFormat:
        """Return the output sample format."""
        return self._config.sample_format

    @property
    def converter(self) -> Converter | None:
        """Return the converter, or None when frames are copied directly."""
        return self._converter

    def read(self) -> AudioContainer:
        """
        Decode the whole stream and return the filled buffer.

        The input is closed afterwards, whether decoding succeeded or not.

        Raises:
            DecodeFaultError: The demuxer, decoder or converter failed, or the
                converter produced a different number of samples than decoded.
            RuntimeError: The reader was already used.
        """
        if self._consumed:
            raise RuntimeError("Reader.read() can only be called once")
        self._consumed = True

        with self._input:
            while True:
                status, packet = self._input.read_packet()
                if status is Status.EOF:
                    break
                if status is Status.AGAIN or packet is None:
                    continue
                self._decode_packet(packet)
            self._flush_converter()

        self._output.set_samples(self._sample_count)
        logger.debug("Decoded %s samples from %s", self._sample_count, self._input.path)
        return self._output

    def _decode_packet(self, packet: av.Packet) -> None:
        """Feed one packet to the decoder and store every frame it yields."""
        if packet.stream is None or packet.stream.index != self._input.stream_index:
            return

        if self._input.send_packet(packet) is Status.AGAIN:
            logger.debug("Decoder not ready for packet, draining frames")

        while True:
            status, frame = self._input.receive_frame()
            if status is not Status.READY or frame is None:
                break
            self._append_frame(frame)

    def _flush_converter(self) -> None:
        """Store the samples the converter still holds at end of stream."""
        if self._converter is None:
            return
        for frame in self._converter.flush():
            logger.debug("Storing %s buffered samples from the converter", frame.samples)
            self._append_frame(frame, direct=True)

    def _append_frame(self, frame: av.AudioFrame, direct: bool = False) -> None:
        """Copy or convert ``frame`` behind the samples already stored."""
        needed = self._sample_count + frame.samples
        if needed > self._output.capacity:
            self._output.grow(needed)

        # Growth reallocates the storage, so the cursor is rebuilt for every frame.
        self._cursor = WriteCursor.at(self._output, self._sample_count)
        self._copy_frame_to_cursor(frame, direct)

        self._sample_count = needed
        self._output.set_samples(needed)

    def _copy_frame_to_cursor(self, frame: av.AudioFrame, direct: bool) -> None:
        """Write ``frame`` to the start of the current cursor."""
        if self._converter is not None and not direct:
            written = self._converter.convert(frame, self._cursor)
            if written != frame.samples:
                raise DecodeFaultError(
                    f"Converter produced {written} samples for a {frame.samples} sample frame"
                )
            return
        # Frame layout matches the buffer: plane 0 holds interleaved samples,
        # or there is one plane per channel.
        self._cursor.write_planes(frame.planes, frame.samples)


def read_file(
    path: str | os.PathLike[str],
    sample_type: SampleType = SampleType.F32,
    packing: Packing = Packing.PLANAR,
    channels: int | None = None,
) -> AudioContainer:
    """Decode the first audio stream of ``path`` into a PCM buffer."""
    return Reader.open(path, sample_type, packing, channels).read()

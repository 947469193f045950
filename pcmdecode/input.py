"""Demuxer and decoder session for the first audio stream of a media file."""

from __future__ import annotations

import logging
import os
from collections import deque
from collections.abc import Callable, Iterator
from enum import Enum
from types import TracebackType

import av
from av.logging import Capture

from pcmdecode.converter import Converter
from pcmdecode.errors import DecodeFaultError, DecodeSetupError, NoAudioStreamError, OpenFailedError
from pcmdecode.format import AudioFormat, SampleFormat, iter_formats
from pcmdecode.models import StreamInfo

logger = logging.getLogger(__name__)

FormatPicker = Callable[[Iterator[SampleFormat]], SampleFormat | None]
"""Chooses a decoder output format from the formats the decoder supports."""


class Status(Enum):
    """Outcome of a packet or frame call that is not a fatal error."""

    READY = "ready"
    """The call produced a packet or frame, or accepted the packet."""
    AGAIN = "again"
    """Nothing available right now; call again."""
    EOF = "eof"
    """The input is exhausted."""


class Input:
    """
    Open decoding session on the first audio stream of a container.

    Owns the PyAV container and decoder context until :meth:`close`.
    """

    def __init__(
        self,
        path: str,
        container: av.container.InputContainer,
        stream: av.audio.stream.AudioStream,
        codec_context: av.AudioCodecContext,
    ) -> None:
        """Wrap an opened container, its audio stream and the opened decoder."""
        self.path = path
        self._container = container
        self._stream = stream
        self._codec_context = codec_context
        self._packets: Iterator[av.Packet] = container.demux()
        self._pending: deque[av.AudioFrame] = deque()
        self._closed = False

    @classmethod
    def open(cls, path: str | os.PathLike[str], format_picker: FormatPicker) -> Input:
        """
        Open ``path`` and prepare a decoder for its first audio stream.

        Args:
            path: Media file to decode.
            format_picker: Receives the decoder's supported sample formats and
                returns the one to request, or None if none is usable.

        Raises:
            OpenFailedError: The container could not be opened.
            NoAudioStreamError: The container has no audio stream.
            DecodeSetupError: No usable format, or the decoder failed to open.
        """
        path = os.fspath(path)
        try:
            container = av.open(path)
        except (av.error.FFmpegError, OSError) as err:
            raise OpenFailedError(f"Could not open {path}: {err}") from err

        try:
            return cls._setup(path, container, format_picker)
        except BaseException:
            container.close()
            raise

    @classmethod
    def _setup(
        cls,
        path: str,
        container: av.container.InputContainer,
        format_picker: FormatPicker,
    ) -> Input:
        """Select the audio stream, negotiate a format and open the decoder."""
        if not container.streams.audio:
            raise NoAudioStreamError(f"Could not find any audio stream in {path}")
        stream = container.streams.audio[0]
        codec_context = stream.codec_context
        logger.debug("Using audio stream %s (%s) of %s", stream.index, codec_context.name, path)

        supported = codec_context.codec.audio_formats
        if not supported and codec_context.format is not None:
            # Decoders that advertise nothing output the stream's native format.
            supported = (codec_context.format,)
        sample_format = format_picker(iter_formats(supported))
        if sample_format is None or sample_format == SampleFormat.NONE:
            raise DecodeSetupError(f"Could not find appropriate sample format for {path}")
        logger.debug("Requesting sample format %s from %s", sample_format, codec_context.name)
        codec_context.options = {
            **(codec_context.options or {}),
            "request_sample_fmt": sample_format.name,
        }

        try:
            with Capture() as logs:
                codec_context.open(strict=False)
        except av.error.FFmpegError as err:
            raise DecodeSetupError(f"Could not open decoder {codec_context.name}: {err}") from err
        for log in logs:
            logger.debug("Opening decoder log from av: %s", log)

        return cls(path, container, stream, codec_context)

    @property
    def container(self) -> av.container.InputContainer:
        """Return the PyAV input container."""
        return self._container

    @property
    def stream(self) -> av.audio.stream.AudioStream:
        """Return the selected audio stream."""
        return self._stream

    @property
    def codec_context(self) -> av.AudioCodecContext:
        """Return the opened decoder context."""
        return self._codec_context

    @property
    def stream_index(self) -> int:
        """Return the container index of the selected stream."""
        return int(self._stream.index)

    @property
    def layout(self) -> str:
        """Return the source channel layout name."""
        return str(self._codec_context.layout.name)

    @property
    def channels(self) -> int:
        """Return the source channel count."""
        return int(self._codec_context.layout.nb_channels)

    @property
    def sample_format(self) -> SampleFormat:
        """Return the sample format the decoder outputs."""
        return SampleFormat.from_av(self._codec_context.format)

    @property
    def sample_rate(self) -> int:
        """Return the source sample rate in Hz."""
        return int(self._codec_context.sample_rate)

    @property
    def audio_format(self) -> AudioFormat:
        """Return the complete format of decoded frames."""
        return AudioFormat(self.layout, self.sample_format, self.sample_rate)

    def estimated_sample_count(self) -> int:
        """
        Estimate the number of samples per channel from the container duration.

        Duration metadata can be imprecise or missing; 0 is returned when it is
        unknown.
        """
        duration = self._container.duration
        if not duration or duration < 0:
            return 0
        return int(duration * self.sample_rate // av.time_base)

    def converter(self, dst: AudioFormat) -> Converter:
        """Return a converter from this input's format to ``dst``."""
        return Converter(self.audio_format, dst)

    def info(self) -> StreamInfo:
        """Return a serialisable description of the selected stream."""
        duration = self._container.duration
        return StreamInfo(
            path=self.path,
            codec=str(self._codec_context.name),
            sample_format=self.sample_format.name,
            sample_rate=self.sample_rate,
            channels=self.channels,
            layout=self.layout,
            estimated_samples=self.estimated_sample_count(),
            duration_us=int(duration) if duration else None,
        )

    def read_packet(self) -> tuple[Status, av.Packet | None]:
        """
        Read the next packet of any stream from the container.

        After the last packet the demuxer yields one empty flush packet per
        stream before reporting ``EOF``.

        Raises:
            DecodeFaultError: The demuxer failed.
        """
        self._check_open()
        try:
            packet = next(self._packets)
        except StopIteration:
            return Status.EOF, None
        except av.error.BlockingIOError:
            # The demux generator is finished once it raises; resume from the
            # current container position.
            self._packets = self._container.demux()
            return Status.AGAIN, None
        except av.error.EOFError:
            return Status.EOF, None
        except av.error.FFmpegError as err:
            raise DecodeFaultError(f"Failed to read packet from {self.path}: {err}") from err
        return Status.READY, packet

    def send_packet(self, packet: av.Packet) -> Status:
        """
        Submit a packet to the decoder.

        Frames produced by the decoder are queued for :meth:`receive_frame`.

        Raises:
            DecodeFaultError: The decoder rejected the packet.
        """
        self._check_open()
        try:
            frames = self._codec_context.decode(packet)
        except av.error.BlockingIOError:
            return Status.AGAIN
        except av.error.FFmpegError as err:
            raise DecodeFaultError(f"Failed to decode packet from {self.path}: {err}") from err
        self._pending.extend(frames)
        return Status.READY

    def receive_frame(self) -> tuple[Status, av.AudioFrame | None]:
        """Return the next decoded frame, or ``AGAIN`` if none is ready."""
        if not self._pending:
            return Status.AGAIN, None
        return Status.READY, self._pending.popleft()

    def close(self) -> None:
        """Release the container and decoder."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        self._container.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed Input")

    def __enter__(self) -> Input:
        """Return self for use as a context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the input."""
        self.close()

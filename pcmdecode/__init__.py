"""pcmdecode: decode compressed audio into in-memory PCM buffers with PyAV."""

from __future__ import annotations

from pcmdecode.container import AudioContainer, WriteCursor
from pcmdecode.converter import Converter
from pcmdecode.errors import (
    DecodeFaultError,
    DecodeSetupError,
    NoAudioStreamError,
    OpenFailedError,
    PCMDecodeError,
    StaleCursorError,
)
from pcmdecode.format import AudioFormat, Packing, SampleFormat, SampleType, pick_best_format
from pcmdecode.input import Input, Status
from pcmdecode.models import BufferInfo, StreamInfo
from pcmdecode.reader import Reader, ReaderConfig, read_file

__all__ = [
    "AudioContainer",
    "AudioFormat",
    "BufferInfo",
    "Converter",
    "DecodeFaultError",
    "DecodeSetupError",
    "Input",
    "NoAudioStreamError",
    "OpenFailedError",
    "PCMDecodeError",
    "Packing",
    "Reader",
    "ReaderConfig",
    "SampleFormat",
    "SampleType",
    "StaleCursorError",
    "Status",
    "StreamInfo",
    "WriteCursor",
    "pick_best_format",
    "read_file",
]

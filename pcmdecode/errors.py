"""Exceptions raised by pcmdecode."""

from __future__ import annotations


class PCMDecodeError(Exception):
    """Base class for all decoding errors."""


class OpenFailedError(PCMDecodeError):
    """The media container could not be opened."""


class DecodeSetupError(PCMDecodeError):
    """No usable decoder or sample format could be negotiated."""


class NoAudioStreamError(DecodeSetupError):
    """The container holds no audio stream."""


class DecodeFaultError(PCMDecodeError):
    """Fatal error while reading, decoding or converting audio."""


class StaleCursorError(RuntimeError):
    """A write cursor was used after its container reallocated."""


__all__ = [
    "DecodeFaultError",
    "DecodeSetupError",
    "NoAudioStreamError",
    "OpenFailedError",
    "PCMDecodeError",
    "StaleCursorError",
]

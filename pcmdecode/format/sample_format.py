"""PCM sample formats and decoder format negotiation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import av
import numpy as np
from numpy.typing import DTypeLike

if TYPE_CHECKING:
    from pcmdecode.container import AudioContainer

logger = logging.getLogger(__name__)


class SampleType(Enum):
    """Numeric kind of a single PCM sample, named after its FFmpeg base format."""

    U8 = "u8"
    """Unsigned 8-bit integer."""
    I16 = "s16"
    """Signed 16-bit integer."""
    I32 = "s32"
    """Signed 32-bit integer."""
    I64 = "s64"
    """Signed 64-bit integer."""
    F32 = "flt"
    """32-bit float."""
    F64 = "dbl"
    """64-bit float."""

    @property
    def dtype(self) -> np.dtype:
        """Return the numpy dtype holding samples of this kind."""
        return np.dtype(_DTYPES[self])

    @classmethod
    def from_dtype(cls, dtype: DTypeLike) -> SampleType:
        """Return the sample type stored as ``dtype``."""
        resolved = np.dtype(dtype)
        for sample_type, name in _DTYPES.items():
            if resolved == np.dtype(name):
                return sample_type
        raise ValueError(f"No PCM sample type for dtype {resolved}")


_DTYPES: dict[SampleType, str] = {
    SampleType.U8: "uint8",
    SampleType.I16: "int16",
    SampleType.I32: "int32",
    SampleType.I64: "int64",
    SampleType.F32: "float32",
    SampleType.F64: "float64",
}


class Packing(Enum):
    """Memory arrangement of multichannel samples."""

    PACKED = "packed"
    """Interleaved: all channels of one time index are stored together."""
    PLANAR = "planar"
    """Deinterleaved: each channel is stored contiguously."""


@dataclass(frozen=True, slots=True)
class SampleFormat:
    """
    Encoding of PCM samples, independent of any buffer layout.

    A format is a numeric kind combined with a packing. ``SampleFormat.NONE``
    carries no numeric kind and stands for "no format".
    """

    sample_type: SampleType | None
    """Numeric kind of the samples, None for the NONE format."""
    packing: Packing = Packing.PACKED
    """Packed (interleaved) or planar arrangement."""

    NONE: ClassVar[SampleFormat]

    def __post_init__(self) -> None:
        """Reject a planar format without a numeric kind."""
        if self.sample_type is None and self.packing is Packing.PLANAR:
            raise ValueError("The NONE sample format has no planar variant")

    @property
    def name(self) -> str:
        """Return the canonical FFmpeg name, e.g. ``s16`` or ``fltp``."""
        if self.sample_type is None:
            return "none"
        suffix = "p" if self.packing is Packing.PLANAR else ""
        return f"{self.sample_type.value}{suffix}"

    @property
    def dtype(self) -> np.dtype | None:
        """Return the numpy dtype of one sample, None for NONE."""
        if self.sample_type is None:
            return None
        return self.sample_type.dtype

    def packed(self) -> SampleFormat:
        """Return the interleaved variant of this format."""
        return SampleFormat(self.sample_type, Packing.PACKED)

    def planar(self) -> SampleFormat:
        """Return the planar variant of this format (NONE stays NONE)."""
        if self.sample_type is None:
            return self
        return SampleFormat(self.sample_type, Packing.PLANAR)

    def is_planar(self) -> bool:
        """Return True if each channel is stored in its own plane."""
        return self.packing is Packing.PLANAR

    def is_packed(self) -> bool:
        """Return True if channels are interleaved."""
        return not self.is_planar()

    def bytes_per_sample(self) -> int:
        """Return the width of a single sample in bytes, 0 for NONE."""
        if self.sample_type is None:
            return 0
        return self.sample_type.dtype.itemsize

    @classmethod
    def from_type(cls, sample_type: SampleType, packing: Packing) -> SampleFormat:
        """Build the format a caller asks for from a numeric kind and packing."""
        return cls(sample_type, packing)

    @classmethod
    def from_name(cls, name: str) -> SampleFormat:
        """
        Look up a format by its FFmpeg name.

        Unknown names yield ``SampleFormat.NONE`` rather than raising.
        """
        return _BY_NAME.get(name.strip().lower(), cls.NONE)

    @classmethod
    def from_av(cls, av_format: av.AudioFormat | None) -> SampleFormat:
        """Convert a PyAV sample format, mapping None to NONE."""
        if av_format is None:
            return cls.NONE
        return cls.from_name(av_format.name)

    @classmethod
    def from_container(cls, container: AudioContainer) -> SampleFormat:
        """Return the format samples are stored in by ``container``."""
        return cls(container.sample_type, container.packing)

    def to_av(self) -> av.AudioFormat | None:
        """Return the PyAV sample format, None for NONE."""
        if self.sample_type is None:
            return None
        return av.AudioFormat(self.name)

    def __str__(self) -> str:
        """Return the FFmpeg name."""
        return self.name


SampleFormat.NONE = SampleFormat(None)

_BY_NAME: dict[str, SampleFormat] = {
    fmt.name: fmt
    for sample_type in SampleType
    for fmt in (
        SampleFormat(sample_type, Packing.PACKED),
        SampleFormat(sample_type, Packing.PLANAR),
    )
}


def iter_formats(av_formats: Iterable[av.AudioFormat | None] | None) -> Iterator[SampleFormat]:
    """
    Yield the sample formats a decoder supports.

    The sequence ends at the first ``None`` (or unknown) entry, which FFmpeg
    uses as terminator.
    """
    if av_formats is None:
        return
    for av_format in av_formats:
        sample_format = SampleFormat.from_av(av_format)
        if sample_format == SampleFormat.NONE:
            return
        yield sample_format


def pick_best_format(
    formats: Iterable[SampleFormat], preferred: SampleFormat
) -> SampleFormat | None:
    """
    Choose the decoder output format closest to ``preferred``.

    An exact match wins, then the packed/planar sibling of ``preferred``, then
    the first supported format (a converter bridges the difference).

    Returns:
        The chosen format, or None if no workable format exists, which only
        happens when the decoder supports no format at all.
    """
    sibling = preferred.planar() if preferred.is_packed() else preferred.packed()
    supported: list[SampleFormat] = []
    for sample_format in formats:
        if sample_format == preferred:
            return sample_format
        supported.append(sample_format)

    if sibling != preferred and sibling in supported:
        logger.debug("Decoder lacks %s, using sibling %s", preferred, sibling)
        return sibling
    if supported:
        logger.debug("Decoder lacks %s, falling back to %s", preferred, supported[0])
        return supported[0]
    return None

"""Growable PCM output buffer and the write cursor used to fill it."""

from __future__ import annotations

import logging
from collections.abc import Buffer, Sequence
from dataclasses import dataclass

import numpy as np

from pcmdecode.errors import StaleCursorError
from pcmdecode.format import Packing, SampleFormat, SampleType
from pcmdecode.models import BufferInfo

logger = logging.getLogger(__name__)


def _shape(channels: int, capacity: int, packing: Packing) -> tuple[int, int]:
    """Return the storage shape for a buffer of ``capacity`` samples."""
    if packing is Packing.PACKED:
        return capacity, channels
    return channels, capacity


class AudioContainer:
    """
    Owned 2-D sample buffer with a valid sample count separate from capacity.

    Interleaved buffers are stored as ``(capacity, channels)`` arrays, planar
    buffers as ``(channels, capacity)``. Only the first ``samples`` samples are
    exposed through :attr:`data`; the rest of the allocation is scratch space.
    """

    def __init__(
        self,
        storage: np.ndarray,
        packing: Packing,
        *,
        sample_rate: int = 0,
        samples: int = 0,
    ) -> None:
        """
        Wrap an existing storage array.

        Args:
            storage: 2-D array laid out according to ``packing``.
            packing: Interleaved or planar layout of ``storage``.
            sample_rate: Sample rate in Hz.
            samples: Number of valid samples already in ``storage``.
        """
        if storage.ndim != 2:
            raise ValueError("storage must be a 2-D array")
        self._storage = storage
        self._packing = packing
        self._sample_type = SampleType.from_dtype(storage.dtype)
        self._generation = 0
        self.sample_rate = sample_rate
        self._samples = 0
        self.set_samples(samples)

    @classmethod
    def zeros(
        cls,
        channels: int,
        capacity: int,
        sample_type: SampleType,
        packing: Packing,
        *,
        sample_rate: int = 0,
    ) -> AudioContainer:
        """Allocate a zero-filled buffer with no valid samples."""
        if channels <= 0:
            raise ValueError("channels must be positive")
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        storage = np.zeros(_shape(channels, capacity, packing), dtype=sample_type.dtype)
        return cls(storage, packing, sample_rate=sample_rate)

    @property
    def channels(self) -> int:
        """Return the number of channels."""
        return self._storage.shape[1 if self._packing is Packing.PACKED else 0]

    @property
    def capacity(self) -> int:
        """Return the number of samples per channel currently allocated."""
        return self._storage.shape[0 if self._packing is Packing.PACKED else 1]

    @property
    def samples(self) -> int:
        """Return the number of valid samples per channel."""
        return self._samples

    @property
    def packing(self) -> Packing:
        """Return the buffer layout."""
        return self._packing

    @property
    def sample_type(self) -> SampleType:
        """Return the numeric kind of the stored samples."""
        return self._sample_type

    @property
    def sample_format(self) -> SampleFormat:
        """Return the sample format matching this buffer."""
        return SampleFormat.from_container(self)

    @property
    def dtype(self) -> np.dtype:
        """Return the numpy dtype of the stored samples."""
        return self._storage.dtype

    @property
    def generation(self) -> int:
        """Return a counter that changes whenever the storage is reallocated."""
        return self._generation

    @property
    def duration(self) -> float:
        """Return the length of the valid samples in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self._samples / self.sample_rate

    @property
    def data(self) -> np.ndarray:
        """Return a view of the valid samples."""
        return self._span(0, self._samples)

    def channel(self, index: int) -> np.ndarray:
        """Return a 1-D view of the valid samples of one channel."""
        if not 0 <= index < self.channels:
            raise IndexError(f"channel {index} out of range for {self.channels} channels")
        if self._packing is Packing.PACKED:
            return self.data[:, index]
        return self.data[index]

    def to_interleaved(self) -> np.ndarray:
        """Return a ``(samples, channels)`` copy of the valid samples."""
        data = self.data if self._packing is Packing.PACKED else self.data.T
        return np.ascontiguousarray(data)

    def to_planar(self) -> np.ndarray:
        """Return a ``(channels, samples)`` copy of the valid samples."""
        data = self.data.T if self._packing is Packing.PACKED else self.data
        return np.ascontiguousarray(data)

    def grow(self, capacity: int) -> None:
        """
        Reallocate the storage to hold at least ``capacity`` samples.

        The valid samples are preserved. Any cursor created before the call
        becomes stale. Capacity never shrinks.
        """
        if capacity <= self.capacity:
            return
        storage = np.zeros(_shape(self.channels, capacity, self._packing), dtype=self.dtype)
        if self._packing is Packing.PACKED:
            storage[: self._samples] = self.data
        else:
            storage[:, : self._samples] = self.data
        logger.debug("Growing output buffer from %s to %s samples", self.capacity, capacity)
        self._storage = storage
        self._generation += 1

    def set_samples(self, samples: int) -> None:
        """Set the number of valid samples, hiding anything beyond it."""
        if not 0 <= samples <= self.capacity:
            raise ValueError(f"samples must be within 0..{self.capacity}, got {samples}")
        self._samples = samples

    def info(self) -> BufferInfo:
        """Return a serialisable summary of the buffer."""
        return BufferInfo(
            sample_format=self.sample_format.name,
            sample_rate=self.sample_rate,
            channels=self.channels,
            samples=self._samples,
            capacity=self.capacity,
        )

    def _span(self, start: int, stop: int) -> np.ndarray:
        """Return a view of the storage for the sample range ``[start, stop)``."""
        if self._packing is Packing.PACKED:
            return self._storage[start:stop]
        return self._storage[:, start:stop]

    def __len__(self) -> int:
        """Return the number of valid samples."""
        return self._samples

    def __repr__(self) -> str:
        """Return a short description of the buffer."""
        return (
            f"AudioContainer(format={self.sample_format.name}, channels={self.channels}, "
            f"samples={self._samples}, capacity={self.capacity}, rate={self.sample_rate})"
        )


@dataclass(frozen=True, slots=True)
class WriteCursor:
    """
    Non-owning window over the tail of an :class:`AudioContainer`.

    The cursor stores an index range, not memory. It is only valid for the
    storage generation it was created against, so it has to be rebuilt after
    every :meth:`AudioContainer.grow`.
    """

    container: AudioContainer
    """Buffer the cursor writes into."""
    offset: int
    """First sample of the window."""
    length: int
    """Number of samples the window spans."""
    generation: int
    """Storage generation of ``container`` when the cursor was built."""

    @classmethod
    def at(cls, container: AudioContainer, offset: int) -> WriteCursor:
        """Build a cursor spanning ``container`` from ``offset`` to its capacity."""
        if not 0 <= offset <= container.capacity:
            raise ValueError(f"offset must be within 0..{container.capacity}, got {offset}")
        return cls(container, offset, container.capacity - offset, container.generation)

    @classmethod
    def empty(cls, container: AudioContainer) -> WriteCursor:
        """Build a zero-length cursor at the start of ``container``."""
        return cls(container, 0, 0, container.generation)

    @property
    def channels(self) -> int:
        """Return the channel count of the underlying buffer."""
        return self.container.channels

    @property
    def is_stale(self) -> bool:
        """Return True if the container reallocated since this cursor was built."""
        return self.generation != self.container.generation

    def region(self) -> np.ndarray:
        """Return a view of the window in the container's current storage."""
        if self.is_stale:
            raise StaleCursorError("Write cursor used after its container was reallocated")
        return self.container._span(self.offset, self.offset + self.length)

    def write_planes(self, planes: Sequence[Buffer], samples: int, start: int = 0) -> None:
        """
        Copy raw sample planes into the window.

        For an interleaved container ``planes[0]`` must hold ``samples *
        channels`` interleaved samples; for a planar container each of the
        first ``channels`` planes must hold ``samples`` samples. Planes may be
        longer than needed (FFmpeg pads them).

        Args:
            planes: Buffers in the container's dtype and packing.
            samples: Number of samples per channel to copy.
            start: Position inside the window to copy to.
        """
        if samples < 0 or start < 0:
            raise ValueError("samples and start must not be negative")
        if start + samples > self.length:
            raise ValueError(
                f"Cannot write {samples} samples at {start} into a cursor of length {self.length}"
            )
        if samples == 0:
            return
        region = self.region()
        dtype = self.container.dtype
        channels = self.channels
        if self.container.packing is Packing.PACKED:
            source = np.frombuffer(planes[0], dtype=dtype, count=samples * channels)
            region[start : start + samples] = source.reshape(samples, channels)
            return
        if len(planes) < channels:
            raise ValueError(f"Expected {channels} planes, got {len(planes)}")
        for channel in range(channels):
            region[channel, start : start + samples] = np.frombuffer(
                planes[channel], dtype=dtype, count=samples
            )

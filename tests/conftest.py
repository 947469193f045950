"""Shared fixtures for pcmdecode tests."""

from __future__ import annotations

import wave
from pathlib import Path

import numpy as np
import pytest

from tests.doubles import WavWriter


@pytest.fixture
def write_wav(tmp_path: Path) -> WavWriter:
    """Return a function writing a ``(samples, channels)`` array to a WAV file."""

    def _write(samples: np.ndarray, sample_rate: int = 8000, name: str = "input.wav") -> Path:
        if samples.dtype == np.uint8:
            sample_width = 1
        elif samples.dtype == np.int16:
            sample_width = 2
        else:
            raise ValueError(f"Unsupported WAV dtype {samples.dtype}")
        path = tmp_path / name
        with wave.open(str(path), "wb") as wav:
            wav.setnchannels(samples.shape[1])
            wav.setsampwidth(sample_width)
            wav.setframerate(sample_rate)
            little_endian = samples.astype(samples.dtype.newbyteorder("<"), order="C")
            wav.writeframes(little_endian.tobytes())
        return path

    return _write


@pytest.fixture
def stereo_s16() -> np.ndarray:
    """Return 1200 stereo samples with distinct left and right channels."""
    t = np.arange(1200)
    left = (np.sin(2 * np.pi * 440 * t / 8000) * 12000).astype(np.int16)
    right = (np.arange(1200) * 7 % 20000 - 10000).astype(np.int16)
    return np.stack([left, right], axis=1)

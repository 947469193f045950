"""Tests for the decode driver, using a scripted input."""

from __future__ import annotations

import numpy as np
import pytest

from pcmdecode.errors import DecodeFaultError, DecodeSetupError
from pcmdecode.format import AudioFormat, Packing, SampleFormat, SampleType
from pcmdecode.input import Status
from pcmdecode.reader import Reader, ReaderConfig

from tests.doubles import FakeInput, FakePacket, make_frame, ramp

S16_PACKED = ReaderConfig(SampleType.I16, Packing.PACKED)
S16_PLANAR = ReaderConfig(SampleType.I16, Packing.PLANAR)


def _packets(chunks: list[np.ndarray], packing: Packing, stream_index: int = 0) -> list[FakePacket]:
    return [FakePacket(stream_index, [make_frame(chunk, packing)]) for chunk in chunks]


class TestReaderConfig:
    def test_explicit_channels_win(self) -> None:
        config = ReaderConfig(SampleType.F32, Packing.PLANAR, channels=1, default_channels=2)
        assert config.resolve_channels(6) == 1

    def test_default_channels_before_source(self) -> None:
        config = ReaderConfig(SampleType.F32, Packing.PLANAR, default_channels=2)
        assert config.resolve_channels(6) == 2

    def test_source_channels_last(self) -> None:
        assert S16_PACKED.resolve_channels(6) == 6

    def test_rejects_non_positive_counts(self) -> None:
        with pytest.raises(ValueError):
            ReaderConfig(SampleType.I16, Packing.PACKED, channels=0)
        with pytest.raises(ValueError):
            ReaderConfig(SampleType.I16, Packing.PACKED, default_channels=-2)


class TestReader:
    @pytest.mark.parametrize("config", [S16_PACKED, S16_PLANAR])
    def test_grows_past_estimate(self, config: ReaderConfig) -> None:
        source = ramp(1200, 2)
        chunks = [source[:500], source[500:1000], source[1000:]]
        input_ = FakeInput(
            _packets(chunks, config.packing),
            sample_format=config.sample_format,
            estimated_samples=1000,
        )
        reader = Reader(input_, config)
        assert reader.converter is None

        output = reader.read()

        assert output.samples == 1200
        assert output.capacity == 1200
        assert output.generation == 1
        assert output.channels == 2
        assert output.sample_rate == 8000
        np.testing.assert_array_equal(output.to_interleaved(), source)
        assert input_.closed

    def test_overestimate_is_truncated(self) -> None:
        source = ramp(300, 2)
        input_ = FakeInput(_packets([source], Packing.PACKED), estimated_samples=5000)

        output = Reader(input_, S16_PACKED).read()

        assert output.samples == 300
        assert output.capacity == 5000
        assert output.data.shape == (300, 2)
        np.testing.assert_array_equal(output.data, source)

    def test_sample_count_is_sum_of_frames(self) -> None:
        sizes = [17, 1, 256, 0, 99]
        chunks = [ramp(size, 2, start=i) for i, size in enumerate(sizes)]
        input_ = FakeInput(_packets(chunks, Packing.PACKED))
        assert Reader(input_, S16_PACKED).read().samples == sum(sizes)

    def test_several_frames_per_packet(self) -> None:
        source = ramp(30, 2)
        frames = [make_frame(source[:10], Packing.PACKED), make_frame(source[10:], Packing.PACKED)]
        packet = FakePacket(0, frames)
        output = Reader(FakeInput([packet]), S16_PACKED).read()
        np.testing.assert_array_equal(output.data, source)

    def test_foreign_packets_are_discarded(self) -> None:
        source = ramp(40, 2)
        noise = ramp(40, 2, start=999)
        script = [
            FakePacket(1, [make_frame(noise, Packing.PACKED)]),
            FakePacket(0, [make_frame(source[:20], Packing.PACKED)]),
            FakePacket(3, [make_frame(noise, Packing.PACKED)]),
            FakePacket(0, [make_frame(source[20:], Packing.PACKED)]),
        ]
        input_ = FakeInput(script)

        output = Reader(input_, S16_PACKED).read()

        assert output.samples == 40
        np.testing.assert_array_equal(output.data, source)
        assert [packet.stream_index for packet in input_.sent] == [0, 0]

    def test_transient_signals_are_absorbed(self) -> None:
        source = ramp(20, 2)
        first, second = _packets([source[:10], source[10:]], Packing.PACKED)
        first.again = True
        script = [Status.AGAIN, first, Status.AGAIN, Status.AGAIN, second]

        output = Reader(FakeInput(script), S16_PACKED).read()

        np.testing.assert_array_equal(output.data, source)

    def test_eof_on_first_read(self) -> None:
        input_ = FakeInput([Status.EOF], estimated_samples=100)
        output = Reader(input_, S16_PACKED).read()
        assert output.samples == 0
        assert output.data.shape == (0, 2)
        assert input_.closed

    def test_stops_at_eof(self) -> None:
        source = ramp(10, 2)
        script = [*_packets([source], Packing.PACKED), Status.EOF, *_packets([source], Packing.PACKED)]
        assert Reader(FakeInput(script), S16_PACKED).read().samples == 10

    def test_fatal_error_aborts(self) -> None:
        script = [*_packets([ramp(10, 2)], Packing.PACKED), FakePacket(0, fail=True)]
        input_ = FakeInput(script)
        reader = Reader(input_, S16_PACKED)

        with pytest.raises(DecodeFaultError):
            reader.read()
        assert input_.closed

    def test_read_is_one_shot(self) -> None:
        reader = Reader(FakeInput([]), S16_PACKED)
        reader.read()
        with pytest.raises(RuntimeError):
            reader.read()


class TestConverterSelection:
    def test_matching_format_copies_directly(self) -> None:
        input_ = FakeInput([], sample_format=SampleFormat.from_name("s16"))
        reader = Reader(input_, S16_PACKED)
        assert reader.converter is None
        assert input_.converters == []

    def test_format_mismatch_uses_converter(self) -> None:
        input_ = FakeInput([], sample_format=SampleFormat.from_name("fltp"))
        reader = Reader(input_, S16_PACKED)
        assert reader.converter is input_.converters[0]
        dst = input_.converters[0].dst
        assert dst.sample_format == SampleFormat.from_name("s16")
        assert (dst.layout, dst.sample_rate) == ("stereo", 8000)

    def test_channel_mismatch_uses_converter(self) -> None:
        input_ = FakeInput([], sample_format=SampleFormat.from_name("s16"))
        reader = Reader(input_, ReaderConfig(SampleType.I16, Packing.PACKED, channels=1))
        assert reader.channels == 1
        assert reader.converter is not None
        assert input_.converters[0].dst.layout == "mono"

    def test_cursor_is_rebuilt_for_each_frame(self) -> None:
        chunks = [ramp(400, 1), ramp(400, 1), ramp(300, 1)]
        input_ = FakeInput(
            _packets(chunks, Packing.PLANAR),
            channels=1,
            sample_format=SampleFormat.from_name("fltp"),
            estimated_samples=1000,
        )

        output = Reader(input_, ReaderConfig(SampleType.I16, Packing.PLANAR)).read()

        # (cursor offset, cursor length, valid samples, capacity) seen by the converter
        assert input_.converters[0].calls == [
            (0, 1000, 0, 1000),
            (400, 600, 400, 1000),
            (800, 300, 800, 1100),
        ]
        assert output.samples == 1100
        assert (output.data == 7).all()

    def test_converter_setup_failure_is_reported(self) -> None:
        input_ = FakeInput([], sample_format=SampleFormat.from_name("fltp"))

        def broken_converter(dst: AudioFormat) -> None:
            raise TypeError(f"layout {dst.layout!r} not understood")

        input_.converter = broken_converter  # type: ignore[method-assign]
        with pytest.raises(DecodeSetupError):
            Reader(input_, S16_PACKED)

    def test_short_conversion_aborts(self) -> None:
        input_ = FakeInput(
            _packets([ramp(10, 2)], Packing.PACKED), sample_format=SampleFormat.from_name("fltp")
        )
        reader = Reader(input_, S16_PACKED)
        input_.converters[0].shortfall = 1

        with pytest.raises(DecodeFaultError):
            reader.read()
        assert input_.closed

    def test_converter_tail_is_stored(self) -> None:
        tail = ramp(5, 2, start=100)
        input_ = FakeInput(
            _packets([ramp(10, 2)], Packing.PACKED), sample_format=SampleFormat.from_name("fltp")
        )
        reader = Reader(input_, S16_PACKED)
        converter = input_.converters[0]
        converter.tail = [make_frame(tail, Packing.PACKED)]

        output = reader.read()

        assert converter.flushed
        assert output.samples == 15
        assert (output.data[:10] == 7).all()
        np.testing.assert_array_equal(output.data[10:], tail)

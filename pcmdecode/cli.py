"""Command-line interface for decoding media files to PCM."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from pcmdecode.errors import PCMDecodeError
from pcmdecode.format import SampleFormat
from pcmdecode.input import Input
from pcmdecode.reader import Reader

logger = logging.getLogger(__name__)


def _sample_format(value: str) -> SampleFormat:
    """Parse an FFmpeg sample format name."""
    sample_format = SampleFormat.from_name(value)
    if sample_format == SampleFormat.NONE:
        raise argparse.ArgumentTypeError(f"unknown sample format: {value!r}")
    return sample_format


def _positive_int(value: str) -> int:
    """Parse a strictly positive integer."""
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be positive")
    return number


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for pcmdecode."""
    parser = argparse.ArgumentParser(description="Decode the audio stream of a media file to PCM")
    parser.add_argument("input", help="Media file to decode")
    parser.add_argument(
        "--format",
        type=_sample_format,
        default=SampleFormat.from_name("fltp"),
        help="Output sample format as an FFmpeg name, e.g. s16, fltp (default: fltp)",
    )
    parser.add_argument(
        "--channels",
        type=_positive_int,
        default=None,
        help="Output channel count (default: same as the source)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the raw decoded samples to this file",
    )
    parser.add_argument(
        "--probe",
        action="store_true",
        help="Only print information about the audio stream",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    sample_format: SampleFormat = args.format
    assert sample_format.sample_type is not None  # Rejected by _sample_format

    try:
        if args.probe:
            with Input.open(args.input, lambda formats: next(formats, None)) as input_:
                print(input_.info().to_json())
            return 0
        reader = Reader.open(
            args.input, sample_format.sample_type, sample_format.packing, args.channels
        )
        buffer = reader.read()
    except PCMDecodeError as err:
        logger.error("Decoding %s failed: %s", args.input, err)
        return 1

    if args.output is not None:
        np.ascontiguousarray(buffer.data).tofile(args.output)
        logger.info("Wrote %s samples to %s", buffer.samples, args.output)
    print(buffer.info().to_json())
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())

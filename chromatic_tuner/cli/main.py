"""Main entry point for the chromatic tuner CLI."""

import argparse
import sys
import time
from collections import Counter
from typing import List, Optional

from ..core.config import ConfigManager
from ..core.factory import ComponentFactory
from ..logger import get_logger
from ..logging_config import setup_logging
from ..note_types import ErrorKind, TunerReading, TunerState
from ..note_utils import format_cents, format_note
from ..services.audio_providers import CaptureError, WavFileAudioProvider, list_input_devices

logger = get_logger(__name__)

METER_HALF_WIDTH = 10  # characters either side of the centre mark
CENTS_PER_CHAR = 5
CENTS_IN_TUNE = 5
CENTS_CLOSE = 10

ERROR_MESSAGES = {
    ErrorKind.PERMISSION_DENIED: "Microphone access denied",
    ErrorKind.DEVICE_NOT_FOUND: "No audio input device found",
    ErrorKind.UNSUPPORTED: "Audio input not supported on this system",
    ErrorKind.UNKNOWN: "Unable to access audio input",
}


def format_meter(cents: int) -> str:
    """Text needle for a cents deviation, e.g. '[-----|--*--]'."""
    position = max(-METER_HALF_WIDTH, min(METER_HALF_WIDTH, round(cents / CENTS_PER_CHAR)))
    cells = ["-"] * (2 * METER_HALF_WIDTH + 1)
    cells[METER_HALF_WIDTH] = "|"
    cells[METER_HALF_WIDTH + position] = "*"
    return "[" + "".join(cells) + "]"


def tuning_status(cents: int) -> str:
    """'in tune' within 5 cents, 'close' within 10, otherwise 'flat' or 'sharp'."""
    if abs(cents) <= CENTS_IN_TUNE:
        return "in tune"
    if abs(cents) <= CENTS_CLOSE:
        return "close"
    return "sharp" if cents > 0 else "flat"


def format_reading(reading: TunerReading, use_flats: bool = False) -> str:
    if reading.state is TunerState.ACTIVE and reading.note is not None:
        note = reading.note
        cents = note.cents_deviation
        frequency = f"{reading.frequency:7.2f} Hz" if reading.frequency is not None else ""
        return (
            f"{format_note(note, use_flats):<4} {format_cents(cents):>4} cents "
            f"{frequency}  {format_meter(cents)} {tuning_status(cents)}"
        )
    if reading.state is TunerState.ERROR:
        return f"error: {ERROR_MESSAGES[reading.error or ErrorKind.UNKNOWN]}"
    if reading.state is TunerState.LISTENING:
        return "listening..."
    return "idle"


def _add_tuner_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--reference", type=float, default=None, help="A4 reference pitch in Hz (432-446)"
    )
    parser.add_argument(
        "--estimator",
        choices=["autocorrelation", "mcleod"],
        default=None,
        help="Pitch estimation backend (default: from config)",
    )
    parser.add_argument("--flats", action="store_true", help="Use flat notes instead of sharps")
    parser.add_argument("--config-dir", default=None, help="Configuration directory")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def _create_tuner(factory: ComponentFactory, args: argparse.Namespace):
    overrides = {}
    if args.reference is not None:
        overrides["reference_pitch"] = args.reference
    return factory.create_tuner(args.estimator, **overrides)


def run_listen(args: argparse.Namespace) -> int:
    """Live tuner on an input device, printing each change of reading."""
    factory = ComponentFactory(ConfigManager(args.config_dir))
    overrides = {}
    if args.device is not None:
        overrides["device_id"] = args.device
    if args.sample_rate is not None:
        overrides["sample_rate"] = args.sample_rate

    try:
        service = factory.create_tuner_service(
            audio_provider=factory.create_audio_provider("live", **overrides),
            tuner=_create_tuner(factory, args),
        )
    except ValueError as e:
        print(f"Invalid setting: {e}", file=sys.stderr)
        return 1

    last_line = None

    def on_reading(reading: TunerReading) -> None:
        nonlocal last_line
        line = format_reading(reading, args.flats)
        if line != last_line:
            print(line, flush=True)
            last_line = line

    def on_error(kind: ErrorKind) -> None:
        if kind in (ErrorKind.DEVICE_NOT_FOUND, ErrorKind.UNSUPPORTED):
            print("Run 'chromatic-tuner devices' to list available inputs", file=sys.stderr)

    service.events.on_reading(on_reading)
    service.events.on_error(on_error)

    print(f"Reference A4 = {service.tuner.reference_pitch:.1f} Hz")
    if not service.start():
        return 1

    try:
        if args.duration:
            time.sleep(args.duration)
        else:
            while True:
                time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nStopped by user")
    finally:
        service.stop()
    return 0


def run_analyze(args: argparse.Namespace) -> int:
    """Tick through a WAV file frame by frame."""
    factory = ComponentFactory(ConfigManager(args.config_dir))
    try:
        provider = WavFileAudioProvider(args.file, realtime=False)
    except CaptureError as e:
        print(f"Cannot open {args.file}: {e.kind.value}", file=sys.stderr)
        return 1

    frame_size = args.frame_size
    if frame_size is None:
        frame_size = factory.config_manager.get_config("audio_input")["frame_size"]
    hop_size = args.hop_size if args.hop_size is not None else max(1, frame_size // 4)
    if frame_size <= 0 or hop_size <= 0:
        print("--frame-size and --hop-size must be positive", file=sys.stderr)
        return 1

    try:
        tuner = _create_tuner(factory, args)
    except ValueError as e:
        print(f"Invalid setting: {e}", file=sys.stderr)
        return 1
    logger.info(f"Analyzing {args.file}: frame={frame_size}, hop={hop_size}")

    tuner.start()
    counts: Counter = Counter()
    last_line = None
    for index, frame in enumerate(provider.iter_frames(frame_size, hop_size)):
        reading = tuner.tick(frame)
        if reading.is_active and reading.note is not None:
            counts[format_note(reading.note, args.flats)] += 1
        line = format_reading(reading, args.flats)
        if line != last_line:
            timestamp = index * hop_size / frame.sample_rate
            print(f"[{timestamp:6.2f}s] {line}")
            last_line = line
    tuner.stop()

    if counts:
        print("Note statistics:")
        for note_name, count in counts.most_common():
            print(f"  {note_name}: {count} frames")
    else:
        print("No notes detected")
    return 0


def run_devices(_args: argparse.Namespace) -> int:
    try:
        devices = list_input_devices()
    except CaptureError as e:
        print(f"Audio input unavailable: {e}", file=sys.stderr)
        return 1

    print("Available input devices:")
    print("-" * 70)
    for device in devices:
        print(
            f"Device {device['id']}: {device['name']} "
            f"({device['channels']} ch, {device['default_samplerate']:.0f} Hz)"
        )
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command line arguments, or None to use sys.argv

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(description="Chromatic Tuner")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    listen_parser = subparsers.add_parser("listen", help="Tune from an audio input device")
    listen_parser.add_argument("--device", type=int, default=None, help="Audio input device ID")
    listen_parser.add_argument("--sample-rate", type=int, default=None, help="Sample rate in Hz")
    listen_parser.add_argument(
        "--duration", type=float, default=None, help="Stop after this many seconds"
    )
    _add_tuner_arguments(listen_parser)

    analyze_parser = subparsers.add_parser("analyze", help="Run the tuner over a WAV file")
    analyze_parser.add_argument("file", help="Path to a WAV file")
    analyze_parser.add_argument("--frame-size", type=int, default=None, help="Samples per frame")
    analyze_parser.add_argument(
        "--hop-size", type=int, default=None, help="Samples between frames (default: frame/4)"
    )
    _add_tuner_arguments(analyze_parser)

    subparsers.add_parser("devices", help="List audio input devices")

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 1

    setup_logging(level="DEBUG" if getattr(parsed_args, "debug", False) else "WARNING")

    handlers = {
        "listen": run_listen,
        "analyze": run_analyze,
        "devices": run_devices,
    }
    return handlers[parsed_args.command](parsed_args)


if __name__ == "__main__":
    sys.exit(main())

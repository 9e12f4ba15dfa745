from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from voicewin.app.dictation import DictationRunner
from voicewin.app.file_transcribe import transcribe_file
from voicewin.app.wiring import create_secret_store, create_session, create_text_sink, create_transport
from voicewin.config.paths import default_settings_path
from voicewin.config.settings import AppSettings, load_settings
from voicewin.core.audio.source import list_input_devices
from voicewin.core.stt.errors import RecognitionError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voicewin")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--config",
        type=Path,
        default=default_settings_path(),
        help="Path to settings JSON (default: user config dir)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run-mic", help="Dictate from the microphone (capture -> STT -> text sink)")

    transcribe = sub.add_parser("transcribe-file", help="Recognize a raw 16-bit mono PCM file")
    transcribe.add_argument("path", type=Path, help="PCM file (s16le, configured sample rate)")
    transcribe.add_argument("--no-pace", action="store_true", help="Send audio as fast as possible")

    sub.add_parser("list-devices", help="List audio capture devices")

    return parser


def configure_logging(*, debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(__version__)
        return 0

    configure_logging(debug=args.debug)

    if args.command == "list-devices":
        for idx, name, channels in list_input_devices():
            print(f"{idx}: {name} ({channels} ch)")
        return 0

    if args.command not in ("run-mic", "transcribe-file"):
        parser.print_help()
        return 2

    try:
        settings = _load_settings_or_default(args.config)
        secrets = create_secret_store(settings.secrets)
        transport = create_transport(settings, secrets=secrets)
        session = create_session(settings, transport=transport)
    except Exception as exc:
        print(f"Error: failed to initialize recognition: {exc}", flush=True)
        return 2

    if args.command == "transcribe-file":
        with session:
            try:
                text = transcribe_file(
                    session,
                    args.path,
                    sample_rate_hz=settings.audio.sample_rate_hz,
                    pace=0.0 if args.no_pace else 0.5,
                )
            except (OSError, RecognitionError) as exc:
                print(f"Error: {exc}", flush=True)
                return 1
        print(text)
        return 0

    runner = DictationRunner(settings=settings, session=session, sink=create_text_sink(settings))
    try:
        return asyncio.run(runner.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        session.shutdown_recognition()
        return 0


def _load_settings_or_default(path: Path) -> AppSettings:
    if path.exists():
        return load_settings(path)
    return AppSettings()


if __name__ == "__main__":
    raise SystemExit(main())

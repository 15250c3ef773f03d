"""
VoiceStream command line entry point.

Usage:
    voicestream                         # dictate with the configured model
    voicestream --model nova-3          # dictate with a specific model
    voicestream --list-models           # show streaming models
    voicestream --list-devices          # show input devices
    voicestream --set-api-key Deepgram KEY
"""

import argparse
import asyncio
import sys
import threading
from typing import List, Optional

from voicestream import __app_name__, __version__
from voicestream.core.asr.backends import get_parakeet_model_cache
from voicestream.core.audio.recorder import AudioRecorder
from voicestream.core.settings import SettingsCredentialStore, get_settings
from voicestream.core.streaming import (
    STREAMING_MODELS,
    StreamingModel,
    StreamingTranscriptionError,
    StreamingTranscriptionService,
    StreamingTranscriptionSession,
    get_model_by_id,
    supports_streaming,
)
from voicestream.utils.logger import get_logger, shutdown_logging

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voicestream",
        description="Live speech-to-text from the microphone using streaming providers",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--model", help="Streaming model id (defaults to the saved setting)")
    parser.add_argument("--language", help="Language code or 'auto'")
    parser.add_argument("--device", help="Input device name")
    parser.add_argument("--list-models", action="store_true", help="List streaming models and exit")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    parser.add_argument(
        "--set-api-key",
        nargs=2,
        metavar=("PROVIDER", "KEY"),
        help="Store an API key for a provider and exit",
    )
    return parser


def _print_models() -> None:
    settings = get_settings()
    for model in STREAMING_MODELS:
        marker = "*" if model.name == settings.model_id else " "
        print(f"{marker} {model.name:<40} {model.display_name} [{model.language}]")


def _print_devices() -> None:
    for device in AudioRecorder.list_devices():
        print(f"{device.index:>3}  {device.name} ({device.channels} ch)")


def _print_partial(text: str) -> None:
    sys.stdout.write(f"\r\033[K{text}")
    sys.stdout.flush()


def _print_error(error: BaseException) -> None:
    sys.stderr.write(f"\n{error}\n")


def _wait_for_enter(loop: asyncio.AbstractEventLoop) -> "asyncio.Future[None]":
    # A daemon thread so a pending read never blocks interpreter shutdown
    done = loop.create_future()

    def resolve():
        if not done.done():
            done.set_result(None)

    def read_line():
        sys.stdin.readline()
        loop.call_soon_threadsafe(resolve)

    threading.Thread(target=read_line, name="stdin-reader", daemon=True).start()
    return done


async def _dictate(model: StreamingModel, language: Optional[str], device: Optional[str]) -> str:
    settings = get_settings()
    service = StreamingTranscriptionService(
        language_source=(lambda: language) if language else None,
        on_partial_transcript=_print_partial,
        on_error=_print_error,
    )
    session = StreamingTranscriptionSession(service)

    feed = session.prepare(model)
    recorder = AudioRecorder(on_chunk=feed, device=device or settings.input_device)
    if not recorder.start():
        session.cancel()
        raise RuntimeError(recorder.last_error or "Could not start recording")

    print(f"Listening with {model.display_name}. Press Enter to stop, Ctrl+C to cancel.")
    try:
        await _wait_for_enter(asyncio.get_running_loop())
    except asyncio.CancelledError:
        recorder.stop()
        session.cancel()
        raise

    recorder.stop()
    return await session.transcribe()


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)

    if args.list_models:
        _print_models()
        return

    if args.list_devices:
        _print_devices()
        return

    if args.set_api_key:
        provider_name, api_key = args.set_api_key
        SettingsCredentialStore().set(provider_name, api_key)
        print(f"Saved API key for {provider_name}")
        return

    model_id = args.model or get_settings().model_id
    model = get_model_by_id(model_id)
    if model is None or not supports_streaming(model):
        print(f"Unknown or non-streaming model: {model_id}", file=sys.stderr)
        sys.exit(2)

    logger.info(f"{__app_name__} {__version__} starting with {model.name}")

    try:
        text = asyncio.run(_dictate(model, args.language, args.device))
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(130)
    except (StreamingTranscriptionError, RuntimeError) as e:
        logger.error(f"Dictation failed: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        get_parakeet_model_cache().unload_all()
        shutdown_logging()

    print(f"\r\033[K{text}")


if __name__ == "__main__":
    main()

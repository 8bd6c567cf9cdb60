import sys
import os

# Safety fix for running with pythonw.exe (no console)
if sys.stdout is None:
    sys.stdout = open(os.devnull, "w")
if sys.stderr is None:
    sys.stderr = open(os.devnull, "w")

import asyncio
import signal
from typing import Optional

from config import DEBUG, VERSION
from logging_config import setup_logging, get_logger

logger = get_logger(__name__)

_shutdown_event: Optional[asyncio.Event] = None


def format_track(metadata) -> str:
    """Human-readable summary of one recognized track."""
    lines = [f"♪ {metadata.artist} - {metadata.title}"]
    if metadata.album:
        year = f" ({metadata.year})" if metadata.year else ""
        lines.append(f"  Album:   {metadata.album}{year}")
    if metadata.genres:
        lines.append(f"  Genres:  {', '.join(metadata.genres[:6])}")
    if metadata.label:
        lines.append(f"  Label:   {metadata.label}")
    if metadata.artwork_url:
        lines.append(f"  Artwork: {metadata.artwork_url}")
    if metadata.summary:
        summary = metadata.summary if len(metadata.summary) <= 240 else metadata.summary[:237] + "..."
        lines.append(f"  About:   {summary}")
    if metadata.liner_notes:
        lines.append(f"  Notes:   {metadata.liner_notes}")
    for kind, url in metadata.external_links.items():
        lines.append(f"  {kind.capitalize()}: {url}")
    if metadata.lyrics_url:
        lines.append(f"  Lyrics:  {metadata.lyrics_url}")
    if metadata.bandcamp_url:
        lines.append(f"  Bandcamp: {metadata.bandcamp_url}")
    return "\n".join(lines)


def print_devices() -> None:
    from audio_recognition.capture import list_devices, is_available

    if not is_available():
        print("sounddevice/PortAudio is not installed - no input devices available")
        return
    devices = list_devices()
    if not devices:
        print("No input devices found")
        return
    for device in devices:
        print(f"[{device['index']:>2}] {device['name']} ({device['channels']} ch, {device['sample_rate']:.0f} Hz)")


async def main(args) -> int:
    """Run the orchestrator until interrupted (or the first match with --once)."""
    global _shutdown_event
    from orchestrator import CaptureOrchestrator

    _shutdown_event = asyncio.Event()

    def on_recognized(metadata):
        print(format_track(metadata), flush=True)
        if args.once:
            _shutdown_event.set()

    def on_error(error):
        print(f"! {error}", file=sys.stderr, flush=True)

    def on_state_change(state):
        logger.info(f"State: {state.value}")

    orchestrator = CaptureOrchestrator(
        on_recognized=on_recognized,
        on_error=on_error,
        on_state_change=on_state_change,
        threshold=args.threshold,
        record_duration=args.duration,
        cooldown=args.cooldown,
    )

    await orchestrator.start()
    if not orchestrator.is_listening:
        logger.error(f"Could not start listening: {orchestrator.last_error}")
        return 1

    print("Listening... (Ctrl+C to stop)", flush=True)
    try:
        await _shutdown_event.wait()
    except asyncio.CancelledError:
        logger.info("Main loop cancelled...")
    finally:
        await orchestrator.stop()
    return 0


def request_shutdown() -> None:
    if _shutdown_event is not None:
        _shutdown_event.set()


def build_parser():
    import argparse
    parser = argparse.ArgumentParser(description='Earshot - ambient song recognition')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Loudness in dB that starts a recording (default: from config, -50)')
    parser.add_argument('--duration', type=float, default=None,
                        help='Seconds of audio to record per attempt (default: from config, 10)')
    parser.add_argument('--cooldown', type=float, default=None,
                        help='Seconds to wait before listening again (default: from config, 5)')
    parser.add_argument('--device', type=str, default=None,
                        help='Input device name (partial match)')
    parser.add_argument('--list-devices', action='store_true',
                        help='List input devices and exit')
    parser.add_argument('--once', action='store_true',
                        help='Exit after the first recognized track')
    parser.add_argument('--version', action='version', version=f'Earshot {VERSION}')
    return parser


def cli():
    args = build_parser().parse_args()

    if args.list_devices:
        print_devices()
        sys.exit(0)

    if args.device:
        from config import CAPTURE
        CAPTURE['device_name'] = args.device

    # Set up logging
    setup_logging(
        console_level=DEBUG.get("log_level", "INFO"),
        file_level="DEBUG" if DEBUG.get("log_detailed", False) else "INFO",
        console=DEBUG.get("log_to_console", True),
        log_file=DEBUG.get("log_file", "earshot.log"),
        log_providers=DEBUG.get("log_providers", True)
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_interrupt(signum, frame):
        """Handle keyboard interrupt"""
        logger.info("Received keyboard interrupt...")
        loop.call_soon_threadsafe(request_shutdown)

    signal.signal(signal.SIGINT, handle_interrupt)

    exit_code = 0
    try:
        logger.info(f"Starting Earshot {VERSION}...")
        exit_code = loop.run_until_complete(main(args))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt caught in main...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        raise
    finally:
        loop.close()
        logger.info("Earshot shutdown complete")
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()

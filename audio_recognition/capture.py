"""
Audio Capture Module

Handles microphone capture using sounddevice.
A MicrophoneStream delivers int16 blocks to subscribers on the event loop
thread; a Recorder subscribes to a stream and accumulates one AudioSegment.
"""

import asyncio
import io
import time
import wave
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable, Tuple

import numpy as np

try:
    import sounddevice as sd
except (ImportError, OSError):  # OSError for missing PortAudio library
    sd = None

from errors import AcquisitionError
from logging_config import get_logger

logger = get_logger(__name__)

BYTES_PER_SAMPLE = 2  # int16

BlockCallback = Callable[[np.ndarray], None]


@dataclass(frozen=True)
class AudioSegment:
    """
    Audio accumulated during one recording window.

    Attributes:
        chunks: Raw int16 PCM blocks in capture order
        sample_rate: Sample rate in Hz
        channels: Number of interleaved channels
        capture_start_time: Unix timestamp when recording started
    """
    chunks: Tuple[bytes, ...]
    sample_rate: int
    channels: int
    capture_start_time: float

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)

    @property
    def duration(self) -> float:
        """Duration of the captured audio in seconds."""
        frame_bytes = self.sample_rate * self.channels * BYTES_PER_SAMPLE
        return sum(len(chunk) for chunk in self.chunks) / frame_bytes

    @property
    def is_empty(self) -> bool:
        return not any(self.chunks)

    def to_wav(self) -> bytes:
        """
        Encode the segment as a WAV file using the stdlib wave module.

        This is the container the recognition service receives.
        """
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(BYTES_PER_SAMPLE)
            wf.setframerate(self.sample_rate)
            wf.writeframes(self.data)
        return buffer.getvalue()


def is_available() -> bool:
    """Check if audio capture is available (sounddevice + PortAudio installed)."""
    return sd is not None


def list_devices() -> List[Dict[str, Any]]:
    """
    List available audio input devices.

    Returns:
        List of device info dicts with index, name, channels, sample_rate
    """
    if not sd:
        return []

    devices = []
    try:
        for i, device in enumerate(sd.query_devices()):
            if device.get('max_input_channels', 0) <= 0:
                continue
            devices.append({
                'index': i,
                'name': device.get('name', f'Device {i}'),
                'channels': device.get('max_input_channels', 0),
                'sample_rate': device.get('default_samplerate', 44100),
            })
    except Exception as e:
        logger.error(f"Failed to list audio devices: {e}")
    return devices


def find_device_by_name(name: str) -> Optional[int]:
    """
    Find an input device by name (partial match, case-insensitive).

    Returns:
        Device index or None if not found
    """
    name_lower = name.lower()
    for device in list_devices():
        if name_lower in device['name'].lower():
            return device['index']
    logger.warning(f"Device not found by name: {name}")
    return None


class MicrophoneStream:
    """
    Live microphone input.

    PortAudio calls _callback on its own thread; every block is copied and
    handed to the event loop, so subscribers only ever run on the loop thread.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        sample_rate: int = 44100,
        channels: int = 1,
        device: Optional[int] = None,
    ):
        self._loop = loop
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self._stream = None
        self._subscribers: List[BlockCallback] = []
        self._closed = False

    @property
    def tracks_active(self) -> bool:
        """True while the device is held open."""
        return self._stream is not None and not self._closed

    def open(self) -> None:
        """
        Open and start the input stream.

        Blocking (PortAudio device negotiation): call from an executor.

        Raises:
            AcquisitionError: Device missing, busy, or permission denied
        """
        if sd is None:
            raise AcquisitionError("sounddevice/PortAudio not installed - microphone unavailable")
        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                device=self.device,
                dtype='int16',
                callback=self._callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError, OSError) as e:
            self._stream = None
            raise AcquisitionError(f"Failed to open microphone: {e}", device=self.device) from e
        logger.debug(f"Microphone open: device={self.device}, rate={self.sample_rate}, channels={self.channels}")

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Audio input status: {status}")
        block = indata.copy()
        try:
            self._loop.call_soon_threadsafe(self._dispatch, block)
        except RuntimeError:
            # Loop already closed while PortAudio was still delivering
            pass

    def _dispatch(self, block: np.ndarray) -> None:
        if self._closed:
            return
        for callback in list(self._subscribers):
            callback(block)

    def subscribe(self, callback: BlockCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: BlockCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def close(self) -> None:
        """Stop and release the device. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._subscribers.clear()
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.debug(f"Error closing microphone stream: {e}")
        logger.debug("Microphone released")


def open_microphone(
    loop: asyncio.AbstractEventLoop,
    sample_rate: int = 44100,
    channels: int = 1,
    device_id: Optional[int] = None,
    device_name: Optional[str] = None,
) -> MicrophoneStream:
    """
    Resolve the configured device and open a MicrophoneStream on it.

    Blocking: run in an executor. Device name takes precedence over device id.

    Raises:
        AcquisitionError: No usable device
    """
    if sd is None:
        raise AcquisitionError("sounddevice/PortAudio not installed - microphone unavailable")

    device = device_id
    if device_name:
        device = find_device_by_name(device_name)
        if device is None:
            raise AcquisitionError(f"Input device '{device_name}' not found", device=device_name)

    stream = MicrophoneStream(loop, sample_rate=sample_rate, channels=channels, device=device)
    stream.open()
    return stream


class Recorder:
    """In-memory recorder bound to one stream for one recording window."""

    def __init__(self, stream):
        self._stream = stream
        self._chunks: List[bytes] = []
        self._segment: Optional[AudioSegment] = None
        self.started_at = time.time()
        stream.subscribe(self._on_block)

    @property
    def is_recording(self) -> bool:
        return self._segment is None

    def _on_block(self, block: np.ndarray) -> None:
        self._chunks.append(block.tobytes())

    def stop(self) -> AudioSegment:
        """Detach from the stream and finalize. Repeated calls return the same segment."""
        if self._segment is None:
            self._stream.unsubscribe(self._on_block)
            self._segment = AudioSegment(
                chunks=tuple(self._chunks),
                sample_rate=self._stream.sample_rate,
                channels=self._stream.channels,
                capture_start_time=self.started_at,
            )
            logger.debug(f"Recording finalized: {self._segment.duration:.1f}s, {len(self._chunks)} chunks")
        return self._segment

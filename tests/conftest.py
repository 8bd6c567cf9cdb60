"""Pytest configuration and shared fixtures"""
import sys
import threading
from pathlib import Path

# Add parent directory to path
sys.path.append(str(Path(__file__).parent.parent))

import numpy as np
import pytest

from audio_recognition.capture import AudioSegment
from audio_recognition.audd import CoarseIdentification


class FakeMicrophone:
    """Stands in for MicrophoneStream; blocks are pushed with emit()."""

    def __init__(self, sample_rate=44100, channels=1):
        self.sample_rate = sample_rate
        self.channels = channels
        self.subscribers = []
        self.closed = False
        self.close_calls = 0

    @property
    def tracks_active(self):
        return not self.closed

    def subscribe(self, callback):
        self.subscribers.append(callback)

    def unsubscribe(self, callback):
        if callback in self.subscribers:
            self.subscribers.remove(callback)

    def emit(self, block):
        for callback in list(self.subscribers):
            callback(block)

    def close(self):
        self.close_calls += 1
        self.closed = True
        self.subscribers.clear()


class FakeMicrophoneFactory:
    """
    Blocking microphone factory as the state machine expects.

    Set `error` to make acquisition fail, or `gate` (a threading.Event) to
    hold acquisition until the test releases it.
    """

    def __init__(self):
        self.created = []
        self.error = None
        self.gate = None
        self.calls = 0

    def __call__(self, loop):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=2)
        if self.error is not None:
            raise self.error
        mic = FakeMicrophone()
        self.created.append(mic)
        return mic


class FakeAnalyser:
    """Spectrum analyser returning whatever `bins` holds."""

    def __init__(self, value=0):
        self.bins = np.full(1024, value, dtype=np.uint8)
        self.fed = 0

    def feed(self, block):
        self.fed += 1

    def get_byte_frequency_data(self):
        return self.bins


@pytest.fixture
def microphone_factory():
    return FakeMicrophoneFactory()


@pytest.fixture
def silent_analyser_factory():
    return FakeAnalyser


@pytest.fixture
def loud_analyser_factory():
    return lambda: FakeAnalyser(255)


@pytest.fixture
def segment():
    block = (np.sin(np.linspace(0, 2 * np.pi * 440, 44100)) * 8000).astype(np.int16)
    return AudioSegment(chunks=(block.tobytes(),), sample_rate=44100, channels=1, capture_start_time=0.0)


@pytest.fixture
def coarse():
    return CoarseIdentification(
        title="One More Time",
        artist="Daft Punk",
        album="Discovery",
        release_date="2000-11-30",
    )


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()

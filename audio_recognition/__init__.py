"""
Audio Recognition Module for Earshot

Microphone capture, loudness-triggered recording and song identification
via the AudD API.
"""

from .capture import AudioSegment, MicrophoneStream, Recorder, open_microphone
from .level import LevelDetector, SpectrumAnalyser
from .engine import CaptureStateMachine, CaptureSession, CaptureState
from .audd import AuddRecognizer, CoarseIdentification

__all__ = [
    'AudioSegment',
    'MicrophoneStream',
    'Recorder',
    'open_microphone',
    'LevelDetector',
    'SpectrumAnalyser',
    'CaptureStateMachine',
    'CaptureSession',
    'CaptureState',
    'AuddRecognizer',
    'CoarseIdentification',
]

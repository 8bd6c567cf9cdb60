"""
Audio Level Module

Turns live microphone blocks into a single loudness figure per tick.

SpectrumAnalyser reproduces the byte spectrum a browser AnalyserNode reports
(Blackman window, time smoothing, dB mapped onto 0-255), and LevelDetector
reduces that spectrum to 20 * log10(mean / 255).
"""

import math
from typing import Sequence

import numpy as np

from logging_config import get_logger

logger = get_logger(__name__)

SILENCE = float("-inf")


def loudness_db(magnitudes: Sequence[float]) -> float:
    """
    Loudness of one frame of 0-255 bin magnitudes.

    Returns -inf for an empty or all-zero frame.
    """
    if len(magnitudes) == 0:
        return SILENCE
    mean = float(np.mean(magnitudes))
    if mean <= 0:
        return SILENCE
    return 20 * math.log10(mean / 255)


class SpectrumAnalyser:
    """
    Rolling FFT over the most recent fft_size mono samples.

    Fed from the event loop with raw int16 blocks; read once per tick.
    """

    DEFAULT_FFT_SIZE = 2048
    MIN_DECIBELS = -100.0
    MAX_DECIBELS = -30.0
    SMOOTHING_TIME_CONSTANT = 0.8

    def __init__(
        self,
        fft_size: int = DEFAULT_FFT_SIZE,
        min_decibels: float = MIN_DECIBELS,
        max_decibels: float = MAX_DECIBELS,
        smoothing_time_constant: float = SMOOTHING_TIME_CONSTANT,
    ):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        self.fft_size = fft_size
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.smoothing_time_constant = smoothing_time_constant

        self._window = np.blackman(fft_size)
        self._samples = np.zeros(fft_size, dtype=np.float64)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def feed(self, block: np.ndarray) -> None:
        """Append an int16 block (frames x channels, or flat) to the rolling window."""
        data = np.asarray(block)
        if data.size == 0:
            return
        if data.ndim == 2:
            data = data.mean(axis=1)
        mono = data.astype(np.float64) / 32768.0

        if len(mono) >= self.fft_size:
            self._samples = mono[-self.fft_size:].copy()
        else:
            self._samples = np.roll(self._samples, -len(mono))
            self._samples[-len(mono):] = mono

    def get_byte_frequency_data(self) -> np.ndarray:
        """Current spectrum as frequency_bin_count unsigned bytes."""
        spectrum = np.fft.rfft(self._samples * self._window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude

        with np.errstate(divide="ignore"):
            decibels = 20 * np.log10(self._smoothed)

        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = (decibels - self.min_decibels) * scale
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def reset(self) -> None:
        self._samples[:] = 0
        self._smoothed[:] = 0


class LevelDetector:
    """Reads an analyser and reports loudness in dB (range -inf..0)."""

    def __init__(self, analyser):
        self._analyser = analyser

    def level(self) -> float:
        return loudness_db(self._analyser.get_byte_frequency_data())

    @staticmethod
    def is_loud(level: float, threshold: float) -> bool:
        """-inf and anything below threshold never triggers."""
        return level >= threshold

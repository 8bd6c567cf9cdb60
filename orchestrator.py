"""
Capture Orchestrator

Composition root: CaptureStateMachine -> AuddRecognizer -> MetadataAggregator
-> on_recognized. Owns the user-visible error and the listening flag.
"""

import asyncio
import functools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Callable, Dict, Any

from audio_recognition import (
    AudioSegment,
    AuddRecognizer,
    CaptureState,
    CaptureStateMachine,
    SpectrumAnalyser,
    open_microphone,
)
from config import CAPTURE
from enrichment import ConsolidatedMetadata, MetadataAggregator
from errors import AcquisitionError, RecognitionError
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class HistoryEntry:
    """A recognized track as handed to the history sink."""
    metadata: ConsolidatedMetadata
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    recognized_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = self.metadata.to_dict()
        data['id'] = self.id
        data['recognized_at'] = self.recognized_at
        return data


class CaptureOrchestrator:
    """
    Listens, recognizes and enriches until stopped.

    on_recognized fires at most once per completed recording, and only
    while the orchestrator is still listening.
    """

    def __init__(
        self,
        recognizer: Optional[AuddRecognizer] = None,
        aggregator: Optional[MetadataAggregator] = None,
        on_recognized: Optional[Callable[[ConsolidatedMetadata], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_history: Optional[Callable[[HistoryEntry], None]] = None,
        on_state_change: Optional[Callable[[CaptureState], None]] = None,
        microphone_factory: Optional[Callable] = None,
        analyser_factory: Optional[Callable] = None,
        threshold: Optional[float] = None,
        record_duration: Optional[float] = None,
        cooldown: Optional[float] = None,
        tick_interval: Optional[float] = None,
    ):
        self.recognizer = recognizer or AuddRecognizer()
        self.aggregator = aggregator or MetadataAggregator.from_config()
        self.on_recognized = on_recognized
        self.on_error = on_error
        self.on_history = on_history

        self._listening = False
        # Bumped by start() and stop(); a pipeline only delivers into the run it began in
        self._run = 0
        self._last_error: Optional[Exception] = None

        self.machine = CaptureStateMachine(
            on_segment=self._process_segment,
            microphone_factory=microphone_factory or self._default_microphone,
            analyser_factory=analyser_factory or functools.partial(SpectrumAnalyser, CAPTURE["fft_size"]),
            threshold=CAPTURE["threshold_db"] if threshold is None else threshold,
            record_duration=CAPTURE["record_duration"] if record_duration is None else record_duration,
            cooldown=CAPTURE["cooldown"] if cooldown is None else cooldown,
            tick_interval=CAPTURE["tick_interval"] if tick_interval is None else tick_interval,
            on_state_change=on_state_change,
            on_error=self._on_acquisition_error,
        )

    @staticmethod
    def _default_microphone(loop: asyncio.AbstractEventLoop):
        return open_microphone(
            loop,
            sample_rate=CAPTURE["sample_rate"],
            channels=CAPTURE["channels"],
            device_id=CAPTURE["device_id"],
            device_name=CAPTURE["device_name"] or None,
        )

    @property
    def status(self) -> CaptureState:
        return self.machine.state

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def last_error(self) -> Optional[Exception]:
        """Last user-visible error (AcquisitionError or RecognitionError)."""
        return self._last_error

    @property
    def audio_level(self) -> float:
        return self.machine.audio_level

    async def start(self) -> None:
        if self._listening:
            logger.warning("Already listening")
            return
        self._last_error = None
        self._listening = True
        self._run += 1
        await self.machine.start()
        if self.machine.state == CaptureState.IDLE:
            # Acquisition failed; the error was reported through _on_acquisition_error
            self._listening = False

    async def stop(self) -> None:
        self._listening = False
        self._run += 1
        await self.machine.stop()

    async def _process_segment(self, segment: AudioSegment) -> Optional[ConsolidatedMetadata]:
        """Recognition then enrichment for one finished recording."""
        run = self._run
        if segment.is_empty:
            logger.debug("Empty segment, skipping recognition")
            return None

        try:
            coarse = await self.recognizer.identify(segment)
        except RecognitionError as e:
            logger.warning(f"Recognition failed: {e}")
            if self._is_current(run):
                self._report(e)
            return None

        try:
            metadata = await self.aggregator.enrich(coarse)
        except Exception as e:
            logger.error(f"Enrichment error, using coarse result: {e}")
            metadata = ConsolidatedMetadata.from_coarse(coarse)
            metadata.artwork_url = coarse.artwork_url

        if not self._is_current(run):
            logger.debug(f"Discarding result after stop: {metadata.artist} - {metadata.title}")
            return None

        self._deliver(metadata)
        return metadata

    def _is_current(self, run: int) -> bool:
        return self._listening and run == self._run

    def _deliver(self, metadata: ConsolidatedMetadata) -> None:
        if self.on_recognized:
            try:
                self.on_recognized(metadata)
            except Exception as e:
                logger.error(f"Recognized callback error: {e}")

        if self.on_history:
            entry = HistoryEntry(metadata=metadata)
            try:
                self.on_history(entry)
            except Exception as e:
                logger.error(f"History sink error: {e}")

    def _on_acquisition_error(self, error: Exception) -> None:
        self._listening = False
        self._report(error)

    def _report(self, error: Exception) -> None:
        if not self._listening and not isinstance(error, AcquisitionError):
            return
        self._last_error = error
        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                logger.error(f"Error callback error: {e}")

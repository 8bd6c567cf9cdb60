"""
Capture Engine Module

Level-triggered capture loop with state management.
Features:
- Loudness monitoring at animation-frame cadence
- Fixed-length recordings triggered by a dB threshold
- Cooldown between recognitions, with a fresh microphone session each time
- Teardown from any state, including while the microphone is being acquired
"""

import asyncio
import contextlib
from enum import Enum
from typing import Optional, Callable, Awaitable, Any, List

from errors import AcquisitionError
from logging_config import get_logger
from .capture import AudioSegment, Recorder
from .level import LevelDetector, SpectrumAnalyser, SILENCE

logger = get_logger(__name__)


class CaptureState(Enum):
    """Capture state machine states."""
    IDLE = "idle"                # No microphone held
    MONITORING = "monitoring"    # Watching the level for a trigger
    RECORDING = "recording"      # Filling a segment for record_duration
    PROCESSING = "processing"    # Segment handed to the pipeline
    COOLDOWN = "cooldown"        # Waiting before monitoring resumes


class CaptureSession:
    """
    Everything one Monitoring run holds open.

    Each acquisition registers its release on an ExitStack so close() can
    undo all of them in reverse order. The pipeline task is not registered,
    so teardown leaves an in-flight recognition running.
    """

    def __init__(self, analyser):
        self.analyser = analyser
        self.detector = LevelDetector(analyser)
        self.stream = None
        self.recorder: Optional[Recorder] = None
        self.tick_task: Optional[asyncio.Task] = None
        self.record_timer: Optional[asyncio.TimerHandle] = None
        self.cooldown_timer: Optional[asyncio.TimerHandle] = None
        self.pipeline_task: Optional[asyncio.Task] = None
        self.busy = False
        self._tasks: List[asyncio.Task] = []
        self._resources = contextlib.ExitStack()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def attach_stream(self, stream) -> None:
        self.stream = stream
        stream.subscribe(self.analyser.feed)
        self._resources.callback(self._release_stream, stream)

    def _release_stream(self, stream) -> None:
        stream.close()
        if self.stream is stream:
            self.stream = None

    def start_recording(self) -> Recorder:
        self.recorder = Recorder(self.stream)
        self._resources.callback(self.recorder.stop)
        return self.recorder

    def finish_recording(self) -> AudioSegment:
        segment = self.recorder.stop()
        self.recorder = None
        return segment

    def spawn(self, coro) -> asyncio.Task:
        """Run a coroutine that is cancelled when the session closes."""
        task = asyncio.ensure_future(coro)
        self._tasks.append(task)
        self._resources.callback(task.cancel)
        return task

    def call_later(self, delay: float, callback: Callable, *args) -> asyncio.TimerHandle:
        """Schedule a timer that is cancelled when the session closes."""
        handle = asyncio.get_running_loop().call_later(delay, callback, *args)
        self._resources.callback(handle.cancel)
        return handle

    def close(self) -> None:
        """Release every handle. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._resources.close()
        self.analyser = None
        self.detector = None

    async def wait_closed(self) -> None:
        """Wait for cancelled session tasks to finish unwinding."""
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class CaptureStateMachine:
    """
    Idle -> Monitoring -> Recording -> Processing -> Cooldown -> Monitoring.

    Drives the microphone, hands each finished segment to on_segment and
    re-arms itself afterwards. stop() returns to Idle from anywhere.

    microphone_factory(loop) is blocking and runs in the default executor;
    it must return an opened stream or raise AcquisitionError.
    """

    DEFAULT_THRESHOLD = -50.0        # dB
    DEFAULT_RECORD_DURATION = 10.0   # Seconds of audio per recognition
    DEFAULT_COOLDOWN = 5.0           # Seconds before monitoring resumes
    DEFAULT_TICK_INTERVAL = 1 / 60   # Animation-frame cadence

    def __init__(
        self,
        on_segment: Callable[[AudioSegment], Awaitable[Any]],
        microphone_factory: Callable[[asyncio.AbstractEventLoop], Any],
        analyser_factory: Callable[[], Any] = SpectrumAnalyser,
        threshold: float = DEFAULT_THRESHOLD,
        record_duration: float = DEFAULT_RECORD_DURATION,
        cooldown: float = DEFAULT_COOLDOWN,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        on_state_change: Optional[Callable[[CaptureState], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_level: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            on_segment: Async pipeline run for every finished recording
            microphone_factory: Blocking callable opening the input stream
            analyser_factory: Builds a fresh spectrum analyser per session
            threshold: Loudness (dB) at or above which a recording starts
            record_duration: Hard length of each recording in seconds
            cooldown: Delay after processing before monitoring resumes
            tick_interval: Level polling period in seconds
            on_state_change: Callback when state changes (sync)
            on_error: Callback for acquisition failures (sync)
            on_level: Callback with each published level (sync)
        """
        self._on_segment = on_segment
        self._microphone_factory = microphone_factory
        self._analyser_factory = analyser_factory
        self.threshold = threshold
        self.record_duration = record_duration
        self.cooldown = cooldown
        self.tick_interval = tick_interval

        self.on_state_change = on_state_change
        self.on_error = on_error
        self.on_level = on_level

        self._state = CaptureState.IDLE
        self._session: Optional[CaptureSession] = None
        self._acquiring = False
        self._rearm_task: Optional[asyncio.Task] = None
        # Bumped by stop(); acquisitions started under an older value are discarded
        self._generation = 0
        self._last_error: Optional[Exception] = None
        self._audio_level: float = SILENCE

    @property
    def state(self) -> CaptureState:
        """Current capture state."""
        return self._state

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    @property
    def busy(self) -> bool:
        """True while a segment is in the recognition pipeline."""
        return self._session is not None and self._session.busy

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def audio_level(self) -> float:
        """Most recent loudness in dB (-inf when silent or idle)."""
        return self._audio_level

    async def start(self) -> None:
        """
        Acquire the microphone and begin monitoring.

        If already running, does nothing. Acquisition failures leave the
        machine Idle with last_error set; calling start() again retries.
        """
        if self._state != CaptureState.IDLE or self._acquiring:
            logger.warning("Capture already running")
            return

        logger.info("Starting capture...")
        self._last_error = None
        await self._enter_monitoring()

    async def stop(self) -> None:
        """
        Tear down from any state.

        A dispatched pipeline keeps running, but its session is no longer
        current so it will not arm a cooldown.
        """
        session = self._teardown()
        if session is not None:
            await session.wait_closed()

    def handle_level(self, level: float) -> bool:
        """
        Evaluate one loudness sample.

        Returns True if it started a recording.
        """
        session = self._session
        if session is None or session.busy or self._state != CaptureState.MONITORING:
            return False
        if not LevelDetector.is_loud(level, self.threshold):
            return False

        logger.info(f"Level {level:.1f} dB >= {self.threshold:.1f} dB, recording {self.record_duration:.0f}s")
        self._start_recording(session)
        return True

    def _teardown(self) -> Optional[CaptureSession]:
        self._generation += 1
        session, self._session = self._session, None
        if session is not None:
            session.close()
        self._audio_level = SILENCE
        if self._state != CaptureState.IDLE:
            logger.info("Capture stopped")
        self._set_state(CaptureState.IDLE)
        return session

    async def _acquire(self):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._microphone_factory, loop)
        except AcquisitionError:
            raise
        except Exception as e:
            raise AcquisitionError(f"Failed to open microphone: {e}") from e

    async def _enter_monitoring(self) -> None:
        generation = self._generation
        self._acquiring = True
        try:
            stream = await self._acquire()
        except AcquisitionError as e:
            if generation == self._generation:
                self._fail(e)
            return
        finally:
            self._acquiring = False

        if generation != self._generation:
            # stop() arrived while the device was being opened
            logger.debug("Capture stopped during acquisition, releasing microphone")
            stream.close()
            return

        session = CaptureSession(self._analyser_factory())
        session.attach_stream(stream)
        self._session = session
        self._set_state(CaptureState.MONITORING)
        session.tick_task = session.spawn(self._tick_loop(session))

    async def _tick_loop(self, session: CaptureSession) -> None:
        logger.debug(f"Level monitoring started (threshold: {self.threshold:.1f} dB)")
        while not session.closed:
            try:
                level = session.detector.level()
                self._publish_level(level)
                self.handle_level(level)
            except Exception as e:
                logger.error(f"Level tick error: {e}")
            await asyncio.sleep(self.tick_interval)

    def _publish_level(self, level: float) -> None:
        self._audio_level = level
        if self.on_level:
            try:
                self.on_level(level)
            except Exception as e:
                logger.error(f"Level callback error: {e}")

    def _start_recording(self, session: CaptureSession) -> None:
        self._set_state(CaptureState.RECORDING)
        if session.stream is not None and session.stream.tracks_active:
            self._attach_recorder(session)
        else:
            session.spawn(self._record_on_fresh_stream(session))

    def _attach_recorder(self, session: CaptureSession) -> None:
        session.start_recording()
        session.record_timer = session.call_later(self.record_duration, self._finish_recording, session)

    async def _record_on_fresh_stream(self, session: CaptureSession) -> None:
        logger.debug("Session has no live stream, reopening microphone for recording")
        try:
            stream = await self._acquire()
        except AcquisitionError as e:
            if session is self._session:
                self._teardown()
                self._fail(e)
            return

        if session is not self._session or session.closed:
            stream.close()
            return
        session.attach_stream(stream)
        self._attach_recorder(session)

    def _finish_recording(self, session: CaptureSession) -> None:
        if session is not self._session or self._state != CaptureState.RECORDING:
            return

        segment = session.finish_recording()
        # Busy must be visible before the pipeline task exists
        session.busy = True
        self._set_state(CaptureState.PROCESSING)
        logger.debug(f"Segment ready ({segment.duration:.1f}s), dispatching pipeline")
        session.pipeline_task = asyncio.ensure_future(self._run_pipeline(session, segment))

    async def _run_pipeline(self, session: CaptureSession, segment: AudioSegment) -> None:
        try:
            await self._on_segment(segment)
        except Exception as e:
            logger.error(f"Segment pipeline error: {e}")
        finally:
            session.busy = False

        if session is not self._session or session.closed:
            logger.debug("Pipeline settled after teardown, not re-arming")
            return

        self._set_state(CaptureState.COOLDOWN)
        session.cooldown_timer = session.call_later(self.cooldown, self._on_cooldown_expired, session)

    def _on_cooldown_expired(self, session: CaptureSession) -> None:
        if session is not self._session:
            return
        # Release the old session before the next one acquires the device
        self._session = None
        session.close()
        self._rearm_task = asyncio.ensure_future(self._enter_monitoring())

    def _fail(self, error: AcquisitionError) -> None:
        logger.error(f"Microphone acquisition failed: {error}")
        self._last_error = error
        self._set_state(CaptureState.IDLE)
        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                logger.error(f"Error callback error: {e}")

    def _set_state(self, new_state: CaptureState) -> None:
        """
        Update state and trigger callback.

        Args:
            new_state: New state to set
        """
        if new_state == self._state:
            return

        old_state = self._state
        self._state = new_state

        logger.debug(f"Capture state: {old_state.value} -> {new_state.value}")

        if self.on_state_change:
            try:
                self.on_state_change(new_state)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

"""Tests for the capture orchestrator (recognition + enrichment pipeline)"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import numpy as np

from audio_recognition.audd import CoarseIdentification
from audio_recognition.capture import AudioSegment
from audio_recognition.engine import CaptureState
from enrichment.models import ConsolidatedMetadata
from errors import AcquisitionError, NoMatchError, ServiceUnavailableError
from orchestrator import CaptureOrchestrator, HistoryEntry
from conftest import FakeAnalyser


def make_orchestrator(microphone_factory, coarse, **kwargs):
    recognizer = MagicMock()
    recognizer.identify = AsyncMock(return_value=coarse)
    aggregator = MagicMock()
    aggregator.enrich = AsyncMock(side_effect=lambda c: ConsolidatedMetadata.from_coarse(c))
    params = dict(
        recognizer=recognizer,
        aggregator=aggregator,
        on_recognized=MagicMock(),
        on_error=MagicMock(),
        on_history=MagicMock(),
        microphone_factory=microphone_factory,
        analyser_factory=FakeAnalyser,
        threshold=-50.0,
        record_duration=0.03,
        cooldown=0.03,
        tick_interval=0.005,
    )
    params.update(kwargs)
    return CaptureOrchestrator(**params)


async def test_recognized_track_is_delivered_once(microphone_factory, coarse, segment):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    await orchestrator.start()

    result = await orchestrator._process_segment(segment)

    assert result.title == "One More Time"
    orchestrator.on_recognized.assert_called_once_with(result)
    entry = orchestrator.on_history.call_args.args[0]
    assert isinstance(entry, HistoryEntry)
    assert entry.metadata is result
    assert entry.to_dict()["artist"] == "Daft Punk"
    assert entry.to_dict()["id"] == entry.id
    await orchestrator.stop()


async def test_empty_segment_skips_recognition(microphone_factory, coarse):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    await orchestrator.start()
    empty = AudioSegment(chunks=(), sample_rate=44100, channels=1, capture_start_time=0.0)

    assert await orchestrator._process_segment(empty) is None
    orchestrator.recognizer.identify.assert_not_called()
    await orchestrator.stop()


async def test_result_after_stop_is_discarded(microphone_factory, coarse, segment):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    release = asyncio.Event()

    async def slow_enrich(c):
        await release.wait()
        return ConsolidatedMetadata.from_coarse(c)

    orchestrator.aggregator.enrich = AsyncMock(side_effect=slow_enrich)
    await orchestrator.start()

    pipeline = asyncio.ensure_future(orchestrator._process_segment(segment))
    await asyncio.sleep(0.01)
    await orchestrator.stop()
    release.set()

    assert await pipeline is None
    orchestrator.on_recognized.assert_not_called()
    orchestrator.on_history.assert_not_called()


async def test_recognition_error_is_reported(microphone_factory, coarse, segment):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    error = NoMatchError("No match found")
    orchestrator.recognizer.identify = AsyncMock(side_effect=error)
    await orchestrator.start()

    assert await orchestrator._process_segment(segment) is None

    assert orchestrator.last_error is error
    orchestrator.on_error.assert_called_once_with(error)
    orchestrator.aggregator.enrich.assert_not_called()
    orchestrator.on_recognized.assert_not_called()
    await orchestrator.stop()


async def test_recognition_error_after_stop_is_silent(microphone_factory, coarse, segment):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    orchestrator.recognizer.identify = AsyncMock(side_effect=ServiceUnavailableError("HTTP 502", status_code=502))

    await orchestrator._process_segment(segment)

    assert orchestrator.last_error is None
    orchestrator.on_error.assert_not_called()


async def test_enrichment_failure_falls_back_to_coarse(microphone_factory, segment):
    coarse = CoarseIdentification(title="One More Time", artist="Daft Punk", album="Discovery",
                                  artwork_url="https://apple/1000x1000.jpg")
    orchestrator = make_orchestrator(microphone_factory, coarse)
    orchestrator.aggregator.enrich = AsyncMock(side_effect=RuntimeError("aggregator bug"))
    await orchestrator.start()

    result = await orchestrator._process_segment(segment)

    assert result.title == "One More Time"
    assert result.artwork_url == "https://apple/1000x1000.jpg"
    orchestrator.on_recognized.assert_called_once_with(result)
    await orchestrator.stop()


async def test_callback_errors_do_not_break_delivery(microphone_factory, coarse, segment):
    orchestrator = make_orchestrator(
        microphone_factory, coarse,
        on_recognized=MagicMock(side_effect=RuntimeError("ui gone")),
    )
    await orchestrator.start()

    result = await orchestrator._process_segment(segment)

    assert result is not None
    orchestrator.on_history.assert_called_once()
    await orchestrator.stop()


async def test_acquisition_failure_stops_listening(microphone_factory, coarse):
    microphone_factory.error = AcquisitionError("Permission denied")
    orchestrator = make_orchestrator(microphone_factory, coarse)

    await orchestrator.start()

    assert not orchestrator.is_listening
    assert orchestrator.status == CaptureState.IDLE
    assert isinstance(orchestrator.last_error, AcquisitionError)
    orchestrator.on_error.assert_called_once()


async def test_loud_level_runs_full_pipeline(microphone_factory, coarse):
    delivered = asyncio.Event()
    on_recognized = MagicMock(side_effect=lambda metadata: delivered.set())
    orchestrator = make_orchestrator(
        microphone_factory, coarse,
        on_recognized=on_recognized,
        record_duration=0.05,
        tick_interval=1.0,
    )
    await orchestrator.start()
    assert orchestrator.is_listening
    assert orchestrator.status == CaptureState.MONITORING

    assert orchestrator.machine.handle_level(0.0)
    assert orchestrator.status == CaptureState.RECORDING
    microphone_factory.created[0].emit(np.ones((441, 1), dtype=np.int16))

    await asyncio.wait_for(delivered.wait(), timeout=1.0)

    segment = orchestrator.recognizer.identify.call_args.args[0]
    assert not segment.is_empty
    orchestrator.aggregator.enrich.assert_awaited_once_with(coarse)
    metadata = on_recognized.call_args.args[0]
    assert metadata.artist == "Daft Punk"
    await orchestrator.stop()
    assert orchestrator.status == CaptureState.IDLE
    assert not orchestrator.is_listening


async def test_start_twice_is_ignored(microphone_factory, coarse):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    await orchestrator.start()
    await orchestrator.start()
    assert microphone_factory.calls == 1
    await orchestrator.stop()


async def test_result_from_previous_run_is_not_delivered_after_restart(microphone_factory, coarse):
    orchestrator = make_orchestrator(microphone_factory, coarse, record_duration=0.02, tick_interval=1.0)
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_enrich(c):
        entered.set()
        await release.wait()
        return ConsolidatedMetadata.from_coarse(c)

    orchestrator.aggregator.enrich = AsyncMock(side_effect=slow_enrich)
    await orchestrator.start()
    session = orchestrator.machine.session
    assert orchestrator.machine.handle_level(0.0)
    microphone_factory.created[0].emit(np.ones((441, 1), dtype=np.int16))
    await asyncio.wait_for(entered.wait(), timeout=1.0)

    await orchestrator.stop()
    await orchestrator.start()
    assert orchestrator.is_listening
    release.set()
    await asyncio.wait_for(session.pipeline_task, timeout=1.0)

    orchestrator.on_recognized.assert_not_called()
    orchestrator.on_history.assert_not_called()
    assert orchestrator.status == CaptureState.MONITORING
    await orchestrator.stop()


async def test_recognition_error_from_previous_run_is_not_reported(microphone_factory, coarse, segment):
    orchestrator = make_orchestrator(microphone_factory, coarse)
    release = asyncio.Event()

    async def slow_failure(_segment):
        await release.wait()
        raise NoMatchError("No match found")

    orchestrator.recognizer.identify = AsyncMock(side_effect=slow_failure)
    await orchestrator.start()
    pipeline = asyncio.ensure_future(orchestrator._process_segment(segment))
    await asyncio.sleep(0.01)

    await orchestrator.stop()
    await orchestrator.start()
    release.set()

    assert await pipeline is None
    assert orchestrator.last_error is None
    orchestrator.on_error.assert_not_called()
    await orchestrator.stop()

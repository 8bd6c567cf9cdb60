"""Tests for the settle-all combinator"""
import asyncio

from enrichment.settle import settle_all, Settled


async def value_after(delay, value):
    await asyncio.sleep(delay)
    return value


async def fail_after(delay, error):
    await asyncio.sleep(delay)
    raise error


async def test_results_keep_input_order():
    settled = await settle_all([
        ("slow", value_after(0.03, "a")),
        ("fast", value_after(0.0, "b")),
        ("middle", value_after(0.01, "c")),
    ])
    assert [s.name for s in settled] == ["slow", "fast", "middle"]
    assert [s.value for s in settled] == ["a", "b", "c"]
    assert all(s.ok for s in settled)


async def test_failure_does_not_abort_batch():
    error = RuntimeError("provider down")
    settled = await settle_all([
        ("ok", value_after(0.02, {"genres": ["Rock"]})),
        ("broken", fail_after(0.0, error)),
    ])
    assert settled[0] == Settled(name="ok", value={"genres": ["Rock"]})
    assert settled[1].error is error
    assert settled[1].value is None
    assert not settled[1].ok


async def test_timeout_turns_hang_into_failure():
    settled = await settle_all([
        ("hang", value_after(5, "never")),
        ("quick", value_after(0, "done")),
    ], timeout=0.05)
    assert isinstance(settled[0].error, asyncio.TimeoutError)
    assert settled[1].value == "done"


async def test_empty_batch():
    assert await settle_all([]) == []

"""
Settle-all combinator.

Runs a batch of awaitables to completion and reports each outcome
separately, so one failing source never aborts the rest.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, List, Optional, Sequence, Tuple

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Settled:
    """Outcome of one task: either a value or the error it raised."""
    name: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(
    calls: Sequence[Tuple[str, Awaitable[Any]]],
    timeout: Optional[float] = None,
) -> List[Settled]:
    """
    Wait for every awaitable and return one Settled per call, in input order.

    Args:
        calls: (name, awaitable) pairs
        timeout: Optional per-call limit; a call that exceeds it settles
                 as a TimeoutError failure
    """
    async def _run(awaitable):
        if timeout is not None:
            return await asyncio.wait_for(awaitable, timeout)
        return await awaitable

    results = await asyncio.gather(*(_run(aw) for _, aw in calls), return_exceptions=True)

    settled = []
    for (name, _), result in zip(calls, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(f"{name} timed out after {timeout}s")
            else:
                logger.warning(f"{name} failed: {result}")
            settled.append(Settled(name=name, error=result))
        else:
            settled.append(Settled(name=name, value=result))
    return settled

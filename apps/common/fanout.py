# apps/common/fanout.py
#
# "Run N async operations, keep the successes, ignore individual failures."
#
# Every task gets its own Outcome (value or error) so one failing feed item
# never takes the whole request down. Parallelism is unbounded unless a
# limit is passed in.

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _run_one(aw: Awaitable[T], sem: Optional[asyncio.Semaphore]) -> Outcome[T]:
    try:
        if sem is None:
            return Outcome(value=await aw)
        async with sem:
            return Outcome(value=await aw)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        return Outcome(error=e)


async def gather_outcomes(
    awaitables: Iterable[Awaitable[T]],
    limit: Optional[int] = None,
) -> List[Outcome[T]]:
    """
    Await everything concurrently and return one Outcome per input,
    in input order.
    """
    sem = asyncio.Semaphore(limit) if limit else None
    return list(await asyncio.gather(*(_run_one(aw, sem) for aw in awaitables)))

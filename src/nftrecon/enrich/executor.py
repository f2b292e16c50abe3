"""Bounded concurrency for per-record enrichment calls.

Cooperative, single event loop: at most `limit` calls are in flight, the rest
wait in a FIFO queue. A finishing call hands its slot straight to the oldest
waiter, so newcomers can never overtake queued work.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Generic, Iterable, List, Optional, TypeVar

from nftrecon.logging import get_logger

log = get_logger("nftrecon.enrich")

R = TypeVar("R")
T = TypeVar("T")


@dataclass
class EnrichmentResult(Generic[R]):
    """Outcome for one record; the record is always kept, even on failure."""

    index: int
    record: R
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index, "record": self.record, "data": self.data}
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class ExecutorStats:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    peak: int = 0
    errors: List[str] = field(default_factory=list)


class BoundedExecutor:
    def __init__(self, limit: int):
        if int(limit) < 1:
            raise ValueError("concurrency limit must be >= 1")
        self.limit = int(limit)
        self._running = 0
        self._waiters: Deque[asyncio.Future] = deque()
        self.stats = ExecutorStats()

    @property
    def running(self) -> int:
        return self._running

    @property
    def queued(self) -> int:
        return len(self._waiters)

    async def _acquire(self) -> None:
        if self._running < self.limit and not self._waiters:
            self._running += 1
            self.stats.peak = max(self.stats.peak, self._running)
            return
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # slot was handed over just before cancellation
                self._release()
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)  # running count unchanged: slot handed over
                return
        self._running -= 1

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run one call under the limit; its exception propagates to the caller."""
        await self._acquire()
        try:
            return await fn()
        finally:
            self._release()

    async def _enrich_one(self, index: int, record: R, enrich: Callable[[R], Awaitable[Any]]) -> EnrichmentResult[R]:
        await self._acquire()
        try:
            pending = enrich(record)
            if not inspect.isawaitable(pending):
                raise TypeError(f"enrichment function must return an awaitable, got {type(pending).__name__}")
            try:
                data = await pending
            except Exception as e:
                msg = str(e) or type(e).__name__
                self.stats.failed += 1
                self.stats.errors.append(msg)
                log.warning("enrichment failed for item %d: %s", index, msg)
                return EnrichmentResult(index=index, record=record, error=msg)
            self.stats.succeeded += 1
            return EnrichmentResult(index=index, record=record, data=data)
        finally:
            self._release()

    async def run(self, records: Iterable[R], enrich: Callable[[R], Awaitable[Any]]) -> List[EnrichmentResult[R]]:
        """Enrich every record; output order matches input order regardless of completion order."""
        items = list(records)
        self.stats.submitted += len(items)
        if not items:
            return []
        results = await asyncio.gather(*(self._enrich_one(i, r, enrich) for i, r in enumerate(items)))
        log.debug(
            "enrichment batch done",
            extra={"items": len(items), "failed": sum(1 for r in results if not r.ok), "peak": self.stats.peak},
        )
        return list(results)

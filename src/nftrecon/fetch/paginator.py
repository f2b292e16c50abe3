"""Fetch-all over page-limited endpoints.

The remote APIs never report a total. The only exhaustion signal is a page
shorter than the requested limit (an empty page included), so the loop is:

    request(cursor, limit) -> append -> short page? stop : advance cursor

Two cursor policies exist because endpoints differ in what they accept:
  - OffsetCursor:  next = offset + len(page)
  - VersionCursor: next = last_record.version + 1
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, List, Optional, Protocol, Sequence, TypeVar

from nftrecon.errors import PageFetchError, PaginationError
from nftrecon.ledger.meta import FetchMeta
from nftrecon.logging import get_logger

log = get_logger("nftrecon.fetch")

R = TypeVar("R")

# (cursor position, limit) -> one page
PageFn = Callable[[Any, int], Awaitable[Sequence[R]]]


class CursorStrategy(Protocol):
    name: str

    def initial(self) -> Any:
        ...

    def advance(self, position: Any, page: Sequence[Any]) -> Any:
        ...


@dataclass(frozen=True)
class OffsetCursor:
    start: int = 0
    name: str = "offset"

    def initial(self) -> int:
        return int(self.start)

    def advance(self, position: int, page: Sequence[Any]) -> int:
        return int(position) + len(page)


@dataclass(frozen=True)
class VersionCursor:
    start: Optional[int] = None
    name: str = "version"

    def initial(self) -> Optional[int]:
        return self.start

    def advance(self, position: Optional[int], page: Sequence[Any]) -> int:
        version = getattr(page[-1], "version", None)
        if version is None:
            raise PaginationError("last record of a full page has no version; cannot advance cursor")
        return int(version) + 1


@dataclass
class FetchResult(Generic[R]):
    records: List[R] = field(default_factory=list)
    meta: FetchMeta = field(default_factory=FetchMeta)

    @property
    def complete(self) -> bool:
        return self.meta.complete

    def __len__(self) -> int:
        return len(self.records)


async def iter_pages(
    fetch_page: PageFn,
    *,
    limit: int,
    cursor: Optional[CursorStrategy] = None,
    delay_s: float = 0.0,
    max_records: int = 0,
    meta: Optional[FetchMeta] = None,
) -> AsyncIterator[List[R]]:
    """Yield non-empty pages in server order until a short page is seen.

    A failing page request raises PageFetchError; pages already yielded stay
    with the consumer but `meta.complete` is left False.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    cursor = cursor or OffsetCursor()
    meta = meta if meta is not None else FetchMeta()
    meta.strategy = cursor.name
    meta.page_size = limit
    meta.complete = False

    position = cursor.initial()
    page_no = 0
    total = 0
    t0 = time.monotonic()
    while True:
        page_no += 1
        try:
            page = list(await fetch_page(position, limit))
        except Exception as e:
            meta.elapsed_s = time.monotonic() - t0
            log.error("page fetch failed", extra={"page": page_no, "cursor": position, "records": total})
            raise PageFetchError(page_no, position, total, e) from e

        total += len(page)
        meta.pages = page_no
        meta.records = total
        log.info(
            "fetched page %d (%d records, %d total)", page_no, len(page), total,
            extra={"subject": meta.subject, "cursor": position},
        )
        if page:
            yield page

        if len(page) < limit:
            meta.cap_reason = "short_page" if page else "empty"
            meta.complete = True
            break
        if max_records and total >= max_records:
            meta.cap_reason = "max_records"
            log.warning("stopped at max_records=%d; result is incomplete", max_records)
            break

        position = cursor.advance(position, page)
        if delay_s > 0:
            await asyncio.sleep(delay_s)
    meta.elapsed_s = time.monotonic() - t0


async def fetch_all(
    fetch_page: PageFn,
    *,
    limit: int,
    cursor: Optional[CursorStrategy] = None,
    delay_s: float = 0.0,
    max_records: int = 0,
    subject: str = "",
    kind: str = "",
) -> FetchResult:
    """Accumulate every page. On a page failure nothing is returned (PageFetchError propagates)."""
    meta = FetchMeta(subject=subject, kind=kind)
    records: List[Any] = []
    async for page in iter_pages(
        fetch_page, limit=limit, cursor=cursor, delay_s=delay_s, max_records=max_records, meta=meta
    ):
        records.extend(page)
    if max_records and len(records) > max_records:
        records = records[:max_records]
        meta.records = len(records)
    return FetchResult(records=records, meta=meta)

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from nftrecon.config import Settings
from nftrecon.enrich.executor import BoundedExecutor
from nftrecon.errors import PaginationError
from nftrecon.fetch.paginator import FetchResult, OffsetCursor, VersionCursor, fetch_all, iter_pages
from nftrecon.io.export import epoch_ms, write_json
from nftrecon.ledger.client import AsyncLedger
from nftrecon.ledger.meta import FetchMeta
from nftrecon.ledger.types import TransactionRecord
from nftrecon.logging import get_logger

log = get_logger("nftrecon.tasks")

MINT_FOR = "mint_for"
STRATEGIES = ("offset", "version")


def _page_fn(ledger: AsyncLedger, address: str, strategy: str):
    if strategy == "offset":
        async def page(offset: int, limit: int) -> List[TransactionRecord]:
            return await ledger.account_transactions(address, limit=limit, offset=offset)
        return page, OffsetCursor()
    if strategy == "version":
        async def page_v(version: Optional[int], limit: int) -> List[TransactionRecord]:
            return await ledger.account_transactions_since(address, limit=limit, start_version=version)
        return page_v, VersionCursor()
    raise ValueError(f"strategy must be one of {STRATEGIES}, got {strategy!r}")


async def hydrate_hashes(settings: Settings, ledger: AsyncLedger, records: Sequence[TransactionRecord]) -> List[TransactionRecord]:
    """Replace hash-less indexer rows with the full fullnode transaction, looked up by version."""
    missing = [r for r in records if not r.hash and r.version is not None]
    if not missing:
        return list(records)
    ex = BoundedExecutor(settings.max_concurrency)
    results = await ex.run(missing, lambda r: ledger.transaction_by_version(r.version))
    full = {res.record.version: res.data for res in results if res.ok}
    log.info("hydrated %d of %d transactions by version", len(full), len(missing))
    return [full.get(r.version, r) if not r.hash else r for r in records]


async def fetch_account_transactions(
    settings: Settings, ledger: AsyncLedger, address: str, *, strategy: str = "offset"
) -> FetchResult:
    page, cursor = _page_fn(ledger, address, strategy)
    result = await fetch_all(
        page,
        limit=settings.page_size,
        cursor=cursor,
        delay_s=settings.page_delay_s,
        max_records=settings.max_records,
        subject=address,
        kind="transactions",
    )
    if strategy == "version":
        result.records = await hydrate_hashes(settings, ledger, result.records)
    log.info(
        "fetched %d transactions for %s", len(result), address,
        extra={"pages": result.meta.pages, "complete": result.meta.complete},
    )
    return result


def summarize_transactions(records: Sequence[TransactionRecord], *, samples: int = 5) -> Dict[str, Any]:
    total = len(records)
    ok = sum(1 for r in records if r.success)
    by_type = Counter(r.type or "unknown" for r in records)
    return {
        "total": total,
        "successful": ok,
        "failed": total - ok,
        "success_rate": round(ok / total * 100.0, 2) if total else 0.0,
        "by_type": dict(by_type.most_common()),
        "first": [simplify_transaction(r) for r in records[:samples]],
        "last": [simplify_transaction(r) for r in records[-samples:]] if total > samples else [],
    }


def filter_mint_for(records: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    return [r for r in records if r.function and MINT_FOR in r.function]


def simplify_transaction(record: TransactionRecord) -> Dict[str, Any]:
    return {
        "version": record.version,
        "hash": record.hash,
        "timestamp": record.timestamp,
        "success": record.success,
        "function": record.function,
        "arguments": list(record.arguments),
        "type_arguments": list(record.type_arguments),
        "gas_used": record.gas_used,
        "vm_status": record.vm_status,
    }


@dataclass
class MintForRun:
    files: List[str] = field(default_factory=list)
    pages: int = 0
    transactions: int = 0
    mint_for: int = 0
    meta: FetchMeta = field(default_factory=FetchMeta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files": list(self.files),
            "pages": self.pages,
            "transactions": self.transactions,
            "mint_for": self.mint_for,
            "complete": self.meta.complete,
        }


async def save_mint_for_pages(
    settings: Settings, ledger: AsyncLedger, address: str, out_dir: Optional[str] = None
) -> MintForRun:
    """Stream the account's transactions; write one snapshot file per page that has mint_for calls.

    Files already written stay on disk if a later page fails.
    """
    page_fn, cursor = _page_fn(ledger, address, "offset")
    target = Path(out_dir or settings.output_dir)
    run = MintForRun(meta=FetchMeta(subject=address, kind="transactions"))
    async for page in iter_pages(
        page_fn,
        limit=settings.page_size,
        cursor=cursor,
        delay_s=settings.page_delay_s,
        max_records=settings.max_records,
        meta=run.meta,
    ):
        run.pages += 1
        run.transactions += len(page)
        matches = filter_mint_for(page)
        if not matches:
            log.info("page %d: no mint_for transactions", run.pages)
            continue
        name = f"mint-for-page-{run.pages}-{address[:10]}-{epoch_ms()}.json"
        write_json(target / name, [simplify_transaction(r) for r in matches])
        run.files.append(str(target / name))
        run.mint_for += len(matches)
        log.info("page %d: %d mint_for transactions", run.pages, len(matches), extra={"file": name})
    if not run.meta.complete:
        log.warning("mint_for scan stopped early (%s); snapshots are partial", run.meta.cap_reason or "unknown")
    return run


def require_complete(result: FetchResult, what: str) -> None:
    if not result.complete:
        raise PaginationError(
            f"{what} stopped at {result.meta.cap_reason or 'an unknown point'} after {len(result)} records; "
            "refusing to reconcile a partial set"
        )

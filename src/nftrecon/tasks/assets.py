from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from nftrecon.config import Settings
from nftrecon.enrich.executor import BoundedExecutor, EnrichmentResult
from nftrecon.errors import NftReconError
from nftrecon.fetch.paginator import FetchResult, OffsetCursor, fetch_all
from nftrecon.io.cache import load_metadata_csv
from nftrecon.ledger.client import AsyncLedger
from nftrecon.ledger.meta import FetchMeta
from nftrecon.ledger.normalize import asset_to_dict
from nftrecon.ledger.types import TokenRecord
from nftrecon.logging import get_logger
from nftrecon.reconcile import MetadataMatch, match_metadata, sorted_serials

from .transactions import require_complete

log = get_logger("nftrecon.tasks")


async def owned_tokens_all(
    settings: Settings,
    ledger: AsyncLedger,
    owner: str,
    collection_id: Optional[str] = None,
    *,
    executor: Optional[BoundedExecutor] = None,
) -> FetchResult:
    """Every token `owner` holds (optionally in one collection); page calls go through `executor` when given."""

    async def page(offset: int, limit: int) -> List[TokenRecord]:
        call = lambda: ledger.owned_tokens(owner, limit=limit, offset=offset, collection_id=collection_id)  # noqa: E731
        return await (executor.execute(call) if executor else call())

    return await fetch_all(
        page,
        limit=settings.page_size,
        cursor=OffsetCursor(),
        delay_s=settings.page_delay_s,
        max_records=settings.max_records,
        subject=owner,
        kind="owned_tokens",
    )


async def collection_tokens_all(settings: Settings, ledger: AsyncLedger, collection_id: str) -> FetchResult:
    async def page(offset: int, limit: int) -> List[TokenRecord]:
        return await ledger.collection_tokens(collection_id, limit=limit, offset=offset)

    return await fetch_all(
        page,
        limit=settings.page_size,
        cursor=OffsetCursor(),
        delay_s=settings.page_delay_s,
        max_records=settings.max_records,
        subject=collection_id,
        kind="collection_tokens",
    )


def asset_row(res: EnrichmentResult[TokenRecord], collection_address: Optional[str] = None) -> Dict[str, Any]:
    t = res.record
    row: Dict[str, Any] = {
        "tokenId": t.token_id,
        "tokenName": t.name,
        "collectionAddress": collection_address or t.collection_id or "Unknown",
        "tokenUri": t.uri,
    }
    if res.ok:
        row["digitalAssetData"] = res.data
    else:
        row["error"] = res.error
    return row


async def enrich_tokens(
    ledger: AsyncLedger,
    tokens: Sequence[TokenRecord],
    executor: BoundedExecutor,
    collection_address: Optional[str] = None,
) -> List[Dict[str, Any]]:
    async def detail(t: TokenRecord) -> Dict[str, Any]:
        return asset_to_dict(await ledger.digital_asset(t.token_id))

    return [asset_row(r, collection_address) for r in await executor.run(tokens, detail)]


@dataclass
class AssetListing:
    owner: str
    assets: List[Dict[str, Any]] = field(default_factory=list)
    meta: Optional[FetchMeta] = None

    @property
    def failed(self) -> int:
        return sum(1 for a in self.assets if "error" in a)

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "totalAssets": len(self.assets), "assets": list(self.assets)}


async def user_collection_tokens(
    settings: Settings, ledger: AsyncLedger, owner: str, collection_id: str
) -> AssetListing:
    fetched = await owned_tokens_all(settings, ledger, owner, collection_id)
    ex = BoundedExecutor(settings.max_concurrency)
    assets = await enrich_tokens(ledger, fetched.records, ex, collection_id)
    return AssetListing(owner=owner, assets=assets, meta=fetched.meta)


@dataclass
class WalletMatch:
    owner: str
    match: MetadataMatch
    meta: Optional[FetchMeta] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "totalAssets": len(self.match.rows),
            "matched": self.match.matched,
            "unmatched": self.match.unmatched,
            "assets": list(self.match.rows),
        }


async def wallet_assets_with_metadata(
    settings: Settings, ledger: AsyncLedger, owner: str, metadata_csv: str
) -> WalletMatch:
    metadata = load_metadata_csv(metadata_csv)
    fetched = await owned_tokens_all(settings, ledger, owner)
    ex = BoundedExecutor(settings.max_concurrency)
    assets = await enrich_tokens(ledger, fetched.records, ex)
    return WalletMatch(owner=owner, match=match_metadata(assets, metadata), meta=fetched.meta)


# ----------------------------- bulk scan -----------------------------

@dataclass
class CollectionScan:
    address: str
    name: str
    assets: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    complete: bool = True

    @property
    def total_assets(self) -> int:
        return len(self.assets)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "collection": {"address": self.address, "name": self.name},
            "totalAssets": self.total_assets,
            "complete": self.complete,
            "assets": list(self.assets),
        }
        if self.error is not None:
            out["error"] = self.error
        return out


async def scan_collections(
    settings: Settings,
    ledger: AsyncLedger,
    owner: str,
    collections: Sequence[Dict[str, Any]],
    *,
    batch_size: int = 50,
) -> List[CollectionScan]:
    """Holdings of `owner` across many collections.

    Collections run `batch_size` at a time; page fetches and per-token
    enrichment of every collection share one executor, so the ledger sees at
    most `max_concurrency` calls in flight. A collection whose listing fails
    is reported with `error` set and no assets.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    ex = BoundedExecutor(settings.max_concurrency)
    t0 = time.monotonic()

    async def one(c: Dict[str, Any]) -> CollectionScan:
        address, name = str(c["address"]), str(c["name"])
        try:
            fetched = await owned_tokens_all(settings, ledger, owner, address, executor=ex)
        except NftReconError as e:
            log.warning("collection %s failed: %s", name, e, extra={"collection": address})
            return CollectionScan(address=address, name=name, error=str(e), complete=False)
        assets = await enrich_tokens(ledger, fetched.records, ex, address)
        return CollectionScan(address=address, name=name, assets=assets, complete=fetched.complete)

    out: List[CollectionScan] = []
    total = len(collections)
    for i in range(0, total, batch_size):
        batch = collections[i:i + batch_size]
        out.extend(await asyncio.gather(*(one(c) for c in batch)))
        done = min(i + batch_size, total)
        log.info(
            "processed %d/%d collections", done, total,
            extra={"elapsed_s": round(time.monotonic() - t0, 1), "peak": ex.stats.peak},
        )
    return out


async def collection_serials(settings: Settings, ledger: AsyncLedger, collection_id: str) -> Dict[str, Any]:
    """Serial numbers of every token in a collection, numeric ones sorted."""
    fetched = await collection_tokens_all(settings, ledger, collection_id)
    require_complete(fetched, "collection token fetch")
    tokens = [{"tokenId": t.token_id, "serialNumber": t.serial_number or "Unknown"} for t in fetched.records]
    numeric, other = sorted_serials(t["serialNumber"] for t in tokens)
    return {
        "collectionAddress": collection_id,
        "totalTokens": len(tokens),
        "serials": numeric,
        "nonNumeric": other,
        "tokens": tokens,
    }

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nftrecon.config import Settings
from nftrecon.enrich.executor import BoundedExecutor
from nftrecon.ledger.client import AsyncLedger
from nftrecon.ledger.meta import FetchMeta
from nftrecon.ledger.normalize import asset_to_dict
from nftrecon.ledger.types import CollectionData, TokenRecord
from nftrecon.logging import get_logger
from nftrecon.reconcile import SupplyReport, supply_report

from .assets import owned_tokens_all
from .transactions import require_complete

log = get_logger("nftrecon.tasks")


@dataclass
class CollectionSupply:
    collection: CollectionData
    report: SupplyReport
    burned: List[Dict[str, Any]] = field(default_factory=list)
    meta: Optional[FetchMeta] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collectionAddress": self.collection.collection_id,
            "collectionName": self.collection.collection_name,
            **self.report.to_dict(),
            "burnAddressTokens": list(self.burned),
        }


async def collection_supply(
    settings: Settings,
    ledger: AsyncLedger,
    creator_address: str,
    collection_name: str,
    *,
    with_activity: bool = False,
) -> CollectionSupply:
    """Total minted, burn-address holdings and circulating supply for one collection.

    Burned tokens are enriched with their asset data (and burn activity when
    asked); a failed enrichment is recorded on the token, not raised.
    """
    coll = await ledger.collection_data(creator_address, collection_name)
    log.info("collection %s: total minted %d", coll.collection_name, coll.total_minted)

    burned = await owned_tokens_all(settings, ledger, settings.burn_address, coll.collection_id)
    require_complete(burned, "burn address token fetch")
    report = supply_report(coll.total_minted, burned.records)

    burn_addr = settings.burn_address

    async def enrich(token: TokenRecord) -> Dict[str, Any]:
        detail = await ledger.digital_asset(token.token_id)
        out: Dict[str, Any] = {"digitalAssetData": asset_to_dict(detail)}
        if with_activity:
            acts = await ledger.token_activities(token.token_id)
            out["burnActivity"] = [
                {
                    "burnedBy": a.from_address,
                    "timestamp": a.transaction_timestamp,
                    "transactionVersion": a.transaction_version,
                }
                for a in acts
                if (a.to_address or "").lower() == burn_addr
            ]
        return out

    ex = BoundedExecutor(settings.max_concurrency)
    rows: List[Dict[str, Any]] = []
    for res in await ex.run(burned.records, enrich):
        t = res.record
        row: Dict[str, Any] = {"tokenId": t.token_id, "tokenName": t.name, "tokenUri": t.uri}
        if res.ok:
            row.update(res.data)
        else:
            row["digitalAssetData"] = None
            row["error"] = res.error
        rows.append(row)
    return CollectionSupply(collection=coll, report=report, burned=rows, meta=burned.meta)

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from nftrecon.config import Settings
from nftrecon.enrich.executor import BoundedExecutor
from nftrecon.errors import NftReconError
from nftrecon.io.cache import load_serials_to_check
from nftrecon.ledger.client import AsyncLedger
from nftrecon.ledger.types import TokenRecord
from nftrecon.logging import get_logger
from nftrecon.reconcile import Holding, SerialCheckResult, check_serials as match_serials, summarize_serial_checks

from .assets import owned_tokens_all

log = get_logger("nftrecon.tasks")


def _serial_key(v: Any) -> str:
    s = str(v).strip()
    return str(int(s)) if s.isdigit() else s


@dataclass
class SerialCheckRun:
    results: List[SerialCheckResult] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"summary": self.summary, "results": [r.to_dict() for r in self.results]}


async def holding_for(
    settings: Settings, ledger: AsyncLedger, executor: BoundedExecutor, user: str, collection: str
) -> Holding:
    """serial -> token id for what `user` holds in `collection`; listing failures become `Holding.error`."""
    try:
        fetched = await owned_tokens_all(settings, ledger, user, collection, executor=executor)
    except NftReconError as e:
        log.warning("holdings fetch failed for %s in %s: %s", user[:10], collection[:10], e)
        return Holding(error=str(e))
    if not fetched.complete:
        return Holding(error=f"holdings listing stopped at {fetched.meta.cap_reason}")

    serials: Dict[str, str] = {}
    # ownership rows usually carry the properties; look the rest up one by one
    unresolved: List[TokenRecord] = []
    for t in fetched.records:
        if t.serial_number is not None:
            serials.setdefault(_serial_key(t.serial_number), t.token_id)
        else:
            unresolved.append(t)
    failed: List[str] = []
    if unresolved:
        results = await executor.run(unresolved, lambda t: ledger.digital_asset(t.token_id))
        for res in results:
            if not res.ok:
                failed.append(res.record.token_id)
            elif res.data.serial_number is not None:
                serials.setdefault(_serial_key(res.data.serial_number), res.record.token_id)
    if failed:
        log.warning("serial lookup failed for %d tokens of %s in %s", len(failed), user[:10], collection[:10])
    return Holding(serials=serials, unresolved=failed)


async def check_serials(settings: Settings, ledger: AsyncLedger, csv_path: str) -> SerialCheckRun:
    """Check each (user, collection, serial) row of the CSV against what the user actually holds."""
    requests = load_serials_to_check(csv_path)
    pairs: "OrderedDict[Tuple[str, str], None]" = OrderedDict(
        ((r.user_address, r.collection_address), None) for r in requests
    )
    log.info("checking %d serials across %d user/collection pairs", len(requests), len(pairs))

    ex = BoundedExecutor(settings.max_concurrency)
    keys = list(pairs)
    found = await asyncio.gather(*(holding_for(settings, ledger, ex, u, c) for u, c in keys))
    holdings = dict(zip(keys, found))

    results = match_serials(requests, holdings)
    return SerialCheckRun(results=results, summary=summarize_serial_checks(results))

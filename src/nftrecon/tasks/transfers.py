from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from nftrecon.io.cache import load_transfer_files
from nftrecon.io.export import epoch_ms, write_json
from nftrecon.logging import get_logger
from nftrecon.reconcile import group_transfers_by_address, top_addresses

log = get_logger("nftrecon.tasks")


def group_transfer_files(directory: str, *, top: int = 10) -> Dict[str, Any]:
    transfers = load_transfer_files(directory)
    grouped = group_transfers_by_address(transfers)
    log.info("grouped %d transfers into %d addresses", len(transfers), len(grouped))
    return {
        "totalTransfers": len(transfers),
        "addresses": dict(grouped),
        "top": [{"address": a, "tokenCount": n} for a, n in top_addresses(grouped, top)],
    }


def write_grouped(result: Dict[str, Any], out_dir: str, ts: Optional[int] = None) -> List[str]:
    """address -> tokens file plus an address summary file (`[{address, tokenCount, tokens}]`)."""
    ts = ts if ts is not None else epoch_ms()
    base = Path(out_dir)
    grouped = result["addresses"]
    summary = [{"address": a, "tokenCount": len(ids), "tokens": ids} for a, ids in grouped.items()]
    return [
        str(write_json(base / f"address-tokens-grouped-{ts}.json", grouped)),
        str(write_json(base / f"address-summary-{ts}.json", summary)),
    ]

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from nftrecon.config import Settings
from nftrecon.errors import DataFileError, PaginationError
from nftrecon.io.cache import load_csv_hashes, load_snapshot_hashes
from nftrecon.io.export import epoch_ms, output_name, write_csv, write_json
from nftrecon.ledger.client import AsyncLedger
from nftrecon.logging import get_logger
from nftrecon.reconcile import ReconciliationReport, reconcile

from .transactions import fetch_account_transactions, require_complete

log = get_logger("nftrecon.tasks")


def _non_empty(hashes_: Sequence[str], path: str, what: str) -> Sequence[str]:
    # an empty side would read as "everything on the other side is missing"
    if not hashes_:
        raise DataFileError(path, f"no {what} found")
    return hashes_


async def compare_live_with_snapshots(
    settings: Settings,
    ledger: AsyncLedger,
    address: str,
    snapshot_dir: str,
    *,
    strategy: str = "offset",
) -> ReconciliationReport:
    """All live transaction hashes of `address` vs the mint_for snapshot files."""
    # local files first: a bad snapshot dir should fail before any network work
    snapshots = _non_empty(load_snapshot_hashes(snapshot_dir), snapshot_dir, "mint_for snapshot hashes")
    result = await fetch_account_transactions(settings, ledger, address, strategy=strategy)
    require_complete(result, "live transaction fetch")
    if not result.records:
        raise PaginationError(f"live fetch returned no transactions for {address}; nothing to compare")
    unresolved = sum(1 for r in result.records if not r.hash)
    if unresolved:
        raise PaginationError(f"{unresolved} live transactions have no hash; cannot compare")
    return reconcile(
        (r.hash for r in result.records),
        snapshots,
        first_label="all",
        second_label="mint_for",
    )


def compare_snapshots_with_csv(snapshot_dir: str, csv_path: str) -> ReconciliationReport:
    return reconcile(
        _non_empty(load_snapshot_hashes(snapshot_dir), snapshot_dir, "mint_for snapshot hashes"),
        _non_empty(load_csv_hashes(csv_path), csv_path, "transaction hashes"),
        first_label="mint_for",
        second_label="csv",
    )


@dataclass(frozen=True)
class WrittenReport:
    json_path: str
    csv_path: str
    missing_paths: Tuple[str, ...] = ()


def write_hash_report(
    report: ReconciliationReport, out_dir: str, prefix: str, subject: Optional[str] = None
) -> WrittenReport:
    """JSON report, a `hash,status` CSV and one hash-only CSV per non-empty side, sharing one timestamp."""
    ts = epoch_ms()
    base = Path(out_dir)
    data: Dict[str, Any] = report.to_dict()
    data["summary"]["generated_at_ms"] = ts
    j = write_json(base / output_name(prefix, subject, ts=ts, ext="json"), data)
    rows: List[Dict[str, str]] = [{"hash": h, "status": s} for h, s in report.status_rows()]
    c = write_csv(base / output_name(prefix, subject, ts=ts, ext="csv"), rows, columns=["hash", "status"])

    missing: List[str] = []
    for label, items in ((report.second_label, report.only_in_first), (report.first_label, report.only_in_second)):
        if not items:
            continue
        name = output_name(f"missing-from-{label.replace('_', '-')}", subject, ts=ts, ext="csv")
        missing.append(str(write_csv(base / name, [{"hash": h} for h in items], columns=["hash"])))
    return WrittenReport(json_path=str(j), csv_path=str(c), missing_paths=tuple(missing))

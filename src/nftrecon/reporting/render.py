from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional, Sequence

from nftrecon.ledger.meta import FetchMeta
from nftrecon.reconcile import ReconciliationReport


def _ts() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _short(addr: Optional[str], n: int = 10) -> str:
    if not addr:
        return "-"
    return addr if len(addr) <= n else addr[:n] + "..."


def render_meta(meta: Optional[FetchMeta]) -> str:
    if meta is None:
        return ""
    state = "complete" if meta.complete else f"INCOMPLETE ({meta.cap_reason or 'aborted'})"
    return f"pages={meta.pages} records={meta.records} page_size={meta.page_size} cursor={meta.strategy} {state}"


def render_transactions(summary: Dict[str, Any], meta: Optional[FetchMeta] = None) -> str:
    lines = [f"transactions {_ts()}"]
    if meta is not None:
        lines.append(render_meta(meta))
    lines.append(
        f"total={summary['total']} ok={summary['successful']} failed={summary['failed']} "
        f"rate={summary['success_rate']:.2f}%"
    )
    if summary["by_type"]:
        lines.append("types: " + ", ".join(f"{k}={v}" for k, v in summary["by_type"].items()))
    for label in ("first", "last"):
        for i, tx in enumerate(summary.get(label) or [], 1):
            lines.append(f" {label}[{i}] v={tx['version']} {tx['hash']} ok={tx['success']} fn={tx['function'] or '-'}")
    return "\n".join(lines)


def render_reconciliation(report: ReconciliationReport, *, max_items: int = 20) -> str:
    a, b = report.first_label, report.second_label
    lines = [
        f"reconciliation {_ts()}",
        f"{a}={report.first_count} {b}={report.second_count} common={report.common_count}",
        f"only_in_{a}={len(report.only_in_first)} only_in_{b}={len(report.only_in_second)}",
    ]
    if report.in_sync:
        lines.append("in sync")
        return "\n".join(lines)
    for label, items in ((f"only_in_{a}", report.only_in_first), (f"only_in_{b}", report.only_in_second)):
        if not items:
            continue
        lines.append(f"{label}:")
        lines.extend(f" - {x}" for x in items[:max_items])
        if len(items) > max_items:
            lines.append(f" ... ({len(items) - max_items} more)")
    return "\n".join(lines)


def render_supply(data: Dict[str, Any]) -> str:
    lines = [
        f"collection supply {_ts()}",
        f"collection={data['collectionName']} address={data['collectionAddress']}",
        f"total={data['totalSupply']} burned={data['burnedTokens']} circulating={data['circulatingSupply']} "
        f"burn_pct={data['burnPercentage']:.2f}%",
    ]
    for i, t in enumerate(data.get("burnAddressTokens") or [], 1):
        tail = f" error={t['error']}" if t.get("error") else ""
        lines.append(f" {i}) {t['tokenName']} ({t['tokenId']}){tail}")
        for ev in t.get("burnActivity") or []:
            lines.append(f"    burned_by={ev['burnedBy']} at={ev['timestamp']} v={ev['transactionVersion']}")
    return "\n".join(lines)


def render_assets(assets: Sequence[Dict[str, Any]], title: str) -> str:
    failed = sum(1 for a in assets if "error" in a)
    lines = [f"{title} {_ts()}", f"assets={len(assets)} enrichment_failed={failed}"]
    for i, a in enumerate(assets, 1):
        data = a.get("digitalAssetData") or {}
        props = data.get("tokenProperties") or {}
        extra = f" error={a['error']}" if "error" in a else f" props={len(props)}"
        lines.append(f" {i}) {a.get('tokenName')} {a.get('tokenId')}{extra}")
    return "\n".join(lines)


def render_scan(scans: Sequence[Any]) -> str:
    total = sum(s.total_assets for s in scans)
    errors = sum(1 for s in scans if s.error)
    lines = [
        f"bulk scan {_ts()}",
        f"collections={len(scans)} assets={total} with_assets={sum(1 for s in scans if s.total_assets)} errors={errors}",
    ]
    for i, s in enumerate(scans, 1):
        status = "ERR" if s.error else ("ok" if s.total_assets else "empty")
        tail = f" error={s.error}" if s.error else ""
        lines.append(f" {i}) [{status}] {s.name} {_short(s.address)} assets={s.total_assets}{tail}")
    return "\n".join(lines)


def render_serials(data: Dict[str, Any], *, max_items: int = 50) -> str:
    lines = [
        f"collection serials {_ts()}",
        f"collection={data['collectionAddress']} tokens={data['totalTokens']} numeric={len(data['serials'])} "
        f"other={len(data['nonNumeric'])}",
    ]
    shown = data["serials"][:max_items]
    if shown:
        lines.append("serials: " + ", ".join(shown) + (" ..." if len(data["serials"]) > max_items else ""))
    if data["nonNumeric"]:
        lines.append("non-numeric: " + ", ".join(data["nonNumeric"][:max_items]))
    return "\n".join(lines)


def render_serial_checks(summary: Dict[str, Any]) -> str:
    lines = [
        f"serial check {_ts()}",
        f"total={summary['total']} found={summary['found']} not_found={summary['not_found']} errors={summary['errors']}",
    ]
    for user, colls in summary["by_user"].items():
        lines.append(f"user {_short(user)}")
        for name, c in colls.items():
            lines.append(
                f" {name}: found={c['found'] or '-'} missing={c['missing'] or '-'}"
                + (f" errors={c['errors']}" if c["errors"] else "")
            )
    return "\n".join(lines)


def render_transfers(result: Dict[str, Any]) -> str:
    lines = [f"transfers {_ts()}", f"transfers={result['totalTransfers']} addresses={len(result['addresses'])}"]
    for i, row in enumerate(result["top"], 1):
        lines.append(f" {i}) {_short(row['address'])} tokens={row['tokenCount']}")
    return "\n".join(lines)


def render_analysis(data: Dict[str, Any]) -> str:
    lines: List[str] = [
        f"transaction {data['transactionHash']}",
        f"version={data['transactionVersion']} success={data['success']} via={data['resolvedBy']}",
        f"tokens={data['totalTokensFound']} transfers={data['totalTransfersFound']}",
    ]
    for i, t in enumerate(data["tokens"], 1):
        lines.append(f" token {i}) {t['name']} ({t['tokenId']}) collection={t['collection']}")
    for i, t in enumerate(data["transfers"], 1):
        lines.append(f" transfer {i}) {t['tokenId']} -> {_short(t['to'])}")
    return "\n".join(lines)

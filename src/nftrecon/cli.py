"""nftrecon CLI.

One subcommand per job; every job reads its inputs from arguments (no
hardcoded accounts), prints a compact console summary and, unless
--no_save, writes the full JSON result into --out_dir.

Exit codes: 0 ok, 1 ledger / pagination / data file failure, 2 usage or config error.
"""

from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from nftrecon.config import Settings, load_settings
from nftrecon.errors import ConfigError, NftReconError
from nftrecon.io.cache import load_collections_json
from nftrecon.io.export import output_name, write_json
from nftrecon.ledger.aptos.connector import AptosConfig, AptosConnector
from nftrecon.ledger.client import AsyncLedger
from nftrecon.logging import LogConfig, get_logger, setup_logging
from nftrecon.reporting import render
from nftrecon.tasks import assets, hashes, serials, supply, transaction, transactions, transfers

log = get_logger("nftrecon.cli")


# ----------------------------- helpers -----------------------------

def _ledger(settings: Settings) -> AsyncLedger:
    return AsyncLedger(AptosConnector(AptosConfig.from_settings(settings)))


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.network:
        out.setdefault("ledger", {})["network"] = args.network
    if args.page_size is not None:
        out.setdefault("fetch", {})["page_size"] = args.page_size
    if args.max_records is not None:
        out.setdefault("fetch", {})["max_records"] = args.max_records
    if args.max_concurrency is not None:
        out.setdefault("enrich", {})["max_concurrency"] = args.max_concurrency
    if args.out_dir:
        out.setdefault("output", {})["dir"] = args.out_dir
    if args.log_level:
        out.setdefault("log", {})["level"] = args.log_level
    if args.log_json:
        out.setdefault("log", {})["json"] = True
    return out


def _save(args: argparse.Namespace, settings: Settings, prefix: str, subject: Optional[str], data: Any) -> None:
    if args.no_save:
        return
    path = write_json(Path(settings.output_dir) / output_name(prefix, subject), data)
    print(f"saved={path}")


# ----------------------------- commands -----------------------------

async def _cmd_transactions(args, settings: Settings) -> int:
    result = await transactions.fetch_account_transactions(
        settings, _ledger(settings), args.address, strategy=args.strategy
    )
    summary = transactions.summarize_transactions(result.records)
    print(render.render_transactions(summary, result.meta))
    _save(args, settings, "transactions", args.address, {
        "meta": result.meta.to_dict(),
        "summary": summary,
        "transactions": [transactions.simplify_transaction(r) for r in result.records],
    })
    return 0


async def _cmd_save_mint_for(args, settings: Settings) -> int:
    run = await transactions.save_mint_for_pages(settings, _ledger(settings), args.address, args.dir)
    print(
        f"pages={run.pages} transactions={run.transactions} mint_for={run.mint_for} "
        f"files={len(run.files)} complete={run.meta.complete}"
    )
    return 0


async def _cmd_compare_hashes(args, settings: Settings) -> int:
    report = await hashes.compare_live_with_snapshots(
        settings, _ledger(settings), args.address, args.snapshot_dir, strategy=args.strategy
    )
    print(render.render_reconciliation(report))
    if not args.no_save:
        w = hashes.write_hash_report(report, settings.output_dir, "hash-comparison", args.address)
        print(" ".join(["saved=" + w.json_path, w.csv_path, *w.missing_paths]))
    return 0


async def _cmd_compare_csv(args, settings: Settings) -> int:
    report = hashes.compare_snapshots_with_csv(args.snapshot_dir, args.csv)
    print(render.render_reconciliation(report))
    if not args.no_save:
        w = hashes.write_hash_report(report, settings.output_dir, "hash-comparison-json-csv")
        print(" ".join(["saved=" + w.json_path, w.csv_path, *w.missing_paths]))
    return 0


async def _cmd_supply(args, settings: Settings) -> int:
    res = await supply.collection_supply(
        settings, _ledger(settings), args.creator, args.collection_name, with_activity=args.activity
    )
    data = res.to_dict()
    print(render.render_supply(data))
    _save(args, settings, "collection-supply", res.collection.collection_id, data)
    return 0


async def _cmd_collection_tokens(args, settings: Settings) -> int:
    listing = await assets.user_collection_tokens(settings, _ledger(settings), args.owner, args.collection)
    print(render.render_assets(listing.assets, "collection tokens"))
    _save(args, settings, "user-collection-tokens", args.owner, listing.to_dict())
    return 0


async def _cmd_wallet_assets(args, settings: Settings) -> int:
    res = await assets.wallet_assets_with_metadata(settings, _ledger(settings), args.owner, args.metadata_csv)
    print(f"wallet {args.owner} assets={len(res.match.rows)} matched={res.match.matched} unmatched={res.match.unmatched}")
    _save(args, settings, "wallet-assets-with-metadata", args.owner, res.to_dict())
    return 0


async def _cmd_bulk_scan(args, settings: Settings) -> int:
    colls = load_collections_json(args.collections)
    scans = await assets.scan_collections(
        settings, _ledger(settings), args.owner, colls, batch_size=args.batch_size
    )
    print(render.render_scan(scans))
    _save(args, settings, "bulk-collection-assets", args.owner, [s.to_dict() for s in scans])
    return 0


async def _cmd_serials(args, settings: Settings) -> int:
    data = await assets.collection_serials(settings, _ledger(settings), args.collection)
    print(render.render_serials(data))
    _save(args, settings, "collection-serials", args.collection, data)
    return 0


async def _cmd_check_serials(args, settings: Settings) -> int:
    run = await serials.check_serials(settings, _ledger(settings), args.csv)
    print(render.render_serial_checks(run.summary))
    _save(args, settings, "serial-check-results", None, run.to_dict())
    return 0


async def _cmd_group_transfers(args, settings: Settings) -> int:
    result = transfers.group_transfer_files(args.directory, top=args.top)
    print(render.render_transfers(result))
    if not args.no_save:
        for p in transfers.write_grouped(result, settings.output_dir):
            print(f"saved={p}")
    return 0


async def _cmd_analyze_tx(args, settings: Settings) -> int:
    res = await transaction.analyze_transaction(_ledger(settings), args.hash)
    data = res.to_dict()
    print(render.render_analysis(data))
    _save(args, settings, "transaction-tokens", args.hash, data)
    return 0


# ----------------------------- main -----------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nftrecon")

    # logging/config
    p.add_argument("--config", default=os.environ.get("NFTRECON_CONFIG", ""))
    p.add_argument("--log_level", default="", help="debug|info|warning|error")
    p.add_argument("--log_json", action="store_true")
    p.add_argument("--network", default="", help="mainnet|testnet|devnet|local")
    p.add_argument("--page_size", type=int, default=None)
    p.add_argument("--max_records", type=int, default=None, help="0 = no cap")
    p.add_argument("--max_concurrency", type=int, default=None)
    p.add_argument("--out_dir", default="")
    p.add_argument("--no_save", action="store_true", help="print only, write no files")

    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("transactions", help="fetch every transaction of an account")
    s.add_argument("address")
    s.add_argument("--strategy", default="offset", choices=transactions.STRATEGIES)
    s.set_defaults(func=_cmd_transactions)

    s = sub.add_parser("save-mint-for", help="write mint_for snapshot files page by page")
    s.add_argument("address")
    s.add_argument("--dir", default=None, help="snapshot directory (default: --out_dir)")
    s.set_defaults(func=_cmd_save_mint_for)

    s = sub.add_parser("compare-hashes", help="live account hashes vs mint_for snapshots")
    s.add_argument("address")
    s.add_argument("snapshot_dir")
    s.add_argument("--strategy", default="offset", choices=transactions.STRATEGIES)
    s.set_defaults(func=_cmd_compare_hashes)

    s = sub.add_parser("compare-csv", help="mint_for snapshots vs a CSV hash export")
    s.add_argument("snapshot_dir")
    s.add_argument("csv")
    s.set_defaults(func=_cmd_compare_csv)

    s = sub.add_parser("supply", help="total / burned / circulating supply of a collection")
    s.add_argument("creator")
    s.add_argument("collection_name")
    s.add_argument("--activity", action="store_true", help="include burn activity per token")
    s.set_defaults(func=_cmd_supply)

    s = sub.add_parser("collection-tokens", help="tokens an owner holds in one collection")
    s.add_argument("owner")
    s.add_argument("collection")
    s.set_defaults(func=_cmd_collection_tokens)

    s = sub.add_parser("wallet-assets", help="wallet assets joined with a metadata CSV")
    s.add_argument("owner")
    s.add_argument("metadata_csv")
    s.set_defaults(func=_cmd_wallet_assets)

    s = sub.add_parser("bulk-scan", help="owner holdings across a collections JSON file")
    s.add_argument("owner")
    s.add_argument("collections")
    s.add_argument("--batch_size", type=int, default=50)
    s.set_defaults(func=_cmd_bulk_scan)

    s = sub.add_parser("serials", help="every serial number in a collection")
    s.add_argument("collection")
    s.set_defaults(func=_cmd_serials)

    s = sub.add_parser("check-serials", help="check expected serials from a CSV")
    s.add_argument("csv")
    s.set_defaults(func=_cmd_check_serials)

    s = sub.add_parser("group-transfers", help="group transfer files by recipient address")
    s.add_argument("directory")
    s.add_argument("--top", type=int, default=10)
    s.set_defaults(func=_cmd_group_transfers)

    s = sub.add_parser("analyze-tx", help="tokens and transfers of one transaction")
    s.add_argument("hash")
    s.set_defaults(func=_cmd_analyze_tx)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config or None, overrides=_overrides(args))
    except ConfigError as e:
        setup_logging(LogConfig(level=args.log_level or "info"))
        log.error("config error: %s", e)
        return 2
    setup_logging(settings.log)
    log.debug("settings loaded", extra={"network": settings.network, "command": args.command})

    try:
        return int(asyncio.run(args.func(args, settings)) or 0)
    except ConfigError as e:
        log.error("config error: %s", e)
        return 2
    except NftReconError as e:
        log.error("%s failed: %s", args.command, e)
        return 1
    except ValueError as e:
        log.error("invalid input: %s", e)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

import asyncio
import dataclasses
import json

import pytest

from nftrecon.errors import DataFileError, LedgerError, PageFetchError, PaginationError
from nftrecon.ledger.types import BURN_ADDRESS, CollectionData, TokenActivity, TransactionRecord
from nftrecon.tasks import assets, hashes, serials, supply, transaction, transactions, transfers
from conftest import asset, token, tx


def _txs():
    return [
        tx(1, "0x1", "0xc::minter::mint_for"),
        tx(2, "0x2", "0x1::coin::transfer"),
        tx(3, "0x3", "0xc::minter::mint_for", success=False),
        tx(4, "0x4"),
        tx(5, "0x5", "0xc::minter::mint_for"),
    ]


def test_fetch_transactions_offset(settings, make_ledger):
    fake, ledger = make_ledger(transactions=_txs())
    res = asyncio.run(transactions.fetch_account_transactions(settings, ledger, "0xacc"))
    assert [r.hash for r in res.records] == ["0x1", "0x2", "0x3", "0x4", "0x5"]
    assert fake.count("account_transactions") == 3
    assert res.complete


def test_fetch_transactions_version_hydrates_hashes(settings, make_ledger):
    fake, ledger = make_ledger(transactions=_txs())
    res = asyncio.run(transactions.fetch_account_transactions(settings, ledger, "0xacc", strategy="version"))
    assert [r.hash for r in res.records] == ["0x1", "0x2", "0x3", "0x4", "0x5"]
    assert fake.count("transaction_by_version") == 5
    with pytest.raises(ValueError):
        asyncio.run(transactions.fetch_account_transactions(settings, ledger, "0xacc", strategy="sideways"))


def test_summary_and_mint_for_filter():
    recs = _txs()
    s = transactions.summarize_transactions(recs, samples=2)
    assert (s["total"], s["successful"], s["failed"]) == (5, 4, 1)
    assert s["success_rate"] == 80.0
    assert s["by_type"] == {"user_transaction": 5}
    assert [t["hash"] for t in s["last"]] == ["0x4", "0x5"]
    assert [r.hash for r in transactions.filter_mint_for(recs)] == ["0x1", "0x3", "0x5"]
    simple = transactions.simplify_transaction(recs[0])
    assert set(simple) == {
        "version", "hash", "timestamp", "success", "function", "arguments", "type_arguments", "gas_used", "vm_status",
    }
    assert transactions.summarize_transactions([])["success_rate"] == 0.0


def test_save_mint_for_pages_writes_only_matching_pages(settings, make_ledger, tmp_path):
    recs = [tx(1, "0x1", "m::mint_for"), tx(2, "0x2"), tx(3, "0x3"), tx(4, "0x4"), tx(5, "0x5", "m::mint_for")]
    _, ledger = make_ledger(transactions=recs)
    run = asyncio.run(transactions.save_mint_for_pages(settings, ledger, "0x80f686c7bba1", str(tmp_path)))
    assert (run.pages, run.transactions, run.mint_for) == (3, 5, 2)
    names = sorted(p.name for p in tmp_path.glob("mint-for-page-*.json"))
    assert [n.split("-")[3] for n in names] == ["1", "3"]
    assert all("-0x80f686c7-" in n for n in names)
    rows = json.loads((tmp_path / names[0]).read_text())
    assert rows[0]["hash"] == "0x1"
    assert run.meta.complete


def _snapshots(d, hashes_):
    d.mkdir(parents=True, exist_ok=True)
    (d / "mint-for-page-1-0xacc-1.json").write_text(json.dumps([{"hash": h} for h in hashes_]))


def test_compare_live_with_snapshots(settings, make_ledger, tmp_path):
    _snapshots(tmp_path / "snap", ["0x2", "0x3", "0x4"])
    _, ledger = make_ledger(transactions=[tx(1, "0x1"), tx(2, "0x2"), tx(3, "0x3")])
    rep = asyncio.run(hashes.compare_live_with_snapshots(settings, ledger, "0xacc", str(tmp_path / "snap")))
    assert rep.only_in_first == ["0x1"]
    assert rep.only_in_second == ["0x4"]
    w = hashes.write_hash_report(rep, str(tmp_path / "out"), "hash-comparison", "0xacc")
    assert json.loads(open(w.json_path).read())["only_in_mint_for"] == ["0x4"]
    assert open(w.csv_path).read().splitlines() == ["hash,status", "0x1,missing_from_mint_for", "0x4,missing_from_all"]


def test_compare_fails_fast_on_missing_snapshots(settings, make_ledger, tmp_path):
    fake, ledger = make_ledger(transactions=[tx(1, "0x1")])
    with pytest.raises(DataFileError):
        asyncio.run(hashes.compare_live_with_snapshots(settings, ledger, "0xacc", str(tmp_path / "nope")))
    assert fake.calls == []


def test_compare_never_reconciles_a_failed_fetch(settings, make_ledger, tmp_path):
    _snapshots(tmp_path / "snap", ["0x1"])
    _, ledger = make_ledger(transactions=_txs(), fail_tx_offsets=[2])
    with pytest.raises(PageFetchError):
        asyncio.run(hashes.compare_live_with_snapshots(settings, ledger, "0xacc", str(tmp_path / "snap")))


def test_compare_refuses_capped_fetch(settings, make_ledger, tmp_path):
    _snapshots(tmp_path / "snap", ["0x1"])
    _, ledger = make_ledger(transactions=_txs())
    capped = dataclasses.replace(settings, max_records=3)
    with pytest.raises(PaginationError):
        asyncio.run(hashes.compare_live_with_snapshots(capped, ledger, "0xacc", str(tmp_path / "snap")))


def test_compare_snapshots_with_csv(tmp_path):
    _snapshots(tmp_path / "snap", ["0x1", "0x2"])
    (tmp_path / "h.csv").write_text('hash\n"0x2"\n"0x9"\n')
    rep = hashes.compare_snapshots_with_csv(str(tmp_path / "snap"), str(tmp_path / "h.csv"))
    assert rep.status_rows() == [("0x1", "missing_from_csv"), ("0x9", "missing_from_mint_for")]

    w = hashes.write_hash_report(rep, str(tmp_path / "out"), "hash-comparison-json-csv")
    assert len(w.missing_paths) == 2
    by_name = {p.split("/")[-1].rsplit("-", 1)[0]: open(p).read().splitlines() for p in w.missing_paths}
    assert by_name == {"missing-from-csv": ["hash", "0x1"], "missing-from-mint-for": ["hash", "0x9"]}


def test_in_sync_report_writes_no_missing_files(tmp_path):
    _snapshots(tmp_path / "snap", ["0x1"])
    (tmp_path / "h.csv").write_text('hash\n"0x1"\n')
    rep = hashes.compare_snapshots_with_csv(str(tmp_path / "snap"), str(tmp_path / "h.csv"))
    assert hashes.write_hash_report(rep, str(tmp_path / "out"), "x").missing_paths == ()


def test_empty_snapshot_dir_is_refused(tmp_path):
    (tmp_path / "snap").mkdir()
    (tmp_path / "h.csv").write_text('hash\n"0xa"\n"0xb"\n"0xc"\n')
    with pytest.raises(DataFileError) as ei:
        hashes.compare_snapshots_with_csv(str(tmp_path / "snap"), str(tmp_path / "h.csv"))
    assert "snapshot" in ei.value.reason


def test_header_only_csv_is_refused(tmp_path):
    _snapshots(tmp_path / "snap", ["0x1"])
    (tmp_path / "h.csv").write_text("hash\n")
    with pytest.raises(DataFileError) as ei:
        hashes.compare_snapshots_with_csv(str(tmp_path / "snap"), str(tmp_path / "h.csv"))
    assert ei.value.path.endswith("h.csv")


def test_live_compare_refuses_empty_snapshots_before_fetching(settings, make_ledger, tmp_path):
    (tmp_path / "snap").mkdir()
    fake, ledger = make_ledger(transactions=[tx(1, "0x1")])
    with pytest.raises(DataFileError):
        asyncio.run(hashes.compare_live_with_snapshots(settings, ledger, "0xacc", str(tmp_path / "snap")))
    assert fake.calls == []


def test_live_compare_refuses_empty_fetch(settings, make_ledger, tmp_path):
    _snapshots(tmp_path / "snap", ["0x1"])
    _, ledger = make_ledger(transactions=[])
    with pytest.raises(PaginationError):
        asyncio.run(hashes.compare_live_with_snapshots(settings, ledger, "0xacc", str(tmp_path / "snap")))


def test_collection_supply(settings, make_ledger):
    coll = CollectionData(collection_id="0xc", collection_name="UFC", total_minted=100)
    burned = [token(f"0xb{i}") for i in range(7)]
    fake, ledger = make_ledger(
        collections={("0xcreator", "UFC"): coll},
        owned={(BURN_ADDRESS, "0xc"): burned},
        assets={t.token_id: asset(t.token_id) for t in burned},
        fail_assets=["0xb3"],
        activities={"0xb0": [
            TokenActivity(token_id="0xb0", type="transfer", from_address="0xu", to_address=BURN_ADDRESS, transaction_version=9),
            TokenActivity(token_id="0xb0", type="mint", to_address="0xu"),
        ]},
    )
    res = asyncio.run(supply.collection_supply(settings, ledger, "0xcreator", "UFC", with_activity=True))
    d = res.to_dict()
    assert (d["totalSupply"], d["burnedTokens"], d["circulatingSupply"]) == (100, 7, 93)
    assert len(d["burnAddressTokens"]) == 7
    assert d["burnAddressTokens"][3]["error"] == "lookup failed for 0xb3"
    assert d["burnAddressTokens"][3]["digitalAssetData"] is None
    assert d["burnAddressTokens"][0]["burnActivity"] == [{"burnedBy": "0xu", "timestamp": None, "transactionVersion": 9}]
    assert fake.count("owned_tokens") == 4


def test_collection_supply_unknown_collection(settings, make_ledger):
    _, ledger = make_ledger()
    with pytest.raises(LedgerError):
        asyncio.run(supply.collection_supply(settings, ledger, "0xcreator", "Nope"))


def test_user_collection_tokens_keeps_failed_enrichment(settings, make_ledger):
    held = [token("0xt1"), token("0xt2"), token("0xt3")]
    _, ledger = make_ledger(owned={("0xu", "0xc"): held}, assets={"0xt1": asset("0xt1"), "0xt3": asset("0xt3")})
    listing = asyncio.run(assets.user_collection_tokens(settings, ledger, "0xu", "0xc"))
    assert [a["tokenId"] for a in listing.assets] == ["0xt1", "0xt2", "0xt3"]
    assert listing.failed == 1
    assert "not found" in listing.assets[1]["error"]
    assert listing.assets[0]["digitalAssetData"]["tokenStandard"] == "v2"


def test_wallet_assets_with_metadata(settings, make_ledger, tmp_path):
    from nftrecon.io.cache import METADATA_COLUMNS
    import pandas as pd

    csv = tmp_path / "meta.csv"
    row = ["0xc", "Knockout"] + [""] * 9 + ["ipfs://QmA", "", "", ""]
    pd.DataFrame([row], columns=METADATA_COLUMNS).to_csv(csv, index=False)
    held = [
        dataclasses.replace(token("0xt1"), uri="ipfs://QmA"),
        dataclasses.replace(token("0xt2"), uri="ipfs://QmB"),
    ]
    _, ledger = make_ledger(
        owned={("0xu", None): held},
        assets={"0xt1": asset("0xt1", serial="4"), "0xt2": asset("0xt2")},
    )
    res = asyncio.run(assets.wallet_assets_with_metadata(settings, ledger, "0xu", str(csv)))
    assert (res.match.matched, res.match.unmatched) == (1, 1)
    assert res.match.rows[0]["name"] == "Knockout"
    assert res.match.rows[0]["Serial Number"] == "4"


def test_scan_collections_isolates_failing_collection(settings, make_ledger):
    colls = [{"address": "0xc1", "name": "One"}, {"address": "0xc2", "name": "Two"}, {"address": "0xc3", "name": "Three"}]
    fake, ledger = make_ledger(
        owned={("0xu", "0xc1"): [token("0xa"), token("0xb"), token("0xc")], ("0xu", "0xc3"): []},
        assets={"0xa": asset("0xa"), "0xb": asset("0xb"), "0xc": asset("0xc")},
        fail_owned=[("0xu", "0xc2")],
    )
    scans = asyncio.run(assets.scan_collections(settings, ledger, "0xu", colls, batch_size=2))
    assert [s.name for s in scans] == ["One", "Two", "Three"]
    assert scans[0].total_assets == 3 and scans[0].error is None
    assert scans[1].error and scans[1].total_assets == 0 and not scans[1].complete
    assert scans[2].total_assets == 0 and scans[2].error is None
    with pytest.raises(ValueError):
        asyncio.run(assets.scan_collections(settings, ledger, "0xu", colls, batch_size=0))


def test_collection_serials(settings, make_ledger):
    toks = [token("0x1", serial="10"), token("0x2", serial="2"), token("0x3"), token("0x4", serial="7")]
    _, ledger = make_ledger(collection_tokens={"0xc": toks})
    d = asyncio.run(assets.collection_serials(settings, ledger, "0xc"))
    assert d["totalTokens"] == 4
    assert d["serials"] == ["2", "7", "10"]
    assert d["nonNumeric"] == ["Unknown"]


def test_check_serials_from_csv(settings, make_ledger, tmp_path):
    csv = tmp_path / "serials.csv"
    csv.write_text(
        "user_address,collection_name,collection_address,serial_number\n"
        "0xu1,One,0xc1,5\n0xu1,One,0xc1,6\n0xu1,One,0xc1,8\n0xu2,Two,0xc2,1\n"
    )
    fake, ledger = make_ledger(
        owned={("0xu1", "0xc1"): [token("0xt5", serial="005"), token("0xt8")]},
        assets={"0xt8": asset("0xt8", serial="8")},
        fail_owned=[("0xu2", "0xc2")],
    )
    run = asyncio.run(serials.check_serials(settings, ledger, str(csv)))
    assert [(r.serial_number, r.has_token, r.token_id) for r in run.results] == [
        (5, True, "0xt5"), (6, False, None), (8, True, "0xt8"), (1, False, None),
    ]
    assert run.results[3].error
    assert run.summary["found"] == 2 and run.summary["errors"] == 1
    # one listing per user/collection pair, not one per CSV row
    assert sum(1 for c in fake.calls if c[0] == "owned_tokens" and c[1] == "0xu1" and c[3] == 0) == 1


def test_check_serials_failed_lookup_is_unknown_not_missing(settings, make_ledger, tmp_path):
    csv = tmp_path / "serials.csv"
    csv.write_text(
        "user_address,collection_name,collection_address,serial_number\n"
        "0xu1,One,0xc1,5\n0xu1,One,0xc1,8\n"
    )
    _, ledger = make_ledger(
        owned={("0xu1", "0xc1"): [token("0xt5", serial="5"), token("0xt8")]},
        fail_assets=["0xt8"],
    )
    run = asyncio.run(serials.check_serials(settings, ledger, str(csv)))
    assert run.results[0].has_token and run.results[0].token_id == "0xt5"
    assert run.results[1].has_token is False
    assert "0xt8" in run.results[1].error
    assert (run.summary["found"], run.summary["not_found"], run.summary["errors"]) == (1, 0, 1)


def test_group_transfer_files(tmp_path):
    src = tmp_path / "TokensToReturn"
    src.mkdir()
    (src / "a.json").write_text(json.dumps([{"tokenId": "t1", "to": "0xa"}, {"tokenId": "t2", "to": "0xb"}]))
    (src / "b.json").write_text(json.dumps([{"tokenId": "t1", "to": "0xa"}, {"tokenId": "t3", "to": "0xa"}]))
    res = transfers.group_transfer_files(str(src))
    assert res["totalTransfers"] == 4
    assert res["addresses"] == {"0xa": ["t1", "t3"], "0xb": ["t2"]}
    assert res["top"][0] == {"address": "0xa", "tokenCount": 2}
    paths = transfers.write_grouped(res, str(tmp_path / "out"), ts=1)
    assert [p.rsplit("/", 1)[-1] for p in paths] == ["address-tokens-grouped-1.json", "address-summary-1.json"]


def _minting_tx(h):
    return TransactionRecord(
        version=10,
        hash=h,
        type="user_transaction",
        success=True,
        events=[
            {"type": "0x4::collection::Mint", "data": {"token": "0xt1", "collection": "0xc"}},
            {"type": "0x1::object::TransferEvent", "data": {"object": "0xt1", "to": "0xb"}},
            {"type": "0x1::coin::WithdrawEvent", "data": {"amount": "5"}},
        ],
    )


def test_analyze_transaction_direct(make_ledger):
    fake, ledger = make_ledger(committed={"0xh": _minting_tx("0xh")})
    res = asyncio.run(transaction.analyze_transaction(ledger, "0xh"))
    assert res.strategy == "direct"
    assert [t.token_id for t in res.tokens] == ["0xt1"]
    assert [(t.token_id, t.to) for t in res.transfers] == [("0xt1", "0xb")]
    d = res.to_dict()
    assert d["totalTokensFound"] == 1 and len(d["allEvents"]) == 3
    assert fake.count("wait_for_transaction") == 0


def test_analyze_transaction_falls_back_to_wait(make_ledger):
    _, ledger = make_ledger(pending={"0xh": _minting_tx("0xh")})
    res = asyncio.run(transaction.analyze_transaction(ledger, "0xh"))
    assert res.strategy == "wait"
    assert len(res.attempts) == 1 and res.attempts[0].startswith("direct:")


def test_analyze_transaction_all_strategies_fail(make_ledger):
    _, ledger = make_ledger()
    with pytest.raises(LedgerError) as ei:
        asyncio.run(transaction.analyze_transaction(ledger, "0xh"))
    assert [a.split(":")[0] for a in ei.value.attempts] == ["direct", "wait"]

from nftrecon.reconcile import (
    Holding,
    SerialRequest,
    check_serials,
    group_transfers_by_address,
    ipfs_hash,
    match_metadata,
    sorted_serials,
    summarize_serial_checks,
    top_addresses,
)


def test_ipfs_hash_prefixes():
    assert ipfs_hash("ipfs://QmAbc") == "QmAbc"
    assert ipfs_hash("https://ipfs.io/ipfs/QmAbc") == "QmAbc"
    assert ipfs_hash("https://gallery.mypinata.cloud/ipfs/QmAbc/meta.json") == "QmAbc/meta.json"
    assert ipfs_hash("https://example.com/QmAbc") is None
    assert ipfs_hash("") is None
    assert ipfs_hash(None) is None


def test_sorted_serials_splits_non_numeric():
    numeric, other = sorted_serials(["10", "2", "Unknown", " 7 ", None, ""])
    assert numeric == ["2", "7", "10"]
    assert other == ["Unknown"]


def test_check_serials_found_missing_error():
    reqs = [
        SerialRequest("0xu1", "Coll A", "0xca", 5),
        SerialRequest("0xu1", "Coll A", "0xca", 6),
        SerialRequest("0xu2", "Coll B", "0xcb", 1),
    ]
    holdings = {
        ("0xu1", "0xca"): Holding(serials={"5": "0xt5"}),
        ("0xu2", "0xcb"): Holding(error="indexer unavailable"),
    }
    res = check_serials(reqs, holdings)
    assert [(r.has_token, r.token_id, r.error) for r in res] == [
        (True, "0xt5", None),
        (False, None, None),
        (False, None, "indexer unavailable"),
    ]
    assert "token_id" not in res[1].to_dict()

    summary = summarize_serial_checks(res)
    assert (summary["total"], summary["found"], summary["not_found"], summary["errors"]) == (3, 1, 1, 1)
    assert summary["by_user"]["0xu1"]["Coll A"]["found"] == [5]
    assert summary["by_user"]["0xu1"]["Coll A"]["missing"] == [6]
    assert summary["by_user"]["0xu2"]["Coll B"]["errors"] == [1]


def test_unfetched_pair_is_an_error_not_a_miss():
    res = check_serials([SerialRequest("0xu", "C", "0xc", 1)], {})
    assert res[0].error


def test_unreadable_serials_turn_misses_into_errors():
    holdings = {("0xu", "0xc"): Holding(serials={"1": "0xt1"}, unresolved=["0xt9"])}
    res = check_serials([SerialRequest("0xu", "C", "0xc", 1), SerialRequest("0xu", "C", "0xc", 9)], holdings)
    assert (res[0].has_token, res[0].error) == (True, None)
    assert res[1].has_token is False and "0xt9" in res[1].error
    assert summarize_serial_checks(res)["not_found"] == 0


def test_match_metadata_by_uri_hash():
    assets = [
        {"tokenId": "0x1", "tokenUri": "ipfs://QmA", "digitalAssetData": {"tokenProperties": {"Serial Number": "3"}}},
        {"tokenId": "0x2", "tokenUri": "https://ipfs.io/ipfs/QmZ"},
        {"tokenId": "0x3", "tokenUri": None},
    ]
    meta = {"QmA": {"name": "Knockout", "tier": "Gold"}}
    m = match_metadata(assets, meta)
    assert (m.matched, m.unmatched) == (1, 2)
    assert m.rows[0] == {"name": "Knockout", "tier": "Gold", "Serial Number": "3", "tokenId": "0x1", "_matched": True}
    assert m.rows[1]["_matched"] is False
    assert m.rows[1]["tokenId"] == "0x2"


def test_group_transfers_dedupes_in_first_seen_order():
    transfers = [
        {"tokenId": "t1", "to": "0xa"},
        {"tokenId": "t2", "to": "0xb"},
        {"tokenId": "t1", "to": "0xa"},
        {"tokenId": "t3", "to": "0xa"},
        {"tokenId": "t4"},
    ]
    grouped = group_transfers_by_address(transfers)
    assert list(grouped) == ["0xa", "0xb"]
    assert grouped["0xa"] == ["t1", "t3"]
    assert top_addresses(grouped, 1) == [("0xa", 2)]

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from nftrecon.logging import get_logger

log = get_logger("nftrecon.reconcile")

_GATEWAY_RE = re.compile(r"^https?://[^/]+/ipfs/(?P<cid>.+)$")


def ipfs_hash(uri: Optional[str]) -> Optional[str]:
    """ipfs://<cid>, https://<gateway>/ipfs/<cid> -> <cid>; anything else -> None."""
    if not uri:
        return None
    uri = uri.strip()
    if uri.startswith("ipfs://"):
        cid = uri[len("ipfs://"):]
        if cid.startswith("ipfs/"):
            cid = cid[len("ipfs/"):]
        return cid or None
    m = _GATEWAY_RE.match(uri)
    return m.group("cid") if m else None


def sorted_serials(values: Iterable[Any]) -> Tuple[List[str], List[str]]:
    """Split serial numbers into (numeric sorted ascending, non-numeric in input order)."""
    numeric: List[Tuple[int, str]] = []
    other: List[str] = []
    for v in values:
        s = "" if v is None else str(v).strip()
        if s.isdigit():
            numeric.append((int(s), s))
        elif s:
            other.append(s)
    numeric.sort()
    return [s for _, s in numeric], other


# ----------------------------- serial checks -----------------------------

@dataclass(frozen=True)
class SerialRequest:
    user_address: str
    collection_name: str
    collection_address: str
    serial_number: int


@dataclass(frozen=True)
class Holding:
    """What one user holds in one collection: serial -> token id, or why it is unknown."""

    serials: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    # held tokens whose serial could not be read; a miss is then unknown, not missing
    unresolved: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SerialCheckResult:
    user_address: str
    collection_name: str
    collection_address: str
    serial_number: int
    has_token: bool
    token_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def check_serials(
    requests: Sequence[SerialRequest], holdings: Mapping[Tuple[str, str], Holding]
) -> List[SerialCheckResult]:
    out: List[SerialCheckResult] = []
    for req in requests:
        h = holdings.get((req.user_address, req.collection_address))
        base = dict(
            user_address=req.user_address,
            collection_name=req.collection_name,
            collection_address=req.collection_address,
            serial_number=req.serial_number,
        )
        if h is None:
            out.append(SerialCheckResult(has_token=False, error="holdings were not fetched", **base))
        elif h.error:
            out.append(SerialCheckResult(has_token=False, error=h.error, **base))
        else:
            token_id = h.serials.get(str(req.serial_number))
            if token_id is None and h.unresolved:
                err = f"serial unknown for {len(h.unresolved)} held token(s): {', '.join(h.unresolved)}"
                out.append(SerialCheckResult(has_token=False, error=err, **base))
            else:
                out.append(SerialCheckResult(has_token=token_id is not None, token_id=token_id, **base))
    return out


def summarize_serial_checks(results: Sequence[SerialCheckResult]) -> Dict[str, Any]:
    """Totals plus user -> collection -> found / missing / error serial lists."""
    grouped: "OrderedDict[str, OrderedDict[str, Dict[str, Any]]]" = OrderedDict()
    for r in results:
        coll = grouped.setdefault(r.user_address, OrderedDict()).setdefault(
            r.collection_name,
            {"collection_address": r.collection_address, "found": [], "missing": [], "errors": []},
        )
        if r.error:
            coll["errors"].append(r.serial_number)
        elif r.has_token:
            coll["found"].append(r.serial_number)
        else:
            coll["missing"].append(r.serial_number)
    for colls in grouped.values():
        for c in colls.values():
            for k in ("found", "missing", "errors"):
                c[k].sort()
    return {
        "total": len(results),
        "found": sum(1 for r in results if r.has_token),
        "not_found": sum(1 for r in results if not r.has_token and not r.error),
        "errors": sum(1 for r in results if r.error),
        "by_user": {u: dict(c) for u, c in grouped.items()},
    }


# ----------------------------- metadata join -----------------------------

@dataclass
class MetadataMatch:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    matched: int = 0
    unmatched: int = 0


def match_metadata(assets: Sequence[Mapping[str, Any]], metadata_by_hash: Mapping[str, Mapping[str, Any]]) -> MetadataMatch:
    """Join assets to metadata rows by the IPFS hash of `tokenUri`.

    Matched rows are metadata overlaid with the asset's on-chain
    `digitalAssetData.tokenProperties`;
    unmatched rows are the asset itself. Both carry a `_matched` flag.
    """
    result = MetadataMatch()
    for asset in assets:
        cid = ipfs_hash(asset.get("tokenUri"))
        meta = metadata_by_hash.get(cid) if cid else None
        if meta is not None:
            props = (asset.get("digitalAssetData") or {}).get("tokenProperties") or {}
            row = {**dict(meta), **dict(props), "tokenId": asset.get("tokenId"), "_matched": True}
            result.matched += 1
        else:
            row = {**dict(asset), "_matched": False}
            result.unmatched += 1
        result.rows.append(row)
    log.info("matched %d of %d assets with metadata", result.matched, len(assets))
    return result


# ----------------------------- transfers -----------------------------

def group_transfers_by_address(transfers: Iterable[Mapping[str, Any]]) -> "OrderedDict[str, List[str]]":
    """address -> distinct token ids, both in first-seen order."""
    out: "OrderedDict[str, List[str]]" = OrderedDict()
    seen: Dict[str, set] = {}
    for t in transfers:
        address, token_id = t.get("to"), t.get("tokenId")
        if not address or not token_id:
            continue
        ids = out.setdefault(address, [])
        s = seen.setdefault(address, set())
        if token_id not in s:
            s.add(token_id)
            ids.append(token_id)
    return out


def top_addresses(grouped: Mapping[str, List[str]], n: int = 10) -> List[Tuple[str, int]]:
    ranked = sorted(((a, len(ids)) for a, ids in grouped.items()), key=lambda x: x[1], reverse=True)
    return ranked[: max(0, int(n))]

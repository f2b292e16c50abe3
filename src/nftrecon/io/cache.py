"""Readers for the local files the reconciliations run against.

Missing files and malformed content raise DataFileError instead of reading as
"no records": an empty snapshot set would otherwise reconcile as everything
missing.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import pandas as pd

from nftrecon.errors import DataFileError
from nftrecon.logging import get_logger
from nftrecon.reconcile.matching import SerialRequest, ipfs_hash

log = get_logger("nftrecon.io")

PathLike = Union[str, Path]

SNAPSHOT_PATTERN = "mint-for-page-*.json"

SERIAL_COLUMNS = ["user_address", "collection_name", "collection_address", "serial_number"]

METADATA_COLUMNS = [
    "collection_id",
    "name",
    "description",
    "event",
    "tier",
    "series",
    "winMethod",
    "weightClass",
    "athleteName",
    "opponentName",
    "editionSize",
    "newMetadataIpfsHash",
    "video",
    "assetPreviewUri",
    "additionalImages",
]


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise DataFileError(path, "file does not exist") from e
    except json.JSONDecodeError as e:
        raise DataFileError(path, f"invalid JSON: {e}") from e


def _read_csv(path: Path, **kwargs: Any) -> pd.DataFrame:
    if not path.is_file():
        raise DataFileError(path, "file does not exist")
    try:
        return pd.read_csv(path, dtype=str, keep_default_na=False, **kwargs)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataFileError(path, f"unreadable CSV: {e}") from e


def _require_columns(path: Path, df: pd.DataFrame, columns: Sequence[str]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataFileError(path, f"missing required columns: {', '.join(missing)}")


# ----------------------------- snapshots -----------------------------

def snapshot_files(directory: PathLike) -> List[Path]:
    d = Path(directory)
    if not d.is_dir():
        raise DataFileError(d, "snapshot directory does not exist")
    return sorted(d.glob(SNAPSHOT_PATTERN))


def load_snapshot_hashes(directory: PathLike) -> List[str]:
    """Distinct `hash` values across every mint-for page file, in file order."""
    files = snapshot_files(directory)
    seen = set()
    hashes: List[str] = []
    for path in files:
        rows = _read_json(path)
        if not isinstance(rows, list):
            raise DataFileError(path, "expected a JSON array of transactions")
        for row in rows:
            h = row.get("hash") if isinstance(row, dict) else None
            if h and h not in seen:
                seen.add(h)
                hashes.append(h)
        log.debug("loaded snapshot file", extra={"file": path.name, "rows": len(rows)})
    log.info("loaded %d snapshot hashes from %d files", len(hashes), len(files))
    return hashes


# ----------------------------- CSV -----------------------------

def load_csv_hashes(path: PathLike) -> List[str]:
    """First column of a hash export; quotes stripped, only `0x` values kept."""
    p = Path(path)
    df = _read_csv(p)
    if df.empty:
        return []
    seen = set()
    out: List[str] = []
    for v in df.iloc[:, 0]:
        h = str(v).strip().replace('"', "")
        if h.startswith("0x") and h not in seen:
            seen.add(h)
            out.append(h)
    log.info("loaded %d hashes from %s", len(out), p.name)
    return out


def load_serials_to_check(path: PathLike) -> List[SerialRequest]:
    p = Path(path)
    df = _read_csv(p)
    if df.empty:
        return []
    _require_columns(p, df, SERIAL_COLUMNS)
    out: List[SerialRequest] = []
    for i, row in enumerate(df[SERIAL_COLUMNS].itertuples(index=False), start=2):
        serial = str(row.serial_number).strip()
        try:
            number = int(serial)
        except ValueError as e:
            raise DataFileError(p, f"line {i}: serial_number {serial!r} is not an integer") from e
        out.append(
            SerialRequest(
                user_address=str(row.user_address).strip(),
                collection_name=str(row.collection_name).strip(),
                collection_address=str(row.collection_address).strip(),
                serial_number=number,
            )
        )
    return out


def load_metadata_csv(path: PathLike) -> Dict[str, Dict[str, str]]:
    """IPFS hash of `newMetadataIpfsHash` -> metadata row. Rows without a hash are skipped."""
    p = Path(path)
    df = _read_csv(p)
    if df.empty:
        return {}
    if len(df.columns) < len(METADATA_COLUMNS):
        raise DataFileError(p, f"expected {len(METADATA_COLUMNS)} columns, found {len(df.columns)}")
    df = df.iloc[:, : len(METADATA_COLUMNS)]
    df.columns = METADATA_COLUMNS
    out: Dict[str, Dict[str, str]] = {}
    for row in df.to_dict(orient="records"):
        row = {k: str(v).replace('"', "") for k, v in row.items()}
        cid = ipfs_hash(row["newMetadataIpfsHash"])
        if cid:
            out[cid] = row
    log.info("loaded %d metadata rows from %s", len(out), p.name)
    return out


# ----------------------------- collections -----------------------------

def load_collections_json(path: PathLike) -> List[Dict[str, Any]]:
    p = Path(path)
    data = _read_json(p)
    if not isinstance(data, list):
        raise DataFileError(p, "collections file must contain an array")
    for i, item in enumerate(data):
        if not isinstance(item, dict) or not item.get("address") or not item.get("name"):
            raise DataFileError(p, f"collection at index {i} missing required fields (address, name)")
    return data


def load_transfer_files(directory: PathLike) -> List[Dict[str, Any]]:
    """Concatenate every `*.json` transfer list in a directory (sorted by name)."""
    d = Path(directory)
    if not d.is_dir():
        raise DataFileError(d, "transfer directory does not exist")
    out: List[Dict[str, Any]] = []
    for path in sorted(d.glob("*.json")):
        rows = _read_json(path)
        if not isinstance(rows, list):
            raise DataFileError(path, "expected a JSON array of transfers")
        out.extend(r for r in rows if isinstance(r, dict))
    return out

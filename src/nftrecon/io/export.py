from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

import pandas as pd

from nftrecon.logging import get_logger

log = get_logger("nftrecon.io")

PathLike = Union[str, Path]


def _ensure_dir(p: Path) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)


def epoch_ms() -> int:
    return int(time.time() * 1000)


def output_name(prefix: str, subject: Optional[str] = None, *, ts: Optional[int] = None, ext: str = "json") -> str:
    """`<prefix>-<first 10 chars of subject>-<epoch ms>.<ext>`; subject part dropped when empty."""
    parts = [prefix]
    if subject:
        parts.append(subject[:10])
    parts.append(str(ts if ts is not None else epoch_ms()))
    return "-".join(parts) + "." + ext


def write_json(path: PathLike, data: Any) -> Path:
    p = Path(path)
    _ensure_dir(p)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2, default=str)
    log.info("wrote %s", p)
    return p


def write_csv(path: PathLike, rows: Iterable[Any], columns: Optional[Sequence[str]] = None) -> Path:
    p = Path(path)
    _ensure_dir(p)
    rows_l: List[Any] = list(rows)
    df = pd.DataFrame(rows_l, columns=list(columns) if columns else None)
    df.to_csv(p, index=False)
    log.info("wrote %s (%d rows)", p, len(df))
    return p

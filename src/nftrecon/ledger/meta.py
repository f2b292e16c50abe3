"""Fetch metadata.

Kept beside the records so callers can report paging details (pages, caps,
completeness) without changing what fetch functions return.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class FetchMeta:
    subject: str = ""
    kind: str = ""          # transactions/owned_tokens/collection_tokens
    strategy: str = ""      # offset/version
    page_size: int = 0
    pages: int = 0
    records: int = 0
    cap_reason: str = ""    # "", "short_page", "empty", "max_records"
    complete: bool = False
    elapsed_s: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

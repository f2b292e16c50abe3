"""Set reconciliation and supply accounting.

Callers must tell "fetch failed" apart from "fetch returned nothing" before
reconciling: an empty side is taken at face value, so a failed upstream fetch
fed in as an empty set would read as everything missing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from nftrecon.logging import get_logger

log = get_logger("nftrecon.reconcile")

ORDERS = ("lexical", "numeric", None)


def _numeric_key(v: str) -> Tuple[int, float, str]:
    try:
        return (0, float(v), v)
    except (TypeError, ValueError):
        return (1, 0.0, str(v))


def _ordered(values: Iterable[str], order: Optional[str]) -> List[str]:
    if order == "numeric":
        return sorted(values, key=_numeric_key)
    if order == "lexical":
        return sorted(values)
    return list(values)


@dataclass(frozen=True)
class ReconciliationReport:
    only_in_first: List[str] = field(default_factory=list)
    only_in_second: List[str] = field(default_factory=list)
    first_count: int = 0
    second_count: int = 0
    first_label: str = "first"
    second_label: str = "second"

    @property
    def in_sync(self) -> bool:
        return not self.only_in_first and not self.only_in_second

    @property
    def common_count(self) -> int:
        return self.first_count - len(self.only_in_first)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                f"total_{self.first_label}": self.first_count,
                f"total_{self.second_label}": self.second_count,
                f"only_in_{self.first_label}": len(self.only_in_first),
                f"only_in_{self.second_label}": len(self.only_in_second),
                "common": self.common_count,
            },
            f"only_in_{self.first_label}": list(self.only_in_first),
            f"only_in_{self.second_label}": list(self.only_in_second),
        }

    def status_rows(self) -> List[Tuple[str, str]]:
        """(identifier, status) rows for the companion CSV export."""
        rows = [(v, f"missing_from_{self.second_label}") for v in self.only_in_first]
        rows += [(v, f"missing_from_{self.first_label}") for v in self.only_in_second]
        return rows


def reconcile(
    first: Iterable[str],
    second: Iterable[str],
    *,
    order: Optional[str] = "lexical",
    first_label: str = "first",
    second_label: str = "second",
) -> ReconciliationReport:
    """Symmetric difference of two identifier collections (duplicates collapse)."""
    if order not in ORDERS:
        raise ValueError(f"order must be one of {ORDERS}")
    a = {str(x) for x in first}
    b = {str(x) for x in second}
    report = ReconciliationReport(
        only_in_first=_ordered(a - b, order),
        only_in_second=_ordered(b - a, order),
        first_count=len(a),
        second_count=len(b),
        first_label=first_label,
        second_label=second_label,
    )
    log.info(
        "reconciled %d vs %d identifiers", len(a), len(b),
        extra={"only_in_first": len(report.only_in_first), "only_in_second": len(report.only_in_second)},
    )
    return report


# ----------------------------- supply -----------------------------

@dataclass(frozen=True)
class SupplyReport:
    total_supply: int
    burned_tokens: int
    circulating_supply: int
    burn_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSupply": self.total_supply,
            "burnedTokens": self.burned_tokens,
            "circulatingSupply": self.circulating_supply,
            "burnPercentage": round(self.burn_percentage, 2),
        }


def circulating_supply(total_minted: int, burned: int) -> int:
    """total minted - tokens at the burn address; may be negative on inconsistent upstream data."""
    return int(total_minted) - int(burned)


def supply_report(total_minted: int, burn_address_tokens: Sequence[Any]) -> SupplyReport:
    ids = []
    seen = set()
    for t in burn_address_tokens:
        key = getattr(t, "key", t)
        if key not in seen:
            seen.add(key)
            ids.append(key)
    burned = len(ids)
    circ = circulating_supply(total_minted, burned)
    if circ < 0:
        log.warning(
            "burn address holds more tokens than were minted",
            extra={"total_minted": total_minted, "burned": burned},
        )
    pct = (burned / total_minted * 100.0) if total_minted > 0 else 0.0
    return SupplyReport(total_supply=int(total_minted), burned_tokens=burned, circulating_supply=circ, burn_percentage=pct)

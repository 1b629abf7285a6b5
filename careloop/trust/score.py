from __future__ import annotations

"""
Reduce any set of verifiable items into a trust report.

Design intent:
- One aggregation rule for SOAP, diary, report-term, and lab evidence.
- Count only an explicit `verified is True`; missing or falsy means unverified.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class TrustReport:
    verified: int
    unverified: int
    score_pct: int

    @property
    def total(self) -> int:
        return self.verified + self.unverified

    def to_dict(self) -> dict[str, Any]:
        return {"score_pct": self.score_pct, "verified": self.verified, "unverified": self.unverified}


def _is_verified(item: Any) -> bool:
    if isinstance(item, Mapping):
        return item.get("verified") is True
    return getattr(item, "verified", None) is True


def _round_half_up_pct(part: int, total: int) -> int:
    # Integer arithmetic: half-up rounding without float error or banker's rounding.
    return (200 * part + total) // (2 * total)


def compute_trust(items: Iterable[Any]) -> TrustReport:
    materialized = list(items)
    total = len(materialized)
    verified = sum(1 for item in materialized if _is_verified(item))
    score_pct = _round_half_up_pct(verified, total) if total else 0
    return TrustReport(verified=verified, unverified=total - verified, score_pct=score_pct)

from __future__ import annotations

"""
Extract structured lab values from unstructured report text.

Each extracted value must include:
- the verbatim line as evidence (with character offsets)
- a numeric value
- a flag derived only from (value, ref_low, ref_high)

Design intent:
- Parse tabular "name: value unit (reference range)" lines, skip narrative.
- Prefer explicit ranges printed in the report over the typical-adult table.
- Keep pattern precedence fixed: the first declared pattern that matches wins.
"""

import re
from dataclasses import dataclass
from typing import Any, Literal, Optional

from careloop.evidence.models import TextSpan

from .reference import is_known_lab, is_measurement_unit, normalize_lab_name, typical_range

LabFlag = Literal["low", "normal", "high", "unknown"]
RangeSource = Literal["explicit", "typical", "none"]

MAX_LAB_LINE_CHARS = 180
DEFAULT_MAX_RESULTS = 60


@dataclass(frozen=True)
class LabValue:
    name: str
    normalized_name: str
    value: float
    unit: Optional[str]
    ref_low: Optional[float]
    ref_high: Optional[float]
    flag: LabFlag
    evidence: TextSpan
    qualifier: Optional[str] = None
    range_source: RangeSource = "none"

    @property
    def verified(self) -> bool:
        # A lab value only exists if its source line was located.
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "normalized_name": self.normalized_name,
            "value": self.value,
            "unit": self.unit,
            "ref_low": self.ref_low,
            "ref_high": self.ref_high,
            "flag": self.flag,
            "qualifier": self.qualifier,
            "range_source": self.range_source,
            "evidence": self.evidence.to_dict(),
            "verified": self.verified,
        }


# Thousands grouping ("250,000") is tried before a comma decimal ("12,4").
_THOUSANDS = r"[1-9]\d{0,2}(?:,\d{3})+(?!\d)(?:\.\d+)?"
_NUM = r"(?:" + _THOUSANDS + r"|\d+(?:[.,]\d+)?)"
_THOUSANDS_RE = re.compile(_THOUSANDS)
_RANGE_SEP = r"\s*(?:-|–|—|to)\s*"
_KEYWORD = r"(?:ref(?:erence)?\.?|normal|range)(?:\s+range)?"
_UNIT = (
    r"(?!(?:ref|reference|range|normal)\b)"
    r"(?:[A-Za-zµμ%×][A-Za-z0-9µμ%/^.*×\-]*|10\^\d+/[A-Za-z]+|/[A-Za-zµμ][A-Za-z0-9µμ/^.]*)"
)
_LINE_TAIL = (
    r"(?P<qualifier>[<>])?\s*"
    r"(?P<value>" + _NUM + r")"
    r"(?:\s*(?P<unit>" + _UNIT + r"))?"
    r"(?P<rest>.*)$"
)

# Declared order is precedence order.
_LINE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "delimited",
        re.compile(
            r"^\s*(?:[-*•]\s*)?"
            r"(?P<name>[A-Za-z][A-Za-z0-9 .,/()%+'\-]{0,48}?)"
            r"\s*[:=]\s*" + _LINE_TAIL,
        ),
    ),
    (
        "spaced",
        re.compile(
            r"^\s*(?:[-*•]\s*)?"
            r"(?P<name>[A-Za-z][A-Za-z0-9 .'\-]{0,48}?)"
            r"\s+" + _LINE_TAIL,
        ),
    ),
)

_RANGE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "parenthesized",
        re.compile(
            r"\(\s*(?:" + _KEYWORD + r")?\s*[:=]?\s*"
            r"(?P<low>" + _NUM + r")" + _RANGE_SEP + r"(?P<high>" + _NUM + r")[^)]*\)",
            re.IGNORECASE,
        ),
    ),
    (
        "keyword",
        re.compile(
            r"\b" + _KEYWORD + r"\s*[:=]?\s*"
            r"(?P<low>" + _NUM + r")" + _RANGE_SEP + r"(?P<high>" + _NUM + r")",
            re.IGNORECASE,
        ),
    ),
    (
        "one_sided",
        re.compile(
            r"(?:\(\s*(?:" + _KEYWORD + r")?|\b" + _KEYWORD + r")\s*[:=]?\s*"
            r"(?P<op><=?|>=?|≤|≥)\s*(?P<bound>" + _NUM + r")",
            re.IGNORECASE,
        ),
    ),
)


def compute_flag(value: float, ref_low: Optional[float], ref_high: Optional[float]) -> LabFlag:
    if ref_low is None and ref_high is None:
        return "unknown"
    if ref_low is not None and value < ref_low:
        return "low"
    if ref_high is not None and value > ref_high:
        return "high"
    return "normal"


def extract_lab_values(text: str, *, max_results: int = DEFAULT_MAX_RESULTS) -> list[LabValue]:
    source = str(text or "")
    labs: list[LabValue] = []
    seen: set[tuple[str, Optional[str]]] = set()

    offset = 0
    for raw_line in source.splitlines(keepends=True):
        line = raw_line.rstrip("\r\n")
        line_start = offset
        offset += len(raw_line)
        if not line.strip() or len(line) > MAX_LAB_LINE_CHARS:
            continue

        lab = parse_lab_line(line, line_start=line_start)
        if lab is None:
            continue
        key = (lab.normalized_name, lab.unit)
        if key in seen:
            continue
        seen.add(key)
        labs.append(lab)
        if len(labs) >= max_results:
            break
    return labs


def parse_lab_line(line: str, *, line_start: int = 0) -> LabValue | None:
    for pattern_name, pattern in _LINE_PATTERNS:
        match = pattern.match(line)
        if match is None:
            continue
        name = match.group("name").strip(" .,-")
        if not name:
            continue
        normalized = normalize_lab_name(name)
        unit = _clean_unit(match.group("unit"))
        explicit = parse_reference_range(match.group("rest") or "")
        if not _accept_line(pattern_name, normalized=normalized, unit=unit, has_range=explicit is not None):
            continue

        value = _parse_number(match.group("value"))
        if explicit is not None:
            ref_low, ref_high = explicit
            range_source: RangeSource = "explicit"
        else:
            typical = typical_range(normalized, unit)
            if typical is not None:
                ref_low, ref_high = typical.low, typical.high
                range_source = "typical"
            else:
                ref_low, ref_high = None, None
                range_source = "none"

        return LabValue(
            name=name,
            normalized_name=normalized,
            value=value,
            unit=unit,
            ref_low=ref_low,
            ref_high=ref_high,
            flag=compute_flag(value, ref_low, ref_high),
            evidence=TextSpan(start=line_start, end=line_start + len(line), snippet=line),
            qualifier=match.group("qualifier"),
            range_source=range_source,
        )
    return None


def parse_reference_range(rest: str) -> tuple[Optional[float], Optional[float]] | None:
    for pattern_name, pattern in _RANGE_PATTERNS:
        match = pattern.search(rest)
        if match is None:
            continue
        if pattern_name == "one_sided":
            bound = _parse_number(match.group("bound"))
            if match.group("op") in {"<", "<=", "≤"}:
                return None, bound
            return bound, None
        low = _parse_number(match.group("low"))
        high = _parse_number(match.group("high"))
        if low > high:
            low, high = high, low
        return low, high
    return None


def _accept_line(pattern_name: str, *, normalized: str, unit: Optional[str], has_range: bool) -> bool:
    if has_range or is_known_lab(normalized):
        return True
    # "Name: 12 mg/dL" is tabular; "Name 12" or "Age: 45 years" is narrative.
    return pattern_name == "delimited" and is_measurement_unit(unit)


def _clean_unit(raw: Optional[str]) -> Optional[str]:
    unit = str(raw or "").strip().rstrip(".-")
    return unit or None


def _parse_number(raw: str) -> float:
    text = str(raw)
    if _THOUSANDS_RE.fullmatch(text):
        return float(text.replace(",", ""))
    return float(text.replace(",", "."))

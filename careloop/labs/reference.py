from __future__ import annotations

"""
Lab name aliases and typical adult reference ranges.

Design intent:
- Collapse common synonyms onto one normalized analyte key.
- Provide demo-grade, non-personalized ranges for lines that carry none.

The ranges below are illustrative "typical adult" values. They are not
clinical ground truth and must never be presented as personalized.
"""

import re
from dataclasses import dataclass
from typing import Optional

_ALIASES: dict[str, tuple[str, ...]] = {
    "hba1c": (
        "hba1c",
        "hb a1c",
        "a1c",
        "hemoglobin a1c",
        "haemoglobin a1c",
        "glycated hemoglobin",
        "glycated haemoglobin",
        "glycosylated hemoglobin",
    ),
    "ldl": ("ldl", "ldl c", "ldl cholesterol", "low density lipoprotein", "ldl chol"),
    "hdl": ("hdl", "hdl c", "hdl cholesterol", "high density lipoprotein", "hdl chol"),
    "crp": ("crp", "c reactive protein", "creactive protein"),
    "tsh": ("tsh", "thyroid stimulating hormone", "thyrotropin"),
    "alt": ("alt", "alanine aminotransferase", "alanine transaminase", "sgpt", "alt sgpt"),
    "ast": ("ast", "aspartate aminotransferase", "aspartate transaminase", "sgot", "ast sgot"),
    "creatinine": ("creatinine", "creat", "serum creatinine", "cr"),
    "glucose": ("glucose", "fasting glucose", "blood glucose", "fasting blood glucose", "glu", "fbg"),
    "hemoglobin": ("hemoglobin", "haemoglobin", "hgb", "hb"),
    "wbc": (
        "wbc",
        "white blood cells",
        "white blood cell count",
        "white cell count",
        "leukocytes",
        "leucocytes",
    ),
    "platelets": ("platelets", "platelet count", "plt"),
    "triglycerides": ("triglycerides", "triglyceride", "tg", "trig"),
    "total_cholesterol": ("total cholesterol", "cholesterol total", "cholesterol", "chol", "tc"),
}

ALIAS_TABLE: dict[str, str] = {
    alias: normalized for normalized, aliases in _ALIASES.items() for alias in aliases
}

_NAME_CLEAN_RE = re.compile(r"[^a-z0-9]+")
_PAREN_RE = re.compile(r"\(([^)]*)\)")

# Bare unit tokens accepted for analytes outside the alias table.
MEASUREMENT_UNITS: frozenset[str] = frozenset(
    {
        "g", "mg", "ug", "ng", "pg", "kg",
        "mmol", "umol", "nmol", "pmol", "mol",
        "l", "dl", "ml", "ul", "fl",
        "iu", "miu", "u", "meq", "mmhg", "bpm", "cells", "copies",
    }
)


@dataclass(frozen=True)
class ReferenceRange:
    unit: str
    low: Optional[float]
    high: Optional[float]


# Keyed by normalized name. Unit-less lines only get a range when the analyte has a single entry.
TYPICAL_ADULT_RANGES: dict[str, tuple[ReferenceRange, ...]] = {
    "hba1c": (ReferenceRange("%", 4.0, 5.6), ReferenceRange("mmol/mol", 20.0, 38.0)),
    "ldl": (ReferenceRange("mmol/L", None, 3.0), ReferenceRange("mg/dL", None, 100.0)),
    "hdl": (ReferenceRange("mmol/L", 1.0, None), ReferenceRange("mg/dL", 40.0, None)),
    "crp": (ReferenceRange("mg/L", None, 5.0), ReferenceRange("mg/dL", None, 0.5)),
    "tsh": (ReferenceRange("mIU/L", 0.4, 4.0), ReferenceRange("uIU/mL", 0.4, 4.0)),
    "alt": (ReferenceRange("U/L", 7.0, 56.0),),
    "ast": (ReferenceRange("U/L", 10.0, 40.0),),
    "creatinine": (ReferenceRange("umol/L", 60.0, 110.0), ReferenceRange("mg/dL", 0.6, 1.3)),
    "glucose": (ReferenceRange("mmol/L", 3.9, 5.5), ReferenceRange("mg/dL", 70.0, 99.0)),
    "hemoglobin": (ReferenceRange("g/L", 120.0, 175.0), ReferenceRange("g/dL", 12.0, 17.5)),
    "wbc": (
        ReferenceRange("x10^9/L", 4.0, 11.0),
        ReferenceRange("x10^3/uL", 4.0, 11.0),
        ReferenceRange("K/uL", 4.0, 11.0),
        ReferenceRange("/uL", 4000.0, 11000.0),
    ),
    "platelets": (
        ReferenceRange("x10^9/L", 150.0, 400.0),
        ReferenceRange("x10^3/uL", 150.0, 400.0),
        ReferenceRange("K/uL", 150.0, 400.0),
        ReferenceRange("/uL", 150000.0, 400000.0),
    ),
    "triglycerides": (ReferenceRange("mmol/L", None, 1.7), ReferenceRange("mg/dL", None, 150.0)),
    "total_cholesterol": (ReferenceRange("mmol/L", None, 5.2), ReferenceRange("mg/dL", None, 200.0)),
}


def _name_key(name: str) -> str:
    return _NAME_CLEAN_RE.sub(" ", str(name or "").lower()).strip()


def normalize_lab_name(name: str) -> str:
    """Map a printed lab name onto its alias key.

    "Glucose (fasting)" and "TSH (thyroid stimulating hormone)" resolve through
    the name outside the parentheses first, then through the parenthesized text.
    """
    raw = str(name or "")
    candidates = [_name_key(raw), _name_key(_PAREN_RE.sub(" ", raw))]
    candidates.extend(_name_key(inner) for inner in _PAREN_RE.findall(raw))
    for key in candidates:
        if key in ALIAS_TABLE:
            return ALIAS_TABLE[key]
    return candidates[0].replace(" ", "_")


def is_known_lab(normalized_name: str) -> bool:
    return normalized_name in _ALIASES


def unit_key(unit: str | None) -> str:
    text = str(unit or "").strip().lower()
    text = text.replace("µ", "u").replace("μ", "u").replace("×", "x").replace(" ", "")
    text = text.replace("*", "x").replace("10e", "10^")
    if text.startswith("10^"):
        text = "x" + text
    return text


def is_measurement_unit(unit: str | None) -> bool:
    key = unit_key(unit)
    if not key:
        return False
    if any(ch in key for ch in "/%^"):
        return True
    return key in MEASUREMENT_UNITS


def typical_range(normalized_name: str, unit: str | None) -> ReferenceRange | None:
    entries = TYPICAL_ADULT_RANGES.get(normalized_name)
    if not entries:
        return None
    if not unit:
        return entries[0] if len(entries) == 1 else None
    wanted = unit_key(unit)
    for entry in entries:
        if unit_key(entry.unit) == wanted:
            return entry
    return None

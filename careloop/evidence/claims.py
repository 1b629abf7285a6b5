from __future__ import annotations

import re
from typing import Sequence, Union

from .models import SectionTag

ClaimValue = Union[Sequence[str], str, None]
SectionClaims = Sequence[tuple[SectionTag, Sequence[str]]]

MAX_LINES_PER_SECTION = 12
MAX_LINKS = 40

_LINE_SPLIT_RE = re.compile(r"\r?\n|•")
_BULLET_PREFIX_RE = re.compile(r"^\s*(?:[-*]\s+|\d+[.)]\s+)")


def as_lines(value: ClaimValue) -> list[str]:
    """Split a claim value (list or free text) into trimmed non-empty lines."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = _LINE_SPLIT_RE.split(value)
    else:
        parts = [str(item) for item in value]
    out: list[str] = []
    for part in parts:
        line = _BULLET_PREFIX_RE.sub("", str(part)).strip()
        if line:
            out.append(line)
    return out

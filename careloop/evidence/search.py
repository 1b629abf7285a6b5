from __future__ import annotations

"""
Align claim lines to character spans of flat source text.

Design intent:
- Serve typed or pasted text that carries no timestamps.
- Try the whole line first, then a handful of distinctive keywords.
- Return offsets into the original text so UIs can highlight in place.
"""

import re
import string

from .claims import MAX_LINES_PER_SECTION, MAX_LINKS, SectionClaims
from .models import EvidenceLink, TextSpan

DIRECT_SEARCH_MIN_CHARS = 12
KEYWORD_MIN_CHARS = 5
MAX_KEYWORDS = 4
WINDOW_LEAD_CHARS = 10
WINDOW_MIN_CHARS = 30
WINDOW_MAX_CHARS = 240
WINDOW_PAD_CHARS = 40


def keyword_candidates(needle: str) -> list[str]:
    words: list[str] = []
    for raw in needle.split():
        word = raw.strip(string.punctuation)
        if len(word) >= KEYWORD_MIN_CHARS:
            words.append(word)
    return words[:MAX_KEYWORDS]


def _find(pattern_text: str, source: str) -> int:
    # Case-insensitive search over the original text keeps indices in source coordinates.
    tokens = pattern_text.split()
    if not tokens:
        return -1
    pattern = r"\s+".join(re.escape(token) for token in tokens)
    match = re.search(pattern, source, re.IGNORECASE)
    return match.start() if match else -1


def locate_claim(line: str, source: str) -> int:
    """Return the index in `source` where `line` is supported, or -1."""
    needle = " ".join(line.split())
    idx = _find(needle, source) if len(needle) >= DIRECT_SEARCH_MIN_CHARS else -1
    if idx >= 0:
        return idx
    # Keyword fallback: declaration order wins, not position in the source.
    for word in keyword_candidates(needle):
        hit = _find(word, source)
        if hit >= 0:
            return hit
    # Short claims without keywords still verify when they occur verbatim.
    return _find(needle, source)


def evidence_window(text: str, idx: int, line: str) -> TextSpan:
    length = len(text)
    idx = min(max(idx, 0), length)
    start = max(0, idx - WINDOW_LEAD_CHARS)
    end = min(length, idx + min(WINDOW_MAX_CHARS, max(WINDOW_MIN_CHARS, len(line) + WINDOW_PAD_CHARS)))
    return TextSpan(start=start, end=end, snippet=text[start:end])


def build_evidence_from_search(
    text: str,
    sections: SectionClaims,
    *,
    max_lines_per_section: int = MAX_LINES_PER_SECTION,
    max_links: int = MAX_LINKS,
) -> list[EvidenceLink]:
    source = str(text or "")
    out: list[EvidenceLink] = []
    for section, lines in sections:
        for line in list(lines)[:max_lines_per_section]:
            idx = locate_claim(line, source)
            if idx < 0:
                out.append(EvidenceLink.unverified(line, section))
                continue
            out.append(
                EvidenceLink(
                    claim_text=line,
                    section=section,
                    span=evidence_window(source, idx, line),
                    verified=True,
                )
            )
    return out[:max_links]

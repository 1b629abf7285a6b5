from __future__ import annotations

"""
Link diary summary items back to the entries that support them.

Design intent:
- Pick the single best-overlapping entry per item; ties keep the earlier entry.
- Attach an entry reference only when overlap clears the verified threshold.
"""

from typing import Sequence

from careloop.evidence.claims import SectionClaims
from careloop.evidence.models import EntrySpan, EvidenceLink
from careloop.evidence.overlap import score_overlap
from careloop.evidence.segments import MIN_VERIFIED_OVERLAP

from .models import DiaryEntry
from .normalize import diary_entry_text, truncate_note

MAX_ITEMS_PER_KIND = 12
MAX_DIARY_LINKS = 60
SNIPPET_MAX_CHARS = 180


def pick_best_diary_evidence(text: str, diary: Sequence[DiaryEntry]) -> EntrySpan | None:
    best_index = -1
    best_score = -1
    for i, entry in enumerate(diary):
        corpus = diary_entry_text(entry)
        if not corpus:
            continue
        score = score_overlap(text, corpus)
        if score > best_score:
            best_index, best_score = i, score
    if best_index < 0:
        return None
    entry = diary[best_index]
    return EntrySpan(
        entry_index=best_index,
        date=entry.date,
        snippet=truncate_note(diary_entry_text(entry), SNIPPET_MAX_CHARS),
        score=best_score,
    )


def build_diary_evidence(
    sections: SectionClaims,
    diary: Sequence[DiaryEntry],
    *,
    max_items_per_kind: int = MAX_ITEMS_PER_KIND,
    max_links: int = MAX_DIARY_LINKS,
) -> list[EvidenceLink]:
    out: list[EvidenceLink] = []
    for section, items in sections:
        lines = [str(item).strip() for item in items if str(item).strip()]
        for line in lines[:max_items_per_kind]:
            ref = pick_best_diary_evidence(line, diary)
            if ref is not None and ref.score >= MIN_VERIFIED_OVERLAP:
                out.append(EvidenceLink(claim_text=line, section=section, span=ref, verified=True))
            else:
                out.append(EvidenceLink.unverified(line, section))
    return out[:max_links]

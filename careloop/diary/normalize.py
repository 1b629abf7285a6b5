from __future__ import annotations

"""
Diary normalization and trend series.

Design intent:
- Order entries by date and cut dates to YYYY-MM-DD so every downstream step sees one shape.
- Bound note length before anything reaches a model or a response.
"""

import re
from typing import Sequence

from .models import DiaryEntry, DiaryTrendPoint

ELLIPSIS = "…"

_WS_RE = re.compile(r"\s+")


def collapse_whitespace(text: str | None) -> str:
    return _WS_RE.sub(" ", str(text or "")).strip()


def truncate_note(note: str | None, max_chars: int) -> str:
    text = collapse_whitespace(note)
    if not max_chars:
        return ""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + ELLIPSIS


def normalize_diary(entries: Sequence[DiaryEntry], *, notes_max_chars: int) -> list[DiaryEntry]:
    # sorted() is stable, so same-day entries keep caller order.
    ordered = sorted(entries, key=lambda entry: entry.date)
    out: list[DiaryEntry] = []
    for entry in ordered:
        notes = truncate_note(entry.notes, notes_max_chars) if entry.notes else None
        out.append(
            entry.model_copy(
                update={
                    "date": entry.date[:10],
                    "notes": notes or None,
                    "tags": [str(tag).strip() for tag in entry.tags if str(tag).strip()],
                }
            )
        )
    return out


def diary_trends(entries: Sequence[DiaryEntry]) -> list[DiaryTrendPoint]:
    return [
        DiaryTrendPoint(
            date=entry.date,
            symptom_score=entry.symptom_score,
            sleep_hours=entry.sleep_hours,
            mood_score=entry.mood_score,
        )
        for entry in entries
    ]


def diary_entry_text(entry: DiaryEntry) -> str:
    """Searchable corpus for one entry: its note followed by its tags."""
    parts = [collapse_whitespace(entry.notes)] + [collapse_whitespace(tag) for tag in entry.tags]
    return collapse_whitespace(" ".join(part for part in parts if part))

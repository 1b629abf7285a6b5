from __future__ import annotations

"""
Diary summary contract, prompt, and deterministic arithmetic summary.

Design intent:
- Keep the model contract lenient on missing lists but strict on types.
- The deterministic summary uses only means over the last week and entry tags.
- Phrase everything as hints for clinician review, never as a diagnosis.
"""

import json
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from careloop.evidence.claims import SectionClaims

from .models import DiaryEntry

RECENT_WINDOW = 7
HIGH_SYMPTOM_SCORE = 8
LOW_SLEEP_HOURS = 5

LIST_CAPS = {
    "bullets": 6,
    "possible_triggers": 5,
    "gentle_suggestions": 5,
    "red_flags": 5,
    "questions_for_clinician": 5,
}

EMPTY_HEADLINE = "Add diary entries to generate a summary"
SUMMARY_HEADLINE = "Pre-visit summary"

DIARY_SYSTEM_INSTRUCTION = (
    "You are an AI health diary summarizer.\n"
    "Return a STRICT JSON object only (no markdown, no extra keys).\n"
    "Schema:\n"
    "{\n"
    '  "headline": string,\n'
    '  "bullets": string[],                  // max 6, short bullet lines\n'
    '  "possible_triggers": string[],        // max 5, single words/short phrases\n'
    '  "gentle_suggestions": string[],       // max 5, non-medical, supportive, non-urgent suggestions\n'
    '  "last7_days_avg_symptom": number|null,\n'
    '  "red_flags": string[],                // max 5, cautious and non-diagnostic\n'
    '  "questions_for_clinician": string[]   // max 5, helpful clarifying questions\n'
    "}\n"
    "Rules:\n"
    "- DO NOT diagnose. Use cautious, informational phrasing.\n"
    "- DO NOT include personally identifying info (names, addresses, emails, phone numbers).\n"
    "- Prefer trends, correlations, and what to ask/track next.\n"
    '- If unsure, write items as "for clinician review".\n'
    '- Keep triggers to short phrases (e.g., "stress", "late meals", "poor sleep").'
)


class DiarySummaryContract(BaseModel):
    model_config = ConfigDict(extra="ignore")

    headline: str = Field(min_length=1)
    bullets: List[str] = Field(default_factory=list)
    possible_triggers: List[str] = Field(default_factory=list)
    gentle_suggestions: List[str] = Field(default_factory=list)
    last7_days_avg_symptom: Optional[float] = None
    red_flags: List[str] = Field(default_factory=list)
    questions_for_clinician: List[str] = Field(default_factory=list)

    @field_validator(*LIST_CAPS.keys(), mode="after")
    @classmethod
    def _trim_and_cap(cls, value: List[str], info: ValidationInfo) -> List[str]:
        cleaned = [item.strip() for item in value if item.strip()]
        return cleaned[: LIST_CAPS[info.field_name]]


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def recent_symptom_mean(diary: Sequence[DiaryEntry]) -> float | None:
    return mean([entry.symptom_score for entry in diary[-RECENT_WINDOW:]])


def deterministic_diary_summary(diary: Sequence[DiaryEntry]) -> DiarySummaryContract:
    if not diary:
        return DiarySummaryContract(headline=EMPTY_HEADLINE)

    recent = list(diary[-RECENT_WINDOW:])
    avg_symptom = mean([entry.symptom_score for entry in recent])
    avg_sleep = mean([entry.sleep_hours for entry in recent])
    avg_mood = mean([entry.mood_score for entry in recent])

    triggers: list[str] = []
    for entry in recent:
        for tag in entry.tags:
            lowered = tag.lower()
            if lowered and lowered not in triggers:
                triggers.append(lowered)

    bullets: list[str] = []
    if avg_symptom is not None:
        bullets.append(f"Last 7 days avg symptom score: {avg_symptom:.1f} / 10")
    if avg_sleep is not None:
        bullets.append(f"Last 7 days avg sleep: {avg_sleep:.1f} hours")
    if avg_mood is not None:
        bullets.append(f"Last 7 days avg mood: {avg_mood:.1f} / 10")
    bullets.append("Patterns are hints only (not a diagnosis).")

    red_flags: list[str] = []
    if recent[-1].symptom_score >= HIGH_SYMPTOM_SCORE:
        red_flags.append("Very high symptom score recently (consider timely check-in).")
    if avg_sleep is not None and avg_sleep < LOW_SLEEP_HOURS:
        red_flags.append("Low average sleep over the last week.")

    questions: list[str] = []
    if triggers:
        questions.append(f"Do symptoms correlate with: {', '.join(triggers[:5])}?")
    questions.append("Any recent medication changes or missed doses?")
    questions.append("What improves or worsens symptoms (activity, meals, stress, sleep)?")

    return DiarySummaryContract(
        headline=SUMMARY_HEADLINE,
        bullets=bullets,
        possible_triggers=triggers,
        gentle_suggestions=[
            "Keep logging meals/sleep alongside symptoms.",
            "If symptoms worsen or feel unsafe, consider contacting a clinician.",
        ],
        last7_days_avg_symptom=avg_symptom,
        red_flags=red_flags,
        questions_for_clinician=questions,
    )


def build_diary_user_payload(diary: Sequence[DiaryEntry], *, max_entries: int) -> str:
    entries = [
        {
            "date": entry.date,
            "symptom_score": entry.symptom_score,
            "sleep_hours": entry.sleep_hours,
            "mood_score": entry.mood_score,
            "notes": entry.notes or "",
            "tags": list(entry.tags),
        }
        for entry in diary[-max_entries:]
    ]
    avg_symptom = recent_symptom_mean(diary)
    avg_text = "null" if avg_symptom is None else f"{avg_symptom:.2f}"
    return (
        "Diary entries (synthetic/anonymized). JSON array:\n"
        f"{json.dumps(entries, ensure_ascii=False)}\n"
        "Context:\n"
        f"- last7_days_avg_symptom (computed locally): {avg_text}\n"
        "Return the JSON schema exactly."
    )


def summary_sections(summary: DiarySummaryContract) -> SectionClaims:
    return [
        ("bullet", summary.bullets),
        ("trigger", summary.possible_triggers),
        ("suggestion", summary.gentle_suggestions),
        ("red_flag", summary.red_flags),
        ("question", summary.questions_for_clinician),
    ]

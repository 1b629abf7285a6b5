from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_DIARY_ENTRIES = 365


class DiaryEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    date: str = Field(min_length=8)
    symptom_score: float = Field(ge=0, le=10)
    sleep_hours: float = Field(ge=0, le=24)
    mood_score: float = Field(ge=0, le=10)
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class DiaryTrendPoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: str
    symptom_score: float
    sleep_hours: float
    mood_score: float

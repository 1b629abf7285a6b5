from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

SectionTag = Literal[
    "subjective",
    "objective",
    "assessment",
    "plan",
    "bullet",
    "trigger",
    "suggestion",
    "red_flag",
    "question",
    "term",
    "lab",
    "hypothesis",
    "next_step",
]


@dataclass(frozen=True)
class TextSpan:
    start: int
    end: int
    snippet: str

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "snippet": self.snippet}


@dataclass(frozen=True)
class TimeSpan:
    start_ms: int
    end_ms: int
    snippet: str

    def to_dict(self) -> dict[str, Any]:
        return {"start_ms": self.start_ms, "end_ms": self.end_ms, "snippet": self.snippet}


@dataclass(frozen=True)
class EntrySpan:
    entry_index: int
    date: str
    snippet: str
    score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_index": self.entry_index,
            "date": self.date,
            "snippet": self.snippet,
            "score": self.score,
        }


Span = Union[TextSpan, TimeSpan, EntrySpan]


@dataclass(frozen=True)
class EvidenceLink:
    claim_text: str
    section: SectionTag
    span: Span | None
    verified: bool

    def __post_init__(self) -> None:
        if self.verified and self.span is None:
            raise ValueError("Verified evidence link requires a span.")
        if not self.verified and self.span is not None:
            raise ValueError("Unverified evidence link must not carry a span.")

    @classmethod
    def unverified(cls, claim_text: str, section: SectionTag) -> "EvidenceLink":
        return cls(claim_text=claim_text, section=section, span=None, verified=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "section": self.section,
            "text": self.claim_text,
            "span": self.span.to_dict() if self.span is not None else None,
            "verified": self.verified,
        }

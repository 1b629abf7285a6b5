from __future__ import annotations

"""
Explain medical terms found in report text.

Design intent:
- Use a small curated glossary with a cited public source per entry.
- Every explained term carries the exact report span it was found in.
- Entity-extractor hits only seed extra candidates; the glossary stays authoritative.
"""

import re
from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence

from careloop.collaborators.base import HealthcareEntity
from careloop.evidence.models import EvidenceLink, TextSpan

TermCategory = Literal["lab", "imaging", "diagnosis", "general"]
TermOrigin = Literal["glossary", "quick", "entity"]

MAX_TERMS = 30
SNIPPET_RADIUS = 80

_MEDLINE_WORDS = ("MedlinePlus Medical Words", "https://medlineplus.gov/medicalwords.html")
_NCI = ("NCI Dictionary", "https://www.cancer.gov/publications/dictionaries/cancer-terms")


@dataclass(frozen=True)
class GlossaryEntry:
    normalized: str
    translation: str
    meaning: str
    why_it_matters: str
    category: TermCategory
    source: tuple[str, str]
    synonyms: tuple[str, ...] = ()


GLOSSARY: dict[str, GlossaryEntry] = {
    "status post": GlossaryEntry(
        normalized="status post",
        translation="after / following",
        meaning="Indicates something happened after a prior event or procedure.",
        why_it_matters="Helps clinicians anchor findings to a known prior event.",
        category="general",
        source=_MEDLINE_WORDS,
        synonyms=("s/p",),
    ),
    "fractura": GlossaryEntry(
        normalized="fracture",
        translation="fracture",
        meaning="A break in a bone.",
        why_it_matters="May require immobilization, pain control, and follow-up imaging.",
        category="imaging",
        source=("MedlinePlus - Fractures", "https://medlineplus.gov/fractures.html"),
    ),
    "stenosis": GlossaryEntry(
        normalized="narrowing",
        translation="narrowing",
        meaning="Abnormal narrowing of a passage (e.g., vessel or valve).",
        why_it_matters="Can reduce flow and cause symptoms depending on severity.",
        category="diagnosis",
        source=("NHS - General health information", "https://www.nhs.uk/"),
    ),
    "benign": GlossaryEntry(
        normalized="benign",
        translation="non-cancerous / not dangerous",
        meaning="Not cancerous; often lower risk.",
        why_it_matters="Usually changes urgency and intensity of treatment.",
        category="diagnosis",
        source=_NCI,
    ),
    "benignus": GlossaryEntry(
        normalized="benign",
        translation="benign",
        meaning="Latin form of benign.",
        why_it_matters="Usually changes urgency and intensity of treatment.",
        category="diagnosis",
        source=_NCI,
    ),
    "malignant": GlossaryEntry(
        normalized="malignant",
        translation="cancerous / aggressive",
        meaning="Cancerous or potentially aggressive.",
        why_it_matters="Often requires prompt evaluation and treatment.",
        category="diagnosis",
        source=_NCI,
    ),
    "malignus": GlossaryEntry(
        normalized="malignant",
        translation="malignant",
        meaning="Latin form of malignant.",
        why_it_matters="Often requires prompt evaluation and treatment.",
        category="diagnosis",
        source=_NCI,
    ),
    "atelectasis": GlossaryEntry(
        normalized="atelectasis",
        translation="partial lung collapse",
        meaning="Part of the lung is not fully expanded.",
        why_it_matters="Can be mild/temporary, but may relate to infection, mucus, or shallow breathing.",
        category="imaging",
        source=("MedlinePlus - Atelectasis", "https://medlineplus.gov/ency/article/000065.htm"),
    ),
}

# Word stems matched with any suffix ("ischemic", "ischemia").
QUICK_TERMS: tuple[tuple[str, str], ...] = (
    ("ischemi", "Reduced blood flow to tissue."),
    ("embolism", "A blockage (often a clot) that travels in blood vessels."),
)
QUICK_WHY = "Provides clinical context for symptoms and risk."

_ENTITY_CATEGORIES: dict[str, TermCategory] = {
    "ExaminationName": "lab",
    "MeasurementValue": "lab",
    "Diagnosis": "diagnosis",
    "SymptomOrSign": "diagnosis",
    "BodyStructure": "imaging",
}


@dataclass(frozen=True)
class ExplainedTerm:
    term: str
    normalized: str
    translation: Optional[str]
    meaning: Optional[str]
    why_it_matters: Optional[str]
    category: TermCategory
    source_title: Optional[str]
    source_url: Optional[str]
    origin: TermOrigin
    evidence: TextSpan

    def evidence_link(self) -> EvidenceLink:
        return EvidenceLink(claim_text=self.term, section="term", span=self.evidence, verified=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "normalized": self.normalized,
            "translation": self.translation,
            "meaning": self.meaning,
            "why_it_matters": self.why_it_matters,
            "category": self.category,
            "source": (
                {"title": self.source_title, "url": self.source_url} if self.source_title and self.source_url else None
            ),
            "origin": self.origin,
            "evidence": self.evidence.to_dict(),
        }


def term_window(text: str, start: int, end: int, *, radius: int = SNIPPET_RADIUS) -> TextSpan:
    lo = max(0, start - radius)
    hi = min(len(text), end + radius)
    return TextSpan(start=lo, end=hi, snippet=text[lo:hi])


def _glossary_pattern(key: str, entry: GlossaryEntry) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(word) for word in (key, *entry.synonyms))
    return re.compile(r"(?<!\w)(" + alternatives + r")(?!\w)", re.IGNORECASE)


_GLOSSARY_PATTERNS = {key: _glossary_pattern(key, entry) for key, entry in GLOSSARY.items()}
_QUICK_PATTERNS = [(re.compile(r"\b" + stem + r"\w*", re.IGNORECASE), meaning) for stem, meaning in QUICK_TERMS]


def detect_terms(text: str, *, max_terms: int = MAX_TERMS) -> list[ExplainedTerm]:
    source = str(text or "")
    out: list[ExplainedTerm] = []
    seen: set[tuple[str, str]] = set()

    for key, entry in GLOSSARY.items():
        for match in _GLOSSARY_PATTERNS[key].finditer(source):
            matched = match.group(1)
            signature = (key, matched.lower())
            if signature in seen:
                continue
            seen.add(signature)
            out.append(
                ExplainedTerm(
                    term=matched,
                    normalized=entry.normalized,
                    translation=entry.translation,
                    meaning=entry.meaning,
                    why_it_matters=entry.why_it_matters,
                    category=entry.category,
                    source_title=entry.source[0],
                    source_url=entry.source[1],
                    origin="glossary",
                    evidence=term_window(source, match.start(1), match.end(1)),
                )
            )

    for pattern, meaning in _QUICK_PATTERNS:
        match = pattern.search(source)
        if match is None:
            continue
        matched = match.group(0)
        out.append(
            ExplainedTerm(
                term=matched,
                normalized=matched.lower(),
                translation=matched.lower(),
                meaning=meaning,
                why_it_matters=QUICK_WHY,
                category="general",
                source_title=_MEDLINE_WORDS[0],
                source_url=_MEDLINE_WORDS[1],
                origin="quick",
                evidence=term_window(source, match.start(), match.end()),
            )
        )

    return out[:max_terms]


def entity_terms(
    text: str,
    entities: Sequence[HealthcareEntity],
    *,
    known: Sequence[ExplainedTerm] = (),
    max_terms: int = MAX_TERMS,
) -> list[ExplainedTerm]:
    """Seed extra candidate terms from extractor hits that point at real report text."""
    source = str(text or "")
    taken = {term.term.lower() for term in known} | {term.normalized.lower() for term in known}
    out: list[ExplainedTerm] = []
    for entity in entities:
        start, end = entity.offset, entity.offset + entity.length
        if start < 0 or entity.length <= 0 or end > len(source):
            continue
        # Offsets from the extractor are trusted only when they reproduce the entity text.
        if source[start:end].lower() != entity.text.lower():
            continue
        if entity.text.lower() in taken:
            continue
        taken.add(entity.text.lower())
        out.append(
            ExplainedTerm(
                term=entity.text,
                normalized=entity.text.lower(),
                translation=None,
                meaning=None,
                why_it_matters=None,
                category=_ENTITY_CATEGORIES.get(entity.category, "general"),
                source_title=None,
                source_url=None,
                origin="entity",
                evidence=term_window(source, start, end),
            )
        )
        if len(out) >= max_terms:
            break
    return out

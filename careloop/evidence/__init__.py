"""
Evidence linking boundary.

Design intent:
- Align generated claim lines to timestamped segments or flat-text spans.
- Decide "verified" with explicit lexical-overlap rules, never model trust.
"""
from .models import EvidenceLink, EntrySpan, TextSpan, TimeSpan
from .overlap import score_overlap, significant_words
from .search import build_evidence_from_search
from .segments import build_evidence_from_segments

__all__ = [
    "EvidenceLink",
    "EntrySpan",
    "TextSpan",
    "TimeSpan",
    "score_overlap",
    "significant_words",
    "build_evidence_from_search",
    "build_evidence_from_segments",
]

from __future__ import annotations

"""
Align claim lines to timestamped transcript segments.

Design intent:
- Prefer audio-time evidence whenever the transcript arrived with segments.
- Require two shared significant words; one shared word is treated as noise.
"""

from typing import Sequence

from careloop.asr.models import Segment

from .claims import MAX_LINES_PER_SECTION, MAX_LINKS, SectionClaims
from .models import EvidenceLink, TimeSpan
from .overlap import score_overlap

MIN_VERIFIED_OVERLAP = 2


def best_segment(line: str, segments: Sequence[Segment]) -> tuple[Segment | None, int]:
    best: Segment | None = None
    best_score = -1
    for segment in segments:
        score = score_overlap(line, segment.text)
        # Strict comparison keeps the first-seen segment on ties.
        if score > best_score:
            best, best_score = segment, score
    return best, max(best_score, 0)


def build_evidence_from_segments(
    sections: SectionClaims,
    segments: Sequence[Segment],
    *,
    max_lines_per_section: int = MAX_LINES_PER_SECTION,
    max_links: int = MAX_LINKS,
) -> list[EvidenceLink]:
    out: list[EvidenceLink] = []
    for section, lines in sections:
        for line in list(lines)[:max_lines_per_section]:
            segment, score = best_segment(line, segments)
            if segment is not None and score >= MIN_VERIFIED_OVERLAP:
                out.append(
                    EvidenceLink(
                        claim_text=line,
                        section=section,
                        span=TimeSpan(start_ms=segment.start_ms, end_ms=segment.end_ms, snippet=segment.text),
                        verified=True,
                    )
                )
            else:
                out.append(EvidenceLink.unverified(line, section))
    return out[:max_links]

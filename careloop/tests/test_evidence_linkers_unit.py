import pytest

from careloop.asr.models import Segment
from careloop.evidence.claims import as_lines
from careloop.evidence.models import EvidenceLink, TextSpan, TimeSpan
from careloop.evidence.overlap import score_overlap, significant_words
from careloop.evidence.search import build_evidence_from_search, keyword_candidates
from careloop.evidence.segments import build_evidence_from_segments


def test_score_overlap_ignores_case_punctuation_and_short_words() -> None:
    assert significant_words("The HEAD-ache, is bad!") == ["head", "ache"]
    assert score_overlap("Severe headache today", "headache; severe? yes") == 2
    assert score_overlap("a an the of", "a an the of") == 0


def test_score_overlap_counts_repeated_claim_words_per_occurrence() -> None:
    assert score_overlap("pain pain pain", "pain") == 3
    assert score_overlap("pain", "pain pain pain") == 1


def test_score_overlap_keeps_unicode_letters() -> None:
    assert score_overlap("Fractura femoris", "fractura femoris dextra") == 2
    assert score_overlap("Müdigkeit seit Tagen", "starke müdigkeit") == 1


def test_score_overlap_of_claim_with_itself_counts_every_significant_word() -> None:
    claim = "Persistent cough, worse at night; cough keeps patient awake."
    assert score_overlap(claim, claim) == len(significant_words(claim)) == 8


def test_score_overlap_ignores_case_and_punctuation_of_source_side() -> None:
    claim = "Headache with nausea since Monday"
    plain = "patient reports headache with nausea since monday"
    noisy = "PATIENT: reports... HEADACHE (with) nausea -- since, MONDAY!"

    assert score_overlap(claim, plain) == score_overlap(claim, noisy) == 5


def test_search_linker_window_contains_verbatim_claim() -> None:
    text = "Patient has had a headache since Monday. Temperature was normal today. Advised rest and fluids."
    for claim in ["Temperature was normal today", "Advised rest and fluids", "headache since Monday"]:
        link = build_evidence_from_search(text, [("objective", [claim])])[0]
        idx = text.find(claim)

        assert link.verified is True
        assert link.span is not None
        assert link.span.start <= idx <= link.span.end
        assert claim in link.span.snippet


def test_search_linker_offsets_survive_case_folding_that_changes_length() -> None:
    # "İ".lower() is two code points, so folding the whole text would shift offsets.
    text = "İ" * 20 + " Patient reports headache and nausea."
    link = build_evidence_from_search(text, [("subjective", ["patient REPORTS headache"])])[0]
    idx = text.find("Patient reports headache")

    assert link.verified is True
    assert link.span is not None
    assert link.span.start == idx - 10
    assert link.span.start <= idx <= link.span.end
    assert "Patient reports headache" in link.span.snippet
    assert link.span.snippet == text[link.span.start : link.span.end]


def test_as_lines_splits_text_and_strips_bullets() -> None:
    assert as_lines("- Rest\n* Fluids\n1. Follow-up in 2 weeks\n\n") == ["Rest", "Fluids", "Follow-up in 2 weeks"]
    assert as_lines(["  Rest ", "", "Fluids"]) == ["Rest", "Fluids"]
    assert as_lines(None) == []


def test_evidence_link_rejects_inconsistent_verification() -> None:
    with pytest.raises(ValueError):
        EvidenceLink(claim_text="x", section="plan", span=None, verified=True)
    with pytest.raises(ValueError):
        EvidenceLink(claim_text="x", section="plan", span=TextSpan(0, 1, "x"), verified=False)


def test_search_linker_verifies_direct_match() -> None:
    text = "Patient reports headache and nausea."
    links = build_evidence_from_search(text, [("subjective", ["Patient reports headache"])])

    assert len(links) == 1
    link = links[0]
    assert link.verified is True
    assert isinstance(link.span, TextSpan)
    assert "headache" in link.span.snippet
    assert link.span.snippet == text[link.span.start : link.span.end]


def test_search_linker_keyword_fallback_uses_first_declared_keyword() -> None:
    text = "Vomiting started before nausea."
    # Direct search misses; "nausea" is declared first even though "vomiting" occurs earlier.
    links = build_evidence_from_search(text, [("subjective", ["nausea, vomiting"])])

    link = links[0]
    assert link.verified is True
    assert link.span is not None
    assert link.span.start == text.lower().find("nausea") - 10
    assert link.span.snippet == text[link.span.start : link.span.end]


def test_keyword_candidates_take_at_most_four_long_words() -> None:
    assert keyword_candidates("take ibuprofen, drink fluids, rest, monitor symptoms daily") == [
        "ibuprofen",
        "drink",
        "fluids",
        "monitor",
    ]


def test_search_linker_short_line_without_keywords_is_unverified() -> None:
    links = build_evidence_from_search("Patient is well.", [("plan", ["Rest"])])
    assert links == [EvidenceLink.unverified("Rest", "plan")]


def test_search_linker_short_line_found_verbatim_is_verified() -> None:
    text = "Advice: Rest at home."
    link = build_evidence_from_search(text, [("plan", ["Rest"])])[0]
    assert link.verified is True
    assert link.span == TextSpan(start=0, end=len(text), snippet=text)


def test_search_linker_caps_lines_and_links() -> None:
    text = "headache " * 10
    sections = [("subjective", ["headache"] * 20), ("plan", ["headache"] * 20), ("assessment", ["headache"] * 20)]
    links = build_evidence_from_search(text, sections)

    assert len(links) == 36
    assert [link.section for link in links].count("subjective") == 12

    many = [(section, ["headache"] * 12) for section in ("subjective", "objective", "assessment", "plan")]
    assert len(build_evidence_from_search(text, many)) == 40


def test_search_window_is_clamped_to_text_bounds() -> None:
    text = "Headache."
    link = build_evidence_from_search(text, [("subjective", ["headache"])])[0]
    assert link.span == TextSpan(start=0, end=len(text), snippet=text)


def test_segment_linker_verifies_on_two_shared_words() -> None:
    segments = [
        Segment(start_ms=0, end_ms=1500, text="I have had a headache since Monday."),
        Segment(start_ms=1500, end_ms=3000, text="No fever at all."),
    ]
    links = build_evidence_from_segments(
        [("subjective", ["Headache since Monday"]), ("plan", ["Prescribe ibuprofen"])],
        segments,
    )

    assert links[0].verified is True
    assert links[0].span == TimeSpan(start_ms=0, end_ms=1500, snippet="I have had a headache since Monday.")
    assert links[1].verified is False
    assert links[1].span is None


def test_segment_linker_single_shared_word_is_not_enough() -> None:
    segments = [Segment(start_ms=0, end_ms=1000, text="Headache is better.")]
    links = build_evidence_from_segments([("assessment", ["Headache resolved"])], segments)
    assert links[0].verified is False


def test_segment_linker_ties_keep_first_segment() -> None:
    segments = [
        Segment(start_ms=0, end_ms=1000, text="headache since monday"),
        Segment(start_ms=1000, end_ms=2000, text="headache since monday"),
    ]
    link = build_evidence_from_segments([("subjective", ["headache since monday"])], segments)[0]
    assert isinstance(link.span, TimeSpan)
    assert link.span.start_ms == 0


def test_segment_rejects_inverted_window() -> None:
    with pytest.raises(ValueError):
        Segment(start_ms=2000, end_ms=1000, text="x")

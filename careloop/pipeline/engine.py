from __future__ import annotations

"""
Function-level engine contract consumed by a transport layer.

Design intent:
- One method per workflow; each returns payload + trust report + warnings.
- Fixed order per request: input gate, generation, evidence linking, output gate.
- Collaborator trouble becomes a warning; only caller-actionable errors are raised.
- No transport concerns here: no status codes, headers, or request objects.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from careloop.asr.intake import transcribe_audio, truncate_for_processing
from careloop.asr.models import Segment
from careloop.collaborators import Collaborators, build_collaborators
from careloop.collaborators.base import HealthcareEntity
from careloop.collaborators.invoke import invoke_collaborator
from careloop.diary.evidence import build_diary_evidence
from careloop.diary.models import MAX_DIARY_ENTRIES, DiaryEntry
from careloop.diary.normalize import diary_trends, normalize_diary
from careloop.diary.summary import (
    DIARY_SYSTEM_INSTRUCTION,
    DiarySummaryContract,
    build_diary_user_payload,
    deterministic_diary_summary,
    summary_sections,
)
from careloop.errors import CollaboratorUnavailableError, InputValidationError
from careloop.evidence.models import EvidenceLink
from careloop.evidence.search import build_evidence_from_search
from careloop.evidence.segments import build_evidence_from_segments
from careloop.generation.orchestrator import generate_with_fallback
from careloop.internal_core.config import OUTPUT_PII_MODES, EngineConfig, OutputPiiMode, load_config
from careloop.labs.extractor import LabValue, extract_lab_values
from careloop.logs import configure_logging
from careloop.privacy.gate import apply_output_gate, enforce_input_gate
from careloop.privacy.redaction import detect_and_redact
from careloop.report.analysis import (
    REPORT_SYSTEM_INSTRUCTION,
    LabReading,
    ReportAnalysisContract,
    analysis_sections,
    build_report_user_payload,
    deterministic_report_analysis,
)
from careloop.report.terms import detect_terms, entity_terms
from careloop.soap.draft import (
    SOAP_SYSTEM_INSTRUCTION,
    SoapContract,
    build_soap_user_payload,
    deterministic_soap,
    soap_sections,
)
from careloop.trust.score import TrustReport, compute_trust

M = TypeVar("M", bound=BaseModel)

MAX_INPUT_CHARS = 200_000
MAX_REDACT_CHARS = 20_000
MAX_ENTITIES = 200
DIARY_GATE_MAX_CHARS = 20_000

WARNING_ENTITIES_UNAVAILABLE = "Healthcare entity extraction unavailable or not configured."

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    payload: dict[str, Any]
    trust: Optional[TrustReport] = None
    warnings: list[str] = field(default_factory=list)
    mode: Optional[str] = None
    # Generating operations always report False here; a tripped input gate raises instead.
    pii_detected_input: bool = False
    pii_detected_output: bool = False


def _validate(model: type[M], data: Any, *, what: str) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        # Error details echo input values; only the count leaves this boundary.
        raise InputValidationError(f"Invalid {what}: {exc.error_count()} validation error(s).") from exc


def _require_text(text: Any, *, what: str, max_chars: int) -> str:
    if not isinstance(text, str) or not text.strip():
        raise InputValidationError(f"Invalid {what}: non-empty text is required.")
    if len(text) > max_chars:
        raise InputValidationError(f"Invalid {what}: exceeds {max_chars} characters.")
    return text


def _clean_report_text(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()


def _lab_link(lab: LabValue) -> EvidenceLink:
    unit = f" {lab.unit}" if lab.unit else ""
    claim = f"{lab.name}: {lab.qualifier or ''}{lab.value:g}{unit}"
    return EvidenceLink(claim_text=claim, section="lab", span=lab.evidence, verified=lab.verified)


def _entity_dict(entity: HealthcareEntity) -> dict[str, Any]:
    return {
        "text": entity.text,
        "category": entity.category,
        "confidence": entity.confidence,
        "offset": entity.offset,
        "length": entity.length,
    }


class CareloopEngine:
    def __init__(self, config: EngineConfig | None = None, collaborators: Collaborators | None = None) -> None:
        self.config = config or EngineConfig()
        self.collaborators = collaborators or Collaborators()

    @classmethod
    def from_env(cls, **overrides: Any) -> "CareloopEngine":
        config = load_config()
        configure_logging(config.LOG_LEVEL)
        return cls(config=config, collaborators=build_collaborators(config, **overrides))

    # -- shared steps -----------------------------------------------------

    def _resolve_policy(
        self, enforce_input_gate: bool | None, output_mode: str | None
    ) -> tuple[bool, OutputPiiMode]:
        enforce = self.config.DEFAULT_ENFORCE_REDACTION if enforce_input_gate is None else bool(enforce_input_gate)
        mode = self.config.OUTPUT_PII_MODE if output_mode is None else str(output_mode).strip().lower()
        if mode not in OUTPUT_PII_MODES:
            raise InputValidationError("Invalid output_mode: expected one of off, redact, block.")
        return enforce, mode  # type: ignore[return-value]

    def _input_gate(self, text: str, enabled: bool) -> bool:
        return enforce_input_gate(
            text,
            enabled=enabled,
            detector=self.collaborators.pii_detector,
            timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
        )

    def _entities(self, text: str, warnings: list[str]) -> list[HealthcareEntity] | None:
        extractor = self.collaborators.entity_extractor
        try:
            entities = invoke_collaborator(
                "entity_extractor",
                extractor.extract if extractor is not None else None,
                text,
                timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
            )
        except CollaboratorUnavailableError:
            warnings.append(WARNING_ENTITIES_UNAVAILABLE)
            return None
        return list(entities)[:MAX_ENTITIES]

    def _finish(
        self,
        payload: dict[str, Any],
        *,
        evidence: Sequence[EvidenceLink],
        warnings: list[str],
        mode: str,
        pii_detected_input: bool,
        output_mode: OutputPiiMode,
    ) -> EngineResult:
        trust = compute_trust(evidence)
        payload["evidence"] = [link.to_dict() for link in evidence]
        payload["trust"] = {**trust.to_dict(), "pii_detected_input": pii_detected_input, "mode": mode}
        payload["warnings"] = list(warnings)

        gated = apply_output_gate(
            payload,
            mode=output_mode,
            detector=self.collaborators.pii_detector,
            timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
        )
        final = dict(gated.payload)
        final["trust"] = {**final["trust"], "pii_detected_output": gated.pii_detected}
        logger.info(
            "engine_done mode=%s links=%s verified=%s warnings=%s pii_out=%s",
            mode,
            trust.total,
            trust.verified,
            len(warnings),
            gated.pii_detected,
        )
        return EngineResult(
            payload=final,
            trust=trust,
            warnings=list(warnings),
            mode=mode,
            pii_detected_input=pii_detected_input,
            pii_detected_output=gated.pii_detected,
        )

    # -- operations -------------------------------------------------------

    def redact(self, text: str) -> EngineResult:
        text = _require_text(text, what="text", max_chars=MAX_REDACT_CHARS)
        logger.info("redact_request text_len=%s", len(text))
        outcome = detect_and_redact(
            text, detector=self.collaborators.pii_detector, timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC
        )
        return EngineResult(
            payload={"redacted_text": outcome.redacted_text, "pii_detected": outcome.pii_detected},
            pii_detected_input=outcome.pii_detected,
        )

    def transcribe(self, audio_bytes: bytes) -> EngineResult:
        result = transcribe_audio(
            audio_bytes,
            speech_to_text=self.collaborators.speech_to_text,
            max_chars=self.config.MAX_TRANSCRIPT_CHARS,
            timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
        )
        return EngineResult(payload=result.model_dump(), warnings=list(result.warnings))

    def soap(
        self,
        transcript: str,
        *,
        segments: Sequence[Segment | Mapping[str, Any]] | None = None,
        enforce_input_gate: bool | None = None,
        output_mode: str | None = None,
    ) -> EngineResult:
        transcript = _require_text(transcript, what="transcript", max_chars=MAX_INPUT_CHARS)
        parsed_segments = [_validate(Segment, item, what="segment") for item in (segments or [])]
        enforce, out_mode = self._resolve_policy(enforce_input_gate, output_mode)

        warnings: list[str] = []
        transcript, truncated = truncate_for_processing(transcript.strip(), self.config.MAX_TRANSCRIPT_CHARS)
        if truncated:
            warnings.append("Transcript truncated for processing.")
        logger.info("soap_request text_len=%s segments=%s", len(transcript), len(parsed_segments))

        pii_in = self._input_gate(transcript, enforce)

        outcome = generate_with_fallback(
            client=self.collaborators.generator,
            system_instruction=SOAP_SYSTEM_INSTRUCTION,
            user_payload=build_soap_user_payload(transcript),
            schema=SoapContract,
            deterministic=lambda: deterministic_soap(transcript),
            label="SOAP",
            timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
        )
        warnings.extend(outcome.warnings)

        sections = soap_sections(outcome.value)
        if parsed_segments:
            evidence = build_evidence_from_segments(sections, parsed_segments)
        else:
            evidence = build_evidence_from_search(transcript, sections)

        entities = self._entities(transcript, warnings)
        payload: dict[str, Any] = {name: list(lines) for name, lines in sections}
        payload["entities"] = [_entity_dict(e) for e in entities] if entities is not None else None
        return self._finish(
            payload,
            evidence=evidence,
            warnings=warnings,
            mode=outcome.mode,
            pii_detected_input=pii_in,
            output_mode=out_mode,
        )

    def _diary(self, entries: Sequence[DiaryEntry | Mapping[str, Any]]) -> list[DiaryEntry]:
        if not isinstance(entries, Sequence) or isinstance(entries, (str, bytes)):
            raise InputValidationError("Invalid diary: a list of entries is required.")
        if len(entries) > MAX_DIARY_ENTRIES:
            raise InputValidationError(f"Invalid diary: at most {MAX_DIARY_ENTRIES} entries.")
        parsed = [_validate(DiaryEntry, item, what="diary entry") for item in entries]
        return normalize_diary(parsed, notes_max_chars=self.config.DIARY_NOTES_MAX_CHARS)

    def diary_trends(self, entries: Sequence[DiaryEntry | Mapping[str, Any]]) -> EngineResult:
        diary = self._diary(entries)
        logger.info("diary_trends_request count=%s", len(diary))
        return EngineResult(payload={"trend": [point.model_dump() for point in diary_trends(diary)]})

    def diary_summary(
        self,
        entries: Sequence[DiaryEntry | Mapping[str, Any]],
        *,
        enforce_input_gate: bool | None = None,
        output_mode: str | None = None,
    ) -> EngineResult:
        diary = self._diary(entries)
        enforce, out_mode = self._resolve_policy(enforce_input_gate, output_mode)
        logger.info("diary_summary_request count=%s", len(diary))

        if not diary:
            empty = deterministic_diary_summary(diary)
            return EngineResult(payload=empty.model_dump(), trust=compute_trust([]), mode="deterministic")

        notes = "\n".join(entry.notes for entry in diary if entry.notes)[:DIARY_GATE_MAX_CHARS]
        pii_in = self._input_gate(notes, enforce) if notes else False

        outcome = generate_with_fallback(
            client=self.collaborators.generator,
            system_instruction=DIARY_SYSTEM_INSTRUCTION,
            user_payload=build_diary_user_payload(diary, max_entries=self.config.DIARY_SUMMARY_MAX_ENTRIES),
            schema=DiarySummaryContract,
            deterministic=lambda: deterministic_diary_summary(diary),
            label="diary summary",
            timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
        )
        evidence = build_diary_evidence(summary_sections(outcome.value), diary)
        return self._finish(
            outcome.value.model_dump(),
            evidence=evidence,
            warnings=list(outcome.warnings),
            mode=outcome.mode,
            pii_detected_input=pii_in,
            output_mode=out_mode,
        )

    def report_ingest(
        self,
        text: str,
        *,
        enforce_input_gate: bool | None = None,
        output_mode: str | None = None,
    ) -> EngineResult:
        cleaned = _clean_report_text(_require_text(text, what="report text", max_chars=MAX_INPUT_CHARS))
        enforce, out_mode = self._resolve_policy(enforce_input_gate, output_mode)
        warnings: list[str] = []
        cleaned, truncated = truncate_for_processing(cleaned, self.config.MAX_TRANSCRIPT_CHARS)
        if truncated:
            warnings.append("Report truncated for processing.")
        logger.info("report_ingest_request text_len=%s", len(cleaned))

        pii_in = self._input_gate(cleaned, enforce)

        terms = detect_terms(cleaned)
        entities = self._entities(cleaned, warnings)
        if entities:
            terms = terms + entity_terms(cleaned, entities, known=terms)
        labs = extract_lab_values(cleaned, max_results=self.config.LAB_MAX_RESULTS)

        evidence = [term.evidence_link() for term in terms] + [_lab_link(lab) for lab in labs]
        payload: dict[str, Any] = {
            "cleaned_text": cleaned,
            "terms": [term.to_dict() for term in terms],
            "labs": [lab.to_dict() for lab in labs],
        }
        return self._finish(
            payload,
            evidence=evidence,
            warnings=warnings,
            mode="deterministic",
            pii_detected_input=pii_in,
            output_mode=out_mode,
        )

    def report_analyze(
        self,
        text: str,
        *,
        labs: Sequence[LabReading | Mapping[str, Any]] | None = None,
        enforce_input_gate: bool | None = None,
        output_mode: str | None = None,
    ) -> EngineResult:
        cleaned = _clean_report_text(_require_text(text, what="report text", max_chars=MAX_INPUT_CHARS))
        readings_hint = [_validate(LabReading, item, what="lab reading") for item in (labs or [])]
        enforce, out_mode = self._resolve_policy(enforce_input_gate, output_mode)
        warnings: list[str] = []
        cleaned, truncated = truncate_for_processing(cleaned, self.config.MAX_TRANSCRIPT_CHARS)
        if truncated:
            warnings.append("Report truncated for processing.")
        logger.info("report_analyze_request text_len=%s lab_hints=%s", len(cleaned), len(readings_hint))

        pii_in = self._input_gate(cleaned, enforce)

        extracted = extract_lab_values(cleaned, max_results=self.config.LAB_MAX_RESULTS)
        readings = readings_hint or [LabReading.from_lab_value(lab) for lab in extracted]

        outcome = generate_with_fallback(
            client=self.collaborators.generator,
            system_instruction=REPORT_SYSTEM_INSTRUCTION,
            user_payload=build_report_user_payload(cleaned, readings),
            schema=ReportAnalysisContract,
            deterministic=lambda: deterministic_report_analysis(readings),
            label="report analysis",
            timeout_sec=self.config.COLLABORATOR_TIMEOUT_SEC,
        )
        warnings.extend(outcome.warnings)

        evidence = build_evidence_from_search(cleaned, analysis_sections(outcome.value))
        evidence += [_lab_link(lab) for lab in extracted]
        payload = outcome.value.model_dump()
        payload["labs"] = [reading.model_dump() for reading in readings]
        return self._finish(
            payload,
            evidence=evidence,
            warnings=warnings,
            mode=outcome.mode,
            pii_detected_input=pii_in,
            output_mode=out_mode,
        )

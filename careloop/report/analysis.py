from __future__ import annotations

"""
Report analysis contract, prompt, and lab-driven deterministic fallback.

Design intent:
- Produce a clinician summary and a patient-friendly plan draft from one report.
- The fallback is built only from flagged lab readings; it never guesses findings.
"""

import json
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from careloop.evidence.claims import SectionClaims
from careloop.labs.extractor import LabValue

MAX_HYPOTHESES = 5
MAX_NEXT_STEPS = 6

REPORT_SYSTEM_INSTRUCTION = (
    "You are a clinical report explanation assistant.\n"
    "Return a STRICT JSON object only (no markdown, no extra keys).\n"
    "Schema:\n"
    "{\n"
    '  "clinician_summary": string,\n'
    '  "patient_plan_draft": string,\n'
    '  "hypotheses": [{"text": string, "confidence": number|null}],  // max 5\n'
    '  "next_steps": string[]                                       // max 6\n'
    "}\n"
    "Rules:\n"
    "- Use only facts present in the report and the parsed labs.\n"
    "- DO NOT diagnose. Hypotheses are for clinician review.\n"
    "- Write the patient plan in plain language.\n"
    "- DO NOT include personally identifying info."
)


class LabReading(BaseModel):
    """Lab hint supplied by the caller, typically the output of a prior ingest."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    value: float
    unit: Optional[str] = None
    ref_low: Optional[float] = None
    ref_high: Optional[float] = None
    flag: Literal["low", "normal", "high", "unknown"] = "unknown"

    @classmethod
    def from_lab_value(cls, lab: LabValue) -> "LabReading":
        return cls(
            name=lab.name,
            value=lab.value,
            unit=lab.unit,
            ref_low=lab.ref_low,
            ref_high=lab.ref_high,
            flag=lab.flag,
        )

    @property
    def abnormal(self) -> bool:
        return self.flag in ("low", "high")


class Hypothesis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = Field(min_length=1)
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class ReportAnalysisContract(BaseModel):
    model_config = ConfigDict(extra="ignore")

    clinician_summary: str = Field(min_length=1)
    patient_plan_draft: str = Field(min_length=1)
    hypotheses: List[Hypothesis] = Field(default_factory=list, max_length=MAX_HYPOTHESES)
    next_steps: List[str] = Field(default_factory=list, max_length=MAX_NEXT_STEPS)


def _fmt(value: float) -> str:
    return f"{value:g}"


def format_range(reading: LabReading) -> str:
    if reading.ref_low is not None and reading.ref_high is not None:
        return f"ref {_fmt(reading.ref_low)}–{_fmt(reading.ref_high)}"
    if reading.ref_high is not None:
        return f"ref <{_fmt(reading.ref_high)}"
    if reading.ref_low is not None:
        return f"ref >{_fmt(reading.ref_low)}"
    return "ref n/a"


def deterministic_report_analysis(readings: Sequence[LabReading]) -> ReportAnalysisContract:
    abnormal = [reading for reading in readings if reading.abnormal]

    findings = [
        f"- {r.name}: {_fmt(r.value)}{' ' + r.unit if r.unit else ''} ({format_range(r)}) → {r.flag}"
        for r in abnormal
    ]
    clinician = "\n".join(
        [
            "STRUCTURED SUMMARY (fallback)",
            "",
            "Abnormal / noteworthy findings:",
            *(findings or ["- None detected from parsed labs."]),
            "",
            "Interpretation (informational):",
            "- Abnormal values can be caused by many factors; correlate with symptoms/exam.",
            "",
            "Suggested next steps (draft, clinician review):",
            "- Re-check flagged labs if clinically indicated.",
            "- Monitor symptoms; follow local guidelines.",
        ]
    )

    watch = [f"- {r.name}: aim to move toward the reference range ({format_range(r)})" for r in abnormal]
    patient = "\n".join(
        [
            "PATIENT-FRIENDLY PLAN (fallback)",
            "",
            "What this likely means:",
            "This summary highlights numbers that are outside typical reference ranges. This is not a diagnosis.",
            "",
            "What to watch:",
            *(watch or ["- No flagged lab values found in this report text."]),
            "",
            "When to contact a clinician urgently:",
            "- New or worsening chest pain, severe shortness of breath, fainting, severe weakness, "
            "or any alarming symptoms.",
        ]
    )

    next_steps = ["Re-check flagged labs if clinically indicated."] if abnormal else []
    next_steps.append("Monitor symptoms; follow local guidelines.")
    return ReportAnalysisContract(
        clinician_summary=clinician,
        patient_plan_draft=patient,
        hypotheses=[],
        next_steps=next_steps,
    )


def build_report_user_payload(text: str, readings: Sequence[LabReading]) -> str:
    labs = [reading.model_dump() for reading in readings]
    return (
        "Medical report (synthetic/anonymized):\n"
        f"{text}\n\n"
        "Parsed labs (JSON array):\n"
        f"{json.dumps(labs, ensure_ascii=False)}\n"
        "Return the JSON schema exactly."
    )


def analysis_sections(analysis: ReportAnalysisContract) -> SectionClaims:
    return [
        ("hypothesis", [h.text.strip() for h in analysis.hypotheses if h.text.strip()]),
        ("next_step", [s.strip() for s in analysis.next_steps if s.strip()]),
    ]

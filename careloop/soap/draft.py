from __future__ import annotations

"""
SOAP drafting contract, prompt, and deterministic template.

Design intent:
- Accept each SOAP section as a list of lines or one free-text block.
- Derive the deterministic plan from an explicit "Plan:" marker in the transcript.
- Hand evidence linking plain (section, lines) pairs; model-supplied evidence is ignored.
"""

import re
from typing import List, Union

from pydantic import BaseModel, ConfigDict

from careloop.evidence.claims import SectionClaims, as_lines

SectionValue = Union[List[str], str]

DEFAULT_PLAN_LINE = "Follow-up as discussed."

_PLAN_MARKER_RE = re.compile(r"plan:\s*(.+)$", re.IGNORECASE)
_PLAN_SPLIT_RE = re.compile(r"[,;.]")

SOAP_SYSTEM_INSTRUCTION = (
    "You are a clinical documentation assistant.\n"
    "Return a STRICT JSON object only (no markdown, no extra keys).\n"
    "Schema:\n"
    "{\n"
    '  "subjective": string[]|string,\n'
    '  "objective": string[]|string,\n'
    '  "assessment": string[]|string,\n'
    '  "plan": string[]|string\n'
    "}\n"
    "Rules:\n"
    "- Use cautious language (informational, not definitive diagnosis).\n"
    "- Prefer concise bullet-like lines.\n"
    "- Do NOT include any personally identifying info.\n"
    "- If unsure, include it as a note for clinician review in the appropriate section."
)


class SoapContract(BaseModel):
    # Models sometimes echo an "evidence" key; it is dropped and recomputed locally.
    model_config = ConfigDict(extra="ignore")

    subjective: SectionValue
    objective: SectionValue
    assessment: SectionValue
    plan: SectionValue


def build_soap_user_payload(transcript: str) -> str:
    return f"Transcript (synthetic/anonymized):\n{transcript}"


def deterministic_soap(transcript: str) -> SoapContract:
    match = _PLAN_MARKER_RE.search(str(transcript or ""))
    plan: list[str] = []
    if match:
        plan = [part.strip() for part in _PLAN_SPLIT_RE.split(match.group(1)) if part.strip()]
    return SoapContract(
        subjective=["Patient reports symptoms as described in transcript."],
        objective=["No objective measurements provided in transcript."],
        assessment=["Assessment based on transcript (informational only)."],
        plan=plan or [DEFAULT_PLAN_LINE],
    )


def soap_sections(contract: SoapContract) -> SectionClaims:
    return [
        ("subjective", as_lines(contract.subjective)),
        ("objective", as_lines(contract.objective)),
        ("assessment", as_lines(contract.assessment)),
        ("plan", as_lines(contract.plan)),
    ]

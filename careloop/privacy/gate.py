from __future__ import annotations

"""
Two-sided PII enforcement boundary.

Design intent:
- Input side: refuse to generate anything from text that carries PII when enforced.
- Output side: walk every string leaf of the assembled payload; redact or block.
- Keep the walk an explicit visitor over JSON value kinds, no attribute reflection.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Union, cast

from careloop.collaborators.base import PiiDetector
from careloop.collaborators.invoke import DEFAULT_TIMEOUT_SEC
from careloop.errors import PiiDetectedError, PiiDetectedOutputError
from careloop.internal_core.config import OutputPiiMode

from .redaction import RedactionOutcome, detect_and_redact

JsonValue = Union[str, int, float, bool, None, list["JsonValue"], dict[str, "JsonValue"]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputGateResult:
    payload: dict[str, JsonValue]
    pii_detected: bool
    mode: OutputPiiMode


def enforce_input_gate(
    text: str,
    *,
    enabled: bool,
    detector: PiiDetector | None = None,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    message: str = "PII detected. Please redact before continuing.",
) -> bool:
    """Run the input gate; raise PiiDetectedError when it is enforced and trips.

    Detection only runs when the gate is enforced, and a positive result aborts
    the request, so a request that gets past this point always reports False.
    """
    if not enabled or not str(text or "").strip():
        return False
    outcome = detect_and_redact(text, detector=detector, timeout_sec=timeout_sec)
    if outcome.pii_detected:
        logger.info("input_gate_tripped text_len=%s", len(text))
        raise PiiDetectedError(message)
    return False


def redact_tree(value: JsonValue, redact_one: Callable[[str], RedactionOutcome]) -> tuple[JsonValue, bool]:
    if value is None or isinstance(value, bool):
        return value, False
    if isinstance(value, str):
        outcome = redact_one(value)
        return outcome.redacted_text, outcome.pii_detected
    if isinstance(value, (int, float)):
        return value, False
    if isinstance(value, list):
        items: list[JsonValue] = []
        detected = False
        for item in value:
            redacted, hit = redact_tree(item, redact_one)
            items.append(redacted)
            detected = detected or hit
        return items, detected
    if isinstance(value, dict):
        mapped: dict[str, JsonValue] = {}
        detected = False
        for key, item in value.items():
            redacted, hit = redact_tree(item, redact_one)
            mapped[str(key)] = redacted
            detected = detected or hit
        return mapped, detected
    raise TypeError(f"Unsupported payload value type: {type(value).__name__}")


def apply_output_gate(
    payload: dict[str, Any],
    *,
    mode: OutputPiiMode,
    detector: PiiDetector | None = None,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    message: str = "PII detected in generated output. Please adjust input and try again.",
) -> OutputGateResult:
    if not isinstance(payload, dict):
        raise TypeError(f"Output payload must be a mapping, got {type(payload).__name__}")
    if mode == "off":
        return OutputGateResult(payload=payload, pii_detected=False, mode=mode)

    def redact_one(text: str) -> RedactionOutcome:
        return detect_and_redact(text, detector=detector, timeout_sec=timeout_sec)

    redacted, detected = redact_tree(payload, redact_one)
    if detected and mode == "block":
        logger.info("output_gate_blocked mode=%s", mode)
        raise PiiDetectedOutputError(message)
    return OutputGateResult(payload=cast(dict[str, Any], redacted), pii_detected=detected, mode=mode)

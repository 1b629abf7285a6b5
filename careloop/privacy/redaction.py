from __future__ import annotations

"""
Best-effort PII detection and redaction for a single string.

Design intent:
- Prefer the injected PII detector when it is configured and answers in time.
- Fall back to deterministic email/phone patterns so the gate never fails open silently.
- Keep placeholder tokens stable so re-redaction is a no-op.
"""

import logging
import re
from dataclasses import dataclass

from careloop.collaborators.base import PiiDetector
from careloop.collaborators.invoke import DEFAULT_TIMEOUT_SEC, invoke_collaborator
from careloop.errors import CollaboratorUnavailableError

REDACTED_EMAIL = "[REDACTED_EMAIL]"
REDACTED_PHONE = "[REDACTED_PHONE]"

_EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
# Loose digit groupings. The lookbehind keeps decimals and mid-number runs out;
# ISO dates and bare lab values never satisfy any branch.
_PHONE_RE = re.compile(
    r"(?<![\w.+])(?:"
    r"\+\d{1,3}(?:[\s.-]?\(?\d{1,4}\)?){2,5}"
    r"|\(?\d{2,4}\)?[\s.-]?\d{3}[\s.-]?\d{3,4}"
    r"|\d{2}(?:[\s.-]\d{2}){4}"
    r"|\d{3}[\s.-]\d{4}"
    r")\b"
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedactionOutcome:
    redacted_text: str
    pii_detected: bool


def regex_redact(text: str) -> RedactionOutcome:
    original = str(text or "")
    redacted = _EMAIL_RE.sub(REDACTED_EMAIL, original)
    redacted = _PHONE_RE.sub(REDACTED_PHONE, redacted)
    return RedactionOutcome(redacted_text=redacted, pii_detected=redacted != original)


def detect_and_redact(
    text: str,
    *,
    detector: PiiDetector | None = None,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> RedactionOutcome:
    original = str(text or "")
    if detector is None:
        return regex_redact(original)
    try:
        detection = invoke_collaborator("pii_detector", detector.detect, original, timeout_sec=timeout_sec)
    except CollaboratorUnavailableError:
        logger.info("pii_detector_fallback reason=unavailable text_len=%s", len(original))
        return regex_redact(original)

    redacted = str(detection.redacted_text if detection.redacted_text is not None else original)
    return RedactionOutcome(
        redacted_text=redacted,
        pii_detected=bool(detection.pii_signal) or redacted != original,
    )

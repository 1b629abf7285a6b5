"""
Privacy boundary for CareLoop.

Design intent:
- Detect and redact PII on both sides of generation.
- Degrade to deterministic patterns when the detector is unavailable.
"""
from .gate import OutputGateResult, apply_output_gate, enforce_input_gate
from .redaction import RedactionOutcome, detect_and_redact, regex_redact

__all__ = [
    "OutputGateResult",
    "RedactionOutcome",
    "apply_output_gate",
    "detect_and_redact",
    "enforce_input_gate",
    "regex_redact",
]

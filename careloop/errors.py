from __future__ import annotations

"""
Error taxonomy shared by the engine and its callers.

Design intent:
- Give every surfaced failure a stable machine code so transports can map it.
- Keep messages free of source text, claim text, and PII.
"""


class CareloopError(RuntimeError):
    code = "CARELOOP_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class InputValidationError(CareloopError):
    """Malformed caller input. Always surfaced directly."""

    code = "VALIDATION_ERROR"


class PiiDetectedError(CareloopError):
    """Input gate tripped; nothing was generated."""

    code = "PII_DETECTED"


class PiiDetectedOutputError(CareloopError):
    """Output gate tripped in block mode; the payload was discarded."""

    code = "PII_DETECTED_OUTPUT"


class SchemaMismatchError(CareloopError):
    """Even the deterministic generator produced output outside its contract."""

    code = "SCHEMA_MISMATCH"


class CollaboratorUnavailableError(CareloopError):
    """Collaborator absent, failed, or timed out. Recovered locally, never surfaced."""

    code = "COLLABORATOR_UNAVAILABLE"

    def __init__(self, message: str, *, collaborator: str):
        super().__init__(message)
        self.collaborator = collaborator

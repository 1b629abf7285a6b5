from __future__ import annotations

"""
Typed transcript contracts shared by intake and evidence linking.

Design intent:
- Enforce timestamp-valid segment payloads at the engine boundary.
- Keep placeholder output shape identical to real speech-to-text output.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Segment(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)
    text: str = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_window(self) -> "Segment":
        if self.end_ms < self.start_ms:
            raise ValueError("Segment.end_ms must be >= Segment.start_ms")
        return self


class TranscriptionResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    transcript: str
    segments: list[Segment] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

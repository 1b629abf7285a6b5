from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from careloop.asr.models import TranscriptionResult


@dataclass(frozen=True)
class PiiDetection:
    redacted_text: str
    pii_signal: bool


@dataclass(frozen=True)
class HealthcareEntity:
    text: str
    category: str
    confidence: Optional[float] = None
    offset: Optional[int] = None
    length: Optional[int] = None


class SpeechToText(ABC):
    @abstractmethod
    def transcribe(self, audio_bytes: bytes) -> TranscriptionResult: ...

    @abstractmethod
    def name(self) -> str: ...


class GenerationClient(ABC):
    @abstractmethod
    def complete(self, system_instruction: str, user_payload: str) -> str: ...

    @abstractmethod
    def name(self) -> str: ...


class PiiDetector(ABC):
    @abstractmethod
    def detect(self, text: str) -> PiiDetection: ...

    @abstractmethod
    def name(self) -> str: ...


class EntityExtractor(ABC):
    @abstractmethod
    def extract(self, text: str) -> list[HealthcareEntity]: ...

    @abstractmethod
    def name(self) -> str: ...


@dataclass(frozen=True)
class Collaborators:
    """Process-wide collaborator handles; any of them may be absent."""

    generator: Optional[GenerationClient] = None
    pii_detector: Optional[PiiDetector] = None
    entity_extractor: Optional[EntityExtractor] = None
    speech_to_text: Optional[SpeechToText] = None

from __future__ import annotations

from careloop.internal_core.config import EngineConfig

from .base import (
    Collaborators,
    EntityExtractor,
    GenerationClient,
    HealthcareEntity,
    PiiDetection,
    PiiDetector,
    SpeechToText,
)
from .invoke import invoke_collaborator
from .llama_cpp_client import GenerationClientError, LlamaCppGenerationClient


def build_collaborators(
    config: EngineConfig,
    *,
    pii_detector: PiiDetector | None = None,
    entity_extractor: EntityExtractor | None = None,
    speech_to_text: SpeechToText | None = None,
) -> Collaborators:
    # The local model is only wired when a model path resolved; the handle itself stays lazy.
    generator = LlamaCppGenerationClient.from_config(config) if config.LLM_MODEL_PATH else None
    return Collaborators(
        generator=generator,
        pii_detector=pii_detector,
        entity_extractor=entity_extractor,
        speech_to_text=speech_to_text,
    )


__all__ = [
    "Collaborators",
    "EntityExtractor",
    "GenerationClient",
    "GenerationClientError",
    "HealthcareEntity",
    "LlamaCppGenerationClient",
    "PiiDetection",
    "PiiDetector",
    "SpeechToText",
    "build_collaborators",
    "invoke_collaborator",
]

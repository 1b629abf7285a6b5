from __future__ import annotations

"""
Transcription intake around the speech-to-text collaborator.

Design intent:
- Always hand downstream steps a transcript with segments, even when recognition fails.
- Bound transcript length before any generation or evidence step sees it.
"""

import logging

from careloop.collaborators.base import SpeechToText
from careloop.collaborators.invoke import DEFAULT_TIMEOUT_SEC, invoke_collaborator
from careloop.errors import CollaboratorUnavailableError, InputValidationError

from .models import Segment, TranscriptionResult

PLACEHOLDER_TRANSCRIPT = "Mock transcript (set speech-to-text credentials for real transcription)."
PLACEHOLDER_SEGMENTS: tuple[Segment, ...] = (
    Segment(start_ms=0, end_ms=2000, text="Mock transcript segment."),
    Segment(start_ms=2000, end_ms=5000, text="Configure speech-to-text for real segments."),
)

WARNING_STT_UNAVAILABLE = "Speech-to-text unavailable; returned placeholder transcript."
WARNING_TRUNCATED = "Transcript truncated for processing."

logger = logging.getLogger(__name__)


def truncate_for_processing(text: str, max_chars: int) -> tuple[str, bool]:
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars], True


def transcribe_audio(
    audio_bytes: bytes,
    *,
    speech_to_text: SpeechToText | None,
    max_chars: int,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> TranscriptionResult:
    if not audio_bytes:
        raise InputValidationError("Missing audio payload.")

    warnings: list[str] = []
    fn = speech_to_text.transcribe if speech_to_text is not None else None
    try:
        result = invoke_collaborator("speech_to_text", fn, audio_bytes, timeout_sec=timeout_sec)
        transcript = str(result.transcript or "").strip()
        segments = list(result.segments)
        warnings.extend(result.warnings)
    except CollaboratorUnavailableError:
        transcript = PLACEHOLDER_TRANSCRIPT
        segments = list(PLACEHOLDER_SEGMENTS)
        warnings.append(WARNING_STT_UNAVAILABLE)

    transcript, truncated = truncate_for_processing(transcript, max_chars)
    if truncated:
        warnings.append(WARNING_TRUNCATED)

    logger.info(
        "transcribe_done audio_bytes=%s transcript_len=%s segments=%s warnings=%s",
        len(audio_bytes),
        len(transcript),
        len(segments),
        len(warnings),
    )
    return TranscriptionResult(transcript=transcript, segments=segments, warnings=warnings)

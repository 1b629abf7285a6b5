from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

OutputPiiMode = Literal["off", "redact", "block"]

OUTPUT_PII_MODES: tuple[str, ...] = ("off", "redact", "block")

logger = logging.getLogger(__name__)


def _project_root() -> Path:
    # careloop/internal_core/config.py -> careloop -> project
    return Path(__file__).resolve().parents[2]


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_opt_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _clamp_int(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def _getenv_output_mode(name: str, default: OutputPiiMode) -> OutputPiiMode:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    normalized = raw.strip().lower()
    if normalized not in OUTPUT_PII_MODES:
        # Never echo the raw value; it may be a mistyped secret.
        logger.warning("config_warning name=%s reason=invalid_output_mode fallback=%s", name, default)
        return default
    return normalized  # type: ignore[return-value]


def discover_generation_model() -> str:
    root = _project_root()
    model_root = os.getenv("CARELOOP_MODEL_ROOT", "").strip()
    prefixes: list[Path] = []
    if model_root:
        prefixes.append(Path(model_root).expanduser())
    prefixes.extend([root, root / "models", root.parent / "models"])
    for base in prefixes:
        for candidate in sorted(base.glob("*.gguf")) if base.is_dir() else []:
            try:
                return str(candidate.resolve())
            except OSError:
                continue
    return ""


@dataclass(frozen=True)
class EngineConfig:
    MAX_TRANSCRIPT_CHARS: int = 50_000
    OUTPUT_PII_MODE: OutputPiiMode = "redact"
    DEFAULT_ENFORCE_REDACTION: bool = False
    DIARY_SUMMARY_MAX_ENTRIES: int = 30
    DIARY_NOTES_MAX_CHARS: int = 400
    LAB_MAX_RESULTS: int = 60
    COLLABORATOR_TIMEOUT_SEC: float = 20.0
    LLM_MODEL_PATH: str = ""
    LLM_CHAT_FORMAT: str = "gemma"
    LLM_MAX_TOKENS: int = 768
    LLM_TEMPERATURE: float = 0.2
    LLM_N_CTX: int = 4096
    LLM_N_GPU_LAYERS: int = -1
    LLM_N_THREADS: Optional[int] = None
    LOG_LEVEL: str = "INFO"


def load_config() -> EngineConfig:
    model_path = _getenv_str("CARELOOP_LLM_MODEL_PATH", "").strip() or discover_generation_model()
    return EngineConfig(
        MAX_TRANSCRIPT_CHARS=max(1, _getenv_int("CARELOOP_MAX_TRANSCRIPT_CHARS", 50_000)),
        OUTPUT_PII_MODE=_getenv_output_mode("CARELOOP_OUTPUT_PII_MODE", "redact"),
        DEFAULT_ENFORCE_REDACTION=_getenv_bool("CARELOOP_DEFAULT_ENFORCE_REDACTION", False),
        DIARY_SUMMARY_MAX_ENTRIES=_clamp_int(
            _getenv_int("CARELOOP_DIARY_SUMMARY_MAX_ENTRIES", 30), 1, 365
        ),
        DIARY_NOTES_MAX_CHARS=_clamp_int(_getenv_int("CARELOOP_DIARY_NOTES_MAX_CHARS", 400), 0, 2000),
        LAB_MAX_RESULTS=max(1, _getenv_int("CARELOOP_LAB_MAX_RESULTS", 60)),
        COLLABORATOR_TIMEOUT_SEC=max(0.1, _getenv_float("CARELOOP_COLLABORATOR_TIMEOUT_SEC", 20.0)),
        LLM_MODEL_PATH=model_path,
        LLM_CHAT_FORMAT=_getenv_str("CARELOOP_LLM_CHAT_FORMAT", "gemma"),
        LLM_MAX_TOKENS=_clamp_int(_getenv_int("CARELOOP_LLM_MAX_TOKENS", 768), 64, 4096),
        LLM_TEMPERATURE=min(1.0, max(0.0, _getenv_float("CARELOOP_LLM_TEMPERATURE", 0.2))),
        LLM_N_CTX=_clamp_int(_getenv_int("CARELOOP_LLM_N_CTX", 4096), 512, 32768),
        LLM_N_GPU_LAYERS=_getenv_int("CARELOOP_LLM_N_GPU_LAYERS", -1),
        LLM_N_THREADS=_getenv_opt_int("CARELOOP_LLM_N_THREADS"),
        LOG_LEVEL=_getenv_str("CARELOOP_LOG_LEVEL", "INFO"),
    )

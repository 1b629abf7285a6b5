from __future__ import annotations

"""
Primary-then-deterministic generation with contract validation.

Design intent:
- The model path is optional: absence, failure, non-JSON, and schema drift all degrade.
- The deterministic generator is the safety net and is validated against the same contract.
- Record which path produced the value as a human-readable warning; log only warning codes.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Literal, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from careloop.collaborators.base import GenerationClient
from careloop.collaborators.invoke import DEFAULT_TIMEOUT_SEC, invoke_collaborator
from careloop.errors import CollaboratorUnavailableError, SchemaMismatchError

T = TypeVar("T", bound=BaseModel)

GenerationMode = Literal["llm", "deterministic"]

WARNING_UNAVAILABLE = "generator_unavailable"
WARNING_NOT_CONFIGURED = "generator_not_configured"
WARNING_NON_JSON = "generator_non_json"
WARNING_SCHEMA = "generator_schema_mismatch"
WARNING_MODEL = "generator_model"

_WARNING_TEXT = {
    WARNING_MODEL: "{label} generated by the language model; review before use.",
    WARNING_NOT_CONFIGURED: "Generation model not configured; using deterministic {label}.",
    WARNING_UNAVAILABLE: "Generation model unavailable; falling back to deterministic {label}.",
    WARNING_NON_JSON: "Model returned non-JSON output; falling back to deterministic {label}.",
    WARNING_SCHEMA: "Model output did not match the {label} contract; falling back to deterministic {label}.",
}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOutcome(Generic[T]):
    mode: GenerationMode
    value: T
    warnings: list[str] = field(default_factory=list)


def generation_warning(code: str, label: str) -> str:
    return _WARNING_TEXT[code].format(label=label)


def generate_with_fallback(
    *,
    client: GenerationClient | None,
    system_instruction: str,
    user_payload: str,
    schema: type[T],
    deterministic: Callable[[], T | Mapping[str, Any]],
    label: str,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> GenerationOutcome[T]:
    """Return a validated `schema` instance, produced by the model when possible.

    Raises SchemaMismatchError only when the deterministic generator itself
    violates the contract.
    """
    primary = _try_primary(client, system_instruction, user_payload, timeout_sec)
    if isinstance(primary, str):
        code = primary
    else:
        try:
            value = schema.model_validate(primary)
        except ValidationError as exc:
            logger.info("generation_schema_errors label=%s error_count=%s", label, exc.error_count())
            code = WARNING_SCHEMA
        else:
            logger.info("generation_done label=%s mode=llm", label)
            return GenerationOutcome(mode="llm", value=value, warnings=[generation_warning(WARNING_MODEL, label)])

    logger.info("generation_fallback label=%s code=%s", label, code)
    return GenerationOutcome(
        mode="deterministic",
        value=_run_deterministic(schema, deterministic, label),
        warnings=[generation_warning(code, label)],
    )


def _try_primary(
    client: GenerationClient | None,
    system_instruction: str,
    user_payload: str,
    timeout_sec: float,
) -> dict[str, Any] | str:
    """Return the parsed JSON object, or the warning code describing why there is none."""
    if client is None:
        return WARNING_NOT_CONFIGURED
    try:
        raw = invoke_collaborator(
            "generator", client.complete, system_instruction, user_payload, timeout_sec=timeout_sec
        )
    except CollaboratorUnavailableError:
        return WARNING_UNAVAILABLE
    payload = parse_json_object(str(raw or ""))
    if payload is None:
        return WARNING_NON_JSON
    return payload


def _run_deterministic(schema: type[T], deterministic: Callable[[], T | Mapping[str, Any]], label: str) -> T:
    produced = deterministic()
    data = produced.model_dump() if isinstance(produced, BaseModel) else dict(produced)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        logger.error("deterministic_contract_broken label=%s error_count=%s", label, exc.error_count())
        raise SchemaMismatchError(f"Deterministic {label} violated its contract; upstream contract broken.") from exc


def parse_json_object(raw: str) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            return data
    except ValueError:
        pass

    extracted = _extract_first_json_object(raw)
    if not extracted:
        return None
    try:
        data = json.loads(extracted)
        if isinstance(data, dict):
            return data
    except ValueError:
        return None
    return None


def _extract_first_json_object(text: str) -> str:
    start = text.find("{")
    if start < 0:
        return ""
    depth = 0
    in_str = False
    escape = False
    for i, ch in enumerate(text[start:], start=start):
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return ""

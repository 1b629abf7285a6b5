import threading

import pytest
from pydantic import BaseModel, Field

from careloop.collaborators.base import GenerationClient
from careloop.errors import SchemaMismatchError
from careloop.generation.orchestrator import generate_with_fallback, parse_json_object


class PlanContract(BaseModel):
    plan: list[str] = Field(min_length=1)


class ScriptedClient(GenerationClient):
    def __init__(self, response: str = "", error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls = 0

    def name(self) -> str:
        return "scripted"

    def complete(self, system_instruction: str, user_payload: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.response


class HangingClient(GenerationClient):
    def __init__(self) -> None:
        self.release = threading.Event()

    def name(self) -> str:
        return "hanging"

    def complete(self, system_instruction: str, user_payload: str) -> str:
        self.release.wait(5)
        return '{"plan": ["late"]}'


def _run(client, deterministic=lambda: {"plan": ["Follow-up as discussed."]}, timeout_sec=5.0):
    return generate_with_fallback(
        client=client,
        system_instruction="Return JSON.",
        user_payload="Transcript",
        schema=PlanContract,
        deterministic=deterministic,
        label="plan",
        timeout_sec=timeout_sec,
    )


def test_valid_model_output_is_used() -> None:
    client = ScriptedClient('{"plan": ["Rest", "Fluids"]}')
    outcome = _run(client)

    assert outcome.mode == "llm"
    assert outcome.value == PlanContract(plan=["Rest", "Fluids"])
    assert outcome.warnings == ["plan generated by the language model; review before use."]
    assert client.calls == 1


def test_throwing_generator_falls_back_to_deterministic() -> None:
    outcome = _run(ScriptedClient(error=RuntimeError("boom")))

    assert outcome.mode == "deterministic"
    assert outcome.value.plan == ["Follow-up as discussed."]
    assert len(outcome.warnings) > 0
    assert "unavailable" in outcome.warnings[0]


def test_missing_generator_falls_back_with_warning() -> None:
    outcome = _run(None)
    assert outcome.mode == "deterministic"
    assert outcome.warnings == ["Generation model not configured; using deterministic plan."]


def test_non_json_output_falls_back() -> None:
    outcome = _run(ScriptedClient("I think the plan is rest."))
    assert outcome.mode == "deterministic"
    assert "non-JSON" in outcome.warnings[0]


def test_schema_mismatch_falls_back() -> None:
    outcome = _run(ScriptedClient('{"plan": []}'))
    assert outcome.mode == "deterministic"
    assert "contract" in outcome.warnings[0]


def test_json_wrapped_in_prose_is_extracted() -> None:
    outcome = _run(ScriptedClient('Sure! ```json\n{"plan": ["Rest {quietly}"]}\n``` Done.'))
    assert outcome.mode == "llm"
    assert outcome.value.plan == ["Rest {quietly}"]


def test_slow_generator_times_out_to_deterministic() -> None:
    client = HangingClient()
    try:
        outcome = _run(client, timeout_sec=0.05)
    finally:
        client.release.set()
    assert outcome.mode == "deterministic"
    assert outcome.warnings


def test_broken_deterministic_output_raises_schema_mismatch() -> None:
    with pytest.raises(SchemaMismatchError) as exc_info:
        _run(None, deterministic=lambda: {"plan": []})
    assert exc_info.value.code == "SCHEMA_MISMATCH"


def test_deterministic_may_return_model_instance() -> None:
    outcome = _run(None, deterministic=lambda: PlanContract(plan=["Rest"]))
    assert outcome.value.plan == ["Rest"]


def test_parse_json_object() -> None:
    assert parse_json_object('{"a": 1}') == {"a": 1}
    assert parse_json_object('prefix {"a": {"b": "}"}} suffix') == {"a": {"b": "}"}}
    assert parse_json_object("[1, 2]") is None
    assert parse_json_object("") is None
    assert parse_json_object("{broken") is None

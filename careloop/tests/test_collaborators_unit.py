import sys
import threading
from types import SimpleNamespace

import pytest

from careloop.collaborators import build_collaborators
from careloop.collaborators.invoke import MAX_COLLABORATOR_WORKERS, invoke_collaborator
from careloop.collaborators.llama_cpp_client import GenerationClientError, LlamaCppGenerationClient
from careloop.errors import CollaboratorUnavailableError
from careloop.internal_core.config import EngineConfig


def test_invoke_collaborator_returns_result() -> None:
    assert invoke_collaborator("adder", lambda a, b: a + b, 2, 3) == 5


def test_invoke_collaborator_missing_is_unavailable() -> None:
    with pytest.raises(CollaboratorUnavailableError) as exc_info:
        invoke_collaborator("pii_detector", None, "text")
    assert exc_info.value.collaborator == "pii_detector"
    assert exc_info.value.code == "COLLABORATOR_UNAVAILABLE"


def test_invoke_collaborator_wraps_exceptions() -> None:
    def boom(_text: str) -> str:
        raise ValueError("secret patient text")

    with pytest.raises(CollaboratorUnavailableError) as exc_info:
        invoke_collaborator("generator", boom, "x")
    assert "secret patient text" not in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_invoke_collaborator_deadline() -> None:
    release = threading.Event()
    try:
        with pytest.raises(CollaboratorUnavailableError):
            invoke_collaborator("generator", release.wait, 5, timeout_sec=0.05)
    finally:
        release.set()


def test_invoke_collaborator_reuses_bounded_worker_pool() -> None:
    names = {invoke_collaborator("namer", lambda: threading.current_thread().name) for _ in range(50)}

    assert len(names) <= MAX_COLLABORATOR_WORKERS
    assert all(name.startswith("careloop-collaborator") for name in names)
    assert threading.current_thread().name not in names


def test_build_collaborators_without_model_path_has_no_generator() -> None:
    bundle = build_collaborators(EngineConfig(LLM_MODEL_PATH=""))
    assert bundle.generator is None
    assert bundle.pii_detector is None


def test_build_collaborators_with_model_path_is_lazy(tmp_path) -> None:
    bundle = build_collaborators(EngineConfig(LLM_MODEL_PATH=str(tmp_path / "missing.gguf")))
    assert isinstance(bundle.generator, LlamaCppGenerationClient)


def test_llama_client_requests_json_and_chat_format(monkeypatch, tmp_path) -> None:
    seen: dict = {}

    class FakeLlama:
        def __init__(self, **kwargs) -> None:
            seen["init"] = kwargs

        def create_chat_completion(self, **kwargs):
            seen["call"] = kwargs
            return {"choices": [{"message": {"content": ' {"plan": ["Rest"]} '}}]}

    monkeypatch.setitem(sys.modules, "llama_cpp", SimpleNamespace(Llama=FakeLlama))
    model_path = tmp_path / "mock.gguf"
    model_path.write_text("x", encoding="utf-8")

    client = LlamaCppGenerationClient(model_path=str(model_path), chat_format="gemma", n_threads=2)
    raw = client.complete("system", "user")

    assert raw == '{"plan": ["Rest"]}'
    assert seen["init"]["chat_format"] == "gemma"
    assert seen["init"]["n_threads"] == 2
    assert seen["call"]["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in seen["call"]["messages"]] == ["system", "user"]
    assert client.chat_format_applied is True
    assert client.response_format_supported is True


def test_llama_client_falls_back_when_kwargs_unsupported(monkeypatch, tmp_path) -> None:
    class FakeLlama:
        instances = 0

        def __init__(self, **kwargs) -> None:
            if "chat_format" in kwargs:
                raise TypeError("Llama.__init__() got an unexpected keyword argument 'chat_format'")
            FakeLlama.instances += 1

        def create_chat_completion(self, **kwargs):
            if "response_format" in kwargs:
                raise TypeError("create_chat_completion() got an unexpected keyword argument 'response_format'")
            return {"choices": [{"message": {"content": '{"ok": true}'}}]}

    monkeypatch.setitem(sys.modules, "llama_cpp", SimpleNamespace(Llama=FakeLlama))
    model_path = tmp_path / "mock.gguf"
    model_path.write_text("x", encoding="utf-8")

    client = LlamaCppGenerationClient(model_path=str(model_path))
    assert client.complete("system", "user") == '{"ok": true}'
    assert client.complete("system", "user") == '{"ok": true}'

    assert client.chat_format_applied is False
    assert client.response_format_supported is False
    assert FakeLlama.instances == 1


def test_llama_client_missing_model_raises(tmp_path) -> None:
    with pytest.raises(GenerationClientError):
        LlamaCppGenerationClient(model_path="").complete("s", "u")
    with pytest.raises(GenerationClientError):
        LlamaCppGenerationClient(model_path=str(tmp_path / "nope.gguf")).complete("s", "u")


def test_llama_client_empty_output_raises(monkeypatch, tmp_path) -> None:
    class FakeLlama:
        def __init__(self, **kwargs) -> None:
            pass

        def create_chat_completion(self, **kwargs):
            return {"choices": [{"message": {"content": None}}]}

    monkeypatch.setitem(sys.modules, "llama_cpp", SimpleNamespace(Llama=FakeLlama))
    model_path = tmp_path / "mock.gguf"
    model_path.write_text("x", encoding="utf-8")

    with pytest.raises(GenerationClientError):
        LlamaCppGenerationClient(model_path=str(model_path)).complete("s", "u")

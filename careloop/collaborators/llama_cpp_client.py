from __future__ import annotations

"""
Local GGUF generation client backed by llama-cpp-python.

Design intent:
- Build the model handle lazily, once per process, and reuse it read-only.
- Ask for a JSON object response when the runtime supports it.
- Raise GenerationClientError on every failure so the orchestrator can fall back.
"""

import logging
import os
import threading
import time
from typing import Any, Sequence

from careloop.internal_core.config import EngineConfig

from .base import GenerationClient

DEFAULT_STOP_SEQUENCES: tuple[str, ...] = ("<end_of_turn>", "</s>")

logger = logging.getLogger(__name__)


class GenerationClientError(RuntimeError):
    """Raised when local generation cannot run or returns no content."""


class LlamaCppGenerationClient(GenerationClient):
    def __init__(
        self,
        *,
        model_path: str,
        chat_format: str = "gemma",
        max_tokens: int = 768,
        temperature: float = 0.2,
        n_ctx: int = 4096,
        n_gpu_layers: int = -1,
        n_threads: int | None = None,
        stop_sequences: Sequence[str] = DEFAULT_STOP_SEQUENCES,
    ) -> None:
        self._model_path = str(model_path or "").strip()
        self._chat_format = chat_format
        self._max_tokens = int(max_tokens)
        self._temperature = float(temperature)
        self._n_ctx = int(n_ctx)
        self._n_gpu_layers = int(n_gpu_layers)
        self._n_threads = n_threads
        self._stop_sequences = list(stop_sequences)
        self._llm: Any = None
        self._lock = threading.Lock()
        self.chat_format_applied: bool | None = None
        self.response_format_supported: bool | None = None

    @classmethod
    def from_config(cls, config: EngineConfig) -> "LlamaCppGenerationClient":
        return cls(
            model_path=config.LLM_MODEL_PATH,
            chat_format=config.LLM_CHAT_FORMAT,
            max_tokens=config.LLM_MAX_TOKENS,
            temperature=config.LLM_TEMPERATURE,
            n_ctx=config.LLM_N_CTX,
            n_gpu_layers=config.LLM_N_GPU_LAYERS,
            n_threads=config.LLM_N_THREADS,
        )

    def name(self) -> str:
        return "llama_cpp"

    def complete(self, system_instruction: str, user_payload: str) -> str:
        llm = self._get_llm()
        started = time.perf_counter()
        try:
            raw = self._run_chat_completion(
                llm,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": user_payload},
                ],
            )
        except GenerationClientError:
            raise
        except Exception as exc:
            raise GenerationClientError(f"llama_cpp inference failed: {type(exc).__name__}") from exc
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info("generation_done backend=llama_cpp elapsed_ms=%s output_chars=%s", elapsed_ms, len(raw))
        if not raw:
            raise GenerationClientError("llama_cpp returned empty content.")
        return raw

    def _get_llm(self) -> Any:
        with self._lock:
            if self._llm is not None:
                return self._llm
            if not self._model_path:
                raise GenerationClientError(
                    "Generation model path is missing. Set CARELOOP_LLM_MODEL_PATH "
                    "or place a GGUF model under the local model directory."
                )
            if not os.path.exists(self._model_path):
                raise GenerationClientError("Generation model file not found.")
            try:
                from llama_cpp import Llama  # type: ignore
            except Exception as exc:
                raise GenerationClientError(f"llama_cpp import failed: {exc}") from exc

            llm_kwargs: dict[str, Any] = {
                "model_path": self._model_path,
                "n_ctx": self._n_ctx,
                "n_gpu_layers": self._n_gpu_layers,
                "verbose": False,
                "chat_format": self._chat_format,
            }
            if self._n_threads is not None:
                llm_kwargs["n_threads"] = int(self._n_threads)
            try:
                self._llm = Llama(**llm_kwargs)
                self.chat_format_applied = True
            except TypeError as exc:
                if "chat_format" not in str(exc):
                    raise GenerationClientError(f"llama_cpp init failed: {exc}") from exc
                llm_kwargs.pop("chat_format", None)
                self._llm = Llama(**llm_kwargs)
                self.chat_format_applied = False
            except Exception as exc:
                raise GenerationClientError(f"llama_cpp init failed: {type(exc).__name__}") from exc
            return self._llm

    def _run_chat_completion(self, llm: Any, *, messages: list[dict[str, str]]) -> str:
        completion_kwargs: dict[str, Any] = {
            "messages": messages,
            "temperature": self._temperature,
            "top_p": 1.0,
            "max_tokens": self._max_tokens,
            "stop": list(self._stop_sequences),
        }
        if self.response_format_supported is not False:
            completion_kwargs["response_format"] = {"type": "json_object"}

        try:
            resp = llm.create_chat_completion(**completion_kwargs)
            if "response_format" in completion_kwargs:
                self.response_format_supported = True
        except TypeError as exc:
            if "response_format" in str(exc) and "response_format" in completion_kwargs:
                completion_kwargs.pop("response_format", None)
                resp = llm.create_chat_completion(**completion_kwargs)
                self.response_format_supported = False
            else:
                raise
        return str(resp["choices"][0]["message"]["content"] or "").strip()

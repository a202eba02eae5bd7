"""Generative-text backend clients using httpx.

Three interchangeable backends share one retry / concurrency wrapper:

- ``openai``: OpenAI-compatible ``/chat/completions`` with JSON response mode
- ``anthropic``: Anthropic ``/v1/messages``
- ``ollama``: Ollama native ``/api/chat`` in streaming mode, so long
  generations never hit the read timeout as long as tokens keep flowing

The analysis agents only see :class:`ChatBackend`; which provider sits
behind each agent is a configuration choice.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol

import httpx

from quill.config import Settings
from quill.exceptions import BackendError

logger = logging.getLogger(__name__)

_RETRYABLE = (httpx.ReadTimeout, httpx.ConnectError, httpx.HTTPStatusError)


@dataclass(frozen=True)
class ChatResponse:
    content: str
    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None


class ChatBackend(Protocol):
    name: str

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_format: bool = False,
    ) -> ChatResponse: ...

    async def close(self) -> None: ...


class _RetryingClient(ABC):
    """Semaphore-bounded chat with exponential-backoff retries on transient errors."""

    name = "base"

    def __init__(self, settings: Settings, default_model: str) -> None:
        self._default_model = default_model
        self._max_retries = settings.llm_max_retries
        self._retry_delay = settings.llm_retry_delay
        self._semaphore = asyncio.Semaphore(settings.llm_max_concurrent)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=30.0,
                read=settings.llm_timeout,
                write=30.0,
                pool=30.0,
            )
        )

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_format: bool = False,
    ) -> ChatResponse:
        last_error: Exception | None = None
        max_attempts = 1 + self._max_retries

        for attempt in range(1, max_attempts + 1):
            try:
                async with self._semaphore:
                    return await self._do_chat(
                        messages,
                        model=model or self._default_model,
                        temperature=temperature,
                        max_tokens=max_tokens,
                        json_format=json_format,
                    )
            except _RETRYABLE as e:
                last_error = e
                if attempt >= max_attempts:
                    raise
                delay = self._retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    "%s attempt %d/%d failed, retry in %.1fs: %s",
                    self.name,
                    attempt,
                    max_attempts,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)

        raise last_error  # type: ignore[misc]

    @abstractmethod
    async def _do_chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        temperature: float | None,
        max_tokens: int | None,
        json_format: bool,
    ) -> ChatResponse: ...

    async def close(self) -> None:
        await self._client.aclose()


class OpenAIClient(_RetryingClient):
    """Client for OpenAI-compatible chat completion endpoints."""

    name = "openai"

    def __init__(self, settings: Settings, *, default_model: str = "gpt-4-turbo-preview") -> None:
        super().__init__(settings, default_model)
        self._base_url = settings.openai_base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "Content-Type": "application/json",
        }

    async def _do_chat(self, messages, *, model, temperature, max_tokens, json_format):
        payload: dict = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if json_format:
            payload["response_format"] = {"type": "json_object"}

        response = await self._client.post(
            f"{self._base_url}/chat/completions",
            json=payload,
            headers=self._headers,
        )
        response.raise_for_status()
        data = response.json()
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise BackendError(f"Unexpected response format from {self.name}: {e}") from e

        usage = data.get("usage") or {}
        return ChatResponse(
            content=content,
            model=data.get("model", model),
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
        )


class AnthropicClient(_RetryingClient):
    """Client for the Anthropic messages API."""

    name = "anthropic"

    def __init__(
        self, settings: Settings, *, default_model: str = "claude-3-5-sonnet-20241022"
    ) -> None:
        super().__init__(settings, default_model)
        self._base_url = settings.anthropic_base_url.rstrip("/")
        self._headers = {
            "x-api-key": settings.anthropic_api_key,
            "anthropic-version": settings.anthropic_version,
            "content-type": "application/json",
        }

    async def _do_chat(self, messages, *, model, temperature, max_tokens, json_format):
        # system prompts travel outside the message list
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        payload: dict = {
            "model": model,
            "max_tokens": max_tokens or 2000,
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            payload["system"] = system
        if temperature is not None:
            payload["temperature"] = temperature

        response = await self._client.post(
            f"{self._base_url}/v1/messages",
            json=payload,
            headers=self._headers,
        )
        response.raise_for_status()
        data = response.json()
        blocks = [b for b in data.get("content") or [] if b.get("type") == "text"]
        if not blocks:
            raise BackendError(f"Unexpected response format from {self.name}")

        usage = data.get("usage") or {}
        return ChatResponse(
            content="".join(b.get("text", "") for b in blocks),
            model=data.get("model", model),
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
        )


class OllamaClient(_RetryingClient):
    """Async client for Ollama's native /api/chat endpoint."""

    name = "ollama"

    def __init__(self, settings: Settings, *, default_model: str = "qwen3:8b") -> None:
        super().__init__(settings, default_model)
        base_url = settings.ollama_base_url.rstrip("/")
        # If configured with OpenAI-compat path, strip /v1 to get Ollama root
        if base_url.endswith("/v1"):
            base_url = base_url[:-3]
        self._base_url = base_url
        self._num_ctx = settings.ollama_num_ctx

    async def _do_chat(self, messages, *, model, temperature, max_tokens, json_format):
        options: dict = {"num_ctx": self._num_ctx}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        payload: dict = {
            "model": model,
            "messages": messages,
            "stream": True,
            "options": options,
        }
        if json_format:
            payload["format"] = "json"

        content_parts: list[str] = []
        model_name = model
        eval_count: int | None = None
        prompt_eval_count: int | None = None

        async with self._client.stream(
            "POST", f"{self._base_url}/api/chat", json=payload
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    chunk = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Failed to parse streaming chunk: %s", line[:100])
                    continue
                if "message" in chunk and "content" in chunk["message"]:
                    content_parts.append(chunk["message"]["content"])
                # the final chunk carries the statistics
                if chunk.get("done", False):
                    model_name = chunk.get("model", model)
                    eval_count = chunk.get("eval_count")
                    prompt_eval_count = chunk.get("prompt_eval_count")

        content = "".join(content_parts)
        logger.debug("Ollama streaming response (first 200 chars): %s", content[:200])
        return ChatResponse(
            content=content,
            model=model_name,
            input_tokens=prompt_eval_count,
            output_tokens=eval_count,
        )


_BACKENDS: dict[str, type[_RetryingClient]] = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
    "ollama": OllamaClient,
}


def build_backends(settings: Settings, names: set[str]) -> dict[str, ChatBackend]:
    """Create one client per backend identifier in ``names``."""
    unknown = names - _BACKENDS.keys()
    if unknown:
        raise ValueError(
            f"Unknown backend(s): {', '.join(sorted(unknown))}; "
            f"expected one of {', '.join(sorted(_BACKENDS))}"
        )
    return {name: _BACKENDS[name](settings) for name in sorted(names)}

import json

import httpx
import pytest

from quill.exceptions import BackendError
from quill.services.llm import (
    AnthropicClient,
    OllamaClient,
    OpenAIClient,
    _RetryingClient,
    build_backends,
)

MESSAGES = [
    {"role": "system", "content": "You are an examiner."},
    {"role": "user", "content": "Evaluate this answer."},
]


async def _mount(client, handler):
    """Route the client's HTTP traffic through ``handler``."""
    await client._client.aclose()
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


class TestOpenAIClient:
    @pytest.mark.asyncio
    async def test_posts_chat_completion(self, mock_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "gpt-4-turbo-preview",
                    "choices": [{"message": {"content": '{"score": 80}'}}],
                    "usage": {"prompt_tokens": 120, "completion_tokens": 30},
                },
            )

        client = await _mount(OpenAIClient(mock_settings), handler)
        response = await client.chat(MESSAGES, temperature=0.3, max_tokens=2000, json_format=True)
        await client.close()

        assert seen["url"].endswith("/chat/completions")
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert seen["body"]["temperature"] == 0.3
        assert seen["body"]["model"] == "gpt-4-turbo-preview"
        assert response.content == '{"score": 80}'
        assert response.input_tokens == 120
        assert response.output_tokens == 30

    @pytest.mark.asyncio
    async def test_omits_response_format_by_default(self, mock_settings):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        client = await _mount(OpenAIClient(mock_settings), handler)
        await client.chat(MESSAGES, model="gpt-3.5-turbo")

        assert "response_format" not in bodies[0]
        assert bodies[0]["model"] == "gpt-3.5-turbo"

    @pytest.mark.asyncio
    async def test_malformed_response_raises_backend_error(self, mock_settings):
        client = await _mount(
            OpenAIClient(mock_settings), lambda request: httpx.Response(200, json={"choices": []})
        )
        with pytest.raises(BackendError, match="Unexpected response format"):
            await client.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, mock_settings):
        settings = mock_settings.model_copy(update={"llm_max_retries": 2})
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(500, json={"error": "overloaded"})
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        client = await _mount(OpenAIClient(settings), handler)
        response = await client.chat(MESSAGES)

        assert response.content == "ok"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, mock_settings):
        settings = mock_settings.model_copy(update={"llm_max_retries": 1})
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        client = await _mount(OpenAIClient(settings), handler)
        with pytest.raises(httpx.HTTPStatusError):
            await client.chat(MESSAGES)
        assert len(calls) == 2


class TestAnthropicClient:
    @pytest.mark.asyncio
    async def test_moves_system_prompt_out_of_messages(self, mock_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "claude-3-5-sonnet-20241022",
                    "content": [
                        {"type": "text", "text": '{"score": '},
                        {"type": "text", "text": "70}"},
                    ],
                    "usage": {"input_tokens": 90, "output_tokens": 12},
                },
            )

        client = await _mount(AnthropicClient(mock_settings), handler)
        response = await client.chat(MESSAGES, temperature=0.3)

        assert seen["url"].endswith("/v1/messages")
        assert seen["headers"]["x-api-key"] == "test-key"
        assert seen["body"]["system"] == "You are an examiner."
        assert seen["body"]["messages"] == [MESSAGES[1]]
        assert seen["body"]["max_tokens"] == 2000
        assert response.content == '{"score": 70}'
        assert response.output_tokens == 12

    @pytest.mark.asyncio
    async def test_response_without_text_raises(self, mock_settings):
        client = await _mount(
            AnthropicClient(mock_settings),
            lambda request: httpx.Response(200, json={"content": []}),
        )
        with pytest.raises(BackendError):
            await client.chat(MESSAGES)


class TestOllamaClient:
    @pytest.mark.asyncio
    async def test_joins_streamed_chunks(self, mock_settings):
        settings = mock_settings.model_copy(update={"ollama_base_url": "http://ollama:11434/v1"})
        seen = {}
        lines = [
            {"message": {"content": '{"score"'}, "done": False},
            "not json",
            {"message": {"content": ": 72}"}, "done": False},
            {"model": "qwen3:8b", "done": True, "eval_count": 9, "prompt_eval_count": 40},
        ]
        body = "\n".join(line if isinstance(line, str) else json.dumps(line) for line in lines)

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=body.encode())

        client = await _mount(OllamaClient(settings), handler)
        response = await client.chat(MESSAGES, max_tokens=500, json_format=True)

        assert seen["url"] == "http://ollama:11434/api/chat"
        assert seen["body"]["stream"] is True
        assert seen["body"]["format"] == "json"
        assert seen["body"]["options"]["num_predict"] == 500
        assert response.content == '{"score": 72}'
        assert response.input_tokens == 40
        assert response.output_tokens == 9


class TestBuildBackends:
    def test_builds_one_client_per_name(self, mock_settings):
        backends = build_backends(mock_settings, {"openai", "anthropic"})
        assert isinstance(backends["openai"], OpenAIClient)
        assert isinstance(backends["anthropic"], AnthropicClient)

    def test_rejects_unknown_backend(self, mock_settings):
        with pytest.raises(ValueError, match="Unknown backend"):
            build_backends(mock_settings, {"openai", "palm"})

    def test_base_client_requires_chat_implementation(self, mock_settings):
        with pytest.raises(TypeError, match="_do_chat"):
            _RetryingClient(mock_settings, "any-model")

"""
Tests for LLMClient against a mocked Gemini endpoint.
"""

import json

import httpx
import pytest

from webtailor.errors import GenerationServiceError
from webtailor.llm_client import LLMClient


def candidate(text, finish_reason="STOP"):
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}]}


def make_client(handler, api_key="secret"):
    return LLMClient(
        api_key=api_key,
        model="test-model",
        endpoint="https://gemini.test/v1beta/models/",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestLLMClient:

    @pytest.mark.asyncio
    async def test_successful_generation(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=candidate("  {\"actions\": []}  "))

        text = await make_client(handler).generate("plan this")

        assert text == '{"actions": []}'
        [request] = seen
        assert request.method == "POST"
        assert request.url.path == "/v1beta/models/test-model:generateContent"
        assert request.url.params["key"] == "secret"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0]["text"] == "plan this"
        assert set(body["generationConfig"]) == {"temperature", "maxOutputTokens", "topP", "topK"}

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = make_client(handler, api_key=None)
        client.set_api_key(None)

        assert not client.configured
        with pytest.raises(GenerationServiceError) as info:
            await client.generate("x")
        assert "API key not configured" in str(info.value)

    @pytest.mark.asyncio
    async def test_set_api_key(self):
        def handler(request):
            return httpx.Response(200, json=candidate("ok"))

        client = make_client(handler, api_key=None)
        client.set_api_key("new-key")

        assert client.configured
        assert await client.generate("x") == "ok"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(500, text="backend exploded")

        with pytest.raises(GenerationServiceError) as info:
            await make_client(handler).generate("x")

        assert info.value.status_code == 500
        assert "500" in str(info.value) and "backend exploded" in str(info.value)

    @pytest.mark.asyncio
    async def test_blocked_prompt(self):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        with pytest.raises(GenerationServiceError) as info:
            await make_client(handler).generate("x")
        assert "SAFETY" in str(info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        candidate(""),
    ])
    async def test_empty_candidate(self, payload):
        def handler(request):
            return httpx.Response(200, json=payload)

        with pytest.raises(GenerationServiceError):
            await make_client(handler).generate("x")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>proxy error</html>")

        with pytest.raises(GenerationServiceError):
            await make_client(handler).generate("x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [[1, 2], "text", 7])
    async def test_json_body_that_is_not_an_object(self, payload):
        def handler(request):
            return httpx.Response(200, json=payload)

        with pytest.raises(GenerationServiceError) as info:
            await make_client(handler).generate("x")
        assert "Invalid or empty response structure" in str(info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationServiceError) as info:
            await make_client(handler).generate("x")
        assert "timeout" in str(info.value)

    @pytest.mark.asyncio
    async def test_truncated_response_is_still_returned(self):
        def handler(request):
            return httpx.Response(200, json=candidate("h1 { color:", finish_reason="MAX_TOKENS"))

        assert await make_client(handler).generate("x") == "h1 { color:"

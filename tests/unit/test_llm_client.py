# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""LLMClient: retries, JSON extraction and schema validation."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest
from pydantic import BaseModel

from kurral_core.agents.llm_client import LLMClient
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


class _Verdict(BaseModel):
    verdict: str
    confidence: float


def _response(text: str) -> MagicMock:
    response = MagicMock()
    response.output_text = text
    response.model = "gpt-4o-mini"
    response.id = "resp_123"
    response.usage.input_tokens = 10
    response.usage.output_tokens = 5
    response.usage.total_tokens = 15
    return response


def _client(*side_effect, max_retries: int = 2) -> LLMClient:
    openai_client = MagicMock()
    openai_client.responses.create = AsyncMock(side_effect=list(side_effect))
    openai_client.close = AsyncMock()
    return LLMClient(client=openai_client, max_retries=max_retries, initial_retry_delay=0.0)


@pytest.mark.asyncio
class TestLLMClient:
    async def test_plain_call(self):
        client = _client(_response("hello"))
        result = await client.call(model="gpt-4o-mini", input="hi", instructions="be brief")

        assert result["content"] == "hello"
        assert result["parsed"] is None
        assert result["usage"]["total_tokens"] == 15
        params = client.client.responses.create.call_args.kwargs
        assert params["instructions"] == "be brief"
        assert "text" not in params

    async def test_json_inside_code_fence(self):
        client = _client(_response('Sure:\n```json\n{"verdict": "true", "confidence": 0.9}\n```'))
        parsed = await client.call_json(model="gpt-4o-mini", input="check")
        assert parsed == {"verdict": "true", "confidence": 0.9}

    async def test_transient_error_is_retried(self):
        client = _client(
            openai.APIConnectionError(request=_REQUEST),
            _response('{"verdict": "false", "confidence": 0.8}'),
        )
        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await client.call_structured(response_model=_Verdict, model="m", input="x")

        assert result.verdict == "false"
        assert client.client.responses.create.await_count == 2

    async def test_retries_exhausted(self):
        client = _client(*[openai.APIConnectionError(request=_REQUEST)] * 3, max_retries=2)
        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(LLMCallError) as exc_info:
                await client.call(model="m", input="x")

        assert exc_info.value.kind == LLMFailureKind.CONNECTION_ERROR
        assert exc_info.value.attempts == 3

    async def test_authentication_not_retried(self):
        auth_error = openai.AuthenticationError(
            "Incorrect API key provided",
            response=httpx.Response(401, request=_REQUEST),
            body=None,
        )
        client = _client(auth_error, _response("{}"))
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(LLMCallError) as exc_info:
                await client.call(model="m", input="x")

        assert exc_info.value.kind == LLMFailureKind.AUTHENTICATION
        assert client.client.responses.create.await_count == 1
        mock_sleep.assert_not_called()

    async def test_invalid_json_is_hard_failure(self):
        client = _client(_response("not json at all"), _response("{}"))
        with pytest.raises(LLMCallError) as exc_info:
            await client.call_json(model="m", input="x")

        assert exc_info.value.kind == LLMFailureKind.INVALID_JSON
        assert client.client.responses.create.await_count == 1

    async def test_empty_response(self):
        client = _client(_response("   "))
        with pytest.raises(LLMCallError) as exc_info:
            await client.call(model="m", input="x")
        assert exc_info.value.kind == LLMFailureKind.EMPTY_RESPONSE

    async def test_json_array_rejected(self):
        client = _client(_response("[1, 2]"))
        with pytest.raises(LLMCallError) as exc_info:
            await client.call_json(model="m", input="x")
        assert exc_info.value.kind == LLMFailureKind.SCHEMA_VALIDATION_FAILED

    async def test_schema_mismatch_not_coerced(self):
        client = _client(_response('{"verdict": "true"}'))
        with pytest.raises(LLMCallError) as exc_info:
            await client.call_structured(response_model=_Verdict, model="m", input="x")
        assert exc_info.value.kind == LLMFailureKind.SCHEMA_VALIDATION_FAILED

    async def test_image_input(self):
        client = _client(_response("{}"))
        await client.call_json(model="gpt-4o", input="describe", image_url="https://img.example/a.png")

        params = client.client.responses.create.call_args.kwargs
        content = params["input"][0]["content"]
        assert content[1] == {"type": "input_image", "image_url": "https://img.example/a.png"}
        assert params["text"] == {"format": {"type": "json_object"}}

    async def test_close(self):
        client = _client()
        await client.close()
        client.client.close.assert_awaited_once()

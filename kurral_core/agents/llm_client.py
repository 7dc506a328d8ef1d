# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

"""
Oracle client over the OpenAI Responses API.

Every oracle in the pipeline (pre-check, claim extraction, fact-check
verdicts, value scoring, discussion analysis, explanations) goes through
this client:
- bounded concurrency via a shared semaphore
- transient failures retried with exponential backoff (1 + max_retries attempts)
- JSON output parsed, and optionally validated against a pydantic model
- malformed output raised as LLMCallError, never coerced
- optional image input for multimodal content
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import (
    LLMFailureKind,
    classify_llm_failure,
    failure_kind_to_trace_data,
    is_transient_failure,
)
from kurral_core.utils.retry import RetryPolicy, retry_async
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _extract_json(content: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        if "```" in content:
            block = content.split("```json")[-1] if "```json" in content else content.split("```")[1]
            block = block.split("```")[0]
            try:
                return json.loads(block.strip())
            except json.JSONDecodeError:
                logger.debug("[LLMClient] Fenced JSON block did not parse either")
        raise LLMCallError(f"Failed to parse JSON response: {e}", kind=LLMFailureKind.INVALID_JSON) from e


class LLMClient:
    """
    Async oracle client.

    Example:
        client = LLMClient(openai_api_key="sk-...")
        payload = await client.call_structured(
            model="gpt-4o-mini",
            input="Post: ...",
            instructions="Classify this post.",
            response_model=PreCheckResponse,
        )
    """

    def __init__(
        self,
        *,
        openai_api_key: str | None = None,
        default_timeout: float = 60.0,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
        concurrency: int = 6,
        client: AsyncOpenAI | None = None,
    ):
        self.client = client or AsyncOpenAI(api_key=openai_api_key)
        self.default_timeout = default_timeout
        self.max_retries = max(0, int(max_retries))
        self.initial_retry_delay = float(initial_retry_delay)
        self._sem = asyncio.Semaphore(max(1, int(concurrency)))

    @staticmethod
    def _build_input(text: str, image_url: str | None) -> Any:
        if not image_url:
            return text
        return [
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": text},
                    {"type": "input_image", "image_url": image_url},
                ],
            }
        ]

    async def call(
        self,
        *,
        model: str,
        input: str,  # noqa: A002 - 'input' is the official API param name
        instructions: str | None = None,
        json_output: bool = False,
        image_url: str | None = None,
        timeout: float | None = None,
        max_output_tokens: int | None = None,
        trace_kind: str = "llm_call",
    ) -> dict:
        """
        Execute an oracle call.

        Returns:
            Dict with keys "content" (raw text), "parsed" (JSON if json_output,
            else None), "model" and "usage".

        Raises:
            LLMCallError: after retries are exhausted, on authentication
                failure, or when the output is empty or not valid JSON
        """
        effective_timeout = timeout or self.default_timeout

        params: dict = {
            "model": model,
            "input": self._build_input(input, image_url),
            "timeout": effective_timeout,
        }
        if instructions:
            params["instructions"] = instructions
        if max_output_tokens:
            params["max_output_tokens"] = max_output_tokens
        if json_output:
            params["text"] = {"format": {"type": "json_object"}}

        payload_hash = hashlib.md5(((instructions or "") + "||" + input).encode()).hexdigest()
        Trace.event(f"{trace_kind}.prompt", {
            "model": model,
            "input_chars": len(input),
            "instructions_chars": len(instructions or ""),
            "has_image": bool(image_url),
            "payload_hash": payload_hash,
            "json_output": json_output,
        })

        attempts = 0

        async def _attempt() -> dict:
            nonlocal attempts
            attempts += 1
            start_time = time.time()
            async with self._sem:
                response = await self.client.responses.create(**params)
            latency_ms = int((time.time() - start_time) * 1000)

            content = response.output_text
            if not content or not content.strip():
                raise LLMCallError("Empty response from LLM", kind=LLMFailureKind.EMPTY_RESPONSE)

            parsed = _extract_json(content) if json_output else None

            usage = {"latency_ms": latency_ms, "request_id": getattr(response, "id", "unknown")}
            if getattr(response, "usage", None):
                usage.update({
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                    "total_tokens": response.usage.total_tokens,
                })

            Trace.event(f"{trace_kind}.response", {
                "model": response.model,
                "content_chars": len(content),
                "attempt": attempts,
                "payload_hash": payload_hash,
            })
            return {"content": content, "parsed": parsed, "model": response.model, "usage": usage}

        policy = RetryPolicy(
            max_retries=self.max_retries,
            initial_delay_sec=self.initial_retry_delay,
        )
        try:
            return await retry_async(
                _attempt,
                operation=f"llm:{trace_kind}",
                policy=policy,
                is_retryable=is_transient_failure,
            )
        except LLMCallError as e:
            e.attempts = attempts
            self._trace_failure(trace_kind, model, e, payload_hash)
            raise
        except Exception as e:
            kind = classify_llm_failure(e) or LLMFailureKind.PROVIDER_ERROR
            self._trace_failure(trace_kind, model, e, payload_hash, kind)
            logger.warning("[LLMClient] %s failed after %d attempts: %s", trace_kind, attempts, e)
            raise LLMCallError(f"LLM call failed: {e}", kind=kind, attempts=attempts) from e

    @staticmethod
    def _trace_failure(
        trace_kind: str,
        model: str,
        exc: BaseException,
        payload_hash: str,
        kind: LLMFailureKind | None = None,
    ) -> None:
        data = failure_kind_to_trace_data(kind or classify_llm_failure(exc), exc)
        data.update({"model": model, "payload_hash": payload_hash})
        Trace.event(f"{trace_kind}.error", data)

    async def call_json(
        self,
        *,
        model: str,
        input: str,  # noqa: A002
        instructions: str | None = None,
        image_url: str | None = None,
        timeout: float | None = None,
        max_output_tokens: int | None = None,
        trace_kind: str = "llm_call",
    ) -> dict:
        """Returns the parsed JSON object directly."""
        result = await self.call(
            model=model,
            input=input,
            instructions=instructions,
            json_output=True,
            image_url=image_url,
            timeout=timeout,
            max_output_tokens=max_output_tokens,
            trace_kind=trace_kind,
        )
        parsed = result["parsed"]
        if not isinstance(parsed, dict):
            raise LLMCallError(
                f"Expected a JSON object, got {type(parsed).__name__}",
                kind=LLMFailureKind.SCHEMA_VALIDATION_FAILED,
            )
        return parsed

    async def call_structured(
        self,
        *,
        response_model: type[M],
        model: str,
        input: str,  # noqa: A002
        instructions: str | None = None,
        image_url: str | None = None,
        timeout: float | None = None,
        max_output_tokens: int | None = None,
        trace_kind: str = "llm_call",
    ) -> M:
        """
        JSON call validated against `response_model`.

        A payload that does not match the schema raises
        LLMCallError(SCHEMA_VALIDATION_FAILED); it is not retried.
        """
        parsed = await self.call_json(
            model=model,
            input=input,
            instructions=instructions,
            image_url=image_url,
            timeout=timeout,
            max_output_tokens=max_output_tokens,
            trace_kind=trace_kind,
        )
        try:
            return response_model.model_validate(parsed)
        except ValidationError as e:
            Trace.event(f"{trace_kind}.schema_error", {
                "model": response_model.__name__,
                "errors": e.error_count(),
            })
            raise LLMCallError(
                f"{response_model.__name__} validation failed: {e.errors()[:3]}",
                kind=LLMFailureKind.SCHEMA_VALIDATION_FAILED,
            ) from e

    async def close(self) -> None:
        if self.client:
            await self.client.close()

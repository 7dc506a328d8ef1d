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
External call failure classification.

Kinds:
- CONNECTION_ERROR / TIMEOUT / PROVIDER_ERROR: transient, retried with backoff
- AUTHENTICATION: bad or expired key, never retried
- INVALID_JSON / SCHEMA_VALIDATION_FAILED / EMPTY_RESPONSE: malformed oracle output,
  a hard stage failure, never retried or coerced
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

import httpx
import openai


class LLMFailureKind(str, Enum):
    """Classification of oracle/search call failures."""

    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    AUTHENTICATION = "authentication"
    INVALID_JSON = "invalid_json"
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    EMPTY_RESPONSE = "empty_response"


TRANSIENT_KINDS = frozenset({
    LLMFailureKind.CONNECTION_ERROR,
    LLMFailureKind.TIMEOUT,
    LLMFailureKind.PROVIDER_ERROR,
})

# 432 is Tavily's plan/rate limit status.
RETRYABLE_STATUS_CODES = frozenset({429, 432, 500, 502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})

_CONNECTION_KEYWORDS = (
    "connection",
    "network",
    "socket",
    "refused",
    "unreachable",
    "dns",
)

_TIMEOUT_KEYWORDS = (
    "timeout",
    "timed out",
    "deadline exceeded",
)

_PROVIDER_ERROR_KEYWORDS = (
    "rate limit",
    "rate_limit",
    "quota",
    "overloaded",
    "unavailable",
    "internal server",
)

_AUTH_KEYWORDS = (
    "invalid api key",
    "incorrect api key",
    "unauthorized",
    "authentication",
)


def _status_kind(status: int) -> LLMFailureKind | None:
    if status in AUTH_STATUS_CODES:
        return LLMFailureKind.AUTHENTICATION
    if status in RETRYABLE_STATUS_CODES:
        return LLMFailureKind.PROVIDER_ERROR
    return None


def classify_llm_failure(exc: BaseException) -> LLMFailureKind | None:
    """
    Classify an exception raised by an external call.

    Typed exceptions (openai, httpx, asyncio) are checked first; the message
    keyword scan only applies to exceptions of unknown type.

    Returns:
        LLMFailureKind if classifiable, None otherwise
    """
    from kurral_core.llm.errors import LLMCallError

    if isinstance(exc, LLMCallError):
        return exc.kind

    if isinstance(exc, openai.APITimeoutError):
        return LLMFailureKind.TIMEOUT
    if isinstance(exc, openai.APIConnectionError):
        return LLMFailureKind.CONNECTION_ERROR
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return LLMFailureKind.AUTHENTICATION
    if isinstance(exc, (openai.RateLimitError, openai.InternalServerError)):
        return LLMFailureKind.PROVIDER_ERROR
    if isinstance(exc, openai.APIStatusError):
        return _status_kind(int(exc.status_code))

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return LLMFailureKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        return _status_kind(exc.response.status_code) if exc.response is not None else None
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return LLMFailureKind.CONNECTION_ERROR

    error_msg = str(exc).lower()
    if any(kw in error_msg for kw in _AUTH_KEYWORDS):
        return LLMFailureKind.AUTHENTICATION
    if any(kw in error_msg for kw in _PROVIDER_ERROR_KEYWORDS):
        return LLMFailureKind.PROVIDER_ERROR
    if any(kw in error_msg for kw in _TIMEOUT_KEYWORDS):
        return LLMFailureKind.TIMEOUT
    if any(kw in error_msg for kw in _CONNECTION_KEYWORDS):
        return LLMFailureKind.CONNECTION_ERROR

    return None


def is_transient_failure(exc: BaseException) -> bool:
    return classify_llm_failure(exc) in TRANSIENT_KINDS


def failure_kind_to_trace_data(kind: LLMFailureKind | None, exc: BaseException) -> dict[str, Any]:
    return {
        "failure_kind": kind.value if kind else "unknown",
        "error_type": type(exc).__name__,
        "error_message": str(exc)[:200],
    }

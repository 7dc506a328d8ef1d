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

from __future__ import annotations

import asyncio
import logging

import httpx

from kurral_core.utils.retry import RetryPolicy, retry_async
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

TAVILY_MAX_RETRIES = 3
TAVILY_INITIAL_DELAY_SEC = 1.0
# 432 is Tavily's plan/rate limit status.
TAVILY_RETRYABLE_STATUS_CODES = frozenset({429, 432, 500, 502, 503, 504})

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response is not None and exc.response.status_code in TAVILY_RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


def _safe_payload_for_log(payload: dict) -> dict:
    out = dict(payload or {})
    query = out.get("query")
    if isinstance(query, str) and len(query) > 220:
        out["query"] = query[:220] + "..."
    for key in ("include_domains", "exclude_domains"):
        value = out.get(key)
        if isinstance(value, list) and len(value) > 30:
            out[key] = value[:30] + [f"...(+{len(value) - 30} more)"]
    return out


class TavilyClient:
    def __init__(
        self,
        *,
        api_key: str | None,
        timeout_s: float = 12.0,
        concurrency: int = 8,
        global_exclude_domains: list[str] | None = None,
        max_retries: int = TAVILY_MAX_RETRIES,
        initial_delay_s: float = TAVILY_INITIAL_DELAY_SEC,
    ):
        self.api_key = api_key
        self._sem = asyncio.Semaphore(max(1, min(int(concurrency or 8), 16)))
        self._global_exclude_domains = list(global_exclude_domains or [])
        self._retry = RetryPolicy(max_retries=max_retries, initial_delay_sec=initial_delay_s)

        self._client = httpx.AsyncClient(
            timeout=float(timeout_s),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}" if api_key else "",
                "X-Client-Source": "kurral",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _merge_excludes(
        self,
        *,
        include_domains: list[str] | None,
        exclude_domains: list[str] | None,
    ) -> list[str] | None:
        merged = set(self._global_exclude_domains)
        if exclude_domains:
            merged.update(exclude_domains)

        final = sorted({d.lower().lstrip(".") for d in merged if d})
        include_set = {d.lower().lstrip(".") for d in (include_domains or [])}
        filtered = [d for d in final if d not in include_set][:32]
        return filtered or None

    async def _post(self, url: str, payload: dict, *, trace_kind: str) -> dict:
        async def _attempt() -> dict:
            async with self._sem:
                Trace.event(f"{trace_kind}.request", {"url": url, "payload": payload})
                r = await self._client.post(url, json=payload)
                r.raise_for_status()
                Trace.event(f"{trace_kind}.response", {"status_code": r.status_code, "text": r.text})
                return r.json()

        return await retry_async(
            _attempt,
            operation=trace_kind,
            policy=self._retry,
            is_retryable=_is_retryable,
        )

    async def search(
        self,
        *,
        query: str,
        depth: str = "basic",
        max_results: int = 5,
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
        topic: str = "general",
    ) -> dict:
        payload: dict = {
            "query": query,
            "search_depth": depth,
            "max_results": max_results,
            "topic": topic,
            "include_raw_content": False,
        }
        if include_domains:
            payload["include_domains"] = include_domains
        merged_exclude = self._merge_excludes(include_domains=include_domains, exclude_domains=exclude_domains)
        if merged_exclude:
            payload["exclude_domains"] = merged_exclude

        try:
            return await self._post(TAVILY_SEARCH_URL, payload, trace_kind="tavily")
        except httpx.HTTPStatusError as e:
            if e.response is None or e.response.status_code != 400 or not exclude_domains:
                raise
            # Oversized per-call exclude lists are the usual 400 cause; retry once with globals only.
            logger.warning("[Tavily] 400 Bad Request. Payload: %s", _safe_payload_for_log(payload))
            minimal = {k: v for k, v in payload.items() if k != "exclude_domains"}
            retry_exclude = self._merge_excludes(include_domains=include_domains, exclude_domains=None)
            if retry_exclude:
                minimal["exclude_domains"] = retry_exclude
            return await self._post(TAVILY_SEARCH_URL, minimal, trace_kind="tavily")

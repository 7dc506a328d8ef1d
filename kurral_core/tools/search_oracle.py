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

"""Search oracle boundary: `{query}` in, list of `{url, snippet, score hint}` out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from kurral_core.tools.evidence_quality import get_domain
from kurral_core.tools.tavily_client import TavilyClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    url: str | None
    snippet: str
    title: str = ""
    score_hint: float | None = None

    @property
    def source(self) -> str:
        return get_domain(self.url) or self.title or "unknown"


class SearchOracle(Protocol):
    async def search(self, query: str, *, max_results: int = 5) -> list[SearchHit]:
        ...


class TavilySearchOracle:
    """SearchOracle backed by Tavily's search endpoint."""

    def __init__(self, client: TavilyClient, *, depth: str = "basic"):
        self._client = client
        self._depth = depth

    async def search(self, query: str, *, max_results: int = 5) -> list[SearchHit]:
        data = await self._client.search(query=query, depth=self._depth, max_results=max_results)
        hits: list[SearchHit] = []
        for row in (data or {}).get("results") or []:
            if not isinstance(row, dict):
                continue
            snippet = str(row.get("content") or "").strip()
            url = row.get("url")
            if not snippet and not url:
                continue
            score = row.get("score")
            hits.append(
                SearchHit(
                    url=str(url) if url else None,
                    snippet=snippet,
                    title=str(row.get("title") or ""),
                    score_hint=float(score) if isinstance(score, (int, float)) else None,
                )
            )
        logger.debug("[Search] %d hits for query: %s", len(hits), query[:80])
        return hits[:max_results]

    async def close(self) -> None:
        await self._client.close()

# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Deterministic stand-ins for the generation and search oracles.

ScriptedLLM answers `call_structured` per trace kind ("precheck",
"claim_extraction", "fact_check", "value_scoring", "discussion",
"explanation"); each handler is a payload dict, an exception to raise,
or a callable receiving the call kwargs.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

from pydantic import ValidationError

from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.schema.content import ContentItem, ContentKind
from kurral_core.tools.search_oracle import SearchHit


def precheck_payload(needs: bool = True, content_type: str = "factual", confidence: float = 0.9) -> dict:
    return {
        "needsFactCheck": needs,
        "contentType": content_type,
        "confidence": confidence,
        "reasoning": "test",
    }


def claim_payload(
    text: str,
    *,
    domain: str = "health",
    risk: str = "high",
    type: str = "factual",
    source: str = "post",
) -> dict:
    return {
        "text": text,
        "type": type,
        "domain": domain,
        "riskLevel": risk,
        "confidence": 0.9,
        "source": source,
    }


def claims_payload(*claims: dict) -> dict:
    return {"claims": list(claims)}


def fact_check_payload(verdict: str = "true", confidence: float = 0.9) -> dict:
    return {
        "verdict": verdict,
        "confidence": confidence,
        "reasoning": f"evidence says {verdict}",
        "caveats": [],
        "evidenceUsed": [1],
    }


def verdicts_by_claim(verdicts: dict[str, tuple[str, float]], default: tuple[str, float] = ("true", 0.9)):
    """Fact-check handler choosing the verdict by which claim text appears in the prompt."""

    def handler(kwargs: dict) -> dict:
        prompt = kwargs.get("input") or ""
        for text, (verdict, confidence) in verdicts.items():
            if text in prompt:
                return fact_check_payload(verdict, confidence)
        return fact_check_payload(*default)

    return handler


def value_payload(
    epistemic: float = 0.8,
    insight: float = 0.6,
    practical: float = 0.7,
    relational: float = 0.5,
    effort: float = 0.6,
    confidence: float = 0.8,
) -> dict:
    return {
        "scores": {
            "epistemic": epistemic,
            "insight": insight,
            "practical": practical,
            "relational": relational,
            "effort": effort,
        },
        "drivers": ["cites sources"],
        "confidence": confidence,
    }


def discussion_payload(comment_ids: list[str], role: str = "evidence", contribution: float = 0.7) -> dict:
    return {
        "threadQuality": {
            "informativeness": 0.8,
            "civility": 0.9,
            "reasoningDepth": 0.7,
            "crossPerspective": 0.6,
            "summary": "constructive thread",
        },
        "commentInsights": [
            {
                "commentId": cid,
                "role": role,
                "contribution": {
                    "epistemic": contribution,
                    "insight": contribution,
                    "practical": contribution,
                    "relational": contribution,
                    "effort": contribution,
                },
            }
            for cid in comment_ids
        ],
    }


def explanation_payload(summary: str = "Well sourced and useful.") -> dict:
    return {"summary": summary}


def happy_path_handlers() -> dict[str, Any]:
    return {
        "precheck": precheck_payload(),
        "claim_extraction": claims_payload(claim_payload("Vaccines are tested for safety before approval")),
        "fact_check": fact_check_payload("true", 0.9),
        "value_scoring": value_payload(),
        "discussion": lambda kw: discussion_payload([]),
        "explanation": explanation_payload(),
    }


class ScriptedLLM:
    """Stands in for LLMClient; only `call_structured` and `close` are used by the skills."""

    def __init__(self, handlers: dict[str, Any] | None = None):
        self.handlers: dict[str, Any] = dict(handlers or {})
        self.calls: list[dict[str, Any]] = []
        self.close = AsyncMock()

    def on(self, kind: str, handler: Any) -> "ScriptedLLM":
        self.handlers[kind] = handler
        return self

    async def call_structured(self, *, response_model, trace_kind: str = "llm", **kwargs):
        self.calls.append({"kind": trace_kind, **kwargs})
        if trace_kind not in self.handlers:
            raise AssertionError(f"unexpected oracle call: {trace_kind}")

        handler = self.handlers[trace_kind]
        if isinstance(handler, BaseException):
            raise handler
        payload = handler(kwargs) if callable(handler) else handler
        if isinstance(payload, BaseException):
            raise payload
        try:
            return response_model.model_validate(payload)
        except ValidationError as e:
            raise LLMCallError(str(e), kind=LLMFailureKind.SCHEMA_VALIDATION_FAILED) from e

    def count(self, kind: str | None = None) -> int:
        if kind is None:
            return len(self.calls)
        return sum(1 for c in self.calls if c["kind"] == kind)


DEFAULT_HITS = [
    SearchHit(
        url="https://www.cdc.gov/vaccines/safety/index.html",
        snippet="Vaccines go through years of testing before approval.",
        title="CDC",
        score_hint=0.9,
    ),
    SearchHit(
        url="https://www.who.int/news-room/vaccines",
        snippet="WHO monitors vaccine safety worldwide.",
        title="WHO",
        score_hint=0.8,
    ),
]


class FakeSearchOracle:
    def __init__(self, hits: list[SearchHit] | None = None, error: Exception | None = None):
        self.hits = list(DEFAULT_HITS if hits is None else hits)
        self.error = error
        self.queries: list[str] = []
        self.close = AsyncMock()

    async def search(self, query: str, *, max_results: int = 5) -> list[SearchHit]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.hits[:max_results]


def make_post(item_id: str = "post-1", text: str = "Vaccines are tested for safety before approval.", **kw) -> ContentItem:
    return ContentItem(id=item_id, author_id=kw.pop("author_id", "alice"), text=text, **kw)


def make_comment(item_id: str, parent_id: str, text: str, **kw) -> ContentItem:
    return ContentItem(
        id=item_id,
        author_id=kw.pop("author_id", "bob"),
        kind=ContentKind.COMMENT,
        parent_item_id=parent_id,
        text=text,
        **kw,
    )


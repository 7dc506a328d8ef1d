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

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def _parse_bool(raw: Any, *, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if not s:
        return default
    if s in ("1", "true", "yes", "y", "on"):
        return True
    if s in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_int(raw: Any, *, default: int, min_v: int, max_v: int) -> int:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, int):
            v = raw
        else:
            v = int(str(raw).strip())
    except ValueError:
        v = default
    return max(min_v, min(max_v, v))


def _parse_float(raw: Any, *, default: float, min_v: float, max_v: float) -> float:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, (int, float)):
            v = float(raw)
        else:
            v = float(str(raw).strip())
    except ValueError:
        v = default
    return max(min_v, min(max_v, v))


def _parse_choice(raw: Any, *, enum_cls: type[Enum], default: Enum) -> Any:
    s = (str(raw).strip().lower() if raw is not None else "").replace("-", "_")
    if not s:
        return default
    try:
        return enum_cls(s)
    except ValueError:
        return default


def _parse_csv_domains(raw: str) -> list[str]:
    s = (raw or "").strip()
    if not s:
        return []
    parts = [p.strip().lower() for p in re.split(r"[,\n]", s) if p.strip()]
    out: list[str] = []
    for d in parts:
        d = d.lstrip(".")
        if d and d not in out:
            out.append(d)
        if len(out) >= 150:
            break
    return out


class PreCheckFailureMode(str, Enum):
    """What the orchestrator does when the pre-check gate fails outright."""

    FAIL_CLOSED = "fail_closed"
    """Skip verification and surface the item as needs_review (escalated)."""

    FAIL_OPEN = "fail_open"
    """Skip verification and treat the item as clean."""

    VERIFY = "verify"
    """Assume verification is needed and continue to claim extraction."""

    HEURISTIC = "heuristic"
    """Decide from the local content risk score."""


@dataclass(frozen=True)
class EngineFeatureFlags:
    # Trace is a local-only debug feature; enabled by default and can be disabled via env.
    trace_enabled: bool = True
    explanations_enabled: bool = True
    engagement_prediction_enabled: bool = True


@dataclass(frozen=True)
class EngineLLMConfig:
    timeout_sec: float = 60.0
    concurrency: int = 6
    max_output_tokens: int = 900


@dataclass(frozen=True)
class EngineSearchConfig:
    tavily_concurrency: int = 8
    tavily_timeout_sec: float = 12.0
    max_results: int = 5
    search_depth: str = "basic"
    exclude_domains: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EngineRetryConfig:
    # Retries after the first attempt; delay doubles on each retry.
    max_retries: int = 3
    initial_delay_sec: float = 1.0
    stage_timeout_sec: float = 120.0


@dataclass(frozen=True)
class EnginePipelineConfig:
    precheck_failure_mode: PreCheckFailureMode = PreCheckFailureMode.FAIL_CLOSED
    fact_check_concurrency: int = 4
    rescore_parent_on_comment: bool = True
    pending_repost_batch: int = 50
    queue_workers: int = 2
    # A claim older than this is considered abandoned and may be re-claimed.
    stale_run_sec: float = 900.0


@dataclass(frozen=True)
class EngineRuntimeConfig:
    llm: EngineLLMConfig = field(default_factory=EngineLLMConfig)
    features: EngineFeatureFlags = field(default_factory=EngineFeatureFlags)
    search: EngineSearchConfig = field(default_factory=EngineSearchConfig)
    retry: EngineRetryConfig = field(default_factory=EngineRetryConfig)
    pipeline: EnginePipelineConfig = field(default_factory=EnginePipelineConfig)

    @staticmethod
    def load_from_env() -> "EngineRuntimeConfig":
        llm = EngineLLMConfig(
            timeout_sec=_parse_float(os.getenv("OPENAI_TIMEOUT"), default=60.0, min_v=5.0, max_v=300.0),
            concurrency=_parse_int(os.getenv("OPENAI_CONCURRENCY"), default=6, min_v=1, max_v=16),
            max_output_tokens=_parse_int(
                os.getenv("KURRAL_LLM_MAX_OUTPUT_TOKENS"), default=900, min_v=200, max_v=4000
            ),
        )

        features = EngineFeatureFlags(
            trace_enabled=not _parse_bool(os.getenv("KURRAL_TRACE_DISABLE"), default=False),
            explanations_enabled=_parse_bool(os.getenv("KURRAL_EXPLANATIONS"), default=True),
            engagement_prediction_enabled=_parse_bool(os.getenv("KURRAL_ENGAGEMENT_PREDICTION"), default=True),
        )

        search = EngineSearchConfig(
            tavily_concurrency=_parse_int(os.getenv("TAVILY_CONCURRENCY"), default=8, min_v=1, max_v=32),
            tavily_timeout_sec=_parse_float(os.getenv("TAVILY_TIMEOUT"), default=12.0, min_v=2.0, max_v=60.0),
            max_results=_parse_int(os.getenv("KURRAL_SEARCH_MAX_RESULTS"), default=5, min_v=1, max_v=10),
            search_depth="advanced" if _parse_bool(os.getenv("KURRAL_SEARCH_ADVANCED"), default=False) else "basic",
            exclude_domains=_parse_csv_domains(os.getenv("KURRAL_SEARCH_EXCLUDE_DOMAINS", "")),
        )

        retry = EngineRetryConfig(
            max_retries=_parse_int(os.getenv("KURRAL_MAX_RETRIES"), default=3, min_v=0, max_v=5),
            initial_delay_sec=_parse_float(os.getenv("KURRAL_RETRY_DELAY"), default=1.0, min_v=0.0, max_v=30.0),
            stage_timeout_sec=_parse_float(
                os.getenv("KURRAL_STAGE_TIMEOUT"), default=120.0, min_v=5.0, max_v=900.0
            ),
        )

        pipeline = EnginePipelineConfig(
            precheck_failure_mode=_parse_choice(
                os.getenv("KURRAL_PRECHECK_FAILURE_MODE"),
                enum_cls=PreCheckFailureMode,
                default=PreCheckFailureMode.FAIL_CLOSED,
            ),
            fact_check_concurrency=_parse_int(
                os.getenv("KURRAL_FACT_CHECK_CONCURRENCY"), default=4, min_v=1, max_v=16
            ),
            rescore_parent_on_comment=_parse_bool(os.getenv("KURRAL_RESCORE_PARENT"), default=True),
            pending_repost_batch=_parse_int(os.getenv("KURRAL_PENDING_REPOST_BATCH"), default=50, min_v=1, max_v=500),
            queue_workers=_parse_int(os.getenv("KURRAL_QUEUE_WORKERS"), default=2, min_v=1, max_v=32),
            stale_run_sec=_parse_float(os.getenv("KURRAL_STALE_RUN_SEC"), default=900.0, min_v=30.0, max_v=86400.0),
        )

        return EngineRuntimeConfig(
            llm=llm,
            features=features,
            search=search,
            retry=retry,
            pipeline=pipeline,
        )

    def to_safe_log_dict(self) -> dict[str, Any]:
        ex = list(self.search.exclude_domains or [])
        exclude_preview = ex[:3]
        more = max(0, len(ex) - len(exclude_preview))
        return {
            "features": {
                "trace_enabled": bool(self.features.trace_enabled),
                "explanations_enabled": bool(self.features.explanations_enabled),
                "engagement_prediction_enabled": bool(self.features.engagement_prediction_enabled),
            },
            "llm": {
                "timeout_sec": float(self.llm.timeout_sec),
                "concurrency": int(self.llm.concurrency),
                "max_output_tokens": int(self.llm.max_output_tokens),
            },
            "search": {
                "tavily_concurrency": int(self.search.tavily_concurrency),
                "tavily_timeout_sec": float(self.search.tavily_timeout_sec),
                "max_results": int(self.search.max_results),
                "search_depth": self.search.search_depth,
                "exclude_domains_count": len(ex),
                "exclude_domains_preview": exclude_preview + ([f"...(+{more})"] if more else []),
            },
            "retry": {
                "max_retries": int(self.retry.max_retries),
                "initial_delay_sec": float(self.retry.initial_delay_sec),
                "stage_timeout_sec": float(self.retry.stage_timeout_sec),
            },
            "pipeline": {
                "precheck_failure_mode": self.pipeline.precheck_failure_mode.value,
                "fact_check_concurrency": int(self.pipeline.fact_check_concurrency),
                "rescore_parent_on_comment": bool(self.pipeline.rescore_parent_on_comment),
                "pending_repost_batch": int(self.pipeline.pending_repost_batch),
                "queue_workers": int(self.pipeline.queue_workers),
            },
        }

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
Strict response contracts for the generation oracle.

Tagged fields (content type, claim type, risk level, verdict, discussion role)
are validated against their enums: an unknown tag fails validation instead of
being coerced to a default. Numeric scores are parsed as floats and may be
NaN/inf; clamping happens in scoring code, not here.
"""

from __future__ import annotations

import json
import math
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from kurral_core.schema.claims import ClaimType, RiskLevel
from kurral_core.schema.evidence import Verdict
from kurral_core.schema.precheck import ContentType
from kurral_core.schema.value import DiscussionRole


class OracleModel(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    @classmethod
    def schema_for_prompt(cls) -> str:
        return json.dumps(cls.model_json_schema(by_alias=True), ensure_ascii=False)


def _clamp_confidence(v: Any) -> float:
    f = float(v)
    if not math.isfinite(f):
        return 0.5
    return max(0.0, min(1.0, f))


class PreCheckResponse(OracleModel):
    needs_fact_check: bool = Field(alias="needsFactCheck")
    confidence: float = 0.5
    reasoning: str = ""
    content_type: ContentType = Field(alias="contentType")

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, v: float) -> float:
        return _clamp_confidence(v)


class ExtractedClaim(OracleModel):
    text: str
    type: ClaimType
    domain: str = "general"
    risk_level: RiskLevel = Field(alias="riskLevel")
    confidence: float = 0.5
    source: Literal["post", "quoted"] = "post"

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, v: float) -> float:
        return _clamp_confidence(v)


class ClaimExtractionResponse(OracleModel):
    claims: list[ExtractedClaim]


class FactCheckResponse(OracleModel):
    verdict: Verdict
    confidence: float
    reasoning: str = ""
    caveats: list[str] = Field(default_factory=list)
    # 1-based indexes into the evidence list shown in the prompt.
    evidence_used: list[int] = Field(default_factory=list, alias="evidenceUsed")

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, v: float) -> float:
        return _clamp_confidence(v)


class ValueScoresPayload(OracleModel):
    epistemic: float
    insight: float
    practical: float
    relational: float
    effort: float


class ValueScoreResponse(OracleModel):
    scores: ValueScoresPayload
    drivers: list[str] = Field(default_factory=list)
    confidence: float = 0.7


class ThreadQualityPayload(OracleModel):
    informativeness: float
    civility: float
    reasoning_depth: float = Field(alias="reasoningDepth")
    cross_perspective: float = Field(alias="crossPerspective")
    summary: str = ""


class CommentInsightPayload(OracleModel):
    comment_id: str = Field(alias="commentId")
    role: DiscussionRole
    contribution: ValueScoresPayload


class DiscussionResponse(OracleModel):
    thread_quality: ThreadQualityPayload = Field(alias="threadQuality")
    comment_insights: list[CommentInsightPayload] = Field(default_factory=list, alias="commentInsights")


class ExplanationResponse(OracleModel):
    summary: str = Field(min_length=1)

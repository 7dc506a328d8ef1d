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

"""Pre-check gate result model."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from kurral_core.schema.serialization import SchemaModel


class ContentType(str, Enum):
    FACTUAL = "factual"
    NEWS = "news"
    OPINION = "opinion"
    EXPERIENCE = "experience"
    QUESTION = "question"
    HUMOR = "humor"
    OTHER = "other"


# Content types that decide the gate outcome regardless of the oracle's boolean.
FACT_CHECK_CONTENT_TYPES = frozenset({ContentType.FACTUAL, ContentType.NEWS})
NO_FACT_CHECK_CONTENT_TYPES = frozenset({
    ContentType.OPINION,
    ContentType.EXPERIENCE,
    ContentType.QUESTION,
    ContentType.HUMOR,
})


class PreCheckSource(str, Enum):
    ORACLE = "oracle"
    RULE = "rule"
    HEURISTIC = "heuristic"
    FAILURE_POLICY = "failure_policy"


class PreCheckResult(SchemaModel):
    needs_fact_check: bool
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    content_type: ContentType = ContentType.OTHER
    reasoning: str = ""
    risk_score: float = Field(default=0.0, ge=0.0, le=1.0)
    signals: list[str] = Field(default_factory=list)
    source: PreCheckSource = PreCheckSource.ORACLE

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
Value scoring models.

- ValueVector: five dimensions in [0, 1]
- ValueScore: vector + weighted total, one per content item (overwritten on re-score)
- DiscussionQuality / DiscussionAnalysis: comment thread metrics
"""

from __future__ import annotations

import datetime
from enum import Enum

from pydantic import Field

from kurral_core.schema.serialization import SchemaModel, utc_now

VALUE_DIMENSIONS: tuple[str, ...] = ("epistemic", "insight", "practical", "relational", "effort")


class ValueVector(SchemaModel):
    epistemic: float = Field(default=0.5, ge=0.0, le=1.0)
    insight: float = Field(default=0.5, ge=0.0, le=1.0)
    practical: float = Field(default=0.5, ge=0.0, le=1.0)
    relational: float = Field(default=0.5, ge=0.0, le=1.0)
    effort: float = Field(default=0.5, ge=0.0, le=1.0)

    def as_dict(self) -> dict[str, float]:
        return {d: float(getattr(self, d)) for d in VALUE_DIMENSIONS}


class ExplanationSource(str, Enum):
    ORACLE = "oracle"
    TEMPLATE = "template"


class ValueScore(ValueVector):
    total: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    drivers: list[str] = Field(default_factory=list)
    domain: str = "general"
    explanation: str | None = None
    explanation_source: ExplanationSource | None = None
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    def same_scores(self, other: "ValueScore | None") -> bool:
        """Compare the scoring payload, ignoring timestamps and explanation text."""
        if other is None:
            return False
        return (
            self.as_dict() == other.as_dict()
            and self.total == other.total
            and self.confidence == other.confidence
            and self.domain == other.domain
        )


class DiscussionRole(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    EVIDENCE = "evidence"
    OPINION = "opinion"
    MODERATION = "moderation"
    OTHER = "other"


class DiscussionQuality(SchemaModel):
    informativeness: float = Field(ge=0.0, le=1.0)
    civility: float = Field(ge=0.0, le=1.0)
    reasoning_depth: float = Field(ge=0.0, le=1.0)
    cross_perspective: float = Field(ge=0.0, le=1.0)
    summary: str = ""

    @property
    def engagement_score(self) -> float:
        return (self.informativeness + self.reasoning_depth + self.cross_perspective + self.civility) / 4.0


class CommentInsight(SchemaModel):
    comment_id: str
    role: DiscussionRole = DiscussionRole.OTHER
    contribution: ValueVector
    total: float = Field(ge=0.0, le=1.0)


class DiscussionAnalysis(SchemaModel):
    thread_quality: DiscussionQuality
    comment_insights: dict[str, CommentInsight] = Field(default_factory=dict)


class EngagementPrediction(SchemaModel):
    expected_views_7d: int = 0
    expected_bookmarks_7d: int = 0
    expected_reposts_7d: int = 0
    expected_comments_7d: int = 0
    predicted_at: datetime.datetime = Field(default_factory=utc_now)

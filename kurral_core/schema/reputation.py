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
Reputation records.

ValueContribution is the append-only ledger the rolling 30-day sums are
recomputed from. KurralScore.score is always derived from its components.
"""

from __future__ import annotations

import datetime
from enum import Enum

from pydantic import Field, field_validator

from kurral_core.schema.policy import PolicyStatus
from kurral_core.schema.serialization import SchemaModel, utc_now

KURRAL_START_SCORE = 65
KURRAL_HISTORY_LIMIT = 20


class ContributionKind(str, Enum):
    POST = "post"
    COMMENT = "comment"


class ValueContribution(SchemaModel):
    id: str
    user_id: str
    item_id: str
    kind: ContributionKind
    value: float
    domain: str | None = None
    created_at: datetime.datetime = Field(default_factory=utc_now)


class ValueStats(SchemaModel):
    post_value_30d: float = 0.0
    comment_value_30d: float = 0.0
    lifetime_post_value: float = 0.0
    lifetime_comment_value: float = 0.0
    last_updated: datetime.datetime = Field(default_factory=utc_now)

    @property
    def total_value_30d(self) -> float:
        return self.post_value_30d + self.comment_value_30d


class ViolationRecord(SchemaModel):
    """One policy outcome that counts against the author."""
    item_id: str
    status: PolicyStatus
    confident_false_count: int = 0
    occurred_at: datetime.datetime = Field(default_factory=utc_now)


class QualitySample(SchemaModel):
    """Latest quality of one item; an item contributes one sample however often it is re-scored."""
    item_id: str
    quality: float = Field(ge=0.0, le=1.0)


class KurralComponents(SchemaModel):
    """Each component is on a 0-100 scale."""
    quality_history: float = Field(ge=0.0, le=100.0)
    violation_history: float = Field(ge=0.0, le=100.0)
    engagement_quality: float = Field(ge=0.0, le=100.0)
    consistency: float = Field(ge=0.0, le=100.0)
    community_trust: float = Field(ge=0.0, le=100.0)


class KurralHistoryEntry(SchemaModel):
    score: int
    delta: int
    reason: str
    date: datetime.datetime = Field(default_factory=utc_now)


class KurralScore(SchemaModel):
    score: int = Field(ge=0, le=100)
    components: KurralComponents
    history: list[KurralHistoryEntry] = Field(default_factory=list)
    last_updated: datetime.datetime = Field(default_factory=utc_now)


class UserReputation(SchemaModel):
    """Per-user reputation document."""
    user_id: str
    value_stats: ValueStats = Field(default_factory=ValueStats)
    kurral_score: KurralScore | None = None
    violations: list[ViolationRecord] = Field(default_factory=list)
    # Most recent first, one per item, capped like the score history.
    quality_samples: list[QualitySample] = Field(default_factory=list)

    @field_validator("quality_samples", mode="before")
    @classmethod
    def _legacy_bare_samples(cls, v: object) -> object:
        # Older documents stored bare floats without the item id.
        if isinstance(v, list):
            return [{"item_id": "", "quality": s} if isinstance(s, (int, float)) else s for s in v]
        return v

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
ContentItem: a post or a comment flowing through the value pipeline.

Pipeline outputs (claims, fact checks, policy, value score, stage records)
are checkpointed onto the item document as each stage completes.
"""

from __future__ import annotations

import datetime
from enum import Enum

from pydantic import Field

from kurral_core.schema.claims import Claim
from kurral_core.schema.evidence import FactCheck
from kurral_core.schema.policy import PolicyDecision, PolicyStatus
from kurral_core.schema.precheck import PreCheckResult
from kurral_core.schema.serialization import SchemaModel, utc_now
from kurral_core.schema.stage import StageName, StageRecord, StageStatus
from kurral_core.schema.value import (
    CommentInsight,
    DiscussionQuality,
    EngagementPrediction,
    ValueScore,
)


class ContentKind(str, Enum):
    POST = "post"
    COMMENT = "comment"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ContentItem(SchemaModel):
    id: str
    author_id: str
    kind: ContentKind = ContentKind.POST
    text: str = ""
    image_url: str | None = None
    topic: str | None = None
    semantic_topics: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    created_at: datetime.datetime = Field(default_factory=utc_now)

    repost_of_id: str | None = None
    quoted_item_id: str | None = None
    parent_item_id: str | None = None

    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    run_id: str | None = None
    run_started_at: datetime.datetime | None = None
    awaiting_original: bool = False
    last_error: str | None = None

    precheck: PreCheckResult | None = None
    claims: list[Claim] | None = None
    fact_checks: list[FactCheck] | None = None
    policy_decision: PolicyDecision | None = None
    fact_check_status: PolicyStatus | None = None
    discussion_quality: DiscussionQuality | None = None
    value_score: ValueScore | None = None
    comment_insight: CommentInsight | None = None
    engagement_prediction: EngagementPrediction | None = None
    stages: dict[str, StageRecord] = Field(default_factory=dict)

    @property
    def has_text(self) -> bool:
        return bool((self.text or "").strip())

    @property
    def has_image(self) -> bool:
        return bool((self.image_url or "").strip())

    @property
    def is_repost(self) -> bool:
        return bool(self.repost_of_id)

    def stage_status(self, stage: StageName | str) -> StageStatus | None:
        record = self.stages.get(StageName(stage).value)
        return record.status if record else None

    def stage_done(self, stage: StageName | str) -> bool:
        """True when a stage finished with a reusable outcome (ok or skipped)."""
        return self.stage_status(stage) in (StageStatus.OK, StageStatus.SKIPPED)

    def has_complete_fact_check_data(self) -> bool:
        if self.claims is None or self.policy_decision is None:
            return False
        for stage in (StageName.CLAIM_EXTRACTION, StageName.FACT_CHECK):
            if self.stage_status(stage) == StageStatus.FAILED:
                return False
        return True

    def is_still_processing(self) -> bool:
        return self.processing_status in (ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS)

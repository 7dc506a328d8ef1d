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

"""Comment thread analysis: thread-level quality plus a per-comment role and contribution."""

from __future__ import annotations

import logging

from kurral_core.agents.skills.base_skill import BaseSkill
from kurral_core.agents.skills.value_prompts import DISCUSSION_INSTRUCTIONS, build_discussion_prompt
from kurral_core.schema.content import ContentItem
from kurral_core.schema.oracle import DiscussionResponse
from kurral_core.schema.value import CommentInsight, DiscussionAnalysis, DiscussionQuality
from kurral_core.scoring.value import sanitize_dimension, validate_vector, weighted_total, weights_for_domain
from kurral_core.utils.text import truncate

logger = logging.getLogger(__name__)


class DiscussionQualityAnalyzer(BaseSkill):
    async def analyze(self, parent: ContentItem, comments: list[ContentItem]) -> DiscussionAnalysis | None:
        """Returns None for a thread with no comments."""
        comments = [c for c in comments if c.has_text]
        if not comments:
            return None

        response = await self.llm_client.call_structured(
            response_model=DiscussionResponse,
            model=self.model_for(has_image=False),
            input=build_discussion_prompt(parent, comments),
            instructions=DISCUSSION_INSTRUCTIONS,
            timeout=self.timeout,
            max_output_tokens=self.max_output_tokens,
            trace_kind="discussion",
        )

        tq = response.thread_quality
        quality = DiscussionQuality(
            informativeness=sanitize_dimension(tq.informativeness),
            civility=sanitize_dimension(tq.civility),
            reasoning_depth=sanitize_dimension(tq.reasoning_depth),
            cross_perspective=sanitize_dimension(tq.cross_perspective),
            summary=truncate(tq.summary, 500),
        )

        known_ids = {c.id for c in comments}
        weights = weights_for_domain(parent.topic)
        insights: dict[str, CommentInsight] = {}
        for payload in response.comment_insights:
            if payload.comment_id not in known_ids:
                logger.debug("[Discussion] Ignoring insight for unknown comment %s", payload.comment_id)
                continue
            vector = validate_vector(payload.contribution.model_dump())
            insights[payload.comment_id] = CommentInsight(
                comment_id=payload.comment_id,
                role=payload.role,
                contribution=vector,
                total=weighted_total(vector, weights),
            )

        logger.info(
            "[Discussion] %s: %d comments, engagement=%.2f, %d insights",
            parent.id,
            len(comments),
            quality.engagement_score,
            len(insights),
        )
        return DiscussionAnalysis(thread_quality=quality, comment_insights=insights)

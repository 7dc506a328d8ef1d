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

import logging

from kurral_core.agents.skills.base_skill import BaseSkill
from kurral_core.agents.skills.value_prompts import VALUE_SCORING_INSTRUCTIONS, build_value_prompt
from kurral_core.schema.claims import Claim
from kurral_core.schema.content import ContentItem
from kurral_core.schema.evidence import FactCheck
from kurral_core.schema.oracle import ValueScoreResponse
from kurral_core.schema.value import DiscussionQuality, ValueScore
from kurral_core.scoring.value import build_value_score
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)


class ValueScorer(BaseSkill):
    """Oracle-rated value vector, post-processed by the deterministic value math."""

    async def score(
        self,
        item: ContentItem,
        claims: list[Claim],
        fact_checks: list[FactCheck],
        discussion: DiscussionQuality | None = None,
        *,
        scored_comments: int = 0,
    ) -> ValueScore:
        response = await self.llm_client.call_structured(
            response_model=ValueScoreResponse,
            model=self.model_for(has_image=False),
            input=build_value_prompt(item, claims, fact_checks, discussion, scored_comments),
            instructions=VALUE_SCORING_INSTRUCTIONS,
            timeout=self.timeout,
            max_output_tokens=self.max_output_tokens,
            trace_kind="value_scoring",
        )

        score = build_value_score(
            response.scores.model_dump(),
            claims=claims,
            fact_checks=fact_checks,
            topic=item.topic,
            confidence=response.confidence,
            drivers=[d.strip() for d in response.drivers if d and d.strip()],
        )
        Trace.event("value_scoring.result", {
            "item_id": item.id,
            "total": score.total,
            "domain": score.domain,
            "vector": score.as_dict(),
        })
        logger.info("[ValueScoring] %s: total=%.3f domain=%s", item.id, score.total, score.domain)
        return score

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

from kurral_core.agents.skills.base_skill import BaseSkill
from kurral_core.agents.skills.value_prompts import EXPLANATION_INSTRUCTIONS, build_explanation_prompt
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.schema.claims import Claim
from kurral_core.schema.content import ContentItem
from kurral_core.schema.evidence import FactCheck, Verdict
from kurral_core.schema.oracle import ExplanationResponse
from kurral_core.schema.value import DiscussionQuality, ValueScore
from kurral_core.utils.text import truncate

MAX_EXPLANATION_CHARS = 600


def template_explanation(
    score: ValueScore,
    claims: list[Claim],
    fact_checks: list[FactCheck],
    discussion: DiscussionQuality | None = None,
) -> str:
    verified = sum(1 for fc in fact_checks if fc.verdict == Verdict.TRUE)
    parts = [
        f"Epistemic {score.epistemic:.2f} driven by {verified} verified claims.",
        f"Insight {score.insight:.2f} from {len(claims)} extracted claims.",
    ]
    if discussion is not None:
        parts.append(
            f"Discussion quality {discussion.informativeness:.2f} with civility {discussion.civility:.2f}."
        )
    return " ".join(parts)


class Explainer(BaseSkill):
    async def explain(
        self,
        item: ContentItem,
        score: ValueScore,
        claims: list[Claim],
        fact_checks: list[FactCheck],
        discussion: DiscussionQuality | None = None,
    ) -> str:
        response = await self.llm_client.call_structured(
            response_model=ExplanationResponse,
            model=self.model_for(has_image=False),
            input=build_explanation_prompt(item, score, claims, fact_checks, discussion),
            instructions=EXPLANATION_INSTRUCTIONS,
            timeout=self.timeout,
            max_output_tokens=min(self.max_output_tokens, 300),
            trace_kind="explanation",
        )
        summary = truncate(response.summary, MAX_EXPLANATION_CHARS)
        if not summary:
            raise LLMCallError("Explanation summary is blank", kind=LLMFailureKind.EMPTY_RESPONSE)
        return summary

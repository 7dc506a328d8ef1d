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
Per-claim fact checking: search -> scored evidence -> oracle verdict.

Claims are checked concurrently under a bounded semaphore. A claim whose
check fails is recorded as an explicit `unverifiable` fact check with a
caveat, so the batch always holds exactly one FactCheck per Claim.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from kurral_core.agents.llm_client import LLMClient
from kurral_core.agents.skills.base_skill import BaseSkill
from kurral_core.agents.skills.fact_check_prompts import FACT_CHECK_INSTRUCTIONS, build_fact_check_prompt
from kurral_core.config import KurralConfig
from kurral_core.llm.failures import classify_llm_failure
from kurral_core.pipeline.errors import PipelineViolation
from kurral_core.schema.claims import Claim
from kurral_core.schema.content import ContentItem
from kurral_core.schema.evidence import Evidence, FactCheck, Verdict, fact_check_id_for
from kurral_core.schema.oracle import FactCheckResponse
from kurral_core.tools.evidence_quality import is_usable_evidence, score_evidence
from kurral_core.tools.search_oracle import SearchHit, SearchOracle
from kurral_core.utils.text import truncate
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.25
FALLBACK_CAVEAT = "Automatic fallback: unable to verify claim"
MAX_QUERY_CHARS = 350
MAX_SNIPPET_CHARS = 800


@dataclass
class FactCheckBatch:
    fact_checks: list[FactCheck]
    failed_claim_ids: list[str] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.fact_checks) and len(self.failed_claim_ids) == len(self.fact_checks)


def fallback_fact_check(claim: Claim, reason: str) -> FactCheck:
    return FactCheck(
        id=fact_check_id_for(claim.id),
        claim_id=claim.id,
        verdict=Verdict.UNVERIFIABLE,
        confidence=FALLBACK_CONFIDENCE,
        evidence=[],
        reasoning="",
        caveats=[FALLBACK_CAVEAT, truncate(reason, 200)],
    )


def build_evidence(hits: list[SearchHit], *, limit: int) -> list[Evidence]:
    """Score hits by source quality, drop unusable ones, best first."""
    evidence: list[Evidence] = []
    seen: set[str] = set()
    for hit in hits:
        key = hit.url or hit.snippet[:80]
        if key in seen:
            continue
        seen.add(key)
        quality = score_evidence(hit.url, hit.score_hint)
        if not is_usable_evidence(quality):
            continue
        evidence.append(
            Evidence(
                source=hit.source,
                url=hit.url,
                snippet=truncate(hit.snippet, MAX_SNIPPET_CHARS),
                quality=quality,
            )
        )
    evidence.sort(key=lambda e: e.quality, reverse=True)
    return evidence[:limit]


def select_evidence(evidence: list[Evidence], used: list[int]) -> list[Evidence]:
    picked = [evidence[i - 1] for i in dict.fromkeys(used) if 1 <= i <= len(evidence)]
    return picked or list(evidence)


class FactChecker(BaseSkill):
    def __init__(self, config: KurralConfig | None, llm_client: LLMClient, search: SearchOracle):
        super().__init__(config, llm_client)
        self.search = search

    async def check_claim(self, item: ContentItem, claim: Claim) -> FactCheck:
        max_results = self.runtime.search.max_results
        hits = await self.search.search(truncate(claim.text, MAX_QUERY_CHARS), max_results=max_results)
        evidence = build_evidence(hits, limit=max_results)
        logger.debug("[FactCheck] %s: %d hits, %d usable evidence", claim.id, len(hits), len(evidence))

        response = await self.llm_client.call_structured(
            response_model=FactCheckResponse,
            model=self.model_for(has_image=False),
            input=build_fact_check_prompt(item, claim, evidence),
            instructions=FACT_CHECK_INSTRUCTIONS,
            timeout=self.timeout,
            max_output_tokens=self.max_output_tokens,
            trace_kind="fact_check",
        )

        return FactCheck(
            id=fact_check_id_for(claim.id),
            claim_id=claim.id,
            verdict=response.verdict,
            confidence=response.confidence,
            evidence=select_evidence(evidence, response.evidence_used),
            reasoning=response.reasoning.strip(),
            caveats=[c.strip() for c in response.caveats if c and c.strip()],
        )

    async def _check_isolated(
        self,
        item: ContentItem,
        claim: Claim,
        sem: asyncio.Semaphore,
    ) -> tuple[FactCheck, bool]:
        async with sem:
            try:
                return await self.check_claim(item, claim), False
            except Exception as e:
                kind = classify_llm_failure(e)
                logger.warning(
                    "[FactCheck] %s failed (%s): %s. Marking unverifiable",
                    claim.id,
                    kind.value if kind else type(e).__name__,
                    e,
                )
                Trace.event("fact_check.claim_failed", {"claim_id": claim.id, "error": str(e)[:200]})
                return fallback_fact_check(claim, str(e)), True

    async def check_claims(self, item: ContentItem, claims: list[Claim]) -> FactCheckBatch:
        if not claims:
            return FactCheckBatch(fact_checks=[])

        sem = asyncio.Semaphore(max(1, self.runtime.pipeline.fact_check_concurrency))
        results = await asyncio.gather(*(self._check_isolated(item, c, sem) for c in claims))

        fact_checks = [fc for fc, _ in results]
        failed = [fc.claim_id for fc, did_fail in results if did_fail]
        if len(fact_checks) != len(claims) or {fc.claim_id for fc in fact_checks} != {c.id for c in claims}:
            raise PipelineViolation(
                stage_name="fact_check",
                invariant="one fact check per claim",
                expected=len(claims),
                actual=len(fact_checks),
            )

        Trace.event("fact_check.batch", {
            "item_id": item.id,
            "claims": len(claims),
            "failed": len(failed),
            "verdicts": [fc.verdict.value for fc in fact_checks],
        })
        logger.info("[FactCheck] %s: %d checked, %d failed", item.id, len(fact_checks), len(failed))
        return FactCheckBatch(fact_checks=fact_checks, failed_claim_ids=failed)

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
Claim extraction.

An empty claim list is a valid, final outcome. The only retry at this level
is for a response whose claims all came back with empty text: one more call
with a strict instruction suffix.
"""

from __future__ import annotations

import logging

from kurral_core.agents.skills.base_skill import BaseSkill
from kurral_core.agents.skills.claim_extraction_prompts import (
    CLAIM_EXTRACTION_INSTRUCTIONS,
    STRICT_SUFFIX,
    build_claim_extraction_prompt,
)
from kurral_core.schema.claims import Claim
from kurral_core.schema.content import ContentItem
from kurral_core.schema.oracle import ClaimExtractionResponse, ExtractedClaim
from kurral_core.utils.text import truncate
from kurral_core.utils.trace import Trace

logger = logging.getLogger(__name__)

MAX_CLAIM_CHARS = 240


def claim_id_for(item_id: str, n: int, *, quoted: bool = False) -> str:
    return f"{item_id}-quoted-claim-{n}" if quoted else f"{item_id}-claim-{n}"


def to_claims(item_id: str, raw: list[ExtractedClaim], *, quoted_allowed: bool) -> list[Claim]:
    """Number own and quoted claims separately (1-based), dropping empty texts."""
    claims: list[Claim] = []
    own_n = quoted_n = 0
    for rc in raw:
        text = truncate(rc.text, MAX_CLAIM_CHARS)
        if not text:
            continue
        is_quoted = quoted_allowed and rc.source == "quoted"
        if is_quoted:
            quoted_n += 1
            cid = claim_id_for(item_id, quoted_n, quoted=True)
        else:
            own_n += 1
            cid = claim_id_for(item_id, own_n)
        claims.append(
            Claim(
                id=cid,
                item_id=item_id,
                text=text,
                type=rc.type,
                domain=rc.domain,
                risk_level=rc.risk_level,
                confidence=rc.confidence,
            )
        )
    return claims


class ClaimExtractor(BaseSkill):
    async def _call(self, item: ContentItem, quoted: ContentItem | None, *, strict: bool) -> ClaimExtractionResponse:
        prompt = build_claim_extraction_prompt(item, quoted)
        instructions = CLAIM_EXTRACTION_INSTRUCTIONS
        if strict:
            prompt += STRICT_SUFFIX
            instructions += STRICT_SUFFIX

        image_url = item.image_url if item.has_image else (quoted.image_url if quoted is not None and quoted.has_image else None)
        return await self.llm_client.call_structured(
            response_model=ClaimExtractionResponse,
            model=self.model_for(has_image=bool(image_url)),
            input=prompt,
            instructions=instructions,
            image_url=image_url,
            timeout=self.timeout,
            max_output_tokens=self.max_output_tokens,
            trace_kind="claim_extraction",
        )

    async def extract(self, item: ContentItem, *, quoted: ContentItem | None = None) -> list[Claim]:
        """
        Extract claims from an item, and from its quoted item when given.

        Raises:
            LLMCallError: oracle failure or schema mismatch
        """
        has_quoted = quoted is not None and (quoted.has_text or quoted.has_image)
        if not item.has_text and not item.has_image and not has_quoted:
            return []

        response = await self._call(item, quoted if has_quoted else None, strict=False)
        claims = to_claims(item.id, response.claims, quoted_allowed=has_quoted)

        if response.claims and not claims:
            logger.warning(
                "[ClaimExtraction] %s: %d claims returned, all with empty text. Retrying with strict prompt",
                item.id,
                len(response.claims),
            )
            response = await self._call(item, quoted if has_quoted else None, strict=True)
            claims = to_claims(item.id, response.claims, quoted_allowed=has_quoted)

        Trace.event("claim_extraction.result", {
            "item_id": item.id,
            "count": len(claims),
            "quoted": has_quoted,
            "sample": claims[0].text[:120] if claims else None,
        })
        logger.info("[ClaimExtraction] %s: %d claims", item.id, len(claims))
        return claims

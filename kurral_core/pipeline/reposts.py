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
Reposts and quotes.

A pure repost copies the original's verification and value outputs when the
original has complete data. A quote reuses the quoted item's fact checks for
new claims that restate a quoted claim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kurral_core.schema.claims import Claim
from kurral_core.schema.content import ContentItem
from kurral_core.schema.evidence import FactCheck, fact_check_id_for
from kurral_core.schema.serialization import dump_many, dump_schema
from kurral_core.store.base import PipelineStore
from kurral_core.utils.text import jaccard_similarity

logger = logging.getLogger(__name__)

QUOTE_MATCH_THRESHOLD = 0.7


def inherited_fields(original: ContentItem) -> dict[str, Any]:
    """Checkpoint fields a repost copies from its original."""
    fields: dict[str, Any] = {
        "claims": dump_many(original.claims),
        "fact_checks": dump_many(original.fact_checks or []),
        "awaiting_original": False,
    }
    for name in ("precheck", "policy_decision", "value_score", "engagement_prediction"):
        value = getattr(original, name)
        if value is not None:
            fields[name] = dump_schema(value)
    if original.fact_check_status is not None:
        fields["fact_check_status"] = original.fact_check_status.value
    return fields


def repost_subject(repost: ContentItem, original: ContentItem) -> ContentItem:
    """The repost, carrying the original's content, for running verification on its behalf."""
    return repost.model_copy(update={
        "text": original.text,
        "image_url": original.image_url,
        "topic": repost.topic or original.topic,
        "semantic_topics": repost.semantic_topics or original.semantic_topics,
        "entities": repost.entities or original.entities,
    })


@dataclass
class QuoteMatch:
    reused: list[FactCheck]
    unmatched: list[Claim]


def match_quoted_claims(
    new_claims: list[Claim],
    quoted_claims: list[Claim],
    quoted_fact_checks: list[FactCheck],
    *,
    threshold: float = QUOTE_MATCH_THRESHOLD,
) -> QuoteMatch:
    """
    Pair each new claim with its most similar quoted claim.

    Similarity above `threshold` reuses the quoted fact check, re-keyed to the
    new claim id; everything else still needs checking.
    """
    fc_by_claim = {fc.claim_id: fc for fc in quoted_fact_checks}
    reused: list[FactCheck] = []
    unmatched: list[Claim] = []

    for claim in new_claims:
        best: Claim | None = None
        best_score = 0.0
        for qc in quoted_claims:
            if qc.id not in fc_by_claim:
                continue
            score = jaccard_similarity(claim.text, qc.text)
            if score > best_score:
                best, best_score = qc, score

        if best is not None and best_score > threshold:
            source = fc_by_claim[best.id]
            reused.append(source.model_copy(update={
                "id": fact_check_id_for(claim.id),
                "claim_id": claim.id,
                "reused_from": source.id,
            }))
            logger.debug("[Quote] %s matches quoted %s (%.2f)", claim.id, best.id, best_score)
        else:
            unmatched.append(claim)

    return QuoteMatch(reused=reused, unmatched=unmatched)


def ready_pending_reposts(store: PipelineStore, *, limit: int) -> list[ContentItem]:
    """Pending reposts whose original has finished processing (or disappeared)."""
    ready: list[ContentItem] = []
    for repost in store.list_pending_reposts(limit=limit):
        original = store.get_item(repost.repost_of_id) if repost.repost_of_id else None
        if original is None or not original.is_still_processing():
            ready.append(repost)
    return ready

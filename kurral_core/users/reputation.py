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
Author reputation: value ledger, rolling 30-day stats and KurralScore updates.

- Ledger entries are append-only; one base entry per (kind, item) plus
  positive re-score deltas above DELTA_THRESHOLD.
- Lifetime values only ever grow by what was appended.
- 30-day values are recomputed from the ledger on every write.
"""

from __future__ import annotations

import datetime
import logging
from typing import Iterable

from kurral_core.schema.evidence import FactCheck, count_confident_false
from kurral_core.schema.policy import PolicyDecision, PolicyStatus
from kurral_core.schema.reputation import (
    ContributionKind,
    KurralScore,
    QualitySample,
    UserReputation,
    ValueContribution,
    ValueStats,
    ViolationRecord,
)
from kurral_core.schema.serialization import utc_now
from kurral_core.schema.value import DiscussionQuality, ValueVector
from kurral_core.scoring.kurral import (
    DEFAULT_ENGAGEMENT,
    DEFAULT_QUALITY,
    QUALITY_SAMPLE_LIMIT,
    average_quality,
    build_components,
    consistency_score,
    engagement_score,
    initial_kurral_score,
    next_kurral_score,
    prune_violations,
    trust_score,
    violation_penalty,
)
from kurral_core.scoring.value import quality_score
from kurral_core.store.base import PipelineStore

logger = logging.getLogger(__name__)

DELTA_THRESHOLD = 0.01
ROLLING_WINDOW = datetime.timedelta(days=30)


def contribution_id(kind: ContributionKind, item_id: str, seq: int = 0) -> str:
    base = f"{kind.value}:{item_id}"
    return base if seq == 0 else f"{base}:delta:{seq}"


def rolling_sums(entries: Iterable[ValueContribution]) -> tuple[float, float]:
    post = comment = 0.0
    for e in entries:
        if e.kind == ContributionKind.POST:
            post += e.value
        else:
            comment += e.value
    return round(post, 6), round(comment, 6)


class ReputationService:
    def __init__(self, store: PipelineStore):
        self.store = store

    def load(self, user_id: str) -> UserReputation:
        return self.store.get_user(user_id) or UserReputation(user_id=user_id)

    def ensure_initialized(self, user_id: str, *, now: datetime.datetime | None = None) -> UserReputation:
        rep = self.load(user_id)
        if rep.kurral_score is None:
            rep.kurral_score = initial_kurral_score(rep.value_stats.total_value_30d, now=now)
            self.store.put_user(rep)
            logger.info("[Reputation] Initialized Kurral score for %s: %d", user_id, rep.kurral_score.score)
        return rep

    def record_value(
        self,
        user_id: str,
        item_id: str,
        kind: ContributionKind,
        value: float,
        *,
        domain: str | None = None,
        now: datetime.datetime | None = None,
    ) -> ValueStats:
        """Append the item's value to the ledger (deduplicated) and refresh ValueStats."""
        now = now or utc_now()
        value = max(0.0, float(value))

        added = 0.0
        base = ValueContribution(
            id=contribution_id(kind, item_id),
            user_id=user_id,
            item_id=item_id,
            kind=kind,
            value=value,
            domain=domain,
            created_at=now,
        )
        if self.store.add_contribution(base):
            added = value
        else:
            existing = [
                e for e in self.store.list_contributions(user_id)
                if e.item_id == item_id and e.kind == kind
            ]
            recorded = sum(e.value for e in existing)
            delta = value - recorded
            if delta > DELTA_THRESHOLD:
                entry = base.model_copy(update={"id": contribution_id(kind, item_id, len(existing)), "value": delta})
                if self.store.add_contribution(entry):
                    added = delta
                    logger.debug("[Reputation] %s %s re-scored: +%.3f", kind.value, item_id, delta)

        rep = self.load(user_id)
        stats = rep.value_stats
        lifetime_post = stats.lifetime_post_value + (added if kind == ContributionKind.POST else 0.0)
        lifetime_comment = stats.lifetime_comment_value + (added if kind == ContributionKind.COMMENT else 0.0)

        post_30d, comment_30d = rolling_sums(self.store.list_contributions(user_id, since=now - ROLLING_WINDOW))
        rep.value_stats = ValueStats(
            post_value_30d=post_30d,
            comment_value_30d=comment_30d,
            lifetime_post_value=lifetime_post,
            lifetime_comment_value=lifetime_comment,
            last_updated=now,
        )
        self.store.put_user(rep)
        return rep.value_stats

    def record_violation(
        self,
        user_id: str,
        item_id: str,
        decision: PolicyDecision,
        fact_checks: list[FactCheck] | None,
        *,
        now: datetime.datetime | None = None,
    ) -> None:
        """Keep at most one violation record per item; a clean outcome removes it."""
        now = now or utc_now()
        rep = self.load(user_id)
        others = [v for v in rep.violations if v.item_id != item_id]
        if decision.status != PolicyStatus.CLEAN:
            previous = next((v for v in rep.violations if v.item_id == item_id), None)
            others.append(
                ViolationRecord(
                    item_id=item_id,
                    status=decision.status,
                    confident_false_count=count_confident_false(fact_checks),
                    occurred_at=previous.occurred_at if previous else now,
                )
            )
        rep.violations = prune_violations(others, now=now)
        self.store.put_user(rep)

    def update_kurral_score(
        self,
        user_id: str,
        *,
        reason: str,
        item_id: str | None = None,
        value: ValueVector | None = None,
        discussion: DiscussionQuality | None = None,
        latest_status: PolicyStatus | None = None,
        now: datetime.datetime | None = None,
    ) -> KurralScore:
        now = now or utc_now()
        rep = self.load(user_id)
        previous = rep.kurral_score
        prev_components = previous.components if previous else None

        if value is not None:
            sample = QualitySample(item_id=item_id or "", quality=quality_score(value))
            others = [s for s in rep.quality_samples if not item_id or s.item_id != item_id]
            rep.quality_samples = [sample, *others][:QUALITY_SAMPLE_LIMIT]
        quality_fallback = prev_components.quality_history / 100.0 if prev_components else DEFAULT_QUALITY
        quality = average_quality([s.quality for s in rep.quality_samples], fallback=quality_fallback)

        rep.violations = prune_violations(rep.violations, now=now)
        penalty = violation_penalty(rep.violations, now=now)

        if discussion is not None:
            engagement = engagement_score(discussion)
        elif prev_components is not None:
            engagement = prev_components.engagement_quality / 100.0
        else:
            engagement = DEFAULT_ENGAGEMENT

        components = build_components(
            quality=quality,
            violation=penalty,
            engagement=engagement,
            consistency=consistency_score(rep.value_stats.total_value_30d),
            trust=trust_score(latest_status, penalty),
        )
        rep.kurral_score = next_kurral_score(previous, components, reason=reason, now=now)
        self.store.put_user(rep)

        logger.info(
            "[Reputation] %s Kurral %s -> %d (%s)",
            user_id,
            previous.score if previous else "new",
            rep.kurral_score.score,
            reason,
        )
        return rep.kurral_score

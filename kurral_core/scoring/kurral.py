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
KurralScore: author-level reputation on a 0-100 scale.

    positive = quality*0.40 + engagement*0.15 + consistency*0.10 + trust*0.10
    penalty  = violation*0.25
    score    = clamp((clamp(positive - penalty, -0.25, 0.75) + 0.25) * 100, 0, 100)

All inputs are in [0, 1]; components are persisted on a 0-100 scale and the
integer score is always recomputed from them.
"""

from __future__ import annotations

import datetime
from typing import Iterable, Sequence

from kurral_core.schema.policy import PolicyStatus
from kurral_core.schema.reputation import (
    KURRAL_HISTORY_LIMIT,
    KURRAL_START_SCORE,
    KurralComponents,
    KurralHistoryEntry,
    KurralScore,
    ViolationRecord,
)
from kurral_core.schema.serialization import utc_now
from kurral_core.schema.value import DiscussionQuality

QUALITY_WEIGHT = 0.40
ENGAGEMENT_WEIGHT = 0.15
CONSISTENCY_WEIGHT = 0.10
TRUST_WEIGHT = 0.10
VIOLATION_WEIGHT = 0.25

NET_MIN = -0.25
NET_MAX = 0.75

VIOLATION_HALF_WEIGHT_DAYS = 30
VIOLATION_EXPIRY_DAYS = 365
RECENT_VIOLATION_PENALTY = 0.4

STATUS_PENALTY = {
    PolicyStatus.BLOCKED: 1.0,
    PolicyStatus.NEEDS_REVIEW: 0.4,
    PolicyStatus.CLEAN: 0.0,
}
CONFIDENT_FALSE_PENALTY = 0.25

CONSISTENCY_TARGET_30D = 5.0

DEFAULT_QUALITY = 0.5
DEFAULT_ENGAGEMENT = 0.4
QUALITY_SAMPLE_LIMIT = 20


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def violation_decay(age: datetime.timedelta) -> float:
    days = age.total_seconds() / 86400.0
    if days >= VIOLATION_EXPIRY_DAYS:
        return 0.0
    if days >= VIOLATION_HALF_WEIGHT_DAYS:
        return 0.5
    return 1.0


def nominal_violation_penalty(record: ViolationRecord) -> float:
    return STATUS_PENALTY.get(record.status, 0.0) + record.confident_false_count * CONFIDENT_FALSE_PENALTY


def violation_penalty(records: Iterable[ViolationRecord], *, now: datetime.datetime | None = None) -> float:
    now = now or utc_now()
    total = sum(nominal_violation_penalty(r) * violation_decay(now - r.occurred_at) for r in records or [])
    return _clamp(total)


def prune_violations(
    records: Iterable[ViolationRecord], *, now: datetime.datetime | None = None
) -> list[ViolationRecord]:
    """Drop records that no longer contribute anything."""
    now = now or utc_now()
    return [r for r in records or [] if violation_decay(now - r.occurred_at) > 0]


def engagement_score(quality: DiscussionQuality) -> float:
    return _clamp(quality.engagement_score)


def consistency_score(total_value_30d: float) -> float:
    return _clamp(total_value_30d / CONSISTENCY_TARGET_30D)


def trust_score(latest_status: PolicyStatus | None, penalty: float) -> float:
    if latest_status == PolicyStatus.BLOCKED:
        return 0.0
    if penalty > RECENT_VIOLATION_PENALTY:
        return 0.3
    if latest_status == PolicyStatus.NEEDS_REVIEW:
        return 0.6
    return 1.0


def average_quality(samples: Sequence[float], fallback: float = DEFAULT_QUALITY) -> float:
    samples = list(samples or [])[:QUALITY_SAMPLE_LIMIT]
    if not samples:
        return fallback
    return _clamp(sum(samples) / len(samples))


def compute_score(
    *,
    quality: float,
    violation: float,
    engagement: float,
    consistency: float,
    trust: float,
) -> int:
    positive = (
        quality * QUALITY_WEIGHT
        + engagement * ENGAGEMENT_WEIGHT
        + consistency * CONSISTENCY_WEIGHT
        + trust * TRUST_WEIGHT
    )
    net = positive - violation * VIOLATION_WEIGHT
    normalized = _clamp(net, NET_MIN, NET_MAX)
    return int(round(_clamp((normalized - NET_MIN) * 100.0, 0.0, 100.0)))


def score_from_components(components: KurralComponents) -> int:
    return compute_score(
        quality=components.quality_history / 100.0,
        violation=components.violation_history / 100.0,
        engagement=components.engagement_quality / 100.0,
        consistency=components.consistency / 100.0,
        trust=components.community_trust / 100.0,
    )


def build_components(
    *,
    quality: float,
    violation: float,
    engagement: float,
    consistency: float,
    trust: float,
) -> KurralComponents:
    def pct(v: float) -> float:
        return round(_clamp(v) * 100.0, 2)

    return KurralComponents(
        quality_history=pct(quality),
        violation_history=pct(violation),
        engagement_quality=pct(engagement),
        consistency=pct(consistency),
        community_trust=pct(trust),
    )


def prepend_history(
    history: Sequence[KurralHistoryEntry],
    entry: KurralHistoryEntry,
    *,
    limit: int = KURRAL_HISTORY_LIMIT,
) -> list[KurralHistoryEntry]:
    return [entry, *list(history or [])][:limit]


def next_kurral_score(
    previous: KurralScore | None,
    components: KurralComponents,
    *,
    reason: str,
    now: datetime.datetime | None = None,
) -> KurralScore:
    """New score from components; history records the delta from the previous score."""
    now = now or utc_now()
    score = score_from_components(components)
    prev_score = previous.score if previous else KURRAL_START_SCORE
    history = list(previous.history) if previous else []
    entry = KurralHistoryEntry(score=score, delta=score - prev_score, reason=reason, date=now)
    return KurralScore(
        score=score,
        components=components,
        history=prepend_history(history, entry),
        last_updated=now,
    )


def initial_kurral_score(total_value_30d: float = 0.0, *, now: datetime.datetime | None = None) -> KurralScore:
    """Starting score for a user with no reputation yet: neutral components, empty history."""
    components = build_components(
        quality=DEFAULT_QUALITY,
        violation=0.0,
        engagement=DEFAULT_ENGAGEMENT,
        consistency=consistency_score(total_value_30d),
        trust=1.0,
    )
    return KurralScore(
        score=score_from_components(components),
        components=components,
        history=[],
        last_updated=now or utc_now(),
    )

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
Value vector math.

Pipeline for an oracle-produced vector:
    sanitize (non-finite -> 0.5, clamp) -> epistemic cap without evidence
    -> fact-check penalty -> domain weights -> clamped weighted total
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

from kurral_core.schema.claims import Claim, RiskLevel, normalize_domain
from kurral_core.schema.evidence import FactCheck, count_confident_false
from kurral_core.schema.value import VALUE_DIMENSIONS, ValueScore, ValueVector

NEUTRAL_DIMENSION = 0.5
DEFAULT_CONFIDENCE = 0.7

PENALTY_PER_FALSE_CLAIM = 0.25
MAX_FACT_CHECK_PENALTY = 0.8
INSIGHT_PENALTY_SHARE = 0.3
EPISTEMIC_CAP_WITHOUT_EVIDENCE = 0.35

RISK_CLAIM_WEIGHT = {
    RiskLevel.HIGH: 2.0,
    RiskLevel.MEDIUM: 1.5,
    RiskLevel.LOW: 1.0,
}

DomainWeights = dict[str, float]

_HEALTH_POLITICS: DomainWeights = {
    "epistemic": 0.35, "insight": 0.25, "practical": 0.20, "relational": 0.10, "effort": 0.10,
}
_TECHNOLOGY: DomainWeights = {
    "epistemic": 0.25, "insight": 0.35, "practical": 0.20, "relational": 0.10, "effort": 0.10,
}
_PRODUCTIVITY: DomainWeights = {
    "epistemic": 0.20, "insight": 0.25, "practical": 0.35, "relational": 0.10, "effort": 0.10,
}
DEFAULT_WEIGHTS: DomainWeights = {
    "epistemic": 0.30, "insight": 0.25, "practical": 0.20, "relational": 0.15, "effort": 0.10,
}

DOMAIN_WEIGHTS: dict[str, DomainWeights] = {
    "health": _HEALTH_POLITICS,
    "politics": _HEALTH_POLITICS,
    "technology": _TECHNOLOGY,
    "startups": _TECHNOLOGY,
    "ai": _TECHNOLOGY,
    "productivity": _PRODUCTIVITY,
    "design": _PRODUCTIVITY,
}


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def sanitize_dimension(value: object) -> float:
    try:
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return NEUTRAL_DIMENSION
    if not math.isfinite(v):
        return NEUTRAL_DIMENSION
    return _clamp01(v)


def validate_vector(raw: Mapping[str, object] | ValueVector) -> ValueVector:
    if isinstance(raw, ValueVector):
        raw = raw.as_dict()
    return ValueVector(**{d: sanitize_dimension(raw.get(d, NEUTRAL_DIMENSION)) for d in VALUE_DIMENSIONS})


def fact_check_penalty(fact_checks: Iterable[FactCheck] | None) -> float:
    return min(MAX_FACT_CHECK_PENALTY, count_confident_false(list(fact_checks or [])) * PENALTY_PER_FALSE_CLAIM)


def apply_fact_check_penalty(vector: ValueVector, fact_checks: Iterable[FactCheck] | None) -> ValueVector:
    penalty = fact_check_penalty(fact_checks)
    if penalty <= 0:
        return vector
    return vector.model_copy(update={
        "epistemic": vector.epistemic * (1 - penalty),
        "insight": vector.insight * (1 - penalty * INSIGHT_PENALTY_SHARE),
    })


def cap_epistemic_without_evidence(vector: ValueVector, fact_checks: Iterable[FactCheck] | None) -> ValueVector:
    if list(fact_checks or []) or vector.epistemic <= EPISTEMIC_CAP_WITHOUT_EVIDENCE:
        return vector
    return vector.model_copy(update={"epistemic": EPISTEMIC_CAP_WITHOUT_EVIDENCE})


def dominant_domain(claims: Iterable[Claim] | None, topic: str | None = None) -> str:
    """
    Risk-weighted majority domain over claims, ignoring "general".

    With no specific claim domain, or a tie between the leaders, the item's
    declared topic decides.
    """
    weights: dict[str, float] = {}
    for claim in claims or []:
        if claim.domain == "general":
            continue
        weights[claim.domain] = weights.get(claim.domain, 0.0) + RISK_CLAIM_WEIGHT.get(claim.risk_level, 1.0)

    fallback = normalize_domain(topic)
    if not weights:
        return fallback

    best = max(weights.values())
    leaders = [d for d, w in weights.items() if w == best]
    if len(leaders) == 1:
        return leaders[0]
    if fallback != "general":
        return fallback
    return leaders[0]


def weights_for_domain(domain: str | None) -> DomainWeights:
    return dict(DOMAIN_WEIGHTS.get(normalize_domain(domain), DEFAULT_WEIGHTS))


def weighted_total(vector: ValueVector, weights: Mapping[str, float]) -> float:
    total = sum(getattr(vector, d) * float(weights.get(d, 0.0)) for d in VALUE_DIMENSIONS)
    if not math.isfinite(total):
        return NEUTRAL_DIMENSION
    return _clamp01(total)


def quality_score(vector: ValueVector) -> float:
    """Per-item quality used by the reputation aggregate."""
    return _clamp01(
        vector.epistemic * 0.3
        + vector.insight * 0.2
        + vector.practical * 0.2
        + vector.relational * 0.2
        + vector.effort * 0.1
    )


def build_value_score(
    raw: Mapping[str, object] | ValueVector,
    *,
    claims: Iterable[Claim] | None,
    fact_checks: Iterable[FactCheck] | None,
    topic: str | None = None,
    confidence: float | None = None,
    drivers: list[str] | None = None,
) -> ValueScore:
    claims = list(claims or [])
    fact_checks = list(fact_checks or [])

    vector = validate_vector(raw)
    vector = cap_epistemic_without_evidence(vector, fact_checks)
    vector = apply_fact_check_penalty(vector, fact_checks)

    domain = dominant_domain(claims, topic)
    total = weighted_total(vector, weights_for_domain(domain))

    conf = DEFAULT_CONFIDENCE if confidence is None else sanitize_dimension(confidence)
    return ValueScore(
        **vector.as_dict(),
        total=total,
        confidence=conf,
        drivers=list(drivers or [])[:5],
        domain=domain,
    )

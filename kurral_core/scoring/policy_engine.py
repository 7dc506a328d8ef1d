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
Content policy decisions.

`evaluate_policy` is a total, side-effect-free function of (claims, fact checks).
Rules are applied per claim and merged with most-severe-wins:

1. false with confidence > 0.7             -> blocked, escalate
2. high-risk claim rated mixed             -> needs_review, escalate
3. low-risk claim rated mixed              -> no change
4. unverifiable                            -> needs_review, escalate
5. true                                    -> no change
6. no fact check: high-risk                -> needs_review, escalate; otherwise no change
7. zero claims                             -> clean, "no extractable claims"
"""

from __future__ import annotations

from typing import Iterable

from kurral_core.schema.claims import Claim
from kurral_core.schema.evidence import CONFIDENT_FALSE_THRESHOLD, FactCheck, Verdict
from kurral_core.schema.policy import PolicyDecision, PolicyStatus, most_severe

NO_CLAIMS_REASON = "no extractable claims"
ALL_VERIFIED_REASON = "All claims verified."

# Reporting-only thresholds for summarize_fact_check_status.
SUMMARY_BLOCK_CONFIDENCE = 0.85
SUMMARY_REVIEW_COUNT = 2


def _quote(text: str, limit: int = 80) -> str:
    t = (text or "").strip()
    return t if len(t) <= limit else t[: limit - 3].rstrip() + "..."


def _rule_for_claim(claim: Claim, fc: FactCheck | None) -> tuple[PolicyStatus, str | None, bool]:
    """(status, reason, escalate) contributed by a single claim."""
    label = f'Claim "{_quote(claim.text)}"'

    if fc is None:
        if claim.is_high_risk:
            return PolicyStatus.NEEDS_REVIEW, f"{label} is high-risk and lacks verification.", True
        return PolicyStatus.CLEAN, None, False

    if fc.verdict == Verdict.FALSE and fc.confidence > CONFIDENT_FALSE_THRESHOLD:
        return (
            PolicyStatus.BLOCKED,
            f"{label} is false with high confidence ({fc.confidence:.2f}).",
            True,
        )

    if fc.verdict == Verdict.MIXED:
        if claim.is_high_risk:
            return PolicyStatus.NEEDS_REVIEW, f"{label} is high-risk and has mixed evidence.", True
        return PolicyStatus.CLEAN, None, False

    if fc.verdict == Verdict.UNVERIFIABLE:
        return PolicyStatus.NEEDS_REVIEW, f"{label} could not be verified.", True

    return PolicyStatus.CLEAN, None, False


def evaluate_policy(claims: Iterable[Claim], fact_checks: Iterable[FactCheck]) -> PolicyDecision:
    claims = list(claims or [])
    if not claims:
        return PolicyDecision(status=PolicyStatus.CLEAN, reasons=[NO_CLAIMS_REASON], escalate_to_human=False)

    by_claim: dict[str, FactCheck] = {}
    for fc in fact_checks or []:
        by_claim.setdefault(fc.claim_id, fc)

    status = PolicyStatus.CLEAN
    reasons: list[str] = []
    escalate = False
    for claim in claims:
        claim_status, reason, claim_escalate = _rule_for_claim(claim, by_claim.get(claim.id))
        status = most_severe(status, claim_status)
        escalate = escalate or claim_escalate
        if reason:
            reasons.append(reason)

    if not reasons:
        reasons.append(ALL_VERIFIED_REASON)

    return PolicyDecision(status=status, reasons=reasons, escalate_to_human=escalate)


def summarize_fact_check_status(fact_checks: Iterable[FactCheck]) -> PolicyStatus:
    """
    Coarse status over verdicts alone, shown next to the policy decision.

    Stricter on blocking (false >= 0.85) and lenient on a single
    mixed/unverifiable verdict.
    """
    fcs = list(fact_checks or [])
    if any(fc.verdict == Verdict.FALSE and fc.confidence >= SUMMARY_BLOCK_CONFIDENCE for fc in fcs):
        return PolicyStatus.BLOCKED

    has_false = any(fc.verdict == Verdict.FALSE for fc in fcs)
    unverifiable = sum(1 for fc in fcs if fc.verdict == Verdict.UNVERIFIABLE)
    mixed = sum(1 for fc in fcs if fc.verdict == Verdict.MIXED)
    if has_false or unverifiable >= SUMMARY_REVIEW_COUNT or mixed >= SUMMARY_REVIEW_COUNT:
        return PolicyStatus.NEEDS_REVIEW
    return PolicyStatus.CLEAN

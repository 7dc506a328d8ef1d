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

"""7-day engagement prediction from value score and fact-check outcome."""

from __future__ import annotations

from typing import Iterable

from kurral_core.schema.evidence import FactCheck, Verdict
from kurral_core.schema.value import EngagementPrediction, ValueScore

BASE_MULTIPLIERS = {
    "views": 100.0,
    "bookmarks": 5.0,
    "reposts": 3.0,
    "comments": 10.0,
}
BLOCKED_MULTIPLIERS = {"views": 0.2, "bookmarks": 0.1, "reposts": 0.1, "comments": 0.3}
FALSE_CLAIM_MULTIPLIERS = {"views": 0.5, "bookmarks": 0.3, "reposts": 0.3, "comments": 0.6}

FALSE_CLAIM_CONFIDENCE = 0.7
BLOCKED_CONFIDENCE = 0.9
MIN_VALUE_FACTOR = 0.1
MIN_CONFIDENCE_FACTOR = 0.5


def predict_engagement(value_score: ValueScore, fact_checks: Iterable[FactCheck] | None) -> EngagementPrediction:
    fcs = list(fact_checks or [])
    multipliers = dict(BASE_MULTIPLIERS)

    def false_above(threshold: float) -> bool:
        return any(fc.verdict == Verdict.FALSE and fc.confidence > threshold for fc in fcs)

    if false_above(BLOCKED_CONFIDENCE):
        adjust = BLOCKED_MULTIPLIERS
    elif false_above(FALSE_CLAIM_CONFIDENCE):
        adjust = FALSE_CLAIM_MULTIPLIERS
    else:
        adjust = {}
    for key, factor in adjust.items():
        multipliers[key] *= factor

    value_factor = max(MIN_VALUE_FACTOR, value_score.total)
    confidence_factor = max(MIN_CONFIDENCE_FACTOR, value_score.confidence)

    def expected(key: str) -> int:
        return int(round(value_factor * multipliers[key] * confidence_factor))

    return EngagementPrediction(
        expected_views_7d=expected("views"),
        expected_bookmarks_7d=expected("bookmarks"),
        expected_reposts_7d=expected("reposts"),
        expected_comments_7d=expected("comments"),
    )

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
Kurral scoring.

Pure functions only: policy decisions, value vector math, reputation score,
content risk heuristics and engagement prediction.
"""

from kurral_core.scoring.engagement import predict_engagement
from kurral_core.scoring.kurral import (
    compute_score,
    initial_kurral_score,
    next_kurral_score,
    score_from_components,
    violation_decay,
    violation_penalty,
)
from kurral_core.scoring.policy_engine import evaluate_policy, summarize_fact_check_status
from kurral_core.scoring.risk import calculate_content_risk_score, detect_signals, heuristic_precheck
from kurral_core.scoring.value import build_value_score, dominant_domain, quality_score, weights_for_domain

__all__ = [
    "evaluate_policy",
    "summarize_fact_check_status",
    "build_value_score",
    "dominant_domain",
    "quality_score",
    "weights_for_domain",
    "compute_score",
    "score_from_components",
    "initial_kurral_score",
    "next_kurral_score",
    "violation_decay",
    "violation_penalty",
    "calculate_content_risk_score",
    "detect_signals",
    "heuristic_precheck",
    "predict_engagement",
]

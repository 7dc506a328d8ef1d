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
Deterministic content risk heuristics for the pre-check gate.

The risk score estimates how much harm an unchecked factual error in the
item could do. It feeds the oracle prompt as signals and drives the
heuristic pre-check when the oracle is unavailable.
"""

from __future__ import annotations

import re
from typing import Iterable

from kurral_core.schema.precheck import ContentType, PreCheckResult, PreCheckSource

HIGH_RISK_TOPICS = (
    "health", "medical", "finance", "money", "invest",
    "stocks", "economy", "politics", "election", "science",
)
HIGH_RISK_KEYWORDS = (
    "vaccine", "treatment", "cancer", "covid", "virus", "pandemic",
    "inflation", "recession", "investment", "returns", "guaranteed",
    "election", "vote", "fraud", "war", "nuclear",
)

STAT_PATTERNS = [
    re.compile(r"\d+%"),
    re.compile(r"\d+ out of \d+"),
    re.compile(r"\d{4}"),
    re.compile(r"\b(million|billion|trillion)\b", re.IGNORECASE),
]
AUTHORITY_PATTERNS = [
    re.compile(r"according to", re.IGNORECASE),
    re.compile(r"study shows", re.IGNORECASE),
    re.compile(r"research indicates", re.IGNORECASE),
    re.compile(r"experts? (say|claim)", re.IGNORECASE),
    re.compile(r"scientists", re.IGNORECASE),
    re.compile(r"doctors", re.IGNORECASE),
]
OPINION_PATTERNS = [
    re.compile(r"^i think", re.IGNORECASE),
    re.compile(r"^i believe", re.IGNORECASE),
    re.compile(r"^in my opinion", re.IGNORECASE),
    re.compile(r"^i feel", re.IGNORECASE),
    re.compile(r"just my opinion", re.IGNORECASE),
    re.compile(r"personally", re.IGNORECASE),
]

BASE_RISK = 0.1
LONG_TEXT_CHARS = 200
SHORT_TEXT_CHARS = 40
LONG_TEXT_WORDS = 25

HEURISTIC_OPINION_MAX_RISK = 0.3
HEURISTIC_CHECK_MIN_RISK = 0.35


def _any_pattern(text: str, patterns: list[re.Pattern[str]]) -> bool:
    return any(p.search(text) for p in patterns)


def _any_keyword(text: str, keywords: Iterable[str]) -> bool:
    return any(kw and kw in text for kw in keywords)


def has_opinion_marker(text: str | None) -> bool:
    return _any_pattern((text or "").strip().lower(), OPINION_PATTERNS)


def calculate_content_risk_score(
    *,
    text: str | None,
    topic: str | None = None,
    semantic_topics: Iterable[str] | None = None,
    entities: Iterable[str] | None = None,
    image_url: str | None = None,
) -> float:
    raw = text or ""
    lowered = raw.lower()
    topics = [(topic or "").lower()] + [(t or "").lower() for t in semantic_topics or []]

    score = BASE_RISK
    if any(_any_keyword(t, HIGH_RISK_TOPICS) for t in topics):
        score += 0.35
    if any(_any_keyword((e or "").lower(), HIGH_RISK_TOPICS) for e in entities or []):
        score += 0.15
    if _any_pattern(lowered, STAT_PATTERNS):
        score += 0.2
    if _any_pattern(lowered, AUTHORITY_PATTERNS):
        score += 0.15
    if _any_keyword(lowered, HIGH_RISK_KEYWORDS):
        score += 0.2

    if len(raw) > LONG_TEXT_CHARS:
        score += 0.1
    if len(raw) < SHORT_TEXT_CHARS:
        score -= 0.05
    if image_url and image_url.strip():
        score += 0.05

    return round(max(0.0, min(1.0, score)), 4)


def detect_signals(*, text: str | None, topic: str | None = None, image_url: str | None = None) -> list[str]:
    lowered = (text or "").lower()
    signals: list[str] = []
    if _any_pattern(lowered, STAT_PATTERNS):
        signals.append("stats_or_numbers")
    if _any_pattern(lowered, AUTHORITY_PATTERNS):
        signals.append("authority_cue")
    if _any_keyword(lowered, HIGH_RISK_KEYWORDS):
        signals.append("high_risk_keywords")
    if _any_keyword((topic or "").lower(), HIGH_RISK_TOPICS):
        signals.append("high_risk_topic")
    if image_url and image_url.strip():
        signals.append("has_image")
    if has_opinion_marker(text):
        signals.append("opinion_marker")
    if len(lowered.split()) >= LONG_TEXT_WORDS:
        signals.append("long_text")
    return signals


def heuristic_precheck(
    *,
    text: str | None,
    risk_score: float,
    signals: list[str] | None = None,
) -> PreCheckResult:
    """Oracle-free pre-check: opinion markers on low-risk text skip, otherwise risk decides."""
    if has_opinion_marker(text) and risk_score < HEURISTIC_OPINION_MAX_RISK:
        return PreCheckResult(
            needs_fact_check=False,
            confidence=0.7,
            content_type=ContentType.OPINION,
            reasoning="Heuristic: opinion/experience detected",
            risk_score=risk_score,
            signals=list(signals or []),
            source=PreCheckSource.HEURISTIC,
        )

    needs = risk_score >= HEURISTIC_CHECK_MIN_RISK
    return PreCheckResult(
        needs_fact_check=needs,
        confidence=0.65,
        content_type=ContentType.OTHER,
        reasoning="Heuristic: content risk is medium/high" if needs else "Heuristic: low-risk content",
        risk_score=risk_score,
        signals=list(signals or []),
        source=PreCheckSource.HEURISTIC,
    )

# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Content risk heuristics and engagement prediction."""

import pytest

from kurral_core.schema.evidence import FactCheck, Verdict
from kurral_core.schema.precheck import ContentType, PreCheckSource
from kurral_core.schema.value import ValueScore
from kurral_core.scoring.engagement import predict_engagement
from kurral_core.scoring.risk import (
    calculate_content_risk_score,
    detect_signals,
    has_opinion_marker,
    heuristic_precheck,
)


class TestContentRisk:
    def test_short_opinion_is_low_risk(self):
        score = calculate_content_risk_score(text="I think pizza is great")
        assert score == pytest.approx(0.05)

    def test_health_stats_with_authority_saturates(self):
        score = calculate_content_risk_score(
            text="According to a 2023 study, the vaccine cut deaths by 40%.",
            topic="Health",
        )
        assert score == 1.0

    def test_image_adds_risk(self):
        text = "A photo from the park this morning, quiet and sunny."
        without = calculate_content_risk_score(text=text)
        with_image = calculate_content_risk_score(text=text, image_url="https://img.example/p.jpg")
        assert with_image == pytest.approx(without + 0.05)

    def test_signals(self):
        signals = detect_signals(
            text="Experts say inflation hit 9% this year",
            topic="finance",
            image_url="https://img.example/chart.png",
        )
        assert {"stats_or_numbers", "authority_cue", "high_risk_keywords", "high_risk_topic", "has_image"} <= set(signals)
        assert "opinion_marker" not in signals

    def test_opinion_marker_only_at_start(self):
        assert has_opinion_marker("In my opinion the redesign works")
        assert not has_opinion_marker("The study says I think too much")


class TestHeuristicPrecheck:
    def test_low_risk_opinion_skips(self):
        result = heuristic_precheck(text="I believe mornings are better", risk_score=0.1)
        assert result.needs_fact_check is False
        assert result.content_type == ContentType.OPINION
        assert result.source == PreCheckSource.HEURISTIC

    def test_risky_text_needs_check(self):
        result = heuristic_precheck(text="Vaccines cause autism", risk_score=0.5)
        assert result.needs_fact_check is True
        assert result.content_type == ContentType.OTHER

    def test_low_risk_non_opinion_skips(self):
        assert heuristic_precheck(text="Nice sunset", risk_score=0.2).needs_fact_check is False


def _score(total: float, confidence: float = 1.0) -> ValueScore:
    return ValueScore(total=total, confidence=confidence)


def _false(confidence: float) -> FactCheck:
    return FactCheck(id="c1-fact-check", claim_id="c1", verdict=Verdict.FALSE, confidence=confidence)


class TestEngagementPrediction:
    def test_clean_item(self):
        prediction = predict_engagement(_score(0.6), [])
        assert prediction.expected_views_7d == 60
        assert prediction.expected_bookmarks_7d == 3
        assert prediction.expected_reposts_7d == 2
        assert prediction.expected_comments_7d == 6

    def test_confident_false_claim_halves_views(self):
        assert predict_engagement(_score(0.6), [_false(0.8)]).expected_views_7d == 30

    def test_blocked_level_false_claim(self):
        prediction = predict_engagement(_score(0.6), [_false(0.95)])
        assert prediction.expected_views_7d == 12
        assert prediction.expected_comments_7d == 2

    def test_floors_on_value_and_confidence(self):
        prediction = predict_engagement(_score(0.0, confidence=0.2), None)
        assert prediction.expected_views_7d == 5

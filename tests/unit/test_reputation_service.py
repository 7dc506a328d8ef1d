# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""ReputationService ledger, violations and KurralScore updates."""

import datetime

import pytest

from kurral_core.schema.evidence import FactCheck, Verdict
from kurral_core.schema.policy import PolicyDecision, PolicyStatus
from kurral_core.schema.reputation import ContributionKind
from kurral_core.schema.serialization import utc_now
from kurral_core.schema.value import ValueVector
from kurral_core.store.memory import InMemoryPipelineStore
from kurral_core.users.reputation import ReputationService, contribution_id


@pytest.fixture
def service():
    return ReputationService(InMemoryPipelineStore())


def _decision(status: PolicyStatus) -> PolicyDecision:
    return PolicyDecision(status=status, reasons=["r"], escalate_to_human=status != PolicyStatus.CLEAN)


def test_contribution_ids():
    assert contribution_id(ContributionKind.POST, "p1") == "post:p1"
    assert contribution_id(ContributionKind.COMMENT, "c1", 2) == "comment:c1:delta:2"


class TestRecordValue:
    def test_same_item_counted_once(self, service):
        service.record_value("alice", "p1", ContributionKind.POST, 0.6)
        stats = service.record_value("alice", "p1", ContributionKind.POST, 0.6)

        assert stats.lifetime_post_value == pytest.approx(0.6)
        assert stats.post_value_30d == pytest.approx(0.6)

    def test_higher_rescore_appends_delta(self, service):
        service.record_value("alice", "p1", ContributionKind.POST, 0.6)
        stats = service.record_value("alice", "p1", ContributionKind.POST, 0.8)

        assert stats.lifetime_post_value == pytest.approx(0.8)
        assert stats.post_value_30d == pytest.approx(0.8)
        assert len(service.store.list_contributions("alice")) == 2

    def test_lower_or_tiny_rescore_ignored(self, service):
        service.record_value("alice", "p1", ContributionKind.POST, 0.6)
        service.record_value("alice", "p1", ContributionKind.POST, 0.605)
        stats = service.record_value("alice", "p1", ContributionKind.POST, 0.3)

        assert stats.lifetime_post_value == pytest.approx(0.6)
        assert len(service.store.list_contributions("alice")) == 1

    def test_comment_and_post_tracked_separately(self, service):
        service.record_value("alice", "p1", ContributionKind.POST, 0.5)
        stats = service.record_value("alice", "c1", ContributionKind.COMMENT, 0.25)

        assert stats.post_value_30d == pytest.approx(0.5)
        assert stats.comment_value_30d == pytest.approx(0.25)
        assert stats.total_value_30d == pytest.approx(0.75)

    def test_old_entries_leave_rolling_window(self, service):
        long_ago = utc_now() - datetime.timedelta(days=45)
        service.record_value("alice", "p0", ContributionKind.POST, 0.9, now=long_ago)
        stats = service.record_value("alice", "p1", ContributionKind.POST, 0.4)

        assert stats.post_value_30d == pytest.approx(0.4)
        assert stats.lifetime_post_value == pytest.approx(1.3)


class TestViolations:
    def test_clean_outcome_clears_violation(self, service):
        service.record_violation("alice", "p1", _decision(PolicyStatus.BLOCKED), [])
        assert len(service.load("alice").violations) == 1

        service.record_violation("alice", "p1", _decision(PolicyStatus.CLEAN), [])
        assert service.load("alice").violations == []

    def test_one_record_per_item_keeps_first_timestamp(self, service):
        first = utc_now() - datetime.timedelta(days=2)
        service.record_violation("alice", "p1", _decision(PolicyStatus.NEEDS_REVIEW), [], now=first)
        checks = [FactCheck(id="f", claim_id="c", verdict=Verdict.FALSE, confidence=0.9)]
        service.record_violation("alice", "p1", _decision(PolicyStatus.BLOCKED), checks)

        violations = service.load("alice").violations
        assert len(violations) == 1
        assert violations[0].status == PolicyStatus.BLOCKED
        assert violations[0].confident_false_count == 1
        assert violations[0].occurred_at == first


class TestKurralUpdates:
    def test_initialization_is_idempotent(self, service):
        first = service.ensure_initialized("alice")
        second = service.ensure_initialized("alice")
        assert first.kurral_score.score == 61
        assert second.kurral_score == first.kurral_score

    def test_high_quality_post_raises_score(self, service):
        perfect = ValueVector(epistemic=1, insight=1, practical=1, relational=1, effort=1)
        score = service.update_kurral_score("alice", reason="post_value_update", value=perfect)

        assert score.score == 81
        assert score.history[0].delta == 16

    def test_rescored_item_keeps_a_single_quality_sample(self, service):
        strong = ValueVector(epistemic=1, insight=1, practical=1, relational=1, effort=1)
        weak = ValueVector(epistemic=0.2, insight=0.2, practical=0.2, relational=0.2, effort=0.2)
        service.update_kurral_score("alice", reason="post_value_update", item_id="p1", value=strong)
        service.update_kurral_score("alice", reason="post_value_update", item_id="p2", value=weak)
        for _ in range(5):
            score = service.update_kurral_score("alice", reason="post_comment_update", item_id="p2", value=weak)

        samples = service.load("alice").quality_samples
        assert [s.item_id for s in samples] == ["p2", "p1"]
        assert score.components.quality_history == pytest.approx(60.0)

    def test_blocked_author_drops(self, service):
        checks = [FactCheck(id="f", claim_id="c", verdict=Verdict.FALSE, confidence=0.9)]
        service.record_violation("alice", "p1", _decision(PolicyStatus.BLOCKED), checks)
        score = service.update_kurral_score(
            "alice", reason="post_value_update", latest_status=PolicyStatus.BLOCKED,
        )

        assert score.components.violation_history == 100.0
        assert score.components.community_trust == 0.0
        assert score.score == 26

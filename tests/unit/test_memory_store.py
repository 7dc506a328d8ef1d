# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import datetime

import pytest

from kurral_core.schema.content import ContentItem, ContentKind, ProcessingStatus
from kurral_core.schema.policy import PolicyDecision, PolicyStatus
from kurral_core.schema.reputation import ContributionKind, QualitySample, UserReputation, ValueContribution
from kurral_core.schema.serialization import utc_now
from kurral_core.store.base import ItemNotFoundError, can_claim, deep_merge
from kurral_core.store.memory import InMemoryPipelineStore


@pytest.fixture
def store():
    s = InMemoryPipelineStore()
    s.put_item(ContentItem(id="post-1", author_id="alice", text="hello"))
    return s


def test_deep_merge_replaces_lists_and_merges_maps():
    target = {"stages": {"precheck": {"status": "ok"}}, "claims": [1, 2]}
    deep_merge(target, {"stages": {"claims": {"status": "ok"}}, "claims": [3]})
    assert set(target["stages"]) == {"precheck", "claims"}
    assert target["claims"] == [3]


class TestItems:
    def test_get_returns_detached_copy(self, store):
        item = store.get_item("post-1")
        item.text = "mutated"
        assert store.get_item("post-1").text == "hello"

    def test_merge_checkpoints_fields(self, store):
        store.merge_item("post-1", {"fact_check_status": "clean", "stages": {"precheck": {"status": "ok"}}})
        item = store.get_item("post-1")
        assert item.fact_check_status == PolicyStatus.CLEAN
        assert item.stage_done("precheck")

    def test_merge_onto_deleted_item_raises(self, store):
        store.delete_item("post-1")
        with pytest.raises(ItemNotFoundError):
            store.merge_item("post-1", {"text": "back"})
        assert store.get_item("post-1") is None

    def test_comments_sorted_by_creation(self, store):
        now = utc_now()
        store.put_item(ContentItem(
            id="c2", author_id="bob", kind=ContentKind.COMMENT, parent_item_id="post-1", created_at=now,
        ))
        store.put_item(ContentItem(
            id="c1", author_id="bob", kind=ContentKind.COMMENT, parent_item_id="post-1",
            created_at=now - datetime.timedelta(minutes=5),
        ))
        assert [c.id for c in store.list_comments("post-1")] == ["c1", "c2"]

    def test_pending_reposts(self, store):
        store.put_item(ContentItem(id="rp-1", author_id="carol", repost_of_id="post-1", awaiting_original=True))
        store.put_item(ContentItem(id="rp-2", author_id="carol", repost_of_id="post-1"))
        assert [r.id for r in store.list_pending_reposts(limit=10)] == ["rp-1"]


class TestClaims:
    def test_second_run_is_refused_while_first_is_live(self, store):
        assert store.try_claim("post-1", "run-a", stale_after_sec=900)
        assert not store.try_claim("post-1", "run-b", stale_after_sec=900)
        assert store.get_item("post-1").run_id == "run-a"

    def test_same_run_may_reclaim(self, store):
        assert store.try_claim("post-1", "run-a", stale_after_sec=900)
        assert store.try_claim("post-1", "run-a", stale_after_sec=900)

    def test_stale_claim_can_be_taken_over(self):
        now = utc_now()
        data = {
            "processing_status": ProcessingStatus.IN_PROGRESS.value,
            "run_id": "crashed",
            "run_started_at": (now - datetime.timedelta(hours=1)).isoformat(),
        }
        assert can_claim(data, "run-b", now=now, stale_after_sec=900)
        assert not can_claim(data, "run-b", now=now, stale_after_sec=7200)

    def test_claim_on_missing_item(self, store):
        with pytest.raises(ItemNotFoundError):
            store.try_claim("nope", "run-a", stale_after_sec=900)


class TestReputationDocuments:
    def test_contribution_ids_are_unique(self, store):
        entry = ValueContribution(id="post-1:post", user_id="alice", item_id="post-1", kind=ContributionKind.POST, value=0.6)
        assert store.add_contribution(entry) is True
        assert store.add_contribution(entry) is False
        assert len(store.list_contributions("alice")) == 1

    def test_contributions_since(self, store):
        old = ValueContribution(
            id="old", user_id="alice", item_id="p0", kind=ContributionKind.POST, value=0.4,
            created_at=utc_now() - datetime.timedelta(days=40),
        )
        store.add_contribution(old)
        since = utc_now() - datetime.timedelta(days=30)
        assert store.list_contributions("alice", since=since) == []

    def test_user_round_trip(self, store):
        store.put_user(UserReputation(user_id="alice", quality_samples=[QualitySample(item_id="p1", quality=0.7)]))
        assert store.get_user("alice").quality_samples[0].item_id == "p1"
        assert store.get_user("ghost") is None

    def test_review_queue_is_idempotent(self, store):
        item = store.get_item("post-1")
        decision = PolicyDecision(status=PolicyStatus.BLOCKED, reasons=["x"], escalate_to_human=True)
        store.enqueue_review(item, decision)
        store.enqueue_review(item, decision)
        assert list(store.review_queue) == ["post-1"]
        assert store.review_queue["post-1"]["status"] == "blocked"

# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Reposts inherit verification from their original; quotes reuse matching fact checks."""

import pytest

from kurral_core.pipeline.constants import RUN_AWAITING_ORIGINAL, RUN_COMPLETED
from kurral_core.schema.content import ProcessingStatus
from kurral_core.schema.policy import PolicyStatus
from kurral_core.schema.stage import StageName, StageStatus
from tests.fixtures.oracle_fakes import claim_payload, claims_payload, fact_check_payload, make_post

QUOTED_CLAIM = "Vaccines are tested for safety before approval"


def make_repost(original_id: str = "post-1", item_id: str = "repost-1"):
    return make_post(item_id, text="", author_id="carol", repost_of_id=original_id)


@pytest.mark.asyncio
async def test_repost_of_completed_original_makes_no_oracle_calls(store, llm, search, make_orchestrator):
    llm.on("fact_check", fact_check_payload("false", 0.9))
    store.put_item(make_post())
    orchestrator = make_orchestrator()
    await orchestrator.run("post-1")
    calls, queries = llm.count(), len(search.queries)

    store.put_item(make_repost())
    outcome = await orchestrator.run("repost-1")

    assert outcome.status == RUN_COMPLETED
    assert llm.count() == calls
    assert len(search.queries) == queries

    original = store.get_item("post-1")
    repost = store.get_item("repost-1")
    assert repost.policy_decision == original.policy_decision
    assert repost.policy_decision.status == PolicyStatus.BLOCKED
    assert [c.id for c in repost.claims] == [c.id for c in original.claims]
    assert [fc.verdict for fc in repost.fact_checks] == [fc.verdict for fc in original.fact_checks]
    assert repost.value_score.same_scores(original.value_score)
    assert repost.stage_status(StageName.REPOST) == StageStatus.OK
    assert repost.stage_status(StageName.REPUTATION) == StageStatus.SKIPPED
    assert store.get_user("carol") is None


@pytest.mark.asyncio
async def test_repost_waits_for_original_then_resumes(store, llm, make_orchestrator):
    store.put_item(make_post())
    store.put_item(make_repost())
    orchestrator = make_orchestrator()

    waiting = await orchestrator.run("repost-1")

    assert waiting.status == RUN_AWAITING_ORIGINAL
    assert llm.count() == 0
    repost = store.get_item("repost-1")
    assert repost.awaiting_original is True
    assert repost.processing_status == ProcessingStatus.PENDING

    # Nothing to resume while the original is unprocessed.
    assert await orchestrator.process_pending_reposts() == []

    await orchestrator.run("post-1")
    resumed = await orchestrator.process_pending_reposts()

    assert [o.item_id for o in resumed] == ["repost-1"]
    assert resumed[0].status == RUN_COMPLETED
    repost = store.get_item("repost-1")
    assert repost.awaiting_original is False
    assert repost.policy_decision == store.get_item("post-1").policy_decision


@pytest.mark.asyncio
async def test_repost_of_unverified_original_verifies_original_content(store, llm, make_orchestrator):
    store.put_item(make_post(processing_status=ProcessingStatus.COMPLETED))
    store.put_item(make_repost())

    outcome = await make_orchestrator().run("repost-1")

    assert outcome.status == RUN_COMPLETED
    assert llm.count("precheck") == 1
    extraction_prompt = next(c["input"] for c in llm.calls if c["kind"] == "claim_extraction")
    assert "Vaccines are tested for safety" in extraction_prompt

    repost = store.get_item("repost-1")
    assert repost.stage_status(StageName.REPOST) == StageStatus.SKIPPED
    assert [c.id for c in repost.claims] == ["repost-1-claim-1"]
    assert store.get_item("post-1").claims is None


@pytest.mark.asyncio
async def test_repost_of_missing_original_records_failure(store, llm, make_orchestrator):
    store.put_item(make_repost(original_id="gone"))

    outcome = await make_orchestrator().run("repost-1")

    repost = store.get_item("repost-1")
    assert outcome.status == RUN_COMPLETED
    assert repost.stage_status(StageName.REPOST) == StageStatus.FAILED
    # The repost itself carries no text, so the gate needs no oracle.
    assert llm.count("precheck") == 0
    assert repost.policy_decision.status == PolicyStatus.CLEAN


@pytest.mark.asyncio
async def test_quote_reuses_fact_check_for_restated_claim(store, llm, make_orchestrator):
    extractions = iter([
        claims_payload(claim_payload(QUOTED_CLAIM)),
        claims_payload(
            claim_payload("Vaccines reduce hospital admissions"),
            claim_payload(QUOTED_CLAIM, source="quoted"),
        ),
    ])
    llm.on("claim_extraction", lambda kwargs: next(extractions))
    orchestrator = make_orchestrator()

    store.put_item(make_post("q-1", text=QUOTED_CLAIM + "."))
    await orchestrator.run("q-1")
    assert llm.count("fact_check") == 1

    store.put_item(make_post(
        "quote-1",
        text="Agreed. Vaccines reduce hospital admissions too.",
        author_id="dave",
        quoted_item_id="q-1",
    ))
    await orchestrator.run("quote-1")

    assert llm.count("fact_check") == 2
    quote = store.get_item("quote-1")
    assert [c.id for c in quote.claims] == ["quote-1-claim-1", "quote-1-quoted-claim-1"]
    own, reused = quote.fact_checks
    assert own.reused_from is None
    assert reused.claim_id == "quote-1-quoted-claim-1"
    assert reused.id == "quote-1-quoted-claim-1-fact-check"
    assert reused.reused_from == "q-1-claim-1-fact-check"

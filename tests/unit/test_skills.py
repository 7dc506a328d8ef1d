# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Oracle skills against scripted oracles."""

from dataclasses import replace

import pytest

from kurral_core.agents.skills.claim_extraction import ClaimExtractor
from kurral_core.agents.skills.claim_extraction_prompts import STRICT_SUFFIX
from kurral_core.agents.skills.discussion_quality import DiscussionQualityAnalyzer
from kurral_core.agents.skills.explainer import Explainer, template_explanation
from kurral_core.agents.skills.fact_check import (
    FALLBACK_CAVEAT,
    FactChecker,
    build_evidence,
    select_evidence,
)
from kurral_core.agents.skills.precheck import PreCheckGate, resolve_needs_fact_check
from kurral_core.agents.skills.value_scoring import ValueScorer
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind
from kurral_core.runtime_config import PreCheckFailureMode
from kurral_core.schema.claims import Claim, ClaimType, RiskLevel
from kurral_core.schema.evidence import Evidence, FactCheck, Verdict
from kurral_core.schema.precheck import ContentType, PreCheckSource
from kurral_core.schema.value import DiscussionRole, ValueScore
from kurral_core.tools.search_oracle import SearchHit
from tests.fixtures.oracle_fakes import (
    FakeSearchOracle,
    ScriptedLLM,
    claim_payload,
    claims_payload,
    discussion_payload,
    explanation_payload,
    fact_check_payload,
    make_comment,
    make_post,
    precheck_payload,
    value_payload,
    verdicts_by_claim,
)


def _claim(n: int, text: str) -> Claim:
    return Claim(id=f"post-1-claim-{n}", item_id="post-1", text=text, type=ClaimType.FACTUAL, domain="health",
                 risk_level=RiskLevel.HIGH)


def _with_failure_mode(config, mode: PreCheckFailureMode):
    rt = config.runtime
    return config.model_copy(update={"runtime": replace(rt, pipeline=replace(rt.pipeline, precheck_failure_mode=mode))})


class TestPreCheckGate:
    @pytest.mark.parametrize(
        "content_type,oracle_value,expected",
        [
            (ContentType.FACTUAL, False, True),
            (ContentType.NEWS, False, True),
            (ContentType.OPINION, True, False),
            (ContentType.HUMOR, True, False),
            (ContentType.OTHER, True, True),
            (ContentType.OTHER, False, False),
        ],
    )
    def test_content_type_overrides_oracle(self, content_type, oracle_value, expected):
        assert resolve_needs_fact_check(content_type, oracle_value) is expected

    @pytest.mark.asyncio
    async def test_empty_item_needs_no_oracle(self, config):
        llm = ScriptedLLM()
        result = await PreCheckGate(config, llm).check(make_post(text=""))
        assert result.needs_fact_check is False
        assert result.source == PreCheckSource.RULE
        assert llm.count() == 0

    @pytest.mark.asyncio
    async def test_oracle_result_carries_local_risk(self, config):
        llm = ScriptedLLM({"precheck": precheck_payload(needs=True, content_type="opinion")})
        result = await PreCheckGate(config, llm).check(make_post(topic="health"))
        assert result.needs_fact_check is False
        assert result.content_type == ContentType.OPINION
        assert result.risk_score > 0.4
        assert "high_risk_keywords" in result.signals

    @pytest.mark.asyncio
    async def test_image_uses_vision_model(self, config):
        llm = ScriptedLLM({"precheck": precheck_payload()})
        await PreCheckGate(config, llm).check(make_post(image_url="https://img.example/x.png"))
        assert llm.calls[0]["model"] == config.openai_vision_model
        assert llm.calls[0]["image_url"] == "https://img.example/x.png"

    @pytest.mark.parametrize(
        "mode,needs,source",
        [
            (PreCheckFailureMode.FAIL_CLOSED, False, PreCheckSource.FAILURE_POLICY),
            (PreCheckFailureMode.FAIL_OPEN, False, PreCheckSource.FAILURE_POLICY),
            (PreCheckFailureMode.VERIFY, True, PreCheckSource.FAILURE_POLICY),
            (PreCheckFailureMode.HEURISTIC, True, PreCheckSource.HEURISTIC),
        ],
    )
    def test_fallback_for_failure(self, config, mode, needs, source):
        gate = PreCheckGate(_with_failure_mode(config, mode), ScriptedLLM())
        result = gate.fallback_for_failure(make_post(topic="health"), "oracle down")
        assert result.needs_fact_check is needs
        assert result.source == source


@pytest.mark.asyncio
class TestClaimExtractor:
    async def test_claims_numbered_per_item(self, config):
        llm = ScriptedLLM({"claim_extraction": claims_payload(
            claim_payload("Vaccines are tested for safety"),
            claim_payload("Trials last several years", risk="medium"),
        )})
        claims = await ClaimExtractor(config, llm).extract(make_post())
        assert [c.id for c in claims] == ["post-1-claim-1", "post-1-claim-2"]
        assert claims[1].risk_level == RiskLevel.MEDIUM

    async def test_empty_texts_trigger_one_strict_retry(self, config):
        def handler(kw):
            if STRICT_SUFFIX in kw["input"]:
                return claims_payload(claim_payload("Vaccines are tested for safety"))
            return claims_payload(claim_payload("   "))

        llm = ScriptedLLM({"claim_extraction": handler})
        claims = await ClaimExtractor(config, llm).extract(make_post())
        assert len(claims) == 1
        assert llm.count("claim_extraction") == 2

    async def test_zero_claims_is_final(self, config):
        llm = ScriptedLLM({"claim_extraction": claims_payload()})
        assert await ClaimExtractor(config, llm).extract(make_post()) == []
        assert llm.count() == 1

    async def test_quoted_claims_numbered_separately(self, config):
        llm = ScriptedLLM({"claim_extraction": claims_payload(
            claim_payload("Own claim text here"),
            claim_payload("Quoted claim text here", source="quoted"),
        )})
        quoted = make_post("orig-1", text="Quoted claim text here.")
        claims = await ClaimExtractor(config, llm).extract(make_post(), quoted=quoted)
        assert [c.id for c in claims] == ["post-1-claim-1", "post-1-quoted-claim-1"]
        assert "Quoted claim text here" in llm.calls[0]["input"]

    async def test_quoted_source_ignored_without_quote(self, config):
        llm = ScriptedLLM({"claim_extraction": claims_payload(claim_payload("Something", source="quoted"))})
        claims = await ClaimExtractor(config, llm).extract(make_post())
        assert claims[0].id == "post-1-claim-1"

    async def test_unknown_claim_type_is_schema_error(self, config):
        llm = ScriptedLLM({"claim_extraction": claims_payload(claim_payload("x", type="rumor"))})
        with pytest.raises(LLMCallError) as exc_info:
            await ClaimExtractor(config, llm).extract(make_post())
        assert exc_info.value.kind == LLMFailureKind.SCHEMA_VALIDATION_FAILED


class TestEvidence:
    def test_build_evidence_filters_and_sorts(self):
        hits = [
            SearchHit(url="https://someblog.example.com/a", snippet="blog", score_hint=0.5),
            SearchHit(url="https://www.reddit.com/r/x", snippet="thread", score_hint=0.9),
            SearchHit(url="https://www.cdc.gov/a", snippet="cdc", score_hint=0.9),
            SearchHit(url="https://www.cdc.gov/a", snippet="cdc duplicate", score_hint=0.9),
        ]
        evidence = build_evidence(hits, limit=5)
        assert [e.source for e in evidence] == ["cdc.gov", "someblog.example.com"]

    def test_select_evidence_falls_back_to_all(self):
        evidence = [Evidence(source="a"), Evidence(source="b")]
        assert select_evidence(evidence, [2, 2]) == [evidence[1]]
        assert select_evidence(evidence, [7]) == evidence


@pytest.mark.asyncio
class TestFactChecker:
    async def test_one_fact_check_per_claim_with_isolated_failure(self, config):
        broken = "Trials last several years"

        def handler(kw):
            if broken in kw["input"]:
                return LLMCallError("bad output", kind=LLMFailureKind.INVALID_JSON)
            return verdicts_by_claim({})(kw)

        llm = ScriptedLLM({"fact_check": handler})
        claims = [_claim(1, "Vaccines are tested for safety"), _claim(2, broken)]
        batch = await FactChecker(config, llm, FakeSearchOracle()).check_claims(make_post(), claims)

        assert [fc.claim_id for fc in batch.fact_checks] == ["post-1-claim-1", "post-1-claim-2"]
        assert batch.failed_claim_ids == ["post-1-claim-2"]
        assert not batch.all_failed
        ok, failed = batch.fact_checks
        assert ok.verdict == Verdict.TRUE
        assert ok.evidence[0].source == "cdc.gov"
        assert failed.verdict == Verdict.UNVERIFIABLE
        assert failed.confidence == 0.25
        assert failed.caveats[0] == FALLBACK_CAVEAT

    async def test_search_outage_fails_every_claim(self, config):
        llm = ScriptedLLM({"fact_check": fact_check_payload()})
        search = FakeSearchOracle(error=ConnectionError("search down"))
        batch = await FactChecker(config, llm, search).check_claims(make_post(), [_claim(1, "x"), _claim(2, "y")])
        assert batch.all_failed
        assert llm.count() == 0

    async def test_no_claims(self, config):
        batch = await FactChecker(config, ScriptedLLM(), FakeSearchOracle()).check_claims(make_post(), [])
        assert batch.fact_checks == []
        assert not batch.all_failed


@pytest.mark.asyncio
class TestDiscussionAnalyzer:
    async def test_unknown_comment_ids_ignored(self, config):
        llm = ScriptedLLM({"discussion": discussion_payload(["c1", "ghost"], role="evidence", contribution=0.7)})
        comments = [make_comment("c1", "post-1", "Here is the CDC source.")]
        analysis = await DiscussionQualityAnalyzer(config, llm).analyze(make_post(), comments)

        assert set(analysis.comment_insights) == {"c1"}
        insight = analysis.comment_insights["c1"]
        assert insight.role == DiscussionRole.EVIDENCE
        assert insight.total == pytest.approx(0.7)
        assert analysis.thread_quality.engagement_score == pytest.approx(0.75)

    async def test_blank_comments_skip_oracle(self, config):
        llm = ScriptedLLM()
        result = await DiscussionQualityAnalyzer(config, llm).analyze(make_post(), [make_comment("c1", "post-1", " ")])
        assert result is None
        assert llm.count() == 0


@pytest.mark.asyncio
class TestValueAndExplanation:
    async def test_value_without_evidence_is_capped(self, config):
        llm = ScriptedLLM({"value_scoring": value_payload(epistemic=0.9)})
        score = await ValueScorer(config, llm).score(make_post(topic="health"), [], [])
        assert score.epistemic == 0.35
        assert score.domain == "health"
        assert score.drivers == ["cites sources"]

    async def test_blank_explanation_rejected(self, config):
        llm = ScriptedLLM({"explanation": explanation_payload("   ")})
        score = ValueScore(total=0.6)
        with pytest.raises(LLMCallError) as exc_info:
            await Explainer(config, llm).explain(make_post(), score, [], [])
        assert exc_info.value.kind == LLMFailureKind.EMPTY_RESPONSE

    async def test_explanation_text(self, config):
        llm = ScriptedLLM({"explanation": explanation_payload()})
        text = await Explainer(config, llm).explain(make_post(), ValueScore(total=0.6), [], [])
        assert text == "Well sourced and useful."


def test_template_explanation_mentions_counts():
    score = ValueScore(epistemic=0.8, insight=0.6, total=0.7)
    claims = [_claim(1, "a"), _claim(2, "b")]
    checks = [FactCheck(id="f1", claim_id="post-1-claim-1", verdict=Verdict.TRUE, confidence=0.9)]
    text = template_explanation(score, claims, checks)
    assert "1 verified claims" in text
    assert "2 extracted claims" in text
    assert "Discussion" not in text

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
Value & trust pipeline orchestrator.

One run processes one item through the stages below, checkpointing every
stage outcome onto the item so a crashed run resumes where it stopped:

    precheck -> claim_extraction -> fact_check -> policy
             -> discussion -> value_scoring -> explanation -> reputation
             (comments: -> parent_rescore)

Each stage ends in Ok, Failed or Skipped. A failed stage is recorded as
failed; its output is never replaced by a silent default.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from kurral_core.agents.llm_client import LLMClient
from kurral_core.agents.skills.claim_extraction import ClaimExtractor
from kurral_core.agents.skills.discussion_quality import DiscussionQualityAnalyzer
from kurral_core.agents.skills.explainer import Explainer, template_explanation
from kurral_core.agents.skills.fact_check import FactChecker
from kurral_core.agents.skills.precheck import PreCheckGate
from kurral_core.agents.skills.value_scoring import ValueScorer
from kurral_core.config import KurralConfig
from kurral_core.llm.errors import LLMCallError
from kurral_core.llm.failures import LLMFailureKind, classify_llm_failure, is_transient_failure
from kurral_core.pipeline.constants import (
    KURRAL_REASON_COMMENT,
    KURRAL_REASON_POST,
    KURRAL_REASON_POST_COMMENT,
    REASON_AWAITING_ORIGINAL,
    REASON_CLAIM_EXTRACTION_FAILED,
    REASON_COMMENT_EXPLANATION,
    REASON_EXPLANATIONS_DISABLED,
    REASON_FACT_CHECK_FAILED,
    REASON_INHERITED,
    REASON_NO_CLAIMS,
    REASON_NO_COMMENT_TEXT,
    REASON_NO_COMMENTS,
    REASON_NO_FACT_CHECK_NEEDED,
    REASON_NO_PARENT,
    REASON_NO_VALUE_SCORE,
    REASON_PARENT_PROCESSING,
    REASON_PRECHECK_FAILED_CLOSED,
    REASON_PRECHECK_FAILED_OPEN,
    REASON_REPOST,
    REASON_RESCORE_DISABLED,
    REASON_RUN_FAILED,
    RUN_ALREADY_RUNNING,
    RUN_AWAITING_ORIGINAL,
    RUN_COMPLETED,
    RUN_DELETED,
    RUN_NOT_FOUND,
)
from kurral_core.pipeline.errors import PipelineExecutionError, PipelineViolation
from kurral_core.pipeline.execution_state import RunExecutionState
from kurral_core.pipeline.reposts import (
    QuoteMatch,
    inherited_fields,
    match_quoted_claims,
    ready_pending_reposts,
    repost_subject,
)
from kurral_core.runtime_config import EngineRuntimeConfig, PreCheckFailureMode
from kurral_core.schema.claims import Claim
from kurral_core.schema.content import ContentItem, ContentKind, ProcessingStatus
from kurral_core.schema.evidence import FactCheck
from kurral_core.schema.policy import PolicyDecision, PolicyStatus, most_severe
from kurral_core.schema.precheck import PreCheckResult
from kurral_core.schema.reputation import ContributionKind
from kurral_core.schema.serialization import dump_many, dump_schema
from kurral_core.schema.stage import (
    Failed,
    Ok,
    Skipped,
    StageName,
    StageRecord,
    StageResult,
    StageStatus,
)
from kurral_core.schema.value import DiscussionAnalysis, DiscussionQuality, ExplanationSource, ValueScore
from kurral_core.scoring.engagement import predict_engagement
from kurral_core.scoring.policy_engine import evaluate_policy, summarize_fact_check_status
from kurral_core.scoring.value import build_value_score
from kurral_core.store.base import ItemNotFoundError, PipelineStore
from kurral_core.tools.search_oracle import SearchOracle, TavilySearchOracle
from kurral_core.tools.tavily_client import TavilyClient
from kurral_core.users.reputation import ReputationService
from kurral_core.utils.trace import STAGE_EVENT, Trace

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutcome:
    """What a single `run()` did to one item."""

    item_id: str
    status: str
    run_id: str | None = None
    stages: dict[str, StageStatus] = field(default_factory=dict)
    policy_decision: PolicyDecision | None = None
    value_score: ValueScore | None = None
    kurral_score: int | None = None
    execution: dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.status == RUN_COMPLETED


@dataclass
class _RunContext:
    item: ContentItem
    subject: ContentItem
    state: RunExecutionState
    resume: bool
    parent: ContentItem | None = None
    precheck: PreCheckResult | None = None
    precheck_failed: bool = False
    skip_reason: str | None = None
    forced_reasons: list[str] = field(default_factory=list)
    claims: list[Claim] | None = None
    fact_checks: list[FactCheck] | None = None
    decision: PolicyDecision | None = None
    discussion: DiscussionAnalysis | None = None
    thread_quality: DiscussionQuality | None = None
    value_score: ValueScore | None = None

    @property
    def is_comment(self) -> bool:
        return self.item.kind == ContentKind.COMMENT

    def can_reuse(self, stage: StageName, output: Any) -> bool:
        return self.resume and output is not None and self.item.stage_status(stage) == StageStatus.OK


class PipelineOrchestrator:
    """
    Runs the value & trust pipeline for posts and comments.

    All oracle-backed stages are injected, so tests can substitute fakes for
    the generation and search oracles without patching globals.
    """

    def __init__(
        self,
        *,
        store: PipelineStore,
        precheck: PreCheckGate,
        claim_extractor: ClaimExtractor,
        fact_checker: FactChecker,
        value_scorer: ValueScorer,
        discussion_analyzer: DiscussionQualityAnalyzer,
        explainer: Explainer,
        reputation: ReputationService | None = None,
        runtime: EngineRuntimeConfig | None = None,
    ):
        self.store = store
        self.precheck = precheck
        self.claim_extractor = claim_extractor
        self.fact_checker = fact_checker
        self.value_scorer = value_scorer
        self.discussion_analyzer = discussion_analyzer
        self.explainer = explainer
        self.reputation = reputation or ReputationService(store)
        self.runtime = runtime or precheck.runtime

    @classmethod
    def from_config(
        cls,
        config: KurralConfig,
        store: PipelineStore,
        *,
        llm_client: LLMClient | None = None,
        search: SearchOracle | None = None,
    ) -> "PipelineOrchestrator":
        """Wire the real OpenAI and Tavily oracles from configuration."""
        runtime = config.resolved_runtime()
        config = config.model_copy(update={"runtime": runtime})

        if llm_client is None:
            llm_client = LLMClient(
                openai_api_key=config.openai_api_key,
                default_timeout=runtime.llm.timeout_sec,
                max_retries=runtime.retry.max_retries,
                initial_retry_delay=runtime.retry.initial_delay_sec,
                concurrency=runtime.llm.concurrency,
            )
        if search is None:
            tavily = TavilyClient(
                api_key=config.tavily_api_key,
                timeout_s=runtime.search.tavily_timeout_sec,
                concurrency=runtime.search.tavily_concurrency,
                global_exclude_domains=runtime.search.exclude_domains,
                max_retries=runtime.retry.max_retries,
                initial_delay_s=runtime.retry.initial_delay_sec,
            )
            search = TavilySearchOracle(tavily, depth=runtime.search.search_depth)

        return cls(
            store=store,
            precheck=PreCheckGate(config, llm_client),
            claim_extractor=ClaimExtractor(config, llm_client),
            fact_checker=FactChecker(config, llm_client, search),
            value_scorer=ValueScorer(config, llm_client),
            discussion_analyzer=DiscussionQualityAnalyzer(config, llm_client),
            explainer=Explainer(config, llm_client),
            runtime=runtime,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────────

    async def run(self, item_id: str, *, force: bool = False) -> PipelineOutcome:
        """
        Process one item.

        A run that cannot claim the item (another live run holds it) is a no-op.
        Unless `force` is set, stages already checkpointed as done are reused.
        """
        item = self.store.get_item(item_id)
        if item is None:
            logger.info("[Orchestrator] %s not found; nothing to do", item_id)
            return PipelineOutcome(item_id=item_id, status=RUN_NOT_FOUND)

        run_id = uuid.uuid4().hex
        if not self.store.try_claim(item_id, run_id, stale_after_sec=self.runtime.pipeline.stale_run_sec):
            logger.info("[Orchestrator] %s is held by another run; skipping", item_id)
            return PipelineOutcome(item_id=item_id, status=RUN_ALREADY_RUNNING)

        item = self.store.get_item(item_id) or item
        ctx = _RunContext(
            item=item,
            subject=item,
            state=RunExecutionState(item_id=item_id, run_id=run_id),
            resume=not force,
        )
        Trace.start(item_id, run_id, runtime=self.runtime)
        Trace.event("pipeline.start", {
            "item_id": item_id,
            "run_id": run_id,
            "kind": item.kind.value,
            "force": force,
        })

        try:
            status = await self._process(ctx)
            final_status = (
                ProcessingStatus.PENDING if status == RUN_AWAITING_ORIGINAL else ProcessingStatus.COMPLETED
            )
            self.store.merge_item(item_id, {
                "processing_status": final_status.value,
                "awaiting_original": status == RUN_AWAITING_ORIGINAL,
                "run_id": None,
                "last_error": None,
            })
        except ItemNotFoundError:
            logger.warning("[Orchestrator] %s was deleted mid-run; remaining stages dropped", item_id)
            Trace.event("pipeline.item_deleted", {"item_id": item_id, "run_id": run_id})
            status = RUN_DELETED
        except Exception as e:
            stage_name = ctx.state.current_stage() or "pipeline"
            logger.exception("[Orchestrator] Run %s for %s failed at %s: %s", run_id, item_id, stage_name, e)
            Trace.event("pipeline.error", {
                "item_id": item_id,
                "stage": stage_name,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            self._release_failed_run(ctx, stage_name, e)
            Trace.stop("failed")
            raise PipelineExecutionError(stage_name, str(e), cause=e) from e

        ctx.state.finish()
        summary = ctx.state.to_summary()
        Trace.event("pipeline.completed", {"status": status, **summary})
        Trace.stop(status)

        kurral = None
        if status == RUN_COMPLETED:
            user = self.store.get_user(item.author_id)
            kurral = user.kurral_score.score if user and user.kurral_score else None

        logger.info(
            "[Orchestrator] %s %s: policy=%s value=%s failed_stages=%s",
            item_id,
            status,
            ctx.decision.status.value if ctx.decision else None,
            f"{ctx.value_score.total:.3f}" if ctx.value_score else None,
            ctx.state.failed_stages(),
        )
        return PipelineOutcome(
            item_id=item_id,
            status=status,
            run_id=run_id,
            stages=ctx.state.statuses(),
            policy_decision=ctx.decision,
            value_score=ctx.value_score,
            kurral_score=kurral,
            execution=summary,
        )

    async def process_pending_reposts(self, limit: int | None = None) -> list[PipelineOutcome]:
        """Re-run reposts that were waiting on an original that has since finished."""
        limit = limit or self.runtime.pipeline.pending_repost_batch
        ready = ready_pending_reposts(self.store, limit=limit)
        if ready:
            logger.info("[Orchestrator] Resuming %d pending reposts", len(ready))
        return [await self.run(repost.id) for repost in ready]

    async def close(self) -> None:
        await self.precheck.llm_client.close()
        close = getattr(self.fact_checker.search, "close", None)
        if close is not None:
            await close()

    # ─────────────────────────────────────────────────────────────────────────
    # Stage plumbing
    # ─────────────────────────────────────────────────────────────────────────

    async def _run_stage(
        self,
        ctx: _RunContext,
        stage: StageName,
        fn: Callable[[], Awaitable[Any]],
    ) -> StageResult:
        ctx.state.stage(stage.value).mark_running(timestamp=time.time())
        timeout = self.runtime.retry.stage_timeout_sec
        try:
            value = await asyncio.wait_for(fn(), timeout=timeout)
        except ItemNotFoundError:
            raise
        except asyncio.TimeoutError:
            logger.warning("[Orchestrator] %s: %s timed out after %.0fs", ctx.item.id, stage.value, timeout)
            return Failed(f"stage timed out after {timeout:.0f}s", error_kind=LLMFailureKind.TIMEOUT.value, retryable=True)
        except PipelineViolation as e:
            logger.warning("[Orchestrator] %s: invariant violation: %s", ctx.item.id, e)
            Trace.event("pipeline.violation", e.to_trace_dict())
            return Failed(str(e), error_kind="pipeline_violation")
        except Exception as e:
            kind = e.kind if isinstance(e, LLMCallError) else classify_llm_failure(e)
            logger.warning("[Orchestrator] %s: %s failed: %s", ctx.item.id, stage.value, e)
            return Failed(
                str(e)[:300],
                error_kind=kind.value if kind else type(e).__name__,
                retryable=is_transient_failure(e),
            )

        if isinstance(value, (Failed, Skipped)):
            return value
        return Ok(value)

    def _record(
        self,
        ctx: _RunContext,
        stage: StageName,
        result: StageResult,
        fields: dict[str, Any] | None = None,
    ) -> None:
        """Checkpoint a stage outcome (and its output fields) onto the item."""
        st = ctx.state.stage(stage.value)
        now = time.time()
        if st.started_at is None:
            st.mark_running(timestamp=now)
        st.mark_result(result, timestamp=now)

        patch = dict(fields or {})
        patch["stages"] = {stage.value: StageRecord.from_result(result).to_dict()}
        self.store.merge_item(ctx.item.id, patch)
        Trace.event(STAGE_EVENT, {"item_id": ctx.item.id, **st.to_dict()})

    def _reuse(self, ctx: _RunContext, stage: StageName) -> None:
        status = ctx.item.stage_status(stage) or StageStatus.OK
        st = ctx.state.stage(stage.value)
        st.mark_reused(status, timestamp=time.time())
        Trace.event(STAGE_EVENT, {"item_id": ctx.item.id, **st.to_dict()})
        logger.debug("[Orchestrator] %s: reusing checkpointed %s", ctx.item.id, stage.value)

    def _release_failed_run(self, ctx: _RunContext, stage_name: str, error: Exception) -> None:
        """
        Hand a crashed run's item back: drop the claim, record the failure and
        hold the item for review until a later run recomputes its decision.

        The store may be what failed, so this write is best-effort and never
        replaces the original error.
        """
        previous = ctx.decision or ctx.item.policy_decision
        decision = PolicyDecision(
            status=most_severe(previous.status if previous else PolicyStatus.CLEAN, PolicyStatus.NEEDS_REVIEW),
            reasons=list(dict.fromkeys([REASON_RUN_FAILED, *(previous.reasons if previous else [])])),
            escalate_to_human=True,
        )
        fields: dict[str, Any] = {
            "processing_status": ProcessingStatus.PENDING.value,
            "run_id": None,
            "last_error": f"{stage_name}: {type(error).__name__}: {error}",
            "policy_decision": dump_schema(decision),
        }
        if stage_name in {s.value for s in StageName}:
            kind = classify_llm_failure(error)
            failed = Failed(str(error), error_kind=kind.value if kind else type(error).__name__, retryable=True)
            fields["stages"] = {stage_name: StageRecord.from_result(failed).to_dict()}
        try:
            self.store.merge_item(ctx.item.id, fields)
            self.store.enqueue_review(ctx.item, decision)
        except Exception as release_error:
            logger.error(
                "[Orchestrator] Could not release %s after failed run %s: %s",
                ctx.item.id,
                ctx.state.run_id,
                release_error,
            )
            return
        logger.info("[Orchestrator] %s released after failure and escalated for review", ctx.item.id)

    def _merge_related(self, item_id: str, fields: dict[str, Any]) -> bool:
        """Write to an item other than the one being run; a deleted target is not fatal."""
        try:
            self.store.merge_item(item_id, fields)
        except ItemNotFoundError:
            logger.info("[Orchestrator] Related item %s no longer exists", item_id)
            return False
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Flow
    # ─────────────────────────────────────────────────────────────────────────

    async def _process(self, ctx: _RunContext) -> str:
        item = ctx.item
        if ctx.is_comment and item.parent_item_id:
            ctx.parent = self.store.get_item(item.parent_item_id)

        if item.is_repost:
            outcome = await self._handle_repost(ctx)
            if outcome is not None:
                return outcome

        await self._precheck_stage(ctx)
        await self._claims_stage(ctx)
        await self._fact_check_stage(ctx)
        self._policy_stage(ctx)

        if ctx.is_comment:
            await self._comment_discussion_stage(ctx)
            await self._comment_value_stage(ctx)
            self._record(ctx, StageName.EXPLANATION, Skipped(REASON_COMMENT_EXPLANATION))
        else:
            await self._post_discussion_stage(ctx)
            await self._post_value_stage(ctx)
            await self._explanation_stage(ctx)

        await self._reputation_stage(ctx)
        if ctx.is_comment:
            await self._parent_rescore_stage(ctx)
        return RUN_COMPLETED

    async def _handle_repost(self, ctx: _RunContext) -> str | None:
        """Inherit from the original, wait for it, or verify its content on the repost's behalf."""
        item = ctx.item
        original = self.store.get_item(item.repost_of_id)

        if original is None:
            self._record(ctx, StageName.REPOST, Failed("original not found", error_kind="not_found"))
            return None

        if original.has_complete_fact_check_data():
            self._record(ctx, StageName.REPOST, Ok(original.id), inherited_fields(original))
            for stage in (
                StageName.PRECHECK,
                StageName.CLAIM_EXTRACTION,
                StageName.FACT_CHECK,
                StageName.POLICY,
                StageName.DISCUSSION,
                StageName.VALUE_SCORING,
                StageName.EXPLANATION,
            ):
                self._record(ctx, stage, Skipped(REASON_INHERITED))
            self._record(ctx, StageName.REPUTATION, Skipped(REASON_REPOST))
            ctx.claims = list(original.claims or [])
            ctx.fact_checks = list(original.fact_checks or [])
            ctx.decision = original.policy_decision
            ctx.value_score = original.value_score
            logger.info("[Orchestrator] %s inherited verification from %s", item.id, original.id)
            return RUN_COMPLETED

        if original.is_still_processing():
            self._record(
                ctx,
                StageName.REPOST,
                Skipped(REASON_AWAITING_ORIGINAL),
                {"awaiting_original": True},
            )
            logger.info("[Orchestrator] %s waits for original %s", item.id, original.id)
            return RUN_AWAITING_ORIGINAL

        self._record(ctx, StageName.REPOST, Skipped("original lacks verification data; verifying its content"))
        ctx.subject = repost_subject(item, original)
        return None

    async def _precheck_stage(self, ctx: _RunContext) -> None:
        if ctx.can_reuse(StageName.PRECHECK, ctx.item.precheck):
            ctx.precheck = ctx.item.precheck
            self._reuse(ctx, StageName.PRECHECK)
        else:
            result = await self._run_stage(ctx, StageName.PRECHECK, lambda: self.precheck.check(ctx.subject))
            if isinstance(result, Ok):
                ctx.precheck = result.value
            else:
                ctx.precheck_failed = True
                ctx.precheck = self.precheck.fallback_for_failure(ctx.subject, getattr(result, "reason", ""))
            self._record(ctx, StageName.PRECHECK, result, {"precheck": dump_schema(ctx.precheck)})

        if ctx.precheck.needs_fact_check:
            return

        mode = self.precheck.runtime.pipeline.precheck_failure_mode
        if not ctx.precheck_failed:
            ctx.skip_reason = f"{REASON_NO_FACT_CHECK_NEEDED} ({ctx.precheck.content_type.value})"
        elif mode == PreCheckFailureMode.FAIL_CLOSED:
            ctx.skip_reason = REASON_PRECHECK_FAILED_CLOSED
            ctx.forced_reasons.append(REASON_PRECHECK_FAILED_CLOSED)
        elif mode == PreCheckFailureMode.HEURISTIC:
            ctx.skip_reason = f"{REASON_NO_FACT_CHECK_NEEDED} (heuristic)"
        else:
            ctx.skip_reason = REASON_PRECHECK_FAILED_OPEN

    async def _claims_stage(self, ctx: _RunContext) -> None:
        if ctx.skip_reason is not None:
            ctx.claims = []
            self._record(ctx, StageName.CLAIM_EXTRACTION, Skipped(ctx.skip_reason), {"claims": []})
            return

        if ctx.can_reuse(StageName.CLAIM_EXTRACTION, ctx.item.claims):
            ctx.claims = list(ctx.item.claims)
            self._reuse(ctx, StageName.CLAIM_EXTRACTION)
            return

        quoted = self._quoted_item(ctx)
        result = await self._run_stage(
            ctx,
            StageName.CLAIM_EXTRACTION,
            lambda: self.claim_extractor.extract(ctx.subject, quoted=quoted),
        )
        if isinstance(result, Ok):
            ctx.claims = result.value
            self._record(ctx, StageName.CLAIM_EXTRACTION, result, {"claims": dump_many(ctx.claims)})
        else:
            ctx.claims = None
            ctx.forced_reasons.append(REASON_CLAIM_EXTRACTION_FAILED)
            self._record(ctx, StageName.CLAIM_EXTRACTION, result)

    def _quoted_item(self, ctx: _RunContext) -> ContentItem | None:
        if not ctx.item.quoted_item_id:
            return None
        return self.store.get_item(ctx.item.quoted_item_id)

    async def _fact_check_stage(self, ctx: _RunContext) -> None:
        if ctx.skip_reason is not None:
            ctx.fact_checks = []
            self._record(ctx, StageName.FACT_CHECK, Skipped(ctx.skip_reason), {"fact_checks": []})
            return
        if ctx.claims is None:
            self._record(ctx, StageName.FACT_CHECK, Skipped("claim extraction failed"))
            return
        if not ctx.claims:
            ctx.fact_checks = []
            self._record(ctx, StageName.FACT_CHECK, Skipped(REASON_NO_CLAIMS), {"fact_checks": []})
            return
        if ctx.can_reuse(StageName.FACT_CHECK, ctx.item.fact_checks):
            ctx.fact_checks = list(ctx.item.fact_checks)
            self._reuse(ctx, StageName.FACT_CHECK)
            return

        claims = ctx.claims
        quoted = self._quoted_item(ctx)
        if quoted is not None and quoted.has_complete_fact_check_data() and quoted.fact_checks:
            match = match_quoted_claims(claims, quoted.claims or [], quoted.fact_checks)
            if match.reused:
                logger.info(
                    "[Orchestrator] %s reuses %d fact checks from quoted %s",
                    ctx.item.id,
                    len(match.reused),
                    quoted.id,
                )
        else:
            match = QuoteMatch(reused=[], unmatched=list(claims))

        result = await self._run_stage(
            ctx,
            StageName.FACT_CHECK,
            lambda: self.fact_checker.check_claims(ctx.subject, match.unmatched),
        )
        if not isinstance(result, Ok):
            ctx.fact_checks = None
            ctx.forced_reasons.append(REASON_FACT_CHECK_FAILED)
            self._record(ctx, StageName.FACT_CHECK, result)
            return

        batch = result.value
        by_claim = {fc.claim_id: fc for fc in [*match.reused, *batch.fact_checks]}
        ctx.fact_checks = [by_claim[c.id] for c in claims]

        stage_result: StageResult = result
        if batch.all_failed:
            stage_result = Failed(
                f"all {len(batch.failed_claim_ids)} fact checks failed",
                error_kind="fact_check_failed",
                retryable=True,
            )
        self._record(ctx, StageName.FACT_CHECK, stage_result, {"fact_checks": dump_many(ctx.fact_checks)})

    def _policy_stage(self, ctx: _RunContext) -> None:
        if ctx.skip_reason is not None:
            decision = PolicyDecision(reasons=[ctx.skip_reason])
        elif ctx.claims is not None and ctx.fact_checks is not None:
            decision = evaluate_policy(ctx.claims, ctx.fact_checks)
        else:
            decision = PolicyDecision()

        if ctx.forced_reasons:
            decision = PolicyDecision(
                status=most_severe(decision.status, PolicyStatus.NEEDS_REVIEW),
                reasons=list(dict.fromkeys([*ctx.forced_reasons, *decision.reasons])),
                escalate_to_human=True,
            )

        ctx.decision = decision
        fc_status = summarize_fact_check_status(ctx.fact_checks or [])
        self._record(ctx, StageName.POLICY, Ok(decision), {
            "policy_decision": dump_schema(decision),
            "fact_check_status": fc_status.value,
        })
        if decision.escalate_to_human:
            self.store.enqueue_review(ctx.item, decision)
            logger.info("[Orchestrator] %s escalated for review: %s", ctx.item.id, "; ".join(decision.reasons))

    async def _post_discussion_stage(self, ctx: _RunContext) -> None:
        item = ctx.item
        if ctx.can_reuse(StageName.DISCUSSION, item.discussion_quality) and ctx.can_reuse(
            StageName.VALUE_SCORING, item.value_score
        ):
            ctx.thread_quality = item.discussion_quality
            self._reuse(ctx, StageName.DISCUSSION)
            return

        comments = self.store.list_comments(item.id)
        if not comments:
            self._record(ctx, StageName.DISCUSSION, Skipped(REASON_NO_COMMENTS))
            return

        result = await self._run_stage(ctx, StageName.DISCUSSION, lambda: self._analyze(item, comments))
        if isinstance(result, Ok):
            ctx.discussion = result.value
            ctx.thread_quality = ctx.discussion.thread_quality
            for comment_id, insight in ctx.discussion.comment_insights.items():
                self._merge_related(comment_id, {"comment_insight": dump_schema(insight)})
            self._record(ctx, StageName.DISCUSSION, result, {"discussion_quality": dump_schema(ctx.thread_quality)})
        else:
            self._record(ctx, StageName.DISCUSSION, result)

    async def _analyze(self, parent: ContentItem, comments: list[ContentItem]) -> DiscussionAnalysis | Skipped:
        analysis = await self.discussion_analyzer.analyze(parent, comments)
        return analysis if analysis is not None else Skipped(REASON_NO_COMMENT_TEXT)

    async def _post_value_stage(self, ctx: _RunContext) -> None:
        if ctx.can_reuse(StageName.VALUE_SCORING, ctx.item.value_score):
            ctx.value_score = ctx.item.value_score
            self._reuse(ctx, StageName.VALUE_SCORING)
            return

        scored_comments = len(ctx.discussion.comment_insights) if ctx.discussion else 0
        result = await self._run_stage(
            ctx,
            StageName.VALUE_SCORING,
            lambda: self.value_scorer.score(
                ctx.subject,
                ctx.claims or [],
                ctx.fact_checks or [],
                ctx.thread_quality,
                scored_comments=scored_comments,
            ),
        )
        if not isinstance(result, Ok):
            self._record(ctx, StageName.VALUE_SCORING, result)
            return

        ctx.value_score = result.value
        fields: dict[str, Any] = {"value_score": dump_schema(ctx.value_score)}
        if self.runtime.features.engagement_prediction_enabled:
            fields["engagement_prediction"] = dump_schema(predict_engagement(ctx.value_score, ctx.fact_checks))
        self._record(ctx, StageName.VALUE_SCORING, result, fields)

    async def _explanation_stage(self, ctx: _RunContext) -> None:
        score = ctx.value_score
        if score is None:
            self._record(ctx, StageName.EXPLANATION, Skipped(REASON_NO_VALUE_SCORE))
            return
        if not self.runtime.features.explanations_enabled:
            self._record(ctx, StageName.EXPLANATION, Skipped(REASON_EXPLANATIONS_DISABLED))
            return
        if ctx.can_reuse(StageName.EXPLANATION, score.explanation):
            self._reuse(ctx, StageName.EXPLANATION)
            return

        claims = ctx.claims or []
        fact_checks = ctx.fact_checks or []
        result = await self._run_stage(
            ctx,
            StageName.EXPLANATION,
            lambda: self.explainer.explain(ctx.subject, score, claims, fact_checks, ctx.thread_quality),
        )
        if isinstance(result, Ok):
            text, source = result.value, ExplanationSource.ORACLE
        else:
            text = template_explanation(score, claims, fact_checks, ctx.thread_quality)
            source = ExplanationSource.TEMPLATE

        ctx.value_score = score.model_copy(update={"explanation": text, "explanation_source": source})
        self._record(ctx, StageName.EXPLANATION, result, {"value_score": dump_schema(ctx.value_score)})

    async def _comment_discussion_stage(self, ctx: _RunContext) -> None:
        parent = ctx.parent
        if parent is None:
            self._record(ctx, StageName.DISCUSSION, Skipped(REASON_NO_PARENT))
            return

        comments = self.store.list_comments(parent.id)
        result = await self._run_stage(ctx, StageName.DISCUSSION, lambda: self._analyze(parent, comments))
        if not isinstance(result, Ok):
            self._record(ctx, StageName.DISCUSSION, result)
            return

        ctx.discussion = result.value
        ctx.thread_quality = ctx.discussion.thread_quality
        self._merge_related(parent.id, {"discussion_quality": dump_schema(ctx.thread_quality)})

        fields: dict[str, Any] = {}
        insight = ctx.discussion.comment_insights.get(ctx.item.id)
        if insight is not None:
            fields["comment_insight"] = dump_schema(insight)
        self._record(ctx, StageName.DISCUSSION, result, fields)

    async def _comment_value_stage(self, ctx: _RunContext) -> None:
        insight = ctx.discussion.comment_insights.get(ctx.item.id) if ctx.discussion else None
        topic = ctx.parent.topic if ctx.parent and ctx.parent.topic else ctx.item.topic

        if insight is not None:
            score = build_value_score(
                insight.contribution,
                claims=ctx.claims,
                fact_checks=ctx.fact_checks,
                topic=topic,
                drivers=[f"discussion role: {insight.role.value}"],
            )
            result: StageResult = Ok(score)
        elif ctx.can_reuse(StageName.VALUE_SCORING, ctx.item.value_score):
            ctx.value_score = ctx.item.value_score
            self._reuse(ctx, StageName.VALUE_SCORING)
            return
        else:
            result = await self._run_stage(
                ctx,
                StageName.VALUE_SCORING,
                lambda: self.value_scorer.score(ctx.item, ctx.claims or [], ctx.fact_checks or []),
            )

        if isinstance(result, Ok):
            ctx.value_score = result.value
            self._record(ctx, StageName.VALUE_SCORING, result, {"value_score": dump_schema(ctx.value_score)})
        else:
            self._record(ctx, StageName.VALUE_SCORING, result)

    async def _reputation_stage(self, ctx: _RunContext) -> None:
        if ctx.resume and ctx.item.stage_status(StageName.REPUTATION) == StageStatus.OK:
            self._reuse(ctx, StageName.REPUTATION)
            return
        if self.store.get_item(ctx.item.id) is None:
            raise ItemNotFoundError(ctx.item.id)

        result = await self._run_stage(ctx, StageName.REPUTATION, lambda: self._update_author(ctx))
        self._record(ctx, StageName.REPUTATION, result)

    async def _update_author(self, ctx: _RunContext) -> int:
        item = ctx.item
        author = item.author_id
        kind = ContributionKind.COMMENT if ctx.is_comment else ContributionKind.POST

        self.reputation.ensure_initialized(author)
        if ctx.value_score is not None:
            self.reputation.record_value(author, item.id, kind, ctx.value_score.total, domain=ctx.value_score.domain)
        if ctx.decision is not None:
            self.reputation.record_violation(author, item.id, ctx.decision, ctx.fact_checks)

        kurral = self.reputation.update_kurral_score(
            author,
            reason=KURRAL_REASON_COMMENT if ctx.is_comment else KURRAL_REASON_POST,
            item_id=item.id,
            value=ctx.value_score,
            discussion=None if ctx.is_comment else ctx.thread_quality,
            latest_status=ctx.decision.status if ctx.decision else None,
        )
        return kurral.score

    async def _parent_rescore_stage(self, ctx: _RunContext) -> None:
        parent = ctx.parent
        if not self.runtime.pipeline.rescore_parent_on_comment:
            self._record(ctx, StageName.PARENT_RESCORE, Skipped(REASON_RESCORE_DISABLED))
            return
        if parent is None or ctx.discussion is None:
            self._record(ctx, StageName.PARENT_RESCORE, Skipped(REASON_NO_PARENT))
            return

        parent = self.store.get_item(parent.id)
        if parent is None:
            self._record(ctx, StageName.PARENT_RESCORE, Skipped(REASON_NO_PARENT))
            return
        if parent.is_still_processing():
            self._record(ctx, StageName.PARENT_RESCORE, Skipped(REASON_PARENT_PROCESSING))
            return

        result = await self._run_stage(ctx, StageName.PARENT_RESCORE, lambda: self._rescore_parent(parent, ctx.discussion))
        self._record(ctx, StageName.PARENT_RESCORE, result)

    async def _rescore_parent(self, parent: ContentItem, discussion: DiscussionAnalysis) -> ValueScore | Skipped:
        claims = parent.claims or []
        fact_checks = parent.fact_checks or []
        thread = discussion.thread_quality

        score = await self.value_scorer.score(
            parent,
            claims,
            fact_checks,
            thread,
            scored_comments=len(discussion.comment_insights),
        )
        score = score.model_copy(update={
            "explanation": template_explanation(score, claims, fact_checks, thread),
            "explanation_source": ExplanationSource.TEMPLATE,
        })
        if not self._merge_related(parent.id, {
            "value_score": dump_schema(score),
            "discussion_quality": dump_schema(thread),
        }):
            return Skipped(REASON_NO_PARENT)

        self.reputation.record_value(
            parent.author_id,
            parent.id,
            ContributionKind.POST,
            score.total,
            domain=score.domain,
        )
        self.reputation.update_kurral_score(
            parent.author_id,
            reason=KURRAL_REASON_POST_COMMENT,
            item_id=parent.id,
            value=score,
            discussion=thread,
            latest_status=parent.policy_decision.status if parent.policy_decision else None,
        )
        logger.info("[Orchestrator] Re-scored parent %s: %.3f", parent.id, score.total)
        return score

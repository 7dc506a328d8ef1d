# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import pytest

from kurral_core.config import KurralConfig
from kurral_core.runtime_config import EngineRuntimeConfig, PreCheckFailureMode


def test_llm_concurrency_is_clamped(monkeypatch):
    monkeypatch.setenv("OPENAI_CONCURRENCY", "999")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.llm.concurrency == 16

    monkeypatch.setenv("OPENAI_CONCURRENCY", "0")
    cfg2 = EngineRuntimeConfig.load_from_env()
    assert cfg2.llm.concurrency == 1


def test_garbage_int_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("KURRAL_MAX_RETRIES", "lots")
    assert EngineRuntimeConfig.load_from_env().retry.max_retries == 3


def test_precheck_failure_mode_default_is_fail_closed(monkeypatch):
    monkeypatch.delenv("KURRAL_PRECHECK_FAILURE_MODE", raising=False)
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.pipeline.precheck_failure_mode == PreCheckFailureMode.FAIL_CLOSED


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("fail-open", PreCheckFailureMode.FAIL_OPEN),
        ("VERIFY", PreCheckFailureMode.VERIFY),
        ("heuristic", PreCheckFailureMode.HEURISTIC),
        ("panic", PreCheckFailureMode.FAIL_CLOSED),
    ],
)
def test_precheck_failure_mode_parsing(monkeypatch, raw, expected):
    monkeypatch.setenv("KURRAL_PRECHECK_FAILURE_MODE", raw)
    assert EngineRuntimeConfig.load_from_env().pipeline.precheck_failure_mode == expected


def test_feature_flags(monkeypatch):
    monkeypatch.setenv("KURRAL_EXPLANATIONS", "off")
    monkeypatch.setenv("KURRAL_RESCORE_PARENT", "no")
    monkeypatch.setenv("KURRAL_TRACE_DISABLE", "1")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.features.explanations_enabled is False
    assert cfg.features.trace_enabled is False
    assert cfg.pipeline.rescore_parent_on_comment is False


def test_stage_timeout_and_workers_clamped(monkeypatch):
    monkeypatch.setenv("KURRAL_STAGE_TIMEOUT", "1")
    monkeypatch.setenv("KURRAL_QUEUE_WORKERS", "100")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.retry.stage_timeout_sec == 5.0
    assert cfg.pipeline.queue_workers == 32


def test_exclude_domains_deduped(monkeypatch):
    monkeypatch.setenv("KURRAL_SEARCH_EXCLUDE_DOMAINS", "Pinterest.com, .pinterest.com,\nquora.com")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.search.exclude_domains == ["pinterest.com", "quora.com"]


def test_safe_log_dict_has_no_secrets(monkeypatch):
    monkeypatch.setenv("KURRAL_SEARCH_EXCLUDE_DOMAINS", "a.com,b.com,c.com,d.com,e.com")
    data = EngineRuntimeConfig.load_from_env().to_safe_log_dict()
    assert data["search"]["exclude_domains_count"] == 5
    assert data["search"]["exclude_domains_preview"][-1] == "...(+2)"
    assert "api_key" not in str(data)


def test_config_resolves_runtime_lazily():
    runtime = EngineRuntimeConfig()
    cfg = KurralConfig(openai_api_key="sk-test", runtime=runtime)
    assert cfg.resolved_runtime() is runtime
    assert isinstance(KurralConfig().resolved_runtime(), EngineRuntimeConfig)

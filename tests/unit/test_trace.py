# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Run-scoped local trace files."""

import json
from dataclasses import replace

import pytest

from kurral_core.runtime_config import EngineFeatureFlags, EngineRuntimeConfig
from kurral_core.utils import trace as trace_module
from kurral_core.utils.trace import STAGE_EVENT, SUMMARY_EVENT, Trace, current_run, scrub


@pytest.fixture
def local_run(monkeypatch):
    monkeypatch.setattr(trace_module, "is_local_run", lambda: True)


def _records(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_run_file_is_keyed_by_item_and_run(local_run, tmp_path):
    run = Trace.start("post/1", "run-a", runtime=EngineRuntimeConfig(), root=tmp_path)

    Trace.event("claims.prompt", {"text": "hello"})
    Trace.stop("completed")

    assert run.path == tmp_path / "post_1" / "run-a.jsonl"
    records = _records(run.path)
    assert [r["event"] for r in records] == ["run.start", "claims.prompt", SUMMARY_EVENT]
    assert {r["item_id"] for r in records} == {"post/1"}
    assert {r["run_id"] for r in records} == {"run-a"}
    assert current_run() is None


def test_summary_reports_final_stage_statuses(local_run, tmp_path):
    Trace.start("post-1", "run-b", runtime=EngineRuntimeConfig(), root=tmp_path)
    Trace.event(STAGE_EVENT, {"item_id": "post-1", "name": "precheck", "status": "ok"})
    Trace.event(STAGE_EVENT, {"item_id": "post-1", "name": "fact_check", "status": "failed"})
    Trace.event(STAGE_EVENT, {"item_id": "post-1", "name": "fact_check", "status": "ok"})
    Trace.event(STAGE_EVENT, {"item_id": "post-1", "name": "explanation", "status": "failed"})

    summary = Trace.stop("completed")

    assert summary["status"] == "completed"
    assert summary["stages"] == {"precheck": "ok", "fact_check": "ok", "explanation": "failed"}
    assert summary["failed_stages"] == ["explanation"]
    assert summary["events"] == 5
    last = _records(tmp_path / "post-1" / "run-b.jsonl")[-1]
    assert last["data"]["failed_stages"] == ["explanation"]


def test_nothing_is_written_outside_local_runs(monkeypatch, tmp_path):
    monkeypatch.setattr(trace_module, "is_local_run", lambda: False)

    assert Trace.start("post-1", "run-c", runtime=EngineRuntimeConfig(), root=tmp_path) is None
    Trace.event("claims.prompt", {"text": "hello"})

    assert Trace.stop() is None
    assert list(tmp_path.iterdir()) == []


def test_trace_feature_flag_disables_tracing(local_run, tmp_path):
    runtime = replace(EngineRuntimeConfig(), features=replace(EngineFeatureFlags(), trace_enabled=False))
    assert Trace.start("post-1", "run-d", runtime=runtime, root=tmp_path) is None
    assert list(tmp_path.iterdir()) == []


class TestScrub:
    def test_secrets_are_redacted(self):
        out = scrub({
            "api_key": "tvly-abcdefgh1234",
            "headers": {"Authorization": "Bearer abc.def"},
            "note": "called with sk-proj1234567890 and ?key=secret&q=1",
        })
        assert out["api_key"] == "***"
        assert out["headers"]["Authorization"] == "***"
        assert "sk-***" in out["note"]
        assert "?key=***&q=1" in out["note"]

    def test_long_strings_are_summarized(self):
        out = scrub("x" * 5000)
        assert out["len"] == 5000
        assert out["head"] == "x" * 200

    def test_long_lists_are_capped(self):
        out = scrub(list(range(60)))
        assert out[:50] == list(range(50))
        assert out[-1] == {"omitted": 10}

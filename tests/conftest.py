# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from dataclasses import replace

import pytest

from kurral_core.config import KurralConfig
from kurral_core.pipeline.orchestrator import PipelineOrchestrator
from kurral_core.runtime_config import EngineRetryConfig, EngineRuntimeConfig
from kurral_core.store import InMemoryPipelineStore
from tests.fixtures.oracle_fakes import FakeSearchOracle, ScriptedLLM, happy_path_handlers


@pytest.fixture
def runtime():
    """Runtime config with retries off so failure paths stay fast."""
    return EngineRuntimeConfig(
        retry=EngineRetryConfig(max_retries=0, initial_delay_sec=0.0, stage_timeout_sec=5.0),
    )


@pytest.fixture
def config(runtime):
    return KurralConfig(openai_api_key="test-openai-key", tavily_api_key="test-tavily-key", runtime=runtime)


@pytest.fixture
def store():
    return InMemoryPipelineStore()


@pytest.fixture
def llm():
    return ScriptedLLM(happy_path_handlers())


@pytest.fixture
def search():
    return FakeSearchOracle()


@pytest.fixture
def make_orchestrator(config, store, llm, search):
    """Build an orchestrator over the shared fakes, optionally overriding pipeline knobs."""

    def _build(**pipeline_overrides):
        cfg = config
        if pipeline_overrides:
            rt = cfg.runtime
            rt = replace(rt, pipeline=replace(rt.pipeline, **pipeline_overrides))
            cfg = cfg.model_copy(update={"runtime": rt})
        return PipelineOrchestrator.from_config(cfg, store, llm_client=llm, search=search)

    return _build


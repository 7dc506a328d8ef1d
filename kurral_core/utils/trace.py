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
Local debug trace for pipeline runs.

Each run writes one JSONL file, `data/trace/<item_id>/<run_id>.jsonl`. Every
record carries the item and run ids plus the time elapsed since the run
started. Stage checkpoints (`pipeline.stage` events) are tallied as they go
by, and `Trace.stop()` closes the file with a `run.summary` record holding
the final status of each stage.

Tracing only happens for local runs with the trace feature enabled. Payloads
are scrubbed before writing: secrets redacted, long strings summarized.
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from kurral_core.runtime_config import EngineRuntimeConfig
from kurral_core.utils.runtime import is_local_run

logger = logging.getLogger(__name__)

TRACE_ROOT = Path("data/trace")
STAGE_EVENT = "pipeline.stage"
SUMMARY_EVENT = "run.summary"

MAX_STRING = 2000
MAX_ITEMS = 50

_REDACTIONS = (
    (re.compile(r"(Bearer\s+)\S+"), r"\1***"),
    (re.compile(r"\bsk-[A-Za-z0-9_-]{8,}"), "sk-***"),
    (re.compile(r"\btvly-[A-Za-z0-9_-]{8,}"), "tvly-***"),
    (re.compile(r"([?&](?:key|api_key|access_token)=)[^&\s]+", re.IGNORECASE), r"\1***"),
)
_SECRET_FIELDS = frozenset({"authorization", "api_key", "key", "openai_api_key", "tavily_api_key"})


@dataclass
class RunTrace:
    """Trace state of the run active in the current context."""

    item_id: str
    run_id: str
    path: Path
    started: float = field(default_factory=time.monotonic)
    events: int = 0
    stages: dict[str, str | None] = field(default_factory=dict)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def summary(self, status: str | None) -> dict[str, Any]:
        return {
            "status": status,
            "events": self.events,
            "elapsed_ms": self.elapsed_ms(),
            "stages": dict(self.stages),
            "failed_stages": [name for name, s in self.stages.items() if s == "failed"],
        }


_active_run: contextvars.ContextVar[RunTrace | None] = contextvars.ContextVar("kurral_run_trace", default=None)


def redact(text: str) -> str:
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def scrub(value: Any) -> Any:
    """JSON-safe copy of a trace payload with secrets removed and bulk trimmed."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "model_dump"):
        return scrub(value.model_dump(mode="json"))
    if isinstance(value, dict):
        return {
            str(k): "***" if str(k).lower() in _SECRET_FIELDS else scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        items = list(value)
        out = [scrub(v) for v in items[:MAX_ITEMS]]
        if len(items) > MAX_ITEMS:
            out.append({"omitted": len(items) - MAX_ITEMS})
        return out

    text = redact(str(value))
    if len(text) <= MAX_STRING:
        return text
    return {
        "len": len(text),
        "sha256": hashlib.sha256(text.encode("utf-8")).hexdigest()[:16],
        "head": text[:200],
    }


def current_run() -> RunTrace | None:
    return _active_run.get()


def _safe_name(value: str) -> str:
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in value) or "_"


def _append(path: Path, record: dict[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except OSError as e:
        # Tracing must never break the main flow.
        logger.debug("[Trace] write to %s failed: %s", path, e)


class Trace:
    """Run-scoped JSONL trace; every call is a no-op while no run is traced."""

    @staticmethod
    def start(
        item_id: str,
        run_id: str,
        *,
        runtime: EngineRuntimeConfig | None = None,
        root: Path | None = None,
    ) -> RunTrace | None:
        runtime = runtime or EngineRuntimeConfig.load_from_env()
        if not (is_local_run() and runtime.features.trace_enabled):
            _active_run.set(None)
            return None

        run = RunTrace(
            item_id=item_id,
            run_id=run_id,
            path=(root or TRACE_ROOT) / _safe_name(item_id) / f"{_safe_name(run_id)}.jsonl",
        )
        _active_run.set(run)
        Trace.event("run.start", {"started_at": time.strftime("%Y-%m-%d %H:%M:%S")})
        return run

    @staticmethod
    def event(name: str, data: Any | None = None) -> None:
        run = _active_run.get()
        if run is None:
            return

        run.events += 1
        if name == STAGE_EVENT and isinstance(data, dict) and data.get("name"):
            run.stages[str(data["name"])] = scrub(data.get("status"))

        _append(run.path, {
            "ts_ms": int(time.time() * 1000),
            "elapsed_ms": run.elapsed_ms(),
            "item_id": run.item_id,
            "run_id": run.run_id,
            "event": str(name),
            "data": scrub(data),
        })

    @staticmethod
    def stop(status: str | None = None) -> dict[str, Any] | None:
        """Write the run summary and detach the trace; returns the summary."""
        run = _active_run.get()
        if run is None:
            return None
        summary = run.summary(status)
        Trace.event(SUMMARY_EVENT, summary)
        _active_run.set(None)
        return summary

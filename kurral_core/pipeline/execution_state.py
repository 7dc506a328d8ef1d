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

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from kurral_core.schema.stage import Failed, Ok, Skipped, StageStatus


@dataclass
class StageExecutionState:
    """Outcome and timing for a single stage within one run."""

    name: str
    status: StageStatus | None = None
    started_at: float | None = None
    completed_at: float | None = None
    reason: str | None = None
    error_kind: str | None = None
    reused: bool = False

    def mark_running(self, *, timestamp: float) -> None:
        self.started_at = timestamp

    def mark_result(self, result: "Ok | Failed | Skipped", *, timestamp: float) -> None:
        self.status = result.status
        self.completed_at = timestamp
        if isinstance(result, (Failed, Skipped)):
            self.reason = result.reason
        if isinstance(result, Failed):
            self.error_kind = result.error_kind

    def mark_reused(self, status: StageStatus, *, timestamp: float) -> None:
        self.status = status
        self.reused = True
        self.started_at = self.completed_at = timestamp

    def to_dict(self) -> dict[str, Any]:
        duration = None
        if self.started_at is not None and self.completed_at is not None:
            duration = self.completed_at - self.started_at
        return {
            "name": self.name,
            "status": self.status.value if self.status else None,
            "duration_s": duration,
            "reason": self.reason,
            "error_kind": self.error_kind,
            "reused": self.reused,
        }


@dataclass
class RunExecutionState:
    """Execution state for one pipeline run of one item."""

    item_id: str
    run_id: str
    stages: dict[str, StageExecutionState] = field(default_factory=dict)
    started_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    def stage(self, name: str) -> StageExecutionState:
        if name not in self.stages:
            self.stages[name] = StageExecutionState(name=name)
        return self.stages[name]

    def statuses(self) -> dict[str, StageStatus]:
        return {name: s.status for name, s in self.stages.items() if s.status is not None}

    def failed_stages(self) -> list[str]:
        return [name for name, s in self.stages.items() if s.status == StageStatus.FAILED]

    def current_stage(self) -> str | None:
        """Most recent stage that started but has no outcome yet."""
        for name, s in reversed(list(self.stages.items())):
            if s.started_at is not None and s.status is None:
                return name
        return None

    def finish(self) -> None:
        self.completed_at = time.time()

    def to_summary(self) -> dict[str, Any]:
        duration = None
        if self.completed_at is not None:
            duration = self.completed_at - self.started_at
        return {
            "item_id": self.item_id,
            "run_id": self.run_id,
            "duration_s": duration,
            "stages": [s.to_dict() for s in self.stages.values()],
        }

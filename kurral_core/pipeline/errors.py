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

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PipelineViolation(Exception):
    """
    Raised when a pipeline invariant is violated.

    Attributes:
        stage_name: Stage that detected the violation
        invariant: Description of the violated invariant
        expected: What was expected
        actual: What was actually found
        details: Additional context for debugging
    """

    stage_name: str
    invariant: str
    expected: Any
    actual: Any
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        msg = (
            f"Pipeline violation in '{self.stage_name}': {self.invariant}. "
            f"Expected: {self.expected}, Actual: {self.actual}"
        )
        super().__init__(msg)

    def to_trace_dict(self) -> dict[str, Any]:
        return {
            "error": "pipeline_violation",
            "stage_name": self.stage_name,
            "invariant": self.invariant,
            "expected": str(self.expected),
            "actual": str(self.actual),
            "details": self.details,
        }


class PipelineExecutionError(Exception):
    """
    Raised when a stage cannot produce its output for non-invariant reasons
    (oracle failure after retries, malformed output, stage timeout).
    """

    def __init__(self, stage_name: str, message: str, cause: Exception | None = None):
        self.stage_name = stage_name
        self.cause = cause
        full_msg = f"Pipeline execution failed at '{stage_name}': {message}"
        if cause:
            full_msg += f" (caused by: {cause})"
        super().__init__(full_msg)

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
Explicit per-stage results.

Every pipeline stage ends in exactly one of:
- Ok(value): the stage produced its output
- Failed(reason): the stage could not produce output (recorded, never defaulted)
- Skipped(reason): the stage legitimately had nothing to do
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from pydantic import Field

from kurral_core.schema.serialization import SchemaModel, utc_now

T = TypeVar("T")


class StageName(str, Enum):
    PRECHECK = "precheck"
    REPOST = "repost_inheritance"
    CLAIM_EXTRACTION = "claim_extraction"
    FACT_CHECK = "fact_check"
    POLICY = "policy"
    DISCUSSION = "discussion"
    VALUE_SCORING = "value_scoring"
    EXPLANATION = "explanation"
    REPUTATION = "reputation"
    PARENT_RESCORE = "parent_rescore"


class StageStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def status(self) -> StageStatus:
        return StageStatus.OK


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str
    error_kind: str | None = None
    retryable: bool = False

    @property
    def status(self) -> StageStatus:
        return StageStatus.FAILED


@dataclass(frozen=True, slots=True)
class Skipped:
    reason: str

    @property
    def status(self) -> StageStatus:
        return StageStatus.SKIPPED


StageResult = Union[Ok[T], Failed, Skipped]


class StageRecord(SchemaModel):
    """Persisted form of a stage outcome (checkpointed on the item)."""
    status: StageStatus
    reason: str | None = None
    error_kind: str | None = None
    retryable: bool = False
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    @classmethod
    def from_result(cls, result: "Ok | Failed | Skipped") -> "StageRecord":
        if isinstance(result, Failed):
            return cls(
                status=StageStatus.FAILED,
                reason=result.reason,
                error_kind=result.error_kind,
                retryable=result.retryable,
            )
        if isinstance(result, Skipped):
            return cls(status=StageStatus.SKIPPED, reason=result.reason)
        return cls(status=StageStatus.OK)

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

"""PolicyDecision model (derived from claims + fact-checks, never stored alone)."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from kurral_core.schema.serialization import SchemaModel


class PolicyStatus(str, Enum):
    CLEAN = "clean"
    NEEDS_REVIEW = "needs_review"
    BLOCKED = "blocked"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    PolicyStatus.CLEAN: 0,
    PolicyStatus.NEEDS_REVIEW: 1,
    PolicyStatus.BLOCKED: 2,
}


def most_severe(*statuses: PolicyStatus) -> PolicyStatus:
    return max(statuses, key=lambda s: s.severity, default=PolicyStatus.CLEAN)


class PolicyDecision(SchemaModel):
    status: PolicyStatus = PolicyStatus.CLEAN
    reasons: list[str] = Field(default_factory=list)
    escalate_to_human: bool = False

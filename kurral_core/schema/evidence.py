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

"""Evidence and FactCheck models."""

from __future__ import annotations

import datetime
from enum import Enum

from pydantic import Field

from kurral_core.schema.serialization import SchemaModel, utc_now

CONFIDENT_FALSE_THRESHOLD = 0.7


class Verdict(str, Enum):
    """Fact-check determination for a single claim."""
    TRUE = "true"
    FALSE = "false"
    MIXED = "mixed"
    UNVERIFIABLE = "unverifiable"


class Evidence(SchemaModel):
    source: str
    url: str | None = None
    snippet: str = ""
    quality: float = Field(default=0.5, ge=0.0, le=1.0)
    fetched_at: datetime.datetime = Field(default_factory=utc_now)


class FactCheck(SchemaModel):
    id: str
    claim_id: str
    verdict: Verdict
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: list[Evidence] = Field(default_factory=list)
    reasoning: str = ""
    caveats: list[str] = Field(default_factory=list)
    checked_at: datetime.datetime = Field(default_factory=utc_now)
    # Set when the check was copied from another item's claim (quotes).
    reused_from: str | None = None

    def is_confident_false(self, threshold: float = CONFIDENT_FALSE_THRESHOLD) -> bool:
        return self.verdict == Verdict.FALSE and self.confidence > threshold


def fact_check_id_for(claim_id: str) -> str:
    return f"{claim_id}-fact-check"


def count_confident_false(fact_checks: list[FactCheck] | None) -> int:
    return sum(1 for fc in (fact_checks or []) if fc.is_confident_false())

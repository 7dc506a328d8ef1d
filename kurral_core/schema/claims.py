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
Claim models.

A Claim is an extracted, independently verifiable statement owned by one
content item. Claims are created once by the extractor and never mutated.
"""

from __future__ import annotations

import datetime
from enum import Enum

from pydantic import Field, field_validator

from kurral_core.schema.serialization import SchemaModel, utc_now


class ClaimType(str, Enum):
    """Kind of statement the claim makes."""
    FACTUAL = "factual"
    """A checkable statement of fact."""

    CAUSAL = "causal"
    """X causes / leads to Y."""

    EVALUATIVE = "evaluative"
    """A judgement framed as fact ("the safest option")."""

    PREDICTIVE = "predictive"
    """A statement about the future."""


class RiskLevel(str, Enum):
    """Potential harm if the claim turns out to be wrong."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


HIGH_RISK_DOMAINS = frozenset({"health", "finance", "politics"})

KNOWN_DOMAINS = frozenset({
    "health",
    "finance",
    "politics",
    "technology",
    "startups",
    "ai",
    "science",
    "productivity",
    "design",
    "society",
    "general",
})


def normalize_domain(value: str | None) -> str:
    d = (value or "").strip().lower()
    return d if d in KNOWN_DOMAINS else "general"


class Claim(SchemaModel):
    id: str
    item_id: str
    text: str
    type: ClaimType
    domain: str = "general"
    risk_level: RiskLevel = RiskLevel.LOW
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    extracted_at: datetime.datetime = Field(default_factory=utc_now)

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, v: object) -> str:
        return normalize_domain(str(v) if v is not None else None)

    @property
    def is_high_risk(self) -> bool:
        return self.domain in HIGH_RISK_DOMAINS or self.risk_level == RiskLevel.HIGH

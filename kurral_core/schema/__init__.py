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

"""Schema models for the value & trust pipeline."""

from kurral_core.schema.claims import Claim, ClaimType, RiskLevel, HIGH_RISK_DOMAINS
from kurral_core.schema.content import ContentItem, ContentKind, ProcessingStatus
from kurral_core.schema.evidence import Evidence, FactCheck, Verdict
from kurral_core.schema.policy import PolicyDecision, PolicyStatus
from kurral_core.schema.precheck import ContentType, PreCheckResult, PreCheckSource
from kurral_core.schema.reputation import (
    ContributionKind,
    KurralComponents,
    KurralHistoryEntry,
    KurralScore,
    QualitySample,
    UserReputation,
    ValueContribution,
    ValueStats,
    ViolationRecord,
)
from kurral_core.schema.serialization import SchemaModel, dump_schema, load_schema
from kurral_core.schema.stage import Failed, Ok, Skipped, StageName, StageRecord, StageResult, StageStatus
from kurral_core.schema.value import (
    CommentInsight,
    DiscussionAnalysis,
    DiscussionQuality,
    DiscussionRole,
    EngagementPrediction,
    ValueScore,
    ValueVector,
)

__all__ = [
    "Claim",
    "ClaimType",
    "RiskLevel",
    "HIGH_RISK_DOMAINS",
    "ContentItem",
    "ContentKind",
    "ProcessingStatus",
    "Evidence",
    "FactCheck",
    "Verdict",
    "PolicyDecision",
    "PolicyStatus",
    "ContentType",
    "PreCheckResult",
    "PreCheckSource",
    "ContributionKind",
    "KurralComponents",
    "KurralHistoryEntry",
    "KurralScore",
    "QualitySample",
    "UserReputation",
    "ValueContribution",
    "ValueStats",
    "ViolationRecord",
    "SchemaModel",
    "dump_schema",
    "load_schema",
    "Failed",
    "Ok",
    "Skipped",
    "StageName",
    "StageRecord",
    "StageResult",
    "StageStatus",
    "CommentInsight",
    "DiscussionAnalysis",
    "DiscussionQuality",
    "DiscussionRole",
    "EngagementPrediction",
    "ValueScore",
    "ValueVector",
]

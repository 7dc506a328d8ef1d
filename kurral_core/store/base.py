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
Document store boundary for the value pipeline.

The pipeline needs field-level merge writes (stage checkpoints), an atomic
claim of an item for one run, and append-only contribution writes.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Protocol

from kurral_core.schema.content import ContentItem, ProcessingStatus
from kurral_core.schema.policy import PolicyDecision
from kurral_core.schema.reputation import UserReputation, ValueContribution


class StoreError(Exception):
    """Base class for document store failures."""


class ItemNotFoundError(StoreError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Content item not found: {item_id}")


@dataclass(frozen=True)
class StoreConfig:
    items: str = "items"
    comments: str = "comments"
    users: str = "users"
    value_contributions: str = "value_contributions"
    review_queue: str = "review_queue"


def deep_merge(target: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge nested maps like a Firestore `set(merge=True)`; lists and scalars replace."""
    for key, value in patch.items():
        current = target.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            deep_merge(current, value)
        else:
            target[key] = value
    return target


def parse_timestamp(value: Any) -> datetime.datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        dt = value
    elif hasattr(value, "to_datetime"):
        dt = value.to_datetime()
    else:
        try:
            dt = datetime.datetime.fromisoformat(str(value))
        except ValueError:
            return None
    return dt if dt.tzinfo else dt.replace(tzinfo=datetime.timezone.utc)


def can_claim(data: dict[str, Any], run_id: str, *, now: datetime.datetime, stale_after_sec: float) -> bool:
    """
    An item may be claimed unless another run holds it and that run is not stale.

    Re-claiming with the same run id is allowed (resume of the same run).
    """
    if data.get("processing_status") != ProcessingStatus.IN_PROGRESS.value:
        return True
    holder = data.get("run_id")
    if not holder or holder == run_id:
        return True
    started = parse_timestamp(data.get("run_started_at"))
    if started is None:
        return True
    return (now - started).total_seconds() >= stale_after_sec


def claim_fields(run_id: str, now: datetime.datetime) -> dict[str, Any]:
    return {
        "processing_status": ProcessingStatus.IN_PROGRESS.value,
        "run_id": run_id,
        "run_started_at": now.isoformat(),
    }


def review_entry(item: ContentItem, decision: PolicyDecision, now: datetime.datetime) -> dict[str, Any]:
    return {
        "item_id": item.id,
        "author_id": item.author_id,
        "kind": item.kind.value,
        "status": decision.status.value,
        "reasons": list(decision.reasons),
        "enqueued_at": now.isoformat(),
    }


class PipelineStore(Protocol):
    def get_item(self, item_id: str) -> ContentItem | None:
        ...

    def put_item(self, item: ContentItem) -> None:
        ...

    def merge_item(self, item_id: str, fields: dict[str, Any]) -> None:
        """Field-level merge; raises ItemNotFoundError if the item is gone."""
        ...

    def try_claim(self, item_id: str, run_id: str, *, stale_after_sec: float) -> bool:
        """Atomically mark the item in_progress for `run_id`; False if another live run holds it."""
        ...

    def list_comments(self, parent_id: str) -> list[ContentItem]:
        ...

    def list_pending_reposts(self, *, limit: int) -> list[ContentItem]:
        ...

    def get_user(self, user_id: str) -> UserReputation | None:
        ...

    def put_user(self, reputation: UserReputation) -> None:
        ...

    def add_contribution(self, contribution: ValueContribution) -> bool:
        """Append a ledger entry; False if an entry with the same id already exists."""
        ...

    def list_contributions(self, user_id: str, *, since: datetime.datetime | None = None) -> list[ValueContribution]:
        ...

    def enqueue_review(self, item: ContentItem, decision: PolicyDecision) -> None:
        """Idempotent per item id."""
        ...

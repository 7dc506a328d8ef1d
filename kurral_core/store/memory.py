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

import copy
import datetime
import threading
from typing import Any, Dict

from kurral_core.schema.content import ContentItem, ContentKind, ProcessingStatus
from kurral_core.schema.policy import PolicyDecision
from kurral_core.schema.reputation import UserReputation, ValueContribution
from kurral_core.schema.serialization import utc_now
from kurral_core.store.base import (
    ItemNotFoundError,
    can_claim,
    claim_fields,
    deep_merge,
    parse_timestamp,
    review_entry,
)


class InMemoryPipelineStore:
    """Dict-backed store holding JSON-safe documents, with Firestore-like merge semantics."""

    def __init__(self) -> None:
        self._items: Dict[str, dict[str, Any]] = {}
        self._users: Dict[str, dict[str, Any]] = {}
        self._contributions: Dict[str, dict[str, Any]] = {}
        self.review_queue: Dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_item(self, item_id: str) -> ContentItem | None:
        data = self._items.get(item_id)
        return ContentItem.from_dict(copy.deepcopy(data)) if data is not None else None

    def put_item(self, item: ContentItem) -> None:
        self._items[item.id] = item.to_dict()

    def delete_item(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    def merge_item(self, item_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            data = self._items.get(item_id)
            if data is None:
                raise ItemNotFoundError(item_id)
            deep_merge(data, copy.deepcopy(fields))

    def try_claim(self, item_id: str, run_id: str, *, stale_after_sec: float) -> bool:
        with self._lock:
            data = self._items.get(item_id)
            if data is None:
                raise ItemNotFoundError(item_id)
            now = utc_now()
            if not can_claim(data, run_id, now=now, stale_after_sec=stale_after_sec):
                return False
            data.update(claim_fields(run_id, now))
            return True

    def list_comments(self, parent_id: str) -> list[ContentItem]:
        rows = [
            d for d in self._items.values()
            if d.get("parent_item_id") == parent_id and d.get("kind") == ContentKind.COMMENT.value
        ]
        rows.sort(key=lambda d: parse_timestamp(d.get("created_at")) or utc_now())
        return [ContentItem.from_dict(copy.deepcopy(d)) for d in rows]

    def list_pending_reposts(self, *, limit: int) -> list[ContentItem]:
        rows = [
            d for d in self._items.values()
            if d.get("awaiting_original") and d.get("processing_status", "pending") == ProcessingStatus.PENDING.value
        ]
        return [ContentItem.from_dict(copy.deepcopy(d)) for d in rows[:limit]]

    def get_user(self, user_id: str) -> UserReputation | None:
        data = self._users.get(user_id)
        return UserReputation.from_dict(copy.deepcopy(data)) if data is not None else None

    def put_user(self, reputation: UserReputation) -> None:
        self._users[reputation.user_id] = reputation.to_dict()

    def add_contribution(self, contribution: ValueContribution) -> bool:
        with self._lock:
            if contribution.id in self._contributions:
                return False
            self._contributions[contribution.id] = contribution.to_dict()
            return True

    def list_contributions(self, user_id: str, *, since: datetime.datetime | None = None) -> list[ValueContribution]:
        out = []
        for data in self._contributions.values():
            if data.get("user_id") != user_id:
                continue
            entry = ValueContribution.from_dict(copy.deepcopy(data))
            if since is not None and entry.created_at < since:
                continue
            out.append(entry)
        return out

    def enqueue_review(self, item: ContentItem, decision: PolicyDecision) -> None:
        self.review_queue[item.id] = review_entry(item, decision, utc_now())

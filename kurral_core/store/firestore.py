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

import datetime
from typing import Any

from firebase_admin import firestore

from kurral_core.schema.content import ContentItem, ContentKind, ProcessingStatus
from kurral_core.schema.policy import PolicyDecision
from kurral_core.schema.reputation import UserReputation, ValueContribution
from kurral_core.schema.serialization import utc_now
from kurral_core.store.base import (
    ItemNotFoundError,
    StoreConfig,
    can_claim,
    claim_fields,
    review_entry,
)


class FirestorePipelineStore:
    """
    Firestore adapter.

    Posts and comments live in separate collections; an item id is looked up
    in posts first. Checkpoints use transactional `set(merge=True)` so a
    merge onto a deleted item fails instead of resurrecting it.
    """

    def __init__(self, db: firestore.Client, *, config: StoreConfig | None = None) -> None:
        self._db = db
        self._config = config or StoreConfig()
        self._items = self._db.collection(self._config.items)
        self._comments = self._db.collection(self._config.comments)
        self._users = self._db.collection(self._config.users)
        self._contributions = self._db.collection(self._config.value_contributions)
        self._review = self._db.collection(self._config.review_queue)

    def _collection_for(self, item: ContentItem):  # type: ignore[no-untyped-def]
        return self._comments if item.kind == ContentKind.COMMENT else self._items

    def _find_ref(self, item_id: str):  # type: ignore[no-untyped-def]
        for collection in (self._items, self._comments):
            ref = collection.document(item_id)
            if ref.get().exists:
                return ref
        return None

    def get_item(self, item_id: str) -> ContentItem | None:
        for collection in (self._items, self._comments):
            snapshot = collection.document(item_id).get()
            if snapshot.exists:
                return ContentItem.from_dict(snapshot.to_dict() or {})
        return None

    def put_item(self, item: ContentItem) -> None:
        self._collection_for(item).document(item.id).set(item.to_dict())

    def merge_item(self, item_id: str, fields: dict[str, Any]) -> None:
        ref = self._find_ref(item_id)
        if ref is None:
            raise ItemNotFoundError(item_id)
        transaction = self._db.transaction()

        @firestore.transactional
        def _merge(transaction):  # type: ignore[no-untyped-def]
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise ItemNotFoundError(item_id)
            transaction.set(ref, fields, merge=True)

        _merge(transaction)

    def try_claim(self, item_id: str, run_id: str, *, stale_after_sec: float) -> bool:
        ref = self._find_ref(item_id)
        if ref is None:
            raise ItemNotFoundError(item_id)
        transaction = self._db.transaction()

        @firestore.transactional
        def _claim(transaction):  # type: ignore[no-untyped-def]
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise ItemNotFoundError(item_id)
            now = utc_now()
            if not can_claim(snapshot.to_dict() or {}, run_id, now=now, stale_after_sec=stale_after_sec):
                return False
            transaction.set(ref, claim_fields(run_id, now), merge=True)
            return True

        return bool(_claim(transaction))

    def list_comments(self, parent_id: str) -> list[ContentItem]:
        query = self._comments.where("parent_item_id", "==", parent_id)
        items = [ContentItem.from_dict(doc.to_dict() or {}) for doc in query.stream()]
        items.sort(key=lambda c: c.created_at)
        return items

    def list_pending_reposts(self, *, limit: int) -> list[ContentItem]:
        query = (
            self._items.where("awaiting_original", "==", True)
            .where("processing_status", "==", ProcessingStatus.PENDING.value)
            .limit(limit)
        )
        return [ContentItem.from_dict(doc.to_dict() or {}) for doc in query.stream()]

    def get_user(self, user_id: str) -> UserReputation | None:
        snapshot = self._users.document(user_id).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data.setdefault("user_id", user_id)
        return UserReputation.from_dict(data)

    def put_user(self, reputation: UserReputation) -> None:
        self._users.document(reputation.user_id).set(reputation.to_dict(), merge=True)

    def add_contribution(self, contribution: ValueContribution) -> bool:
        ref = self._contributions.document(contribution.id)
        transaction = self._db.transaction()

        @firestore.transactional
        def _append(transaction):  # type: ignore[no-untyped-def]
            if ref.get(transaction=transaction).exists:
                return False
            transaction.set(ref, contribution.to_dict())
            return True

        return bool(_append(transaction))

    def list_contributions(self, user_id: str, *, since: datetime.datetime | None = None) -> list[ValueContribution]:
        query = self._contributions.where("user_id", "==", user_id)
        if since is not None:
            query = query.where("created_at", ">=", since.isoformat())
        return [ValueContribution.from_dict(doc.to_dict() or {}) for doc in query.stream()]

    def enqueue_review(self, item: ContentItem, decision: PolicyDecision) -> None:
        self._review.document(item.id).set(review_entry(item, decision, utc_now()), merge=True)

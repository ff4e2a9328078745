"""
entity_store.py - Firestore-backed entity store

Layout:
- Per-user records live in `users/{user_id}/{collection}`. Every per-user
  method takes the caller's user_id explicitly; nothing is scoped implicitly.
- Reference tables shared by all users (`badges`, `meditation_library`) are
  top-level collections and are read through the *_global methods.

Every stored record is returned as a plain dict that includes its document
`id` and the store-assigned `created_date` / `updated_date` timestamps.

The Firestore SDK is blocking, so each call runs in a worker thread. That
lets handlers fan out independent reads with asyncio.gather.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import ConflictError, NotFoundError, UpstreamError
from .gcp_clients import get_firestore_client
from .utils import now_iso

_logger = logging.getLogger(__name__)

FIRESTORE_USERS_COLLECTION = "users"

# Per-user subcollections
HABITS = "habits"
HABIT_LOGS = "habit_logs"
GOALS = "goals"
VALUES = "values"
JOURNAL_ENTRIES = "journal_entries"
MINDFULNESS_PRACTICES = "mindfulness_practices"
USER_BADGES = "user_badges"
ACHIEVEMENTS = "achievements"
GAMIFICATION_PROFILES = "gamification_profiles"
USER_PROFILES = "user_profiles"
WEEKLY_SUMMARIES = "weekly_summaries"
SUBSCRIPTIONS = "subscriptions"
ENCOURAGEMENTS = "encouragements"

# Global reference collections
BADGES = "badges"
MEDITATION_LIBRARY = "meditation_library"

# (field, operator, value), e.g. ("date", ">=", "2024-01-01")
Where = Sequence[Tuple[str, str, Any]]

# (collection, doc_id, data); data=None deletes the document
RelatedWrite = Tuple[str, str, Optional[Dict[str, Any]]]


def _to_record(snapshot) -> Dict[str, Any]:
    record = snapshot.to_dict() or {}
    record["id"] = snapshot.id
    return record


def _apply_query(query, where: Optional[Where], order_by: Optional[str], limit: Optional[int]):
    for field, op, value in where or ():
        query = query.where(filter=FieldFilter(field, op, value))
    if order_by:
        if order_by.startswith("-"):
            query = query.order_by(order_by[1:], direction=firestore.Query.DESCENDING)
        else:
            query = query.order_by(order_by, direction=firestore.Query.ASCENDING)
    if limit:
        query = query.limit(limit)
    return query


class EntityStore:
    """Async facade over a Firestore client."""

    def __init__(self, client: firestore.Client):
        self._client = client

    # -------------------------
    # References
    # -------------------------
    def _user_collection(self, user_id: str, collection: str):
        return self._client.collection(FIRESTORE_USERS_COLLECTION).document(user_id).collection(collection)

    # -------------------------
    # Reads
    # -------------------------
    async def filter(
        self,
        user_id: str,
        collection: str,
        where: Optional[Where] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """List the caller's records in `collection`. `-field` orders descending."""
        def _run():
            query = _apply_query(self._user_collection(user_id, collection), where, order_by, limit)
            return [_to_record(doc) for doc in query.stream()]

        return await asyncio.to_thread(_run)

    async def list_global(
        self,
        collection: str,
        where: Optional[Where] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        def _run():
            query = _apply_query(self._client.collection(collection), where, order_by, limit)
            return [_to_record(doc) for doc in query.stream()]

        return await asyncio.to_thread(_run)

    async def get(self, user_id: str, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        def _run():
            snapshot = self._user_collection(user_id, collection).document(doc_id).get()
            return _to_record(snapshot) if snapshot.exists else None

        return await asyncio.to_thread(_run)

    # -------------------------
    # Writes
    # -------------------------
    async def upsert(self, user_id: str, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or merge the record stored under a natural key.
        Repeating the call never creates a second record.
        """
        def _run():
            doc_ref = self._user_collection(user_id, collection).document(doc_id)
            snapshot = doc_ref.get()
            stamp = now_iso()
            existing = snapshot.to_dict() if snapshot.exists else {}
            payload = {**data, "updated_date": stamp}
            if not snapshot.exists:
                payload["created_date"] = stamp
            doc_ref.set(payload, merge=True)
            return {**existing, **payload, "id": doc_id}

        return await asyncio.to_thread(_run)

    async def update(self, user_id: str, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        def _run():
            doc_ref = self._user_collection(user_id, collection).document(doc_id)
            payload = {**data, "updated_date": now_iso()}
            doc_ref.update(payload)
            return {**payload, "id": doc_id}

        return await asyncio.to_thread(_run)

    async def update_versioned(
        self,
        user_id: str,
        collection: str,
        doc_id: str,
        expected_version: int,
        data: Dict[str, Any],
        related_writes: Sequence[RelatedWrite] = ()
    ) -> Dict[str, Any]:
        """
        Apply `data` only if the stored `version` equals expected_version,
        then bump the version. Read and write run in one Firestore transaction.

        `related_writes` are (collection, doc_id, data) upserts of the caller's
        other records committed in the same transaction; data=None deletes the
        document. Either every write lands or none does.

        Raises:
            NotFoundError: the record does not exist.
            ConflictError: another request updated the record first.
        """
        doc_ref = self._user_collection(user_id, collection).document(doc_id)
        related = [
            (self._user_collection(user_id, rel_collection).document(rel_id), rel_data)
            for rel_collection, rel_id, rel_data in related_writes
        ]

        @firestore.transactional
        def _apply(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(f"{collection} record not found", details={"id": doc_id})
            current = snapshot.to_dict()
            current_version = current.get("version", 0)
            if current_version != expected_version:
                raise ConflictError(
                    "Record was modified by another request",
                    details={"id": doc_id, "version": current_version},
                )
            # Firestore transactions need every read before the first write
            related_exists = [ref.get(transaction=transaction).exists for ref, _ in related]

            stamp = now_iso()
            payload = {**data, "version": current_version + 1, "updated_date": stamp}
            transaction.update(doc_ref, payload)
            for (ref, rel_data), exists in zip(related, related_exists):
                if rel_data is None:
                    transaction.delete(ref)
                    continue
                rel_payload = {**rel_data, "updated_date": stamp}
                if not exists:
                    rel_payload["created_date"] = stamp
                transaction.set(ref, rel_payload, merge=True)
            return {**current, **payload, "id": doc_id}

        return await asyncio.to_thread(_apply, self._client.transaction())

    async def bulk_create_global(self, collection: str, records: Iterable[Dict[str, Any]]) -> int:
        """
        Write reference records in a single batch. A record's `id`, when
        present, becomes its document id. Returns how many were written.
        """
        def _run():
            batch = self._client.batch()
            stamp = now_iso()
            count = 0
            for record in records:
                payload = {k: v for k, v in record.items() if k != "id"}
                doc_ref = self._client.collection(collection).document(record.get("id"))
                batch.set(doc_ref, {**payload, "created_date": stamp, "updated_date": stamp})
                count += 1
            batch.commit()
            return count

        return await asyncio.to_thread(_run)


def get_entity_store() -> EntityStore:
    """FastAPI dependency returning a store bound to a fresh Firestore client."""
    client = get_firestore_client()
    if not client:
        _logger.error("Could not connect to Firestore.")
        raise UpstreamError("Could not connect to database.")
    return EntityStore(client)

from __future__ import annotations

from typing import List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from app.core.enums import AuditEntityType
from app.core.errors import StorageError
from app.core.logging import get_logger
from app.models.audit_log import AuditLog, AuditLogCreate
from app.models.audit_query import AuditLogFilters, AuditLogPage

logger = get_logger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


class AuditRepository:
    """Append-only audit log storage on a Motor collection."""

    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index(
                [("entity_type", ASCENDING), ("entity_id", ASCENDING), ("created_at", DESCENDING)]
            )
            await self.collection.create_index([("actor_id", ASCENDING), ("created_at", DESCENDING)])
            await self.collection.create_index([("created_at", DESCENDING)])
        except PyMongoError as exc:
            raise StorageError(f"could not create audit indexes: {exc}") from exc

    # -------------------------
    # Writes
    # -------------------------
    async def create(self, data: AuditLogCreate) -> AuditLog:
        log = AuditLog.from_create(data)
        try:
            await self.collection.insert_one(log.to_document())
        except PyMongoError as exc:
            raise StorageError(f"audit insert failed: {exc}") from exc
        return log

    async def create_many(self, items: List[AuditLogCreate]) -> List[AuditLog]:
        if not items:
            return []

        logs = [AuditLog.from_create(d) for d in items]
        try:
            await self.collection.insert_many([log.to_document() for log in logs], ordered=True)
        except PyMongoError as exc:
            await self._discard_partial_batch([log.id for log in logs])
            raise StorageError(f"audit batch insert of {len(logs)} failed: {exc}") from exc
        return logs

    async def _discard_partial_batch(self, ids: List[str]) -> None:
        """A batch is stored whole or not at all; drop what an ordered insert left behind."""
        try:
            await self.collection.delete_many({"_id": {"$in": ids}})
        except PyMongoError:
            logger.error("audit_batch_cleanup_failed", count=len(ids), exc_info=True)

    # -------------------------
    # Reads
    # -------------------------
    async def find_by_id(self, log_id: str) -> Optional[AuditLog]:
        doc = await self._run(self.collection.find_one({"_id": log_id}))
        return AuditLog.from_document(doc) if doc else None

    async def find_by_entity(self, entity_type: AuditEntityType, entity_id: str) -> List[AuditLog]:
        return await self._list({"entity_type": entity_type.value, "entity_id": entity_id})

    async def find_by_actor(self, actor_id: str) -> List[AuditLog]:
        return await self._list({"actor_id": actor_id})

    async def find_paginated(self, filters: AuditLogFilters) -> AuditLogPage:
        query = filters.to_mongo()

        total = await self._run(self.collection.count_documents(query))
        cursor = (
            self.collection.find(query)
            .sort(NEWEST_FIRST)
            .skip(filters.skip)
            .limit(filters.limit)
        )
        docs = await self._run(cursor.to_list(length=filters.limit))

        return AuditLogPage(
            data=[AuditLog.from_document(d) for d in docs],
            total=total,
            page=filters.page,
            limit=filters.limit,
        )

    async def _list(self, query: dict) -> List[AuditLog]:
        cursor = self.collection.find(query).sort(NEWEST_FIRST)
        docs = await self._run(cursor.to_list(length=None))
        return [AuditLog.from_document(d) for d in docs]

    @staticmethod
    async def _run(awaitable):
        try:
            return await awaitable
        except PyMongoError as exc:
            logger.error("audit_read_failed", error=str(exc))
            raise StorageError(f"audit read failed: {exc}") from exc

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from app.core.enums import AuditAction, AuditEntityType
from app.core.logging import get_logger
from app.models.audit_log import AuditChanges, AuditLog, AuditLogCreate
from app.models.audit_query import AuditLogFilters, AuditLogPage
from app.utils.diff import compute_changes

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditContext:
    actor_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditService:
    def __init__(self, repo):
        self.repo = repo

    # -------------------------
    # Recording
    # -------------------------
    async def log(
        self,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: str,
        context: AuditContext,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        data = AuditLogCreate(
            actor_id=context.actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=AuditChanges(**changes) if changes else None,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

        try:
            log = await self.repo.create(data)
        except Exception:
            logger.error(
                "audit_log_failed",
                action=action.value,
                entity_type=entity_type.value,
                entity_id=entity_id,
                exc_info=True,
            )
            raise

        logger.debug(
            "audit_log_created",
            action=action.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
            actor_id=context.actor_id,
        )
        return log

    async def log_bulk(
        self,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_ids: Iterable[str],
        context: AuditContext,
    ) -> List[AuditLog]:
        items = [
            AuditLogCreate(
                actor_id=context.actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
            for entity_id in entity_ids
        ]
        if not items:
            return []

        try:
            logs = await self.repo.create_many(items)
        except Exception:
            logger.error(
                "audit_bulk_log_failed",
                action=action.value,
                entity_type=entity_type.value,
                count=len(items),
                exc_info=True,
            )
            raise

        logger.debug(
            "audit_bulk_log_created",
            action=action.value,
            entity_type=entity_type.value,
            count=len(logs),
            actor_id=context.actor_id,
        )
        return logs

    # -------------------------
    # Queries
    # -------------------------
    async def get_entity_history(self, entity_type: AuditEntityType, entity_id: str) -> List[AuditLog]:
        return await self.repo.find_by_entity(entity_type, entity_id)

    async def get_actor_history(self, actor_id: str) -> List[AuditLog]:
        return await self.repo.find_by_actor(actor_id)

    async def query(self, filters: AuditLogFilters) -> AuditLogPage:
        return await self.repo.find_paginated(filters)

    async def find_by_id(self, log_id: str) -> Optional[AuditLog]:
        return await self.repo.find_by_id(log_id)

    @staticmethod
    def compute_changes(before, after, fields=None):
        return compute_changes(before, after, fields)

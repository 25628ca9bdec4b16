from __future__ import annotations

from typing import Dict, List, Optional

from app.core.enums import AuditEntityType
from app.models.audit_log import AuditLog, AuditLogCreate
from app.models.audit_query import AuditLogFilters, AuditLogPage


def _newest_first(logs: List[AuditLog]) -> List[AuditLog]:
    return sorted(logs, key=lambda x: (x.created_at, x.id), reverse=True)


class InMemoryAuditRepository:
    """
    Dict-backed audit storage with the same contract as AuditRepository.
    For tests and local development; data is lost on restart.
    """

    def __init__(self) -> None:
        self._logs: Dict[str, AuditLog] = {}

    async def create(self, data: AuditLogCreate) -> AuditLog:
        log = AuditLog.from_create(data)
        self._logs[log.id] = log
        return log

    async def create_many(self, items: List[AuditLogCreate]) -> List[AuditLog]:
        logs = [AuditLog.from_create(d) for d in items]
        for log in logs:
            self._logs[log.id] = log
        return logs

    async def find_by_id(self, log_id: str) -> Optional[AuditLog]:
        return self._logs.get(log_id)

    async def find_by_entity(self, entity_type: AuditEntityType, entity_id: str) -> List[AuditLog]:
        return _newest_first([
            log for log in self._logs.values()
            if log.entity_type == entity_type and log.entity_id == entity_id
        ])

    async def find_by_actor(self, actor_id: str) -> List[AuditLog]:
        return _newest_first([log for log in self._logs.values() if log.actor_id == actor_id])

    async def find_paginated(self, filters: AuditLogFilters) -> AuditLogPage:
        matched = _newest_first([log for log in self._logs.values() if filters.matches(log)])
        return AuditLogPage(
            data=matched[filters.skip:filters.skip + filters.limit],
            total=len(matched),
            page=filters.page,
            limit=filters.limit,
        )

    # test helpers
    def add(self, log: AuditLog) -> None:
        self._logs[log.id] = log

    def all(self) -> List[AuditLog]:
        return list(self._logs.values())

    def clear(self) -> None:
        self._logs.clear()

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import AuditAction, AuditEntityType
from app.models.audit_log import AuditLog


class AuditLogFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_type: Optional[AuditEntityType] = None
    entity_id: Optional[str] = None
    actor_id: Optional[str] = None
    action: Optional[AuditAction] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)

    @field_validator("from_date", "to_date")
    @classmethod
    def _naive_is_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def to_mongo(self) -> Dict[str, Any]:
        filt: Dict[str, Any] = {}

        if self.entity_type:
            filt["entity_type"] = self.entity_type.value
        if self.entity_id:
            filt["entity_id"] = self.entity_id
        if self.actor_id:
            filt["actor_id"] = self.actor_id
        if self.action:
            filt["action"] = self.action.value

        created: Dict[str, Any] = {}
        if self.from_date:
            created["$gte"] = self.from_date
        if self.to_date:
            created["$lte"] = self.to_date
        if created:
            filt["created_at"] = created

        return filt

    def matches(self, log: AuditLog) -> bool:
        if self.entity_type and log.entity_type != self.entity_type:
            return False
        if self.entity_id and log.entity_id != self.entity_id:
            return False
        if self.actor_id and log.actor_id != self.actor_id:
            return False
        if self.action and log.action != self.action:
            return False
        if self.from_date and log.created_at < self.from_date:
            return False
        if self.to_date and log.created_at > self.to_date:
            return False
        return True


class AuditLogPage(BaseModel):
    data: List[AuditLog] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from datetime import datetime

from app.core.enums import AuditAction, AuditEntityType
from app.models.audit_log import AuditLog
from app.models.audit_query import AuditLogPage


class AuditLogOut(BaseModel):
    id: str
    actor_id: Optional[str] = None
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: str
    changes: Optional[Dict[str, Dict[str, Any]]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_log(cls, log: AuditLog) -> "AuditLogOut":
        data = log.model_dump(exclude={"changes"})
        if log.changes is not None:
            data["changes"] = log.changes.model_dump(exclude_none=True)
        return cls(**data)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool


class PaginatedAuditLogsOut(BaseModel):
    data: List[AuditLogOut]
    meta: PaginationMeta

    @classmethod
    def from_page(cls, page: AuditLogPage) -> "PaginatedAuditLogsOut":
        return cls(
            data=[AuditLogOut.from_log(log) for log in page.data],
            meta=PaginationMeta(
                page=page.page,
                limit=page.limit,
                total=page.total,
                total_pages=page.total_pages,
                has_next=page.has_next,
                has_previous=page.has_previous,
            ),
        )

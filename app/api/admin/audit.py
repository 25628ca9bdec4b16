from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_audit_service
from app.core.config import get_settings
from app.core.enums import AuditAction, AuditEntityType
from app.models.audit_query import AuditLogFilters
from app.schemas.audit import AuditLogOut, PaginatedAuditLogsOut
from app.services.audit_service import AuditService

settings = get_settings()

router = APIRouter(prefix="/admin/audit-logs", tags=["Admin - Audit"])


# ========================
# LIST / FILTER
# ========================
@router.get("", response_model=PaginatedAuditLogsOut)
async def list_audit_logs(
    entity_type: Optional[AuditEntityType] = None,
    entity_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    from_date: Optional[datetime] = Query(None, description="ISO-8601, inclusive"),
    to_date: Optional[datetime] = Query(None, description="ISO-8601, inclusive"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.audit_page_size_default, ge=1, le=settings.audit_page_size_max),
    service: AuditService = Depends(get_audit_service),
):
    filters = AuditLogFilters(
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        action=action,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
    )
    if filters.from_date and filters.to_date and filters.from_date > filters.to_date:
        raise HTTPException(400, "from_date must not be after to_date")

    result = await service.query(filters)
    return PaginatedAuditLogsOut.from_page(result)


# ========================
# ENTITY HISTORY
# ========================
@router.get("/entity/{entity_type}/{entity_id}", response_model=List[AuditLogOut])
async def entity_history(
    entity_type: AuditEntityType,
    entity_id: str,
    service: AuditService = Depends(get_audit_service),
):
    logs = await service.get_entity_history(entity_type, entity_id)
    return [AuditLogOut.from_log(log) for log in logs]


# ========================
# ACTOR HISTORY
# ========================
@router.get("/actor/{actor_id}", response_model=List[AuditLogOut])
async def actor_history(actor_id: str, service: AuditService = Depends(get_audit_service)):
    logs = await service.get_actor_history(actor_id)
    return [AuditLogOut.from_log(log) for log in logs]


# ========================
# GET ONE
# ========================
@router.get("/{log_id}", response_model=AuditLogOut)
async def get_audit_log(log_id: UUID, service: AuditService = Depends(get_audit_service)):
    log = await service.find_by_id(str(log_id))
    if not log:
        raise HTTPException(404, "Audit log not found")
    return AuditLogOut.from_log(log)

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.enums import AuditAction, AuditEntityType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditChanges(BaseModel):
    """Field-level delta; each side only holds the fields that changed."""

    model_config = ConfigDict(frozen=True)

    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.before and not self.after:
            raise ValueError("changes must carry a non-empty before or after")
        return self


class AuditLogCreate(BaseModel):
    model_config = ConfigDict(frozen=True)

    actor_id: Optional[str] = None
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: str
    changes: Optional[AuditChanges] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @field_validator("entity_id")
    @classmethod
    def _entity_id_present(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("entity_id must not be empty")
        return v


class AuditLog(AuditLogCreate):
    """Persisted audit record. Immutable once created."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_create(cls, data: AuditLogCreate) -> "AuditLog":
        return cls(**data.model_dump())

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(mode="python", exclude={"id"})
        doc["_id"] = self.id
        doc["action"] = self.action.value
        doc["entity_type"] = self.entity_type.value
        if doc.get("changes"):
            doc["changes"] = {k: v for k, v in doc["changes"].items() if v is not None}
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AuditLog":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        created_at = data.get("created_at")
        # documents written by clients without tz_aware come back naive
        if isinstance(created_at, datetime) and created_at.tzinfo is None:
            data["created_at"] = created_at.replace(tzinfo=timezone.utc)
        return cls(**data)

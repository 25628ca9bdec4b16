"""Shared fixtures for the audit trail test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.audit_policy import AuditPolicyRegistry
from app.core.enums import AuditAction, AuditEntityType
from app.core.errors import StorageError
from app.models.audit_log import AuditLog
from app.repositories.inmemory_audit_repository import InMemoryAuditRepository
from app.services.audit_capture import AuditCapture
from app.services.audit_service import AuditContext, AuditService


class FailingAuditRepository(InMemoryAuditRepository):
    """Every write fails the way a dropped database connection would."""

    def __init__(self) -> None:
        super().__init__()
        self.create_calls = 0
        self.create_many_calls = 0

    async def create(self, data):
        self.create_calls += 1
        raise StorageError("connection refused")

    async def create_many(self, items):
        self.create_many_calls += 1
        raise StorageError("connection refused")


@pytest.fixture
def repo() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def service(repo) -> AuditService:
    return AuditService(repo)


@pytest.fixture
def capture(service) -> AuditCapture:
    return AuditCapture(service)


@pytest.fixture
def failing_repo() -> FailingAuditRepository:
    return FailingAuditRepository()


@pytest.fixture
def registry() -> AuditPolicyRegistry:
    return AuditPolicyRegistry()


@pytest.fixture
def context() -> AuditContext:
    return AuditContext(actor_id="user_123", ip_address="192.168.1.1", user_agent="Mozilla/5.0")


@pytest.fixture
def make_log():
    """Build a persisted-looking record `minutes_ago` minutes in the past."""
    base = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def _make(
        minutes_ago: int = 0,
        action: AuditAction = AuditAction.create,
        entity_type: AuditEntityType = AuditEntityType.product,
        entity_id: str = "prod-1",
        actor_id: str | None = "user_123",
    ) -> AuditLog:
        return AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            created_at=base - timedelta(minutes=minutes_ago),
        )

    return _make

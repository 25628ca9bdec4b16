"""Tests for the AuditCapture pipeline."""

import pytest

from app.core.audit_policy import AuditPolicy
from app.core.enums import AuditAction, AuditEntityType
from app.services.audit_capture import AuditCapture, RequestSnapshot
from app.services.audit_service import AuditService

SNAPSHOT = RequestSnapshot(
    path_params={"id": "entity-123"},
    body={"name": "Test"},
    headers={"x-forwarded-for": "192.168.1.1", "user-agent": "Mozilla/5.0"},
    actor_id="user_123",
    client_host="127.0.0.1",
)


def update_policy(**kwargs) -> AuditPolicy:
    return AuditPolicy(action=AuditAction.update, entity_type=AuditEntityType.product, **kwargs)


def returning(value):
    async def operation():
        return value

    return operation


class TestPassThrough:
    @pytest.mark.asyncio
    async def test_no_policy(self, capture, repo):
        result = await capture.run(None, SNAPSHOT, returning({"id": "response-id", "name": "Test"}))

        await capture.drain()
        assert result == {"id": "response-id", "name": "Test"}
        assert repo.all() == []

    @pytest.mark.asyncio
    async def test_disabled_capture(self, service, repo):
        capture = AuditCapture(service, enabled=False)

        await capture.run(update_policy(entity_id_param="id"), SNAPSHOT, returning({"id": "x"}))

        await capture.drain()
        assert repo.all() == []


class TestSingleRecord:
    @pytest.mark.asyncio
    async def test_path_param_record(self, capture, repo):
        result = await capture.run(update_policy(entity_id_param="id"), SNAPSHOT, returning({"ok": True}))
        await capture.drain()

        assert result == {"ok": True}
        [log] = repo.all()
        assert log.entity_id == "entity-123"
        assert log.action == AuditAction.update
        assert log.entity_type == AuditEntityType.product
        assert log.actor_id == "user_123"
        assert log.ip_address == "192.168.1.1"
        assert log.user_agent == "Mozilla/5.0"
        assert log.changes is None

    @pytest.mark.asyncio
    async def test_response_field_record(self, capture, repo):
        policy = AuditPolicy(
            action=AuditAction.create,
            entity_type=AuditEntityType.product,
            entity_id_from_response="id",
        )

        await capture.run(policy, SNAPSHOT, returning({"id": "response-id"}))
        await capture.drain()

        assert [log.entity_id for log in repo.all()] == ["response-id"]

    @pytest.mark.asyncio
    async def test_changes_kept_only_when_tracked(self, capture, repo):
        changes = {"before": {"name": "Old"}, "after": {"name": "New"}}

        capture.record(update_policy(entity_id_param="id", track_changes=True), SNAPSHOT, None, changes=changes)
        capture.record(update_policy(entity_id_param="id"), SNAPSHOT, None, changes=changes)
        await capture.drain()

        tracked = [log for log in repo.all() if log.changes is not None]
        assert len(repo.all()) == 2
        assert len(tracked) == 1
        assert tracked[0].changes.before == {"name": "Old"}
        assert tracked[0].changes.after == {"name": "New"}


class TestBulkRecords:
    @pytest.mark.asyncio
    async def test_one_record_per_id_in_one_batch(self, service, repo):
        calls = []
        original = repo.create_many

        async def spy(items):
            calls.append(len(items))
            return await original(items)

        repo.create_many = spy
        capture = AuditCapture(service)
        policy = AuditPolicy(
            action=AuditAction.delete,
            entity_type=AuditEntityType.product,
            entity_id_from_response="succeeded",
        )

        await capture.run(policy, SNAPSHOT, returning({"succeeded": ["id-1", "id-2", "id-3"]}))
        await capture.drain()

        logs = repo.all()
        assert calls == [3]
        assert sorted(log.entity_id for log in logs) == ["id-1", "id-2", "id-3"]
        assert {(log.action, log.entity_type, log.actor_id, log.ip_address) for log in logs} == {
            (AuditAction.delete, AuditEntityType.product, "user_123", "192.168.1.1")
        }


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_operation_failure_records_nothing(self, capture, repo):
        async def boom():
            raise RuntimeError("business rule violated")

        with pytest.raises(RuntimeError, match="business rule violated"):
            await capture.run(update_policy(entity_id_param="id"), SNAPSHOT, boom)

        await capture.drain()
        assert repo.all() == []

    @pytest.mark.asyncio
    async def test_unresolved_entity_records_nothing(self, capture, repo):
        policy = update_policy(entity_id_from_response="data.entity.id")

        result = await capture.run(policy, SNAPSHOT, returning({"data": {}}))

        assert capture.record(policy, SNAPSHOT, {"data": {}}) is None
        await capture.drain()
        assert result == {"data": {}}
        assert repo.all() == []

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_reach_caller(self, failing_repo):
        capture = AuditCapture(AuditService(failing_repo))
        payload = {"id": "response-id"}

        result = await capture.run(update_policy(entity_id_param="id"), SNAPSHOT, returning(payload))
        await capture.drain()

        assert result is payload
        assert failing_repo.create_calls == 1

    @pytest.mark.asyncio
    async def test_bulk_storage_failure_is_not_retried(self, failing_repo):
        capture = AuditCapture(AuditService(failing_repo))

        await capture.run(update_policy(), RequestSnapshot(), returning({"succeeded": ["a", "b"]}))
        await capture.drain()

        assert failing_repo.create_many_calls == 1

    @pytest.mark.asyncio
    async def test_write_is_not_awaited_by_the_operation(self, capture, repo):
        await capture.run(update_policy(entity_id_param="id"), SNAPSHOT, returning({}))

        assert capture.pending == 1
        await capture.drain()
        assert capture.pending == 0
        assert len(repo.all()) == 1

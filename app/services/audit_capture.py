"""
Audit capture pipeline.

Observes a mutating operation and, once it has succeeded, records who did
what to which entity. Recording is observational: the write runs as a
detached task, its failures are logged and dropped, and the operation's
result or exception reaches the caller exactly as produced.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Dict, Mapping, Optional, Set, Tuple, TypeVar, Union

from pydantic import BaseModel

from app.core.audit_policy import AuditPolicy
from app.core.logging import get_logger
from app.services.audit_service import AuditContext, AuditService
from app.utils.nested import get_nested_value
from app.utils.request_meta import client_ip, header

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RequestSnapshot:
    path_params: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    actor_id: Optional[str] = None
    client_host: Optional[str] = None


# -------------------------
# Entity id resolution
# -------------------------
@dataclass(frozen=True)
class Single:
    entity_id: str


@dataclass(frozen=True)
class Many:
    entity_ids: Tuple[str, ...]


@dataclass(frozen=True)
class Unresolved:
    pass


Resolution = Union[Single, Many, Unresolved]

UNRESOLVED = Unresolved()


def _as_resolution(value: Optional[Union[str, list]]) -> Optional[Resolution]:
    if isinstance(value, str) and value:
        return Single(value)
    if isinstance(value, list) and value:
        # one record per distinct id, first occurrence wins the slot
        return Many(tuple(dict.fromkeys(value)))
    return None


def _path_param(snapshot: RequestSnapshot, name: str) -> Optional[str]:
    value = snapshot.path_params.get(name)
    if value is None:
        return None
    value = str(value)
    return value or None


def _payload_dict(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    return payload


def resolve_entity_id(policy: AuditPolicy, snapshot: RequestSnapshot, payload: Any) -> Resolution:
    payload = _payload_dict(payload)

    if policy.entity_id_param:
        found = _path_param(snapshot, policy.entity_id_param)
        if found:
            return Single(found)

    if policy.entity_id_from_body and snapshot.body is not None:
        found = _as_resolution(get_nested_value(_payload_dict(snapshot.body), policy.entity_id_from_body))
        if found:
            return found

    if policy.entity_id_from_response and payload is not None:
        found = _as_resolution(get_nested_value(payload, policy.entity_id_from_response))
        if found:
            return found

    if policy.has_explicit_source:
        return UNRESOLVED

    # fallbacks for undeclared sources
    found = _path_param(snapshot, "id")
    if found:
        return Single(found)

    if isinstance(payload, dict):
        entity_id = payload.get("id")
        if isinstance(entity_id, str) and entity_id:
            return Single(entity_id)

        # bulk endpoints answer {"succeeded": [...ids], "failures": [...]}
        if isinstance(payload.get("succeeded"), list):
            found = _as_resolution(get_nested_value(payload, "succeeded"))
            if found:
                return found

    return UNRESOLVED


def extract_context(snapshot: RequestSnapshot) -> AuditContext:
    return AuditContext(
        actor_id=snapshot.actor_id,
        ip_address=client_ip(snapshot.headers, snapshot.client_host),
        user_agent=header(snapshot.headers, "user-agent"),
    )


# -------------------------
# Pipeline
# -------------------------
class AuditCapture:
    def __init__(self, service: AuditService, enabled: bool = True):
        self.service = service
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def run(
        self,
        policy: Optional[AuditPolicy],
        snapshot: RequestSnapshot,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Await `operation`; on success record it under `policy`."""
        if policy is None or not self.enabled:
            return await operation()

        result = await operation()
        self.record(policy, snapshot, result)
        return result

    def record(
        self,
        policy: AuditPolicy,
        snapshot: RequestSnapshot,
        payload: Any,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Optional[asyncio.Task]:
        """
        Resolve the entity id(s) of a succeeded operation and spawn the write.
        Never raises; returns the spawned task, or None when nothing is written.
        """
        if not self.enabled:
            return None

        try:
            context = extract_context(snapshot)
            resolution = resolve_entity_id(policy, snapshot, payload)
        except Exception:
            logger.error(
                "audit_capture_failed",
                action=policy.action.value,
                entity_type=policy.entity_type.value,
                exc_info=True,
            )
            return None

        if isinstance(resolution, Single):
            return self._spawn(self._write_one(policy, resolution.entity_id, context, changes))

        if isinstance(resolution, Many):
            return self._spawn(self._write_many(policy, resolution.entity_ids, context))

        logger.warning(
            "audit_entity_id_unresolved",
            action=policy.action.value,
            entity_type=policy.entity_type.value,
        )
        return None

    async def drain(self) -> None:
        """Wait for every in-flight audit write."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write_one(
        self,
        policy: AuditPolicy,
        entity_id: str,
        context: AuditContext,
        changes: Optional[Dict[str, Any]],
    ) -> None:
        try:
            await self.service.log(
                action=policy.action,
                entity_type=policy.entity_type,
                entity_id=entity_id,
                context=context,
                changes=changes if policy.track_changes else None,
            )
        except Exception:
            logger.error(
                "audit_write_dropped",
                action=policy.action.value,
                entity_type=policy.entity_type.value,
                entity_id=entity_id,
                exc_info=True,
            )

    async def _write_many(
        self,
        policy: AuditPolicy,
        entity_ids: Tuple[str, ...],
        context: AuditContext,
    ) -> None:
        try:
            await self.service.log_bulk(
                action=policy.action,
                entity_type=policy.entity_type,
                entity_ids=entity_ids,
                context=context,
            )
        except Exception:
            logger.error(
                "audit_bulk_write_dropped",
                action=policy.action.value,
                entity_type=policy.entity_type.value,
                count=len(entity_ids),
                exc_info=True,
            )

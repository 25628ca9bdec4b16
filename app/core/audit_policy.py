"""
Declarative audit policies for mutating operations.

A policy says which action is performed on which entity type, and where the
affected entity id can be found: a path parameter, a (dot-path) field of the
request body, or a (dot-path) field of the response. At most one source may
be declared; with none, the capture pipeline falls back to common shapes
(`id` path param, `id` or `succeeded` in the response).

Policies are attached to endpoints through an explicit registry:

    @router.patch("/{id}")
    @auditable(AuditAction.update, AuditEntityType.product, entity_id_param="id")
    async def update_product(id: str, body: ProductUpdate): ...
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator

from app.core.enums import AuditAction, AuditEntityType
from app.core.errors import PolicyConflictError

F = TypeVar("F", bound=Callable[..., Any])


class AuditPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: AuditAction
    entity_type: AuditEntityType
    entity_id_param: Optional[str] = None
    entity_id_from_body: Optional[str] = None
    entity_id_from_response: Optional[str] = None
    track_changes: bool = False

    @model_validator(mode="after")
    def _single_source(self):
        declared = [
            s for s in (self.entity_id_param, self.entity_id_from_body, self.entity_id_from_response)
            if s is not None
        ]
        if len(declared) > 1:
            raise ValueError("declare at most one entity id source")
        if declared and not declared[0].strip():
            raise ValueError("entity id source must not be blank")
        return self

    @property
    def has_explicit_source(self) -> bool:
        return (
            self.entity_id_param is not None
            or self.entity_id_from_body is not None
            or self.entity_id_from_response is not None
        )


class AuditPolicyRegistry:
    """Operation (endpoint callable) -> AuditPolicy."""

    def __init__(self) -> None:
        self._policies: Dict[Callable[..., Any], AuditPolicy] = {}

    def register(self, operation: Callable[..., Any], policy: AuditPolicy) -> None:
        existing = self._policies.get(operation)
        if existing is not None and existing != policy:
            raise PolicyConflictError(
                f"{getattr(operation, '__qualname__', operation)!s} already has an audit policy"
            )
        self._policies[operation] = policy

    def get(self, operation: Callable[..., Any]) -> Optional[AuditPolicy]:
        return self._policies.get(operation)

    def __contains__(self, operation: object) -> bool:
        return operation in self._policies

    def __len__(self) -> int:
        return len(self._policies)


audit_policies = AuditPolicyRegistry()


def auditable(
    action: AuditAction,
    entity_type: AuditEntityType,
    *,
    entity_id_param: Optional[str] = None,
    entity_id_from_body: Optional[str] = None,
    entity_id_from_response: Optional[str] = None,
    track_changes: bool = False,
    registry: Optional[AuditPolicyRegistry] = None,
) -> Callable[[F], F]:
    policy = AuditPolicy(
        action=action,
        entity_type=entity_type,
        entity_id_param=entity_id_param,
        entity_id_from_body=entity_id_from_body,
        entity_id_from_response=entity_id_from_response,
        track_changes=track_changes,
    )
    target = registry if registry is not None else audit_policies

    def decorator(fn: F) -> F:
        target.register(fn, policy)
        return fn

    return decorator

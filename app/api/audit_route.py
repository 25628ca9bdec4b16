from __future__ import annotations

import json
from typing import Any, Callable, Coroutine, Dict, Optional, Type

from fastapi import Request, Response
from fastapi.routing import APIRoute

from app.core.audit_policy import AuditPolicyRegistry, audit_policies
from app.core.logging import get_logger
from app.core.security import get_actor_id
from app.services.audit_capture import AuditCapture, RequestSnapshot

logger = get_logger(__name__)


def set_audit_changes(request: Request, changes: Optional[Dict[str, Any]]) -> None:
    """Attach a computed before/after diff to this request's audit record."""
    request.state.audit_changes = changes


async def _request_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            # the endpoint already parsed the form; starlette caches it on the request
            form = await request.form()
            return {key: value for key, value in form.items() if isinstance(value, str)}
        raw = await request.body()
    except RuntimeError:
        # stream drained without a cached copy
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _response_payload(response: Response) -> Any:
    body = getattr(response, "body", None)
    if not body or "json" not in (response.media_type or response.headers.get("content-type", "")):
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


async def build_snapshot(request: Request, read_body: bool = True) -> RequestSnapshot:
    return RequestSnapshot(
        path_params=dict(request.path_params),
        body=await _request_body(request) if read_body else None,
        headers=dict(request.headers),
        actor_id=get_actor_id(request),
        client_host=request.client.host if request.client else None,
    )


class AuditedRoute(APIRoute):
    """
    Route class that hands successful responses of audited endpoints to
    the AuditCapture found on app.state.audit_capture.

        router = APIRouter(route_class=AuditedRoute)
    """

    policy_registry: AuditPolicyRegistry = audit_policies

    @classmethod
    def using(cls, registry: AuditPolicyRegistry) -> Type["AuditedRoute"]:
        return type("AuditedRoute", (cls,), {"policy_registry": registry})

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()
        endpoint = self.endpoint
        registry = self.policy_registry

        async def audited_handler(request: Request) -> Response:
            response = await handler(request)

            policy = registry.get(endpoint)
            if policy is None or not 200 <= response.status_code < 300:
                return response

            capture: Optional[AuditCapture] = getattr(request.app.state, "audit_capture", None)
            if capture is None:
                return response

            try:
                snapshot = await build_snapshot(request, read_body=bool(policy.entity_id_from_body))
                capture.record(
                    policy,
                    snapshot,
                    _response_payload(response),
                    changes=getattr(request.state, "audit_changes", None),
                )
            except Exception:
                logger.error(
                    "audit_snapshot_failed",
                    action=policy.action.value,
                    entity_type=policy.entity_type.value,
                    path=request.url.path,
                    exc_info=True,
                )
            return response

        return audited_handler

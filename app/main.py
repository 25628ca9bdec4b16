from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.admin.audit import router as audit_router
from app.core.config import get_settings
from app.core.errors import StorageError
from app.core.logging import get_logger, setup_logging
from app.core.security import ActorHeaderMiddleware
from app.db.mongo import mongo
from app.repositories.audit_repository import AuditRepository
from app.services.audit_capture import AuditCapture
from app.services.audit_service import AuditService

logger = get_logger(__name__)


def install_audit(app: FastAPI, repository, enabled: bool = True) -> AuditCapture:
    """Wire audit storage, service and capture pipeline onto app.state."""
    service = AuditService(repository)
    capture = AuditCapture(service, enabled=enabled)
    app.state.audit_service = service
    app.state.audit_capture = capture
    return capture


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    repository = AuditRepository(mongo.audit_collection)
    await repository.ensure_indexes()
    capture = install_audit(app, repository, enabled=settings.audit_enabled)
    logger.info("startup", app=settings.app_name, env=settings.env, audit_enabled=settings.audit_enabled)

    yield

    # let in-flight audit writes finish before the client goes away
    await capture.drain()
    mongo.close()
    logger.info("shutdown")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.trust_actor_header:
        app.add_middleware(ActorHeaderMiddleware, header_name=settings.actor_header)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": "Audit storage unavailable"})

    app.include_router(audit_router)

    @app.get("/")
    def root():
        return {"ok": True, "docs": "/docs"}

    return app


app = create_app()

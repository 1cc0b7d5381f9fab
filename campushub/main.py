import os
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine
from .errors import DomainError, StoreError
from .logging import setup_logging, RequestIdMiddleware, structlog
from .auth.router import router as auth_router
from .routes.od_requests import router as od_requests_router
from .routes.lost_items import router as lost_items_router
from .routes.queries import router as queries_router
from .routes.announcements import router as announcements_router
from .routes.faculty import router as faculty_router
from .routes.chat import router as chat_router
from .routes.dashboard import router as dashboard_router
from .routes.notifications import router as notifications_router
from .routes.files import router as files_router
from .routes.audit import router as audit_router
from .routes.changes import router as changes_router


async def domain_error_handler(request: Request, exc: DomainError):
    log = structlog.get_logger()
    if isinstance(exc, StoreError):
        log.error("store_error", path=request.url.path, error=exc.message, **jsonable_encoder(exc.details))
    else:
        log.info("domain_error", path=request.url.path, kind=type(exc).__name__, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(DomainError, domain_error_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(od_requests_router)
    app.include_router(lost_items_router)
    app.include_router(queries_router)
    app.include_router(announcements_router)
    app.include_router(faculty_router)
    app.include_router(chat_router)
    app.include_router(dashboard_router)
    app.include_router(notifications_router)
    app.include_router(files_router)
    app.include_router(audit_router)
    app.include_router(changes_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        structlog.get_logger().info("startup_complete", environment=settings.environment)

    @app.get("/health")
    def health():
        return {"ok": True, "app": settings.app_name}

    return app


app = create_app()

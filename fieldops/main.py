import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import structlog

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.files import router as files_router
from .routes.customers import router as customers_router
from .routes.fleet import router as fleet_router
from .routes.jobs import router as jobs_router
from .routes.equipment import router as equipment_router
from .routes.inventory import router as inventory_router
from .routes.maintenance import router as maintenance_router
from .routes.billing import router as billing_router
from .routes.portal import router as portal_router
from .routes.settings import router as settings_router
from .routes.integrations import router as integrations_router


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

    # Routers
    app.include_router(auth_router)
    app.include_router(files_router)
    app.include_router(customers_router)
    app.include_router(fleet_router)
    app.include_router(jobs_router)
    app.include_router(equipment_router)
    app.include_router(inventory_router)
    app.include_router(maintenance_router)
    app.include_router(billing_router)
    app.include_router(portal_router)
    app.include_router(settings_router)
    app.include_router(integrations_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        log = structlog.get_logger()
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            # Import models so every table is registered on Base.metadata
            from .models import models  # noqa: F401
            Base.metadata.create_all(bind=engine)
            log.info("database_tables_ready")
        log.info("startup_complete", app=settings.app_name, environment=settings.environment)

    @app.get("/")
    def root():
        return {"app": settings.app_name, "status": "ok"}

    return app


app = create_app()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from app.core.settings import settings, validate_settings
from app.db.session import build_engine, build_session_factory
from app.models import Base
from app.routers.admin import router as admin_router
from app.routers.auth import router as auth_router
from app.services.users import seed_initial_admin

logger = logging.getLogger("vitalink.startup")


def create_app(engine: Engine | None = None) -> FastAPI:
    """Build the API. A caller-supplied engine is left open at shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        validate_settings(settings)
        owned = engine is None
        active_engine = build_engine(settings.database_url) if owned else engine
        app.state.engine = active_engine
        app.state.session_factory = build_session_factory(active_engine)
        Base.metadata.create_all(bind=active_engine)

        db = app.state.session_factory()
        try:
            created = seed_initial_admin(
                db, login_id=settings.admin_login_id, password=settings.admin_password.strip()
            )
            if created:
                logger.info("Initial admin created for %s.", settings.admin_login_id)
            else:
                logger.info("Initial admin not created (admin users already exist).")
        finally:
            db.close()

        try:
            yield
        finally:
            if owned:
                active_engine.dispose()

    app = FastAPI(title="VitaLink API", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = request.headers.get("x-request-id")
        logger.exception("Unhandled server error", extra={"request_id": request_id})
        payload = {"detail": "Internal server error"}
        if request_id:
            payload["request_id"] = request_id
        return JSONResponse(status_code=500, content=payload)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(admin_router)
    return app


app = create_app()

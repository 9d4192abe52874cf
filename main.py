import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_db
from api.applications import router as applications_router
from api.comments import router as comments_router
from api.errors import register_exception_handlers

logger = logging.getLogger("intake.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("database ready backend=%s", "sqlite" if settings.is_sqlite else "postgresql")
    yield


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Mortgage application intake, status tracking and document export API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Reuse the caller's X-Request-ID (or mint one), echo it back and log an access line."""
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "access request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    register_exception_handlers(app)

    app.include_router(applications_router)
    app.include_router(comments_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academy.api.analytics import router as analytics_router
from academy.api.assignments import router as assignments_router
from academy.api.certificates import router as certificates_router
from academy.api.courses import router as courses_router
from academy.api.health import router as health_router
from academy.api.metrics_endpoint import router as metrics_router
from academy.api.progress import router as progress_router
from academy.api.quizzes import router as quizzes_router
from academy.core.config import SETTINGS
from academy.core.errors import AcademyError, ErrorKind
from academy.core.logging import setup_logging
from academy.core.metrics import DOMAIN_ERRORS
from academy.db.engine import async_session_factory, lifespan_db
from academy.db.redis import lifespan_redis
from academy.middleware.metrics import MetricsMiddleware
from academy.middleware.request_context import RequestContextMiddleware
from academy.services.registry import catalog_repo, seed_demo_catalog

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.LIMIT_EXCEEDED: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 422,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNAVAILABLE: 503,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order: Redis closes before the engine
    async with lifespan_db():
        async with lifespan_redis():
            if async_session_factory is None and SETTINGS.is_dev:
                if not await catalog_repo.list_courses():
                    seed_demo_catalog(catalog_repo)
            yield


app = FastAPI(
    title="academy",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)


@app.exception_handler(AcademyError)
async def academy_error_handler(request: Request, exc: AcademyError) -> JSONResponse:
    status_code = ERROR_STATUS[exc.kind]
    DOMAIN_ERRORS.labels(kind=exc.kind.value, code=exc.code).inc()
    logger.warning(
        "Domain error code=%s status=%d path=%s: %s",
        exc.code,
        status_code,
        request.url.path,
        exc.message,
        extra={"error_code": exc.code, "status_code": status_code},
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(progress_router)
app.include_router(quizzes_router)
app.include_router(assignments_router)
app.include_router(certificates_router)
app.include_router(analytics_router)

logger.info(
    "academy started  env=%s log_level=%s port=%d certificate_policy=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.certificate_policy,
)

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coursepay.api.coupons import router as coupons_router
from coursepay.api.courses import router as courses_router
from coursepay.api.enrollments import router as enrollments_router
from coursepay.api.health import router as health_router
from coursepay.api.metrics_endpoint import router as metrics_router
from coursepay.api.payments import router as payments_router
from coursepay.core.config import SETTINGS
from coursepay.core.logging import setup_logging
from coursepay.db.engine import lifespan_db
from coursepay.db.redis import lifespan_redis
from coursepay.middleware.metrics import MetricsMiddleware
from coursepay.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order of startup.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="coursepay",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(coupons_router)
app.include_router(enrollments_router)
app.include_router(payments_router)

logger.info(
    "coursepay started  env=%s log_level=%s port=%d gateway=%s store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.gateway_base_url,
    "postgres" if SETTINGS.database_url else "memory",
)

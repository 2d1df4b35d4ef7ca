from contextlib import asynccontextmanager
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from sitepulse.core.config import settings
from sitepulse.core.errors import capture_exception, init_sentry
from sitepulse.core.logging_config import get_logger
from sitepulse.api import admin, collector, health
from sitepulse.db import create_db_and_tables
from sitepulse.middleware.context import RequestContextMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("SitePulse collector starting", environment=settings.ENVIRONMENT)
    init_sentry(settings.SENTRY_DSN, environment=settings.ENVIRONMENT)
    create_db_and_tables()
    yield
    logger.info("SitePulse collector stopped")


app = FastAPI(title=settings.PROJECT_NAME, openapi_url=f"{settings.API_PREFIX}/openapi.json", lifespan=lifespan)

# Trackers sit behind the site's reverse proxy; trust its X-Forwarded-* headers
app.add_middleware(cast(Any, ProxyHeadersMiddleware), trusted_hosts=["*"])
app.add_middleware(cast(Any, RequestContextMiddleware))

# Trackers post from the site's own origins
app.add_middleware(
    cast(Any, CORSMiddleware),
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    capture_exception(exc, context={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Database error"})


app.include_router(collector.router, prefix=f"{settings.API_PREFIX}/analytics", tags=["analytics"])
app.include_router(admin.router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])
app.include_router(health.router, tags=["health"])


@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from ordersync.api.v1.runs import create_runs_router
from ordersync.core.database import Base, check_connection, engine
from ordersync.core.dependencies import (
    get_http_session,
    get_install_states,
    get_pipeline,
    get_refresher,
    get_run_store,
    get_settings,
)
from ordersync.plugins.wix import create_wix_router

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")


# Request tracing middleware
class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Request tracing middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        # Query strings carry OAuth codes and states; log the path only
        logger.info("Request: %s %s", request.method, request.url.path)
        response = await call_next(request)
        logger.info("Response status: %s", response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan for the FastAPI application."""
    logger.info("Starting OrderSync")
    check_connection()
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("Stopping ingestion workers")
    get_pipeline().shutdown(wait=False)


app = FastAPI(
    title="OrderSync API",
    description="Wix order ingestion",
    version="1.0.0",
    lifespan=lifespan,
)

# Add request tracing middleware
app.add_middleware(RequestTracingMiddleware)

# Resolve the components at startup
settings = get_settings()
app.include_router(
    create_wix_router(
        settings,
        get_pipeline(),
        get_install_states(),
        get_refresher(),
        get_http_session(),
    ),
    prefix="/wix",
)
app.include_router(create_runs_router(get_run_store()), prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {"message": "Welcome to the OrderSync API"}

"""
Crestcat - Main Application Entry Point

This module initializes the FastAPI application with all necessary middleware,
monitoring tools, and route configurations. It sets up:
- Prometheus metrics and the /metrics endpoint
- Sentry error tracking when a DSN is configured
- Logging middleware with correlation IDs
- CORS and security headers
- Database tables at startup
- API route registration
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import sentry_sdk
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from crestcat.api.v1.api import api_router
from crestcat.core.error_handler import register_exception_handlers
from crestcat.core.logging import get_logger, setup_logging
from crestcat.core.middleware import add_middlewares
from crestcat.core.settings import settings
from crestcat.db.session import check_db_connection, create_tables

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.
    """
    # Startup
    await create_tables()
    logger.info("Database tables ensured")

    if await check_db_connection():
        logger.info("Database connection verified")
    else:
        logger.error("Database connection failed at startup")

    yield

    # Cleanup
    logger.info("Shutting down application...")


def init_sentry() -> None:
    if not settings.logging.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=settings.logging.SENTRY_DSN,
        environment=settings.app.ENVIRONMENT,
        traces_sample_rate=settings.logging.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration()
        ]
    )
    logger.info("Sentry initialized")


def create_application() -> FastAPI:
    """
    Creates and configures the FastAPI application with all middleware and routes.
    """
    init_sentry()

    app = FastAPI(
        title=settings.app.TITLE,
        description=settings.app.DESCRIPTION,
        version=settings.app.VERSION,
        docs_url="/docs" if not settings.app.is_production else None,
        redoc_url="/redoc" if not settings.app.is_production else None,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "investments", "description": "Deposits, portfolio and closure requests"},
            {"name": "withdrawals", "description": "Cash-out requests"},
            {"name": "assets", "description": "Asset catalogue"},
            {"name": "deposit-methods", "description": "Ways to pay in and their account details"},
            {"name": "transactions", "description": "Cash movement history"},
            {"name": "notifications", "description": "In-app inbox"},
            {"name": "admin", "description": "Review, reconciliation and platform administration"}
        ]
    )

    add_middlewares(app)
    register_exception_handlers(app)

    # Mount Prometheus metrics endpoint
    app.mount("/metrics", make_asgi_app())

    app.include_router(api_router, prefix=settings.app.API_V1_STR)

    @app.get("/healthz", tags=["monitoring"])
    async def health_check():
        """
        Health check endpoint for monitoring.
        """
        database_ok = await check_db_connection()
        payload = {
            "status": "healthy" if database_ok else "unhealthy",
            "environment": settings.app.ENVIRONMENT,
            "version": settings.app.VERSION,
            "database": "up" if database_ok else "down"
        }
        return JSONResponse(status_code=200 if database_ok else 503, content=payload)

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "crestcat.main:app",
        host=settings.app.HOST,
        port=settings.app.PORT,
        reload=settings.app.DEBUG
    )

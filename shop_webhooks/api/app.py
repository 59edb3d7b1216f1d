"""FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shop_webhooks import __version__
from shop_webhooks.api.routes import webhooks
from shop_webhooks.core.config import get_settings
from shop_webhooks.core.exceptions import APIException, ShopWebhooksException
from shop_webhooks.core.logging import get_logger
from shop_webhooks.storage.database.base import close_db, create_session_factory, get_engine, init_db
from shop_webhooks.storage.database.repository import SQLAlchemyWebhookRepository
from shop_webhooks.webhooks.service import WebhookService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("application_starting", version=__version__, env=settings.app_env)

    engine = get_engine()
    if settings.is_development:
        await init_db(engine)

    http_client = httpx.AsyncClient(follow_redirects=False)
    app.state.webhook_service = WebhookService(
        SQLAlchemyWebhookRepository(create_session_factory(engine)),
        http_client,
        settings,
    )
    try:
        yield
    finally:
        logger.info("application_shutting_down")
        await http_client.aclose()
        await close_db(engine)


async def handle_webhook_exception(request: Request, exc: ShopWebhooksException) -> JSONResponse:
    """Render subsystem errors as JSON."""
    status_code = exc.status_code if isinstance(exc, APIException) else 500
    if status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "details": exc.details},
    )


def create_app() -> FastAPI:
    """Build the API application."""
    application = FastAPI(
        title="Shop Webhooks API",
        description="Webhook endpoint management and event delivery",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(ShopWebhooksException, handle_webhook_exception)
    application.include_router(webhooks.router, prefix="/api")

    @application.get("/health")
    async def health() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return application


app = create_app()

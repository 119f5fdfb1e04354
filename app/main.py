"""Store AI Chat API - Main Application Module.

This module initializes the FastAPI application with configuration,
middleware, routing and lifecycle management for the storefront chat
backend: REST endpoints for stores and conversations plus the ``/ws``
channel the chat widget talks to.
"""

import asyncio
import contextlib
import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import ConfigValidator, get_config_summary, get_public_config, settings
from app.core.logging_config import setup_logging
from app.database import AsyncSessionLocal, engine
from app.domains.ai.gateway import LanguageModelGateway
from app.domains.chat.context_store import ContextStore
from app.domains.chat.hub import ConversationHub
from app.domains.chat.orchestrator import TurnOrchestrator
from models import Base


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events."""
    # Startup
    logger.info(f"🚀 Starting {settings.app_name}...")
    ConfigValidator.validate_required_settings()
    logger.info(f"⚙️ Configuration: {get_config_summary()}")

    # Development mode: Auto-create tables if they don't exist
    if settings.is_development:
        logger.info("📝 Development mode: Creating/updating database tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")

    hub = ConversationHub()
    gateway = LanguageModelGateway()
    app.state.hub = hub
    app.state.gateway = gateway
    app.state.orchestrator = TurnOrchestrator(hub, ContextStore(AsyncSessionLocal), gateway)
    if not gateway.is_configured:
        logger.warning("⚠️ ZAI_API_KEY not set: every reply will be the fallback message")

    sweeper = asyncio.create_task(hub.run_sweeper(settings.websocket_sweep_interval))
    logger.info(f"✅ Connection sweep every {settings.websocket_sweep_interval}s")

    yield

    # Shutdown
    logger.info(f"🛑 Shutting down {settings.app_name}...")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await app.state.orchestrator.drain()
    await gateway.aclose()
    await engine.dispose()
    logger.info("✅ Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="AI customer support chat for Shopify stores",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Add middleware
    setup_middleware(app)

    # Add exception handlers
    setup_exception_handlers(app)

    # Include routers
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Handle custom exceptions that have structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"
            details = None

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "message": message,
                "error_code": error_code,
                "details": details,
                "timestamp": _timestamp(),
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": error.get("loc", []),
                "msg": str(error.get("msg", "Validation error")),
                "type": error.get("type", "value_error"),
            }
            if "input" in error:
                error_dict["input"] = str(error["input"])
            errors.append(error_dict)

        return JSONResponse(
            status_code=422,
            content={
                "status": "error",
                "message": "Validation error",
                "details": errors,
                "timestamp": _timestamp(),
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": "Internal server error",
                "timestamp": _timestamp(),
                "request_id": getattr(request.state, "request_id", None),
            },
        )


def setup_routers(app: FastAPI):
    """Configure application routers."""
    from app.domains.chat.controller import analytics_router
    from app.domains.chat.controller import router as conversation_router
    from app.domains.chat.websocket import router as websocket_router
    from app.domains.store.controller import auth_router, webhook_router
    from app.domains.store.controller import router as store_router

    @app.get("/health")
    async def health_check(request: Request):
        """Database, language model and live connection status."""
        db_status = "healthy"
        try:
            async with AsyncSessionLocal() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Health check database probe failed: {str(e)}")
            db_status = "unhealthy"

        hub = getattr(request.app.state, "hub", None)
        return {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": settings.version,
            "environment": settings.environment,
            "timestamp": _timestamp(),
            "services": {
                "database": db_status,
                "ai_service": "configured" if settings.has_ai_enabled else "not_configured",
            },
            "websocket": hub.stats() if hub else {"connections": 0, "conversations": 0},
        }

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": "AI customer support chat for Shopify stores",
            "docs_url": "/docs" if settings.is_development else None,
            "websocket_url": "/ws",
        }

    @app.get("/api/config")
    async def public_config():
        """Non-secret settings for the dashboard and widget."""
        return get_public_config()

    # Include domain routers
    app.include_router(store_router)
    app.include_router(auth_router)
    app.include_router(webhook_router)
    app.include_router(conversation_router)
    app.include_router(analytics_router)
    app.include_router(websocket_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()

"""Main FastAPI application for the Agrimarket dashboard service."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agrimarket import __version__, config
from agrimarket.db.config import DATABASE_URL, build_engine
from agrimarket.db.init import init_db
from agrimarket.errors import AuthRequired, PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.gateway.sql_gateway import SQLGateway
from agrimarket.middleware.auth import SessionProvider, session_provider
from agrimarket.middleware.cors import add_cors_middleware
from agrimarket.routers import chat, dashboard, widgets
from agrimarket.security.validation import RateLimiter
from agrimarket.services.assistant_client import AssistantClient, GeminiClient
from agrimarket.services.forecast_service import ForecastService
from agrimarket.services.marketplace_service import CartStore
from agrimarket.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build whatever the app was not handed: gateway, assistant and stores."""
    state = app.state
    if getattr(state, "gateway", None) is None:
        engine = build_engine(DATABASE_URL)
        try:
            init_db(engine)
        except Exception as e:
            logger.warning(f"Database initialization failed: {str(e)}")
            logger.warning("Server will continue but gateway operations may fail.")
        state.gateway = SQLGateway(engine)

    if getattr(state, "assistant", None) is None:
        config.check_assistant_config()
        state.assistant = GeminiClient()

    if getattr(state, "forecast", None) is None:
        state.forecast = ForecastService()

    logger.info("Application startup complete.")
    yield


def create_app(
    gateway: Optional[DataGateway] = None,
    assistant: Optional[AssistantClient] = None,
    sessions: Optional[SessionProvider] = None,
    forecast: Optional[ForecastService] = None,
) -> FastAPI:
    app = FastAPI(
        title="Agrimarket Dashboard API",
        description="Dashboard widgets and the streaming AI farm assistant",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    app.state.assistant = assistant
    app.state.session_provider = sessions or session_provider
    app.state.forecast = forecast
    app.state.carts = CartStore()
    app.state.conversation_limiter = RateLimiter()

    add_cors_middleware(app)

    @app.exception_handler(AuthRequired)
    async def auth_required_handler(request: Request, exc: AuthRequired):
        return JSONResponse(
            status_code=401,
            content={"detail": str(exc) or "Sign in to continue", "redirect_to": exc.redirect_to},
        )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Persistence error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=503,
            content={"detail": "Service temporarily unavailable. Please try again."},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health")
    async def health_check():
        """Health check endpoint with pipeline counters."""
        return {"status": "healthy", "version": __version__, "metrics": metrics_collector.get_metrics()}

    @app.get("/")
    async def root():
        return {
            "message": "Welcome to the Agrimarket Dashboard API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    app.include_router(dashboard.router, prefix="/api")
    app.include_router(widgets.router, prefix="/api")
    app.include_router(chat.router, prefix="/api")
    app.include_router(chat.ws_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "agrimarket.main:app",
        host="0.0.0.0",
        port=8000,
        reload=config.ENVIRONMENT != "production",
    )

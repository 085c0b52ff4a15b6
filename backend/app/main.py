"""
FastAPI application entry point.
Assembles the app with routers, middleware, lifespan handlers, and exception handlers.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.core.rate_limit import limiter
from app.db.session import init_db, close_db
from app.deps.di_container import get_container
from app.core.integrations.observability import setup_observability

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    Initializes logging, the database and the DI container; closes the
    bank-link HTTP session and the engine on shutdown.
    """
    # Startup
    setup_logging()
    setup_observability()

    await init_db()

    # Integration clients are created on first use
    container = get_container()
    app.state.container = container

    logger.info(
        "Application started",
        extra={"version": settings.VERSION, "integrations": container.health_service().integration_status()},
    )

    yield

    # Shutdown
    await container.bank_link_client().close()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Invoicing, payment collection and payouts for freelancers",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting for the public payment endpoints
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Add root-level health endpoint for convenience
    from app.api.v1.endpoints.health import get_health

    @app.get("/health", response_model=None, include_in_schema=False)
    async def root_health():
        """Root-level health check endpoint."""
        return await get_health()

    # Global exception handler
    from app.core.exceptions import setup_exception_handlers
    setup_exception_handlers(app)

    return app


app = create_app()

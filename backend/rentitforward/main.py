# backend/rentitforward/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, FastAPI

from . import __version__, models  # noqa: F401  registers tables on Base.metadata
from .core.config import settings
from .core.constants import BRAND_NAME
from .database import Base, engine
from .errors import register_error_handlers
from .routes import prometheus
from .routes.v1 import bookings as bookings_v1, listings as listings_v1, push as push_v1

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if not settings.stripe_configured:
        logger.warning("Stripe is not configured; payments run in mock mode")
    if settings.environment in ("development", "test"):
        # Local SQLite databases are created on demand
        Base.metadata.create_all(bind=engine)

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")
    engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{BRAND_NAME} API",
        description="Peer-to-peer rental booking lifecycle",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(app)

    # Create API v1 router
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(listings_v1.router, prefix="/listings")
    api_v1.include_router(push_v1.router, prefix="/push")
    app.include_router(api_v1)
    app.include_router(prometheus.router)

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        return {"status": "healthy", "service": f"{BRAND_NAME} API", "version": __version__}

    return app


app = create_app()

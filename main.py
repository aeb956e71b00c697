import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from db import close_db, init_db
from routers import metrics, properties
from services.media_store import CloudinaryMediaStore
from services.sale_log import SaleLog
from utils.error_handling import register_exception_handlers

__version__ = "1.0.0"


def _api_prefix() -> str:
    return os.getenv("API_PREFIX", "/api/v1").rstrip("/")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events"""
    logger = logging.getLogger(__name__)

    media_store: CloudinaryMediaStore | None = None
    sale_log: SaleLog | None = None

    try:
        logger.info("Initializing database...")
        await init_db()

        sale_log = SaleLog().open()
        logger.info("Sale log opened at %s", sale_log.path)

        media_store = CloudinaryMediaStore()
        await media_store.start()

        app.state.sale_log = sale_log
        app.state.media_store = media_store

        logger.info("Application startup completed successfully")

        yield

    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise
    finally:
        logger.info("Application shutdown initiated...")

        if media_store:
            try:
                await media_store.stop()
                logger.info("Media store stopped successfully")
            except Exception as e:
                logger.error(f"Error stopping media store: {e}")

        if sale_log:
            try:
                sale_log.close()
                logger.info("Sale log closed successfully")
            except Exception as e:
                logger.error(f"Error closing sale log: {e}")

        try:
            await close_db()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database: {e}")

        logger.info("Application shutdown completed")


app = FastAPI(
    title="Estate Manager API",
    description="Property listings with automatic removal of sold properties",
    version=__version__,
    lifespan=lifespan,
)
register_exception_handlers(app)


@app.get("/")
async def root():
    prefix = _api_prefix()
    return {
        "message": "Welcome to the Estate Manager API",
        "endpoints": [
            f"{prefix}/properties",
            f"{prefix}/properties/{{id}}",
            f"{prefix}/properties/stats",
            f"{prefix}/properties/sold-stats",
            "/metrics",
        ],
        "status": "operational",
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "version": __version__, "service": "estate-manager-api"}


app.include_router(properties.router, prefix=_api_prefix())
app.include_router(metrics.router)

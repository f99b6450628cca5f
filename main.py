"""
Stock-In Batch Commit Engine
FastAPI Application Entry Point
"""
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from stockin import __version__
from stockin.core import settings, engine, Base
from stockin.core.logging_config import setup_logging
from stockin.api.router import api_router

logger = logging.getLogger(__name__)

# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    mode = "remote + local fallback" if settings.REMOTE_COMMIT_URL else "local only"
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT} (commit: {mode})")

    yield

    logger.info(f"{settings.APP_NAME} shutting down")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Barcode issuance, location allocation and batch commit for stock-in requests",
    version=__version__,
    lifespan=lifespan
)

# Include routers
app.include_router(api_router, prefix="/api")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )

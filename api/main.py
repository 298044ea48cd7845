"""
Broker Rotation API - Main Application.

FastAPI application with CORS enabled for the brokerage frontend.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.dependencies import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Broker Rotation API",
    description="Lead capture and round-robin broker assignment for the brokerage",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status, version and configured rotation store.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "broker-rotation-api",
        "store": settings.rotation_store,
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Broker Rotation API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import broker_order, distribution, leads

app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
app.include_router(broker_order.router, prefix="/api/v1", tags=["Broker Order"])
app.include_router(distribution.router, prefix="/api/v1", tags=["Distribution"])

logger.info("Broker Rotation API %s using %s store", __version__, settings.rotation_store)

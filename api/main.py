"""
Tire Sales Dashboard API - Main Application.

FastAPI application with CORS enabled for frontend communication. The
shared AppState is created at startup. With SUPABASE_REALTIME=1 session
reads are served from a cache kept in sync by realtime; otherwise every
read goes to the database.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from services.app_state import AppState
from services.realtime_service import SessionRealtimeListener

logger = logging.getLogger(__name__)


def realtime_enabled() -> bool:
    return os.getenv("SUPABASE_REALTIME", "").strip().lower() in {"1", "true", "yes"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = AppState()
    app.state.dashboard = state

    listener = None
    if realtime_enabled():
        listener = SessionRealtimeListener(state)
        try:
            await listener.start()
        except Exception as exc:
            logger.error("Realtime subscription failed", extra={"error": str(exc)})
            listener = None
        else:
            state.set_realtime_active(True)
    try:
        yield
    finally:
        if listener is not None:
            state.set_realtime_active(False)
            await listener.stop()


# Create FastAPI application
app = FastAPI(
    title="Tire Sales Dashboard API",
    description="REST API for the RELUVSA orders, pipeline, conversations and quotes dashboard",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS - Allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "tire-sales-dashboard-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Tire Sales Dashboard API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import analytics, auth, conversations, inventory, orders, pipeline, quotes

app.include_router(auth.router, prefix="/api/v1", tags=["Auth"])
app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
app.include_router(pipeline.router, prefix="/api/v1", tags=["Pipeline"])
app.include_router(conversations.router, prefix="/api/v1", tags=["Conversations"])
app.include_router(quotes.router, prefix="/api/v1", tags=["Quotes"])
app.include_router(inventory.router, prefix="/api/v1", tags=["Inventory"])
app.include_router(analytics.router, prefix="/api/v1", tags=["Analytics"])

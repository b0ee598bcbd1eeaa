"""
FastAPI application entry point.

WHAT: Main application setup and wiring
WHY: Initialize all components and routes
HOW: Create FastAPI app, register middleware, routers, handlers
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import init_db, close_db
from .core.kv_store import KeyValueStore
from .utils.logger import setup_logging, get_logger
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    
    WHAT: Startup and shutdown logic
    WHY: Initialize DB, optionally run agents in-process, close connections cleanly
    HOW: Async context manager for FastAPI lifespan
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    init_db()
    KeyValueStore().purge_expired()
    
    agents_task = None
    if settings.RUN_AGENTS_WITH_API:
        from .agents.runner import build_runners, run_agents
        runners = build_runners()
        agents_task = asyncio.create_task(run_agents(runners))
        logger.info(f"Started {len(runners)} agent(s) with the API")
    logger.info("Application startup complete")
    
    yield
    
    # Shutdown
    logger.info("Shutting down application")
    if agents_task is not None:
        agents_task.cancel()
        try:
            await agents_task
        except asyncio.CancelledError:
            pass
    close_db()
    logger.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
register_exception_handlers(app)

# Include API router
app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/api/v1/health",
            "garden": "/api/v1/garden",
            "farm": "/api/v1/farm",
            "stats": "/api/v1/stats",
            "stream": "/api/v1/stream/{agent_type}/events"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "yield_garden.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )

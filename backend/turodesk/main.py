"""
Turodesk - Main FastAPI Application

Local backend of the desktop shell: sessions, streaming chat, long-term
memory and GitHub login, served on localhost.
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .api import auth_router, chats_router, drain_pending_streams, memory_router
from .auth import GitHubAuth
from .chat import ChatManager
from .core.logging_config import setup_logging
from .db import Database, DatabaseQueries
from .middleware import RequestLoggingMiddleware
from .storage import LocalStorage

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Data directory: {settings.data_dir}")
    logger.info(f"Log level: {settings.log_level.upper()}")

    storage = LocalStorage(settings.data_dir)
    db = Database(
        settings.database_uri,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        connect_timeout=settings.db_connect_timeout,
    )
    auth = GitHubAuth(settings, storage, DatabaseQueries(db))
    chat_manager = ChatManager(settings, storage, db=db, auth=auth)

    # Fails fast: no API key or no PostgreSQL means no backend
    await chat_manager.initialize()
    await auth.load_auth_state()
    await auth.validate_and_refresh_auth_state()

    app.state.chat_manager = chat_manager
    app.state.auth = auth
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    await drain_pending_streams()
    await chat_manager.cleanup()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Local backend of the Turodesk desktop assistant",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(chats_router)
app.include_router(memory_router)
app.include_router(auth_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    manager = getattr(app.state, "chat_manager", None)
    return {
        "status": "healthy",
        "agent_ready": bool(manager and manager.agent is not None),
        "database": bool(manager and manager.db is not None and manager.db.connected),
        "memory_backend": settings.memory_backend if settings.memory_enabled else None,
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "turodesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

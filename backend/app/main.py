import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.logging_config import setup_logging
from app.exception_handlers import app_exception_handler, unhandled_exception_handler
from app.exceptions import AppException

setup_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Repository Mirror API",
    description="One-way GitHub repository sync over the Git Data API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust this for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Import and register routers
from app.api.routers import github, sync, sync_configs, sync_logs  # noqa: E402

app.include_router(sync_configs.router, prefix="/api")
app.include_router(sync_logs.router, prefix="/api")
app.include_router(github.router, prefix="/api")
app.include_router(sync.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Root health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/health")
async def api_health_check():
    """API health check endpoint."""
    return {"status": "healthy", "service": "repo-sync-api"}

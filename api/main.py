"""
First-Timer Care API - Main Application.

FastAPI application with CORS enabled for the admin frontend.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.errors import storage_error_handler, workflow_error_handler
from domain.errors import VisitorWorkflowError
from services.settings import WorkflowSettings


def configure_logging(settings: WorkflowSettings) -> None:
    """Configure the root logger at the level read from LOG_LEVEL (.env included)."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging(WorkflowSettings.from_env())

# Create FastAPI application
app = FastAPI(
    title="First-Timer Care API",
    description="Visitor lifecycle and follow-up workflow for the church admin console",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# TODO: Restrict origins to the admin console host once it has a fixed domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(VisitorWorkflowError, workflow_error_handler)
app.add_exception_handler(RuntimeError, storage_error_handler)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "first-timer-care-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "First-Timer Care API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import visitors

app.include_router(visitors.router, prefix="/api/v1", tags=["Visitors"])

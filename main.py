"""Main entry point for the operator console FastAPI application.

This module creates and configures the FastAPI app that exposes the
conversation engine to the UI shell and to the realtime collaborator.

To run the development server:
    uvicorn main:app --reload

To run in production:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import ValidationError

from api.dependencies import initialize_engine, shutdown_engine
from api.exceptions import (
    generic_exception_handler,
    invalid_transition_handler,
    not_found_handler,
    validation_exception_handler,
    value_error_handler,
)
from api.routes import contacts as contacts_routes
from api.routes import conversations as conversations_routes
from api.routes import disappearing as disappearing_routes
from api.routes import messages as messages_routes
from api.routes import realtime as realtime_routes
from conversations.config import get_settings
from conversations.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the engine for the lifetime of the app.

    Creates the shared coordinator at startup and stops its background
    loops at shutdown.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting console API")
    initialize_engine(settings)

    yield

    logger.info("Shutting down console API")
    shutdown_engine()


app = FastAPI(
    title="Conversation Console",
    description="Conversation and messaging engine for a WhatsApp-style operator console",
    version="0.1.0",
    lifespan=lifespan,
)

# Specific exceptions before general ones
app.add_exception_handler(NotFoundError, not_found_handler)
app.add_exception_handler(InvalidTransitionError, invalid_transition_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(contacts_routes.router)
app.include_router(conversations_routes.router)
app.include_router(messages_routes.router)
app.include_router(realtime_routes.router)
app.include_router(disappearing_routes.router)


@app.get("/")
async def root():
    """Root endpoint - returns a welcome message."""
    return {
        "message": "Welcome to the Conversation Console API",
        "version": "0.1.0",
        "docs_url": "/docs",
    }


@app.get("/health")
async def health_check():
    """Liveness probe for the console shell."""
    return {"status": "healthy"}

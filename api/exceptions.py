"""Exception handlers for the console FastAPI application.

This module converts engine exceptions into consistent JSON responses.
Engine errors are ordinary exceptions raised by the coordinator; the
handlers here are the only place they are mapped to HTTP status codes.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from conversations.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)


async def not_found_handler(request: Request, exc: NotFoundError):
    """Handle NotFoundError exceptions.

    Returns a 404 naming the kind of entity and the id that was requested.
    """
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "Not Found",
            "detail": exc.message,
            **exc.to_dict(),
        },
    )


async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    """Handle InvalidTransitionError exceptions.

    Returns a 409 (Conflict): the request is well-formed but conflicts with
    the message's current status.
    """
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "Invalid Status Transition",
            "detail": exc.message,
            **exc.to_dict(),
        },
    )


async def validation_exception_handler(request: Request, exc: ValidationError):
    """Map model validation failures inside the engine to a 422.

    Request bodies are validated by FastAPI itself; this covers entities
    built later, such as realtime payloads or reaction records.
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "detail": "The request data failed validation",
            "validation_errors": exc.errors(include_url=False, include_context=False),
        },
    )


async def value_error_handler(request: Request, exc: ValueError):
    """Map engine argument errors to a 400.

    Raised for input that is well-typed but unusable, such as an empty send
    or a reply target from another conversation.
    """
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid Value",
            "detail": str(exc),
            "type": "ValueError",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Last-resort handler for anything the engine did not anticipate.

    Logs the full traceback and returns a generic 500 so internals are never
    exposed to clients.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred",
            "type": type(exc).__name__,
        },
    )

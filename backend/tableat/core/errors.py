"""Error categories shared by the store, the services and the API.

Each exception carries the HTTP status the API layer answers with. Routes
let them propagate; ``register_exception_handlers`` turns them into the
``{"success": false, "error": ...}`` envelope.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TablEatError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class StoreUnavailableError(TablEatError):
    """The document store was never initialised or is unreachable."""

    status_code = 503

    def __init__(self, message: str = "Document store is not available"):
        super().__init__(message)


class NotFoundError(TablEatError):
    """A restaurant or record does not exist."""

    status_code = 404


class ValidationError(TablEatError):
    """Malformed user input, rejected before any write."""

    status_code = 422


class WriteFailedError(TablEatError):
    """The store refused or failed a write. Not retried."""

    status_code = 502


class MessagingError(TablEatError):
    """The outbound chat API could not deliver a message.

    Carries the ``fallback_url`` deep link the caller can open instead.
    """

    status_code = 502


def error_body(message: str, **details) -> dict:
    return {"success": False, "error": message, **details}


async def tableat_error_handler(request: Request, exc: TablEatError) -> JSONResponse:
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(log_level, f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, **exc.details))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TablEatError, tableat_error_handler)

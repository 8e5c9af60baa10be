import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("lockchime")


class StatsError(Exception):
    """Base class for stats subsystem failures."""


class InvalidEventError(StatsError):
    """The event is missing a sound id or names an unknown event type."""


class StorageError(StatsError):
    """The counter store could not be read or written."""


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidEventError)
    async def invalid_event_handler(request: Request, exc: InvalidEventError):
        logger.warning("event=stats_rejected path=%s reason=%s", request.url.path, exc)
        return JSONResponse({"error": "Invalid request"}, status_code=400)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("event=stats_rejected path=%s reason=malformed_body", request.url.path)
        return JSONResponse({"error": "Invalid request"}, status_code=400)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("event=storage_failure method=%s path=%s error=%s", request.method, request.url.path, exc)
        message = "Failed to record stat" if request.method == "POST" else "Failed to fetch stats"
        return JSONResponse({"error": message}, status_code=500)

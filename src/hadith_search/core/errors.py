"""
Error Taxonomy and Global Error Handling

This module defines the exception hierarchy shared by the ingestion and
query pipelines, and the FastAPI exception handlers that map them onto
HTTP responses.

Design Goals
------------
- Never leak internal exception details to clients
- Always return a deterministic ``{"error": <message>}`` payload
- Log full stack traces internally for debugging
- Keep the exceptions themselves framework-agnostic
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("hadith.errors")


# ---------------------------------------------------------------------
# Exception Hierarchy
# ---------------------------------------------------------------------

class HadithSearchError(RuntimeError):
    """Base class for all domain errors raised by this package."""


class InvalidArgument(HadithSearchError, ValueError):
    """Malformed caller input. Surfaced to the caller, never retried."""


class ProviderError(HadithSearchError):
    """The embedding provider failed (auth, rate limit, network, bad response)."""


class StoreError(HadithSearchError):
    """A read or write against the vector store or history log failed."""


class ParseError(HadithSearchError, ValueError):
    """A source row could not be parsed into a HadithRecord."""

    def __init__(self, line_no: int, message: str) -> None:
        super().__init__(f"line {line_no}: {message}")
        self.line_no = line_no


class RetrievalError(HadithSearchError):
    """A search request failed after validation; no partial results exist."""


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

def _error_response(status_code: int, message: str) -> JSONResponse:
    payload: Dict[str, Any] = {"error": message}
    return JSONResponse(status_code=status_code, content=payload)


async def invalid_argument_handler(
    request: Request,
    exc: InvalidArgument,
) -> JSONResponse:
    """
    Map caller input errors to a 400 with the validation message.
    """
    return _error_response(400, str(exc))


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Map body parsing failures (bad JSON, wrong shapes) to a 400.

    FastAPI answers these with a 422 and a detailed error list by default;
    clients of this API only ever see ``{"error": ...}``.
    """
    logger.info(
        "Rejected request body on %s %s: %s",
        request.method,
        request.url.path,
        exc.errors(),
    )
    return _error_response(400, "Invalid request body.")


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Render HTTPException (401 from auth, 404 from routing) as ``{"error": ...}``.
    """
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def retrieval_error_handler(
    request: Request,
    exc: RetrievalError,
) -> JSONResponse:
    """
    Map provider/store failures during a search to a generic 500.
    """
    logger.error(
        "Search failed during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )
    return _error_response(500, "Failed to fetch search results.")


async def store_error_handler(
    request: Request,
    exc: StoreError,
) -> JSONResponse:
    """
    Map store failures outside of a search (history reads and writes) to a 500.
    """
    logger.error(
        "Store failure during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )
    return _error_response(500, "Storage request failed.")


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    return _error_response(500, "Internal server error")

"""Ledger exceptions and their HTTP error responses."""

import logging
import uuid
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger failures."""

    code = "LEDGER_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Ledger operation failed"


class LedgerWriteError(LedgerError):
    """The store rejected or failed an append."""

    code = "LEDGER_WRITE_FAILED"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Ledger write failed"

    def __init__(self, organization_id: str, attempts: int, reason: str):
        super().__init__(
            f"append for organization {organization_id} failed after {attempts} attempt(s): {reason}"
        )
        self.organization_id = organization_id
        self.attempts = attempts
        self.reason = reason


class LedgerEventNotFound(LedgerError):
    """Requested event does not exist in the organization's ledger."""

    code = "EVENT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Ledger event not found"

    def __init__(self, organization_id: str, event_id: str):
        super().__init__(f"event {event_id} not found for organization {organization_id}")
        self.organization_id = organization_id
        self.event_id = event_id


def error_response(
    status_code: int,
    code: str,
    message: str,
    request_id: Optional[str],
    internal_message: Optional[str] = None,
) -> JSONResponse:
    """Build an error body; the internal message is logged, never returned."""
    error_id = str(uuid.uuid4())
    logger.error(
        f"{code}: {internal_message or message}",
        extra={"error_id": error_id, "request_id": request_id, "status_code": status_code},
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "message": message,
            "code": code,
            "error_id": error_id,
            "request_id": request_id,
        },
        headers={"X-Error-ID": error_id},
    )


def register_exception_handlers(app: FastAPI):
    """Attach ledger error handlers to the application."""

    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, exc: LedgerError):
        return error_response(
            exc.status_code,
            exc.code,
            exc.message,
            getattr(request.state, "correlation_id", None),
            internal_message=str(exc),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "Internal server error",
            getattr(request.state, "correlation_id", None),
            internal_message=repr(exc),
        )

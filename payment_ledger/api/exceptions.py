from __future__ import annotations

import logging
from datetime import UTC, datetime
from math import ceil
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import (
    AccountNotFoundError,
    AccountReferencedError,
    InsufficientFundsError,
    InvalidAccountError,
    InvalidTransferError,
    LockContentionError,
    TransferFailedError,
)
from ..models import ErrorResponse


logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict[str, str]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        status=status_code,
        timestamp=datetime.now(UTC),
        details=details,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        return _error_response(404, "Account Not Found", str(exc))

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return _error_response(
            422,
            "Insufficient Funds",
            str(exc),
            details={
                "accountId": exc.account_id,
                "availableBalance": str(exc.available),
                "requestedAmount": str(exc.requested),
            },
        )

    @app.exception_handler(InvalidTransferError)
    async def invalid_transfer_handler(
        request: Request, exc: InvalidTransferError
    ) -> JSONResponse:
        return _error_response(400, "Invalid Transfer Request", str(exc))

    @app.exception_handler(InvalidAccountError)
    async def invalid_account_handler(
        request: Request, exc: InvalidAccountError
    ) -> JSONResponse:
        return _error_response(400, "Invalid Account Request", str(exc))

    @app.exception_handler(AccountReferencedError)
    async def account_referenced_handler(
        request: Request, exc: AccountReferencedError
    ) -> JSONResponse:
        return _error_response(409, "Account Referenced", str(exc))

    @app.exception_handler(LockContentionError)
    async def lock_contention_handler(
        request: Request, exc: LockContentionError
    ) -> JSONResponse:
        return _error_response(
            409,
            "Lock Contention",
            str(exc),
            details={"accountId": exc.account_id},
            headers={"Retry-After": str(max(1, ceil(exc.timeout)))},
        )

    @app.exception_handler(TransferFailedError)
    async def transfer_failed_handler(
        request: Request, exc: TransferFailedError
    ) -> JSONResponse:
        return _error_response(
            500,
            "Transfer Failed",
            str(exc),
            details={"transactionId": exc.transaction_id, "status": "FAILED"},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = {
            ".".join(str(part) for part in error["loc"] if part != "body"): error["msg"]
            for error in exc.errors()
        }
        logger.info("request.invalid", extra={"path": request.url.path})
        return _error_response(400, "Validation Failed", "Invalid input parameters", details)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _error_response(400, "Invalid Argument", str(exc))

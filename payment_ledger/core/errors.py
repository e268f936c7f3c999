"""Typed errors raised by the ledger store and carried by transfer results.

Every class has a machine-readable ``code`` and keeps the values it was
built from as attributes, so callers branch on type and read fields instead
of parsing messages.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code: str = "LEDGER_ERROR"
    retryable: bool = False


class InvalidTransferError(LedgerError):
    """Malformed request, same-account transfer, bad amount or currency mismatch."""

    code = "INVALID_TRANSFER"


class InvalidAccountError(LedgerError):
    """Account creation arguments rejected (negative balance, bad currency)."""

    code = "INVALID_ACCOUNT"


class AccountNotFoundError(LedgerError):
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id}: Account not found")


class AccountReferencedError(LedgerError):
    """Account cannot be deleted while transfer records point at it."""

    code = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} cannot be deleted: referenced by transfer records"
        )


class InsufficientFundsError(LedgerError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, account_id: str, available: Decimal, requested: Decimal) -> None:
        self.account_id = account_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"available {available}, requested {requested}"
        )


class NegativeBalanceError(LedgerError):
    """A balance delta would have pushed the account below zero."""

    code = "NEGATIVE_BALANCE"

    def __init__(self, account_id: str, balance: Decimal, delta: Decimal) -> None:
        self.account_id = account_id
        self.balance = balance
        self.delta = delta
        super().__init__(
            f"Balance update would result in negative balance for account {account_id}"
        )


class LockContentionError(LedgerError):
    """Timed out waiting for an account lock. Safe to retry."""

    code = "LOCK_CONTENTION"
    retryable = True

    def __init__(self, account_id: str, timeout: float) -> None:
        self.account_id = account_id
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:g}s waiting for lock on account {account_id}"
        )


class TransferFailedError(LedgerError):
    """Unexpected failure after the PENDING record was written.

    The record named by ``transaction_id`` has already been finalized as
    FAILED when this error is produced. The underlying error is available
    as ``cause`` and as ``__cause__``.
    """

    code = "TRANSFER_FAILED"

    def __init__(self, transaction_id: str, cause: Optional[BaseException]) -> None:
        self.transaction_id = transaction_id
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"Transfer failed: {detail}")
        self.__cause__ = cause

"""Transfer engine: moves funds between two accounts.

Sequence for one transfer:

1. validate the request shape, before touching storage;
2. open a unit of work and lock both accounts, smaller id first, so two
   transfers running in opposite directions over the same pair cannot
   deadlock;
3. check currencies match and the source can cover the amount;
4. write a PENDING record;
5. debit the source, credit the destination;
6. finalize SUCCESS and commit everything together, or roll the scope back
   and write the record as FAILED through its own session, which commits
   independently of the aborted balance changes.

Every step reports failure as a value. ``transfer`` never raises for
business outcomes; it returns a ``TransferResult`` carrying either the
committed transfer or the typed error.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from sqlmodel import Session

from ..core.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidTransferError,
    LedgerError,
    LockContentionError,
    TransferFailedError,
)
from ..core.locks import AccountLockManager
from ..models import AccountModel, TransferRecordModel, TransferRequest, TransferStatus
from ..models.db import MAX_MONEY
from .ledger_store import LedgerStore
from .transaction_log import TransactionLog
from .unit_of_work import UnitOfWork


logger = logging.getLogger(__name__)

ACCOUNT_ID_PATTERN = re.compile(r"^[a-fA-F0-9\-]{36}$")
MAX_AMOUNT = MAX_MONEY


@dataclass(frozen=True)
class TransferResult:
    """Outcome of ``TransferEngine.transfer``.

    ``ok`` is True when the transfer committed; otherwise ``error`` holds one
    of InvalidTransferError, AccountNotFoundError, InsufficientFundsError,
    LockContentionError or TransferFailedError.
    """

    status: Optional[TransferStatus] = None
    transaction_id: Optional[str] = None
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    amount: Optional[Decimal] = None
    timestamp: Optional[datetime] = None
    error: Optional[LedgerError] = None

    @classmethod
    def success(cls, record: dict[str, Any]) -> "TransferResult":
        return cls(
            status=TransferStatus.SUCCESS,
            transaction_id=record["transaction_id"],
            from_account_id=record["from_account_id"],
            to_account_id=record["to_account_id"],
            amount=record["amount"],
            timestamp=record["transaction_date"],
        )

    @classmethod
    def failure(
        cls, error: LedgerError, transaction_id: Optional[str] = None
    ) -> "TransferResult":
        status = TransferStatus.FAILED if transaction_id is not None else None
        return cls(status=status, transaction_id=transaction_id, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> "TransferResult":
        """Return self on success, raise the carried error otherwise."""
        if self.error is not None:
            raise self.error
        return self


class TransferEngine:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        locks: AccountLockManager,
        lock_timeout: float = 5.0,
    ) -> None:
        self.session_factory = session_factory
        self.locks = locks
        self.lock_timeout = lock_timeout

    def transfer(self, request: TransferRequest) -> TransferResult:
        error = self._validate(request)
        if error is not None:
            return self._reject(request, error)

        logger.info(
            "transfer.started",
            extra={
                "from_account_id": request.from_account_id,
                "to_account_id": request.to_account_id,
                "amount": str(request.amount),
            },
        )
        amount = request.amount

        with UnitOfWork(self.session_factory, self.locks, self.lock_timeout) as uow:
            store = LedgerStore(uow.session, unit_of_work=uow)
            log = TransactionLog(uow.session)

            locked = self._lock_accounts(store, request.from_account_id, request.to_account_id)
            if isinstance(locked, LedgerError):
                return self._reject(request, locked)
            source, destination = locked

            error = self._check_rules(source, destination, amount)
            if error is not None:
                return self._reject(request, error)

            record = log.create(
                source.account_id, destination.account_id, amount, request.description
            )
            snapshot = record.model_dump()

            try:
                store.apply_delta(source.account_id, -amount)
                store.apply_delta(destination.account_id, amount)
                log.finalize(record, TransferStatus.SUCCESS)
                uow.commit()
            except Exception as exc:
                uow.rollback()
                self._record_failure(snapshot)
                logger.error(
                    "transfer.failed",
                    exc_info=exc,
                    extra={"transaction_id": snapshot["transaction_id"]},
                )
                failure = TransferFailedError(snapshot["transaction_id"], exc)
                return TransferResult.failure(failure, snapshot["transaction_id"])

        logger.info(
            "transfer.completed",
            extra={
                "transaction_id": snapshot["transaction_id"],
                "from_account_id": snapshot["from_account_id"],
                "to_account_id": snapshot["to_account_id"],
                "amount": str(amount),
            },
        )
        return TransferResult.success(snapshot)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _validate(self, request: Optional[TransferRequest]) -> Optional[InvalidTransferError]:
        if request is None:
            return InvalidTransferError("Transfer request cannot be null")

        from_id = request.from_account_id
        to_id = request.to_account_id
        if not from_id or not from_id.strip():
            return InvalidTransferError("Source account ID is required")
        if not to_id or not to_id.strip():
            return InvalidTransferError("Destination account ID is required")
        for account_id in (from_id, to_id):
            if not ACCOUNT_ID_PATTERN.match(account_id):
                return InvalidTransferError(f"Invalid account ID format: {account_id}")
        if from_id == to_id:
            return InvalidTransferError("Source and destination accounts must be different")

        amount = request.amount
        if amount is None:
            return InvalidTransferError("Transfer amount is required")
        if not amount.is_finite() or amount <= 0:
            return InvalidTransferError("Transfer amount must be greater than zero")
        if amount.normalize().as_tuple().exponent < -2:
            return InvalidTransferError("Transfer amount must have at most two decimal places")
        if amount > MAX_AMOUNT:
            return InvalidTransferError("Transfer amount exceeds the supported range")
        return None

    def _lock_accounts(
        self, store: LedgerStore, from_id: str, to_id: str
    ) -> Union[tuple[AccountModel, AccountModel], LedgerError]:
        locked: dict[str, AccountModel] = {}
        for account_id in sorted((from_id, to_id)):
            try:
                locked[account_id] = store.get_for_update(account_id)
            except (AccountNotFoundError, LockContentionError) as exc:
                return exc
        return locked[from_id], locked[to_id]

    def _check_rules(
        self, source: AccountModel, destination: AccountModel, amount: Decimal
    ) -> Optional[LedgerError]:
        if source.currency != destination.currency:
            return InvalidTransferError(
                f"Currency mismatch: {source.currency} vs {destination.currency}. "
                "Cross-currency transfers not supported."
            )
        if source.balance < amount:
            return InsufficientFundsError(source.account_id, source.balance, amount)
        return None

    def _record_failure(self, snapshot: dict[str, Any]) -> None:
        # Separate session: must survive the rollback of the balance scope.
        try:
            with self.session_factory() as session:
                TransactionLog(session).finalize(
                    TransferRecordModel(**snapshot), TransferStatus.FAILED
                )
                session.commit()
        except Exception:
            logger.exception(
                "transfer.failure_not_recorded",
                extra={"transaction_id": snapshot["transaction_id"]},
            )

    def _reject(self, request: Optional[TransferRequest], error: LedgerError) -> TransferResult:
        logger.warning(
            "transfer.rejected",
            extra={
                "code": error.code,
                "reason": str(error),
                "from_account_id": getattr(request, "from_account_id", None),
                "to_account_id": getattr(request, "to_account_id", None),
            },
        )
        return TransferResult.failure(error)

from __future__ import annotations

import logging
import math
from typing import Optional

from sqlmodel import Session

from ..core.locks import AccountLockManager
from ..models import (
    AccountCreate,
    AccountModel,
    AccountPage,
    AccountResponse,
    TransferRecordModel,
    TransferRecordResponse,
)
from .ledger_store import LedgerStore
from .transaction_log import TransactionLog


logger = logging.getLogger(__name__)

_SORT_ALIASES = {
    "accountId": "account_id",
    "balance": "balance",
    "currency": "currency",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


class AccountService:
    def __init__(
        self,
        session: Session,
        store: Optional[LedgerStore] = None,
        transactions: Optional[TransactionLog] = None,
        locks: Optional[AccountLockManager] = None,
        lock_timeout: float = 5.0,
    ) -> None:
        self.session = session
        self.store = store or LedgerStore(session)
        self.transactions = transactions or TransactionLog(session)
        self.locks = locks
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _account_to_response(self, account: AccountModel) -> AccountResponse:
        return AccountResponse(
            account_id=account.account_id,
            balance=account.balance,
            currency=account.currency,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    def _record_to_response(self, record: TransferRecordModel) -> TransferRecordResponse:
        return TransferRecordResponse(
            transaction_id=record.transaction_id,
            from_account_id=record.from_account_id,
            to_account_id=record.to_account_id,
            amount=record.amount,
            status=record.status,
            transaction_date=record.transaction_date,
            description=record.description,
            created_at=record.created_at,
        )

    def _parse_sort(self, sort: str) -> tuple[str, bool]:
        field, _, direction = sort.partition(",")
        column = _SORT_ALIASES.get(field.strip())
        if column is None:
            raise ValueError(f"Invalid sort property: {field.strip()}")
        direction = direction.strip().lower() or "asc"
        if direction not in ("asc", "desc"):
            raise ValueError(f"Invalid sort direction: {direction}")
        return column, direction == "desc"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def create_account(self, payload: AccountCreate) -> AccountResponse:
        account = self.store.create(payload.initial_balance, payload.currency)
        self.session.commit()
        self.session.refresh(account)
        logger.info(
            "account.created",
            extra={
                "account_id": account.account_id,
                "balance": str(account.balance),
                "currency": account.currency,
            },
        )
        return self._account_to_response(account)

    def get_account(self, account_id: str) -> AccountResponse:
        return self._account_to_response(self.store.get(account_id))

    def account_exists(self, account_id: str) -> bool:
        return self.store.exists(account_id)

    def list_accounts(
        self, page: int = 0, size: int = 20, sort: str = "createdAt,desc"
    ) -> AccountPage:
        sort_field, descending = self._parse_sort(sort)
        accounts, total = self.store.list_accounts(
            page=page, size=size, sort_field=sort_field, descending=descending
        )
        return AccountPage(
            content=[self._account_to_response(account) for account in accounts],
            page=page,
            size=size,
            total_elements=total,
            total_pages=math.ceil(total / size) if size else 0,
        )

    def list_transactions(
        self, account_id: str, limit: int = 20, offset: int = 0
    ) -> list[TransferRecordResponse]:
        self.store.get(account_id)
        records = self.transactions.list_for_account(account_id, limit=limit, offset=offset)
        return [self._record_to_response(record) for record in records]

    def delete_account(self, account_id: str) -> None:
        if self.locks is None:
            self._delete(account_id)
            return

        # Transfers take the same lock before recording against an account.
        self.locks.acquire(account_id, self.lock_timeout)
        try:
            self._delete(account_id)
        finally:
            self.locks.release(account_id)

    def _delete(self, account_id: str) -> None:
        try:
            self.store.delete(account_id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info("account.deleted", extra={"account_id": account_id})

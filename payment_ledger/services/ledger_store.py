from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..core.errors import (
    AccountNotFoundError,
    AccountReferencedError,
    InvalidAccountError,
    NegativeBalanceError,
)
from ..models import AccountModel, TransferRecordModel
from ..models.db import MAX_MONEY
from .unit_of_work import UnitOfWork


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
SORTABLE_FIELDS = {
    "account_id": AccountModel.account_id,
    "balance": AccountModel.balance,
    "currency": AccountModel.currency,
    "created_at": AccountModel.created_at,
    "updated_at": AccountModel.updated_at,
}


class LedgerStore:
    """Data access for account rows.

    Plain reads work on any session. ``get_for_update`` and ``apply_delta``
    need the store to be bound to a ``UnitOfWork``: the lock taken by the
    first is what makes the second legal, and both end with that scope.
    """

    def __init__(
        self,
        session: Session,
        unit_of_work: Optional[UnitOfWork] = None,
        default_currency: str = "USD",
    ) -> None:
        self.session = session
        self.unit_of_work = unit_of_work
        self.default_currency = default_currency

    # Reads --------------------------------------------------------------
    def get(self, account_id: str) -> AccountModel:
        account = self.session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def exists(self, account_id: str) -> bool:
        stmt = select(AccountModel.account_id).where(AccountModel.account_id == account_id)
        return self.session.exec(stmt).first() is not None

    def list_accounts(
        self,
        *,
        page: int = 0,
        size: int = 20,
        sort_field: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[AccountModel], int]:
        column = SORTABLE_FIELDS.get(sort_field)
        if column is None:
            raise ValueError(f"Cannot sort accounts by '{sort_field}'")
        order = column.desc() if descending else column.asc()
        stmt = (
            select(AccountModel)
            .order_by(order, AccountModel.account_id)
            .offset(page * size)
            .limit(size)
        )
        total = self.session.exec(select(func.count()).select_from(AccountModel)).one()
        return list(self.session.exec(stmt)), total

    # Locked access ------------------------------------------------------
    def get_for_update(self, account_id: str) -> AccountModel:
        if self.unit_of_work is None:
            raise RuntimeError("get_for_update needs a store bound to a unit of work")

        self.unit_of_work.lock(account_id)
        stmt = (
            select(AccountModel)
            .where(AccountModel.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        account = self.session.exec(stmt).first()
        if account is None:
            self.unit_of_work.unlock(account_id)
            raise AccountNotFoundError(account_id)
        return account

    def apply_delta(self, account_id: str, delta: Decimal) -> AccountModel:
        if self.unit_of_work is None or not self.unit_of_work.holds(account_id):
            raise RuntimeError(f"apply_delta on account {account_id} without holding its lock")

        account = self.get(account_id)
        new_balance = (account.balance + delta).quantize(CENT)
        if new_balance < 0:
            raise NegativeBalanceError(account_id, account.balance, delta)
        if new_balance > MAX_MONEY:
            raise ValueError(f"Balance of account {account_id} would exceed {MAX_MONEY}")

        account.balance = new_balance
        account.updated_at = datetime.now(UTC)
        self.session.add(account)
        self.session.flush()
        logger.debug(
            "account.balance_updated",
            extra={"account_id": account_id, "delta": str(delta), "balance": str(new_balance)},
        )
        return account

    # Lifecycle ----------------------------------------------------------
    def create(
        self,
        initial_balance: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ) -> AccountModel:
        if initial_balance is None:
            initial_balance = Decimal("0")
        if initial_balance < 0:
            raise InvalidAccountError("Initial balance cannot be negative")
        if initial_balance > MAX_MONEY:
            raise InvalidAccountError(f"Initial balance cannot exceed {MAX_MONEY}")
        if not currency:
            currency = self.default_currency
        if not CURRENCY_PATTERN.match(currency):
            raise InvalidAccountError(
                "Currency must be a 3-letter uppercase code (ISO 4217)"
            )

        account = AccountModel(balance=initial_balance.quantize(CENT), currency=currency)
        self.session.add(account)
        self.session.flush()
        self.session.refresh(account)
        return account

    def delete(self, account_id: str) -> None:
        """Delete an account no transfer record refers to.

        Callers should hold the account lock so no transfer can record
        against it meanwhile. A reference that still slips in is caught by
        the foreign key and reported the same way.
        """
        account = self.get(account_id)
        if self.is_referenced(account_id):
            raise AccountReferencedError(account_id)
        self.session.delete(account)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise AccountReferencedError(account_id) from exc

    def is_referenced(self, account_id: str) -> bool:
        stmt = (
            select(TransferRecordModel.transaction_id)
            .where(
                or_(
                    TransferRecordModel.from_account_id == account_id,
                    TransferRecordModel.to_account_id == account_id,
                )
            )
            .limit(1)
        )
        return self.session.exec(stmt).first() is not None

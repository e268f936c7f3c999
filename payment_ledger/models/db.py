from __future__ import annotations
from datetime import datetime, UTC
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4
from sqlalchemy import BigInteger, CheckConstraint, Column, ForeignKey, String
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

# Largest amount a signed 64-bit count of cents can hold.
MAX_MONEY = Decimal(2**63 - 1).scaleb(-2)


class Money(TypeDecorator):
    """Two-decimal amount stored as an integer number of cents.

    Keeps values exact on backends without a native decimal type (SQLite
    would otherwise store them as REAL).
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = Decimal(str(value))
        if abs(amount) > MAX_MONEY:
            raise ValueError(f"{amount} exceeds the storable range")
        if amount != amount.quantize(Decimal("0.01")):
            raise ValueError(f"{amount} has more than two fractional digits")
        return int(amount.scaleb(2))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-2)


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TransferStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="chk_balance_non_negative"),
    )

    account_id: str = Field(default_factory=_new_id, primary_key=True, max_length=36)
    balance: Decimal = Field(
        default=Decimal("0.00"), sa_column=Column(Money, nullable=False)
    )
    currency: str = Field(default="USD", min_length=3, max_length=3)
    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)


class TransferRecord(SQLModel, table=True):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_amount_positive"),
        CheckConstraint("from_account_id != to_account_id", name="chk_different_accounts"),
    )

    transaction_id: str = Field(default_factory=_new_id, primary_key=True, max_length=36)
    from_account_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("accounts.account_id", ondelete="RESTRICT", onupdate="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    to_account_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("accounts.account_id", ondelete="RESTRICT", onupdate="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    amount: Decimal = Field(sa_column=Column(Money, nullable=False))
    status: TransferStatus = Field(default=TransferStatus.PENDING, index=True)
    transaction_date: datetime = Field(default_factory=_utcnow, index=True)
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=_utcnow)

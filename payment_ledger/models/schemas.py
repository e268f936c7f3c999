from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .db import MAX_MONEY, TransferStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AccountCreate(CamelModel):
    initial_balance: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=MAX_MONEY,
        max_digits=19,
        decimal_places=2,
        description="Initial balance for the account (must be >= 0, defaults to 0.00)",
    )
    currency: Optional[str] = Field(
        default=None,
        pattern=r"^([A-Z]{3})?$",
        description="ISO 4217 currency code, defaults to USD",
    )


class AccountResponse(CamelModel):
    account_id: str
    balance: Decimal = Field(..., ge=0, description="Balance with two fractional digits")
    currency: str
    created_at: datetime
    updated_at: datetime


class AccountPage(CamelModel):
    content: list[AccountResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int


class AccountExistsResponse(CamelModel):
    exists: bool


class TransferRequest(CamelModel):
    """Fund transfer input.

    Fields are deliberately loose: shape rules (id format, positive amount,
    distinct accounts) are enforced by the transfer engine so that direct
    callers and HTTP callers get the same InvalidTransfer outcome.
    """

    from_account_id: Optional[str] = Field(
        default=None, examples=["550e8400-e29b-41d4-a716-446655440000"]
    )
    to_account_id: Optional[str] = Field(
        default=None, examples=["660e8400-e29b-41d4-a716-446655440001"]
    )
    amount: Optional[Decimal] = Field(default=None, examples=["250.75"])
    description: Optional[str] = Field(default=None, max_length=500)


class TransferResponse(CamelModel):
    transaction_id: str
    status: TransferStatus
    message: str
    timestamp: datetime
    from_account_id: str
    to_account_id: str
    amount: Decimal


class TransferRecordResponse(CamelModel):
    transaction_id: str
    from_account_id: str
    to_account_id: str
    amount: Decimal
    status: TransferStatus
    transaction_date: datetime
    description: Optional[str] = None
    created_at: datetime


class ErrorResponse(CamelModel):
    error: str
    message: str
    status: int
    timestamp: datetime
    details: Optional[dict[str, str]] = None

from .db import Account as AccountModel
from .db import TransferRecord as TransferRecordModel
from .db import TransferStatus
from .schemas import (
    AccountCreate,
    AccountExistsResponse,
    AccountPage,
    AccountResponse,
    ErrorResponse,
    TransferRecordResponse,
    TransferRequest,
    TransferResponse,
)

__all__ = [
    "AccountCreate",
    "AccountExistsResponse",
    "AccountPage",
    "AccountResponse",
    "ErrorResponse",
    "TransferRecordResponse",
    "TransferRequest",
    "TransferResponse",
    "TransferStatus",
    "AccountModel",
    "TransferRecordModel",
]

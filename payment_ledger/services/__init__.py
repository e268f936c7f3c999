from .accounts import AccountService
from .ledger_store import LedgerStore
from .transaction_log import TransactionLog
from .transfer_engine import TransferEngine, TransferResult
from .unit_of_work import UnitOfWork

__all__ = [
    "AccountService",
    "LedgerStore",
    "TransactionLog",
    "TransferEngine",
    "TransferResult",
    "UnitOfWork",
]

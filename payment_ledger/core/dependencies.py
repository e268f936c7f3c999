from functools import lru_cache

from fastapi import Depends
from sqlmodel import Session

from ..services import AccountService, LedgerStore, TransferEngine
from .config import get_settings
from .db import get_session, new_session
from .locks import AccountLockManager


@lru_cache(maxsize=1)
def get_lock_manager() -> AccountLockManager:
    return AccountLockManager()


def get_account_service(session: Session = Depends(get_session)) -> AccountService:
    settings = get_settings()
    store = LedgerStore(session, default_currency=settings.default_currency)
    return AccountService(
        session,
        store,
        locks=get_lock_manager(),
        lock_timeout=settings.lock_timeout_seconds,
    )


def get_transfer_engine() -> TransferEngine:
    return TransferEngine(
        new_session,
        get_lock_manager(),
        lock_timeout=get_settings().lock_timeout_seconds,
    )

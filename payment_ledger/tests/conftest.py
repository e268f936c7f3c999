from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core import db
from ..core.db import create_engine_for_url, get_session, set_engine
from ..core.locks import AccountLockManager
from ..main import app
from ..models import TransferRecordModel
from ..services import LedgerStore, TransactionLog, TransferEngine


@pytest.fixture
def engine(tmp_path):
    test_engine = create_engine_for_url(f"sqlite:///{tmp_path / 'test.db'}")
    original_engine = db.engine
    set_engine(test_engine)
    SQLModel.metadata.create_all(test_engine)

    yield test_engine

    set_engine(original_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    def _factory() -> Session:
        return Session(engine)

    return _factory


@pytest.fixture
def lock_manager() -> AccountLockManager:
    return AccountLockManager()


@pytest.fixture
def transfer_engine(session_factory, lock_manager) -> TransferEngine:
    return TransferEngine(session_factory, lock_manager, lock_timeout=10.0)


@pytest.fixture
def create_account(session_factory):
    def _create(balance: str = "0.00", currency: str = "USD") -> str:
        with session_factory() as session:
            account = LedgerStore(session).create(Decimal(balance), currency)
            session.commit()
            return account.account_id

    return _create


@pytest.fixture
def balance_of(session_factory):
    def _balance(account_id: str) -> Decimal:
        with session_factory() as session:
            return LedgerStore(session).get(account_id).balance

    return _balance


@pytest.fixture
def records_for(session_factory):
    def _records(account_id: str) -> list[TransferRecordModel]:
        with session_factory() as session:
            return TransactionLog(session).list_for_account(account_id, limit=1000)

    return _records


@pytest.fixture
def client(engine) -> TestClient:
    def _get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session_override

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

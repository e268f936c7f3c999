from decimal import Decimal

import pytest

from ..models import TransferRecordModel, TransferStatus
from ..services import TransactionLog


def test_create_writes_pending_record(session_factory, create_account) -> None:
    source = create_account("10.00")
    dest = create_account()

    with session_factory() as session:
        record = TransactionLog(session).create(source, dest, Decimal("4.00"), "rent")
        session.commit()
        transaction_id = record.transaction_id

    with session_factory() as session:
        stored = TransactionLog(session).get(transaction_id)
        assert stored is not None
        assert stored.status == TransferStatus.PENDING
        assert stored.amount == Decimal("4.00")
        assert stored.description == "rent"
        assert stored.from_account_id == source
        assert stored.to_account_id == dest
        assert stored.transaction_date is not None


def test_each_create_gets_a_fresh_identifier(session_factory, create_account) -> None:
    source = create_account("10.00")
    dest = create_account()

    with session_factory() as session:
        log = TransactionLog(session)
        first = log.create(source, dest, Decimal("1.00"))
        second = log.create(source, dest, Decimal("1.00"))

        assert first.transaction_id != second.transaction_id


def test_finalize_success_in_same_session(session_factory, create_account) -> None:
    source = create_account("10.00")
    dest = create_account()

    with session_factory() as session:
        log = TransactionLog(session)
        record = log.create(source, dest, Decimal("1.00"))
        finalized = log.finalize(record, TransferStatus.SUCCESS)
        session.commit()

        assert finalized is record
        assert log.count_by_status(TransferStatus.SUCCESS) == 1
        assert log.count_by_status(TransferStatus.PENDING) == 0


def test_finalize_rejects_non_terminal_status(session_factory, create_account) -> None:
    source = create_account("10.00")
    dest = create_account()

    with session_factory() as session:
        log = TransactionLog(session)
        record = log.create(source, dest, Decimal("1.00"))
        with pytest.raises(ValueError):
            log.finalize(record, TransferStatus.PENDING)


def test_finalize_detached_copy_persists_it(session_factory, create_account) -> None:
    source = create_account("10.00")
    dest = create_account()

    with session_factory() as session:
        record = TransactionLog(session).create(source, dest, Decimal("2.00"))
        snapshot = record.model_dump()
        session.rollback()

    with session_factory() as session:
        TransactionLog(session).finalize(TransferRecordModel(**snapshot), TransferStatus.FAILED)
        session.commit()

    with session_factory() as session:
        stored = TransactionLog(session).get(snapshot["transaction_id"])
        assert stored is not None
        assert stored.status == TransferStatus.FAILED
        assert stored.amount == Decimal("2.00")


def test_list_for_account_covers_both_directions(
    session_factory, create_account, records_for
) -> None:
    a = create_account("10.00")
    b = create_account("10.00")
    c = create_account("10.00")

    with session_factory() as session:
        log = TransactionLog(session)
        log.create(a, b, Decimal("1.00"))
        log.create(b, c, Decimal("2.00"))
        log.create(c, a, Decimal("3.00"))
        session.commit()

    assert sorted(r.amount for r in records_for(a)) == [Decimal("1.00"), Decimal("3.00")]
    assert sorted(r.amount for r in records_for(b)) == [Decimal("1.00"), Decimal("2.00")]

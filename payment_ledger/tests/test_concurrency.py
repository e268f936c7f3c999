import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from sqlalchemy import func
from sqlmodel import select

from ..models import AccountModel, TransferRequest, TransferStatus
from ..services import TransactionLog


def _request(source: str, dest: str, amount: str) -> TransferRequest:
    return TransferRequest(from_account_id=source, to_account_id=dest, amount=Decimal(amount))


def test_reciprocal_transfers_do_not_deadlock(
    transfer_engine, create_account, balance_of
) -> None:
    a = create_account("1000.00")
    b = create_account("1000.00")
    requests = [_request(a, b, "10.00"), _request(b, a, "10.00")] * 20

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(transfer_engine.transfer, requests, timeout=60))

    assert all(result.ok for result in results)
    assert balance_of(a) == Decimal("1000.00")
    assert balance_of(b) == Decimal("1000.00")


def test_contended_source_never_goes_negative(
    transfer_engine, session_factory, create_account, balance_of
) -> None:
    source = create_account("100.00")
    sinks = [create_account() for _ in range(4)]
    requests = [_request(source, sinks[i % 4], "15.00") for i in range(12)]

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(transfer_engine.transfer, requests, timeout=60))

    succeeded = [r for r in results if r.ok]
    assert len(succeeded) == 6
    assert balance_of(source) == Decimal("10.00")
    assert sum(balance_of(sink) for sink in sinks) == Decimal("90.00")

    with session_factory() as session:
        log = TransactionLog(session)
        assert log.count_by_status(TransferStatus.SUCCESS) == 6
        assert log.count_by_status(TransferStatus.PENDING) == 0


def test_disjoint_pairs_complete_independently(
    transfer_engine, lock_manager, create_account, balance_of
) -> None:
    pairs = [(create_account("50.00"), create_account("50.00")) for _ in range(4)]
    # Holding a lock on an unrelated account must not stall any of the pairs.
    bystander = create_account("1.00")
    lock_manager.acquire(bystander, timeout=1)
    try:
        requests = [_request(src, dst, "5.00") for src, dst in pairs for _ in range(5)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(transfer_engine.transfer, requests, timeout=60))
    finally:
        lock_manager.release(bystander)

    assert all(result.ok for result in results)
    for src, dst in pairs:
        assert balance_of(src) == Decimal("25.00")
        assert balance_of(dst) == Decimal("75.00")


def test_readers_never_see_half_applied_transfer(
    transfer_engine, session_factory, create_account
) -> None:
    a = create_account("500.00")
    b = create_account("500.00")
    expected = Decimal("1000.00")
    observed: list[Decimal] = []
    done = threading.Event()

    def read_totals() -> None:
        stmt = select(func.sum(AccountModel.balance)).where(
            AccountModel.account_id.in_([a, b])
        )
        while not done.is_set():
            with session_factory() as session:
                observed.append(Decimal(str(session.exec(stmt).one())).quantize(Decimal("0.01")))

    reader = threading.Thread(target=read_totals)
    reader.start()
    try:
        requests = [_request(a, b, "7.25"), _request(b, a, "3.50")] * 15
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(transfer_engine.transfer, requests, timeout=60))
    finally:
        done.set()
        reader.join(timeout=10)

    assert all(result.ok for result in results)
    assert observed
    assert set(observed) == {expected}

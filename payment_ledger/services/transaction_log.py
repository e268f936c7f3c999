from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from ..models import TransferRecordModel, TransferStatus


logger = logging.getLogger(__name__)


class TransactionLog:
    """Append-only store of transfer attempts."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        description: Optional[str] = None,
    ) -> TransferRecordModel:
        now = datetime.now(UTC)
        record = TransferRecordModel(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            status=TransferStatus.PENDING,
            description=description,
            transaction_date=now,
            created_at=now,
        )
        self.session.add(record)
        self.session.flush()
        logger.debug(
            "transfer_record.created",
            extra={"transaction_id": record.transaction_id},
        )
        return record

    def finalize(
        self, record: TransferRecordModel, status: TransferStatus
    ) -> TransferRecordModel:
        """Move ``record`` to a terminal status.

        The record may belong to this log's session or be a detached copy
        (for instance one whose original insert was rolled back); it is
        merged by primary key either way. The engine calls this exactly once
        per record.
        """
        status = TransferStatus(status)
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal transfer status")

        record.status = status
        persisted = self.session.merge(record)
        self.session.flush()
        logger.debug(
            "transfer_record.finalized",
            extra={"transaction_id": persisted.transaction_id, "status": status.value},
        )
        return persisted

    def get(self, transaction_id: str) -> Optional[TransferRecordModel]:
        return self.session.get(TransferRecordModel, transaction_id)

    def list_for_account(
        self, account_id: str, limit: int = 20, offset: int = 0
    ) -> list[TransferRecordModel]:
        stmt = (
            select(TransferRecordModel)
            .where(
                or_(
                    TransferRecordModel.from_account_id == account_id,
                    TransferRecordModel.to_account_id == account_id,
                )
            )
            .order_by(TransferRecordModel.transaction_date.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(stmt))

    def count_by_status(self, status: TransferStatus) -> int:
        stmt = (
            select(func.count())
            .select_from(TransferRecordModel)
            .where(TransferRecordModel.status == status)
        )
        return self.session.exec(stmt).one()

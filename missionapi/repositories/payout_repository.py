from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from missionapi.models.payout import (
    PENDING_PAYOUT_STATUSES,
    PayoutRequest,
    PayoutStatus,
)
from missionapi.repositories.base import BaseRepository
from missionapi.schemas.payout import PayoutResponse


class PayoutRepository(BaseRepository[PayoutRequest, PayoutResponse]):
    """출금 요청 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(PayoutRequest, PayoutResponse, db)

    def create(self, rewarder_id: int, amount_krw: int) -> PayoutRequest:
        return self.add(
            PayoutRequest(
                rewarder_id=rewarder_id,
                amount_krw=amount_krw,
                status=PayoutStatus.REQUESTED,
            )
        )

    def lock_pending_for_rewarder(self, rewarder_id: int) -> List[PayoutRequest]:
        """회원의 미정산 요청 행을 잠금 (SELECT ... FOR UPDATE)

        같은 회원에 대한 승인 트랜잭션들이 잔액 재검사를 순서대로 수행하게 된다.
        """
        return list(
            self.db.scalars(
                select(PayoutRequest)
                .where(
                    PayoutRequest.rewarder_id == rewarder_id,
                    PayoutRequest.status.in_(PENDING_PAYOUT_STATUSES),
                )
                .order_by(PayoutRequest.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).all()
        )

    def sum_pending(self, rewarder_id: int, exclude_id: Optional[int] = None) -> int:
        """REQUESTED/APPROVED 요청 금액 합계 (exclude_id 는 제외)"""
        stmt = select(func.coalesce(func.sum(PayoutRequest.amount_krw), 0)).where(
            PayoutRequest.rewarder_id == rewarder_id,
            PayoutRequest.status.in_(PENDING_PAYOUT_STATUSES),
        )
        if exclude_id is not None:
            stmt = stmt.where(PayoutRequest.id != exclude_id)
        return int(self.db.scalar(stmt) or 0)

    def transition(
        self,
        payout_id: int,
        from_statuses: Iterable[PayoutStatus],
        to_status: PayoutStatus,
        decided_at: Optional[datetime] = None,
        failure_reason: Optional[str] = None,
    ) -> bool:
        values: Dict[str, Any] = {"status": to_status}
        if decided_at is not None:
            values["decided_at"] = decided_at
        if failure_reason is not None:
            values["failure_reason"] = failure_reason
        affected = self._conditional_update(
            [
                PayoutRequest.id == payout_id,
                PayoutRequest.status.in_(list(from_statuses)),
            ],
            values,
        )
        return affected == 1

    def list_for_rewarder(
        self, rewarder_id: int, limit: int = 20, offset: int = 0
    ) -> Tuple[List[PayoutResponse], int]:
        total_count = self.count({"rewarder_id": rewarder_id})
        rows = self.db.scalars(
            select(PayoutRequest)
            .where(PayoutRequest.rewarder_id == rewarder_id)
            .order_by(desc(PayoutRequest.id))
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        ).all()
        return self.to_schemas(rows), total_count

    def list_by_status(
        self, status: Optional[PayoutStatus] = None, limit: int = 20, offset: int = 0
    ) -> Tuple[List[PayoutResponse], int]:
        filters = {"status": status} if status is not None else None
        total_count = self.count(filters)
        stmt = select(PayoutRequest)
        if status is not None:
            stmt = stmt.where(PayoutRequest.status == status)
        rows = self.db.scalars(
            stmt.order_by(PayoutRequest.id)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        ).all()
        return self.to_schemas(rows), total_count

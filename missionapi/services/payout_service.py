import logging
from typing import Optional

from sqlalchemy.orm import Session

from missionapi.config import Settings
from missionapi.core.exceptions import (
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from missionapi.database.session import atomic
from missionapi.models.ledger import CreditReason, LedgerKind
from missionapi.models.payout import PENDING_PAYOUT_STATUSES, PayoutStatus
from missionapi.repositories.audit_repository import AuditRepository
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.repositories.payout_repository import PayoutRepository
from missionapi.schemas.pagination import PaginationLimits
from missionapi.schemas.payout import (
    PayoutCreateRequest,
    PayoutDecisionResult,
    PayoutListResponse,
    PayoutResponse,
)
from missionapi.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

INSUFFICIENT_BALANCE_AT_APPROVAL = "Insufficient balance at approval time"


class PayoutService:
    """
    출금 요청/승인 서비스

    승인 시점에 같은 트랜잭션 안에서 가용 잔액을 다시 계산한 뒤 차감합니다.
    잔액 부족은 예외가 아니라 REJECTED 상태와 사유로 기록됩니다.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.payout_repo = PayoutRepository(db)
        self.credit_repo = LedgerRepository(db, LedgerKind.CREDIT)
        self.audit_repo = AuditRepository(db)

    def _available_balance(self, rewarder_id: int, exclude_payout_id: Optional[int] = None) -> int:
        balance = self.credit_repo.get_balance(rewarder_id)
        pending = self.payout_repo.sum_pending(rewarder_id, exclude_id=exclude_payout_id)
        return balance - pending

    def _get_or_raise(self, payout_id: int):
        payout = self.payout_repo.get_model(payout_id, refresh=True)
        if payout is None:
            raise NotFoundError(f"Payout request {payout_id} not found")
        return payout

    def request_payout(self, rewarder_id: int, request: PayoutCreateRequest) -> PayoutResponse:
        """출금 요청 생성

        Raises:
            ValidationError: 최소/최대 금액 위반
            InsufficientBalanceError: 가용 잔액 부족 (요청 행은 만들지 않음)
        """
        amount = request.amount_krw
        if amount < self.settings.MIN_PAYOUT_KRW:
            raise ValidationError(
                f"Minimum payout amount is {self.settings.MIN_PAYOUT_KRW} KRW",
                details={"min_krw": self.settings.MIN_PAYOUT_KRW},
            )
        if amount > self.settings.MAX_PAYOUT_KRW:
            raise ValidationError(
                f"Maximum payout amount is {self.settings.MAX_PAYOUT_KRW} KRW",
                details={"max_krw": self.settings.MAX_PAYOUT_KRW},
            )

        with atomic(self.db):
            self.payout_repo.lock_pending_for_rewarder(rewarder_id)
            available = self._available_balance(rewarder_id)
            if available < amount:
                raise InsufficientBalanceError(
                    "Insufficient available balance",
                    details={"available_krw": available, "requested_krw": amount},
                )

            payout = self.payout_repo.create(rewarder_id, amount)
            self.audit_repo.record(
                action="MEMBER_REQUEST_PAYOUT",
                actor_id=rewarder_id,
                target_type="PayoutRequest",
                target_id=payout.id,
                payload={"amount_krw": amount},
            )

        logger.info(f"Payout requested: id={payout.id} rewarder={rewarder_id} amount={amount}")
        return self.payout_repo.to_schema(payout)

    def hold_payout(self, payout_id: int, actor_id: Optional[int] = None) -> PayoutResponse:
        """REQUESTED -> APPROVED (지급 보류)"""
        with atomic(self.db):
            payout = self._get_or_raise(payout_id)
            moved = self.payout_repo.transition(
                payout_id, [PayoutStatus.REQUESTED], PayoutStatus.APPROVED
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": payout.status.value}
                )
            self.audit_repo.record(
                action="ADMIN_HOLD_PAYOUT",
                actor_id=actor_id,
                target_type="PayoutRequest",
                target_id=payout_id,
            )
            payout = self._get_or_raise(payout_id)

        logger.info(f"Payout held: id={payout_id}")
        return self.payout_repo.to_schema(payout)

    def approve_payout(self, payout_id: int, actor_id: Optional[int] = None) -> PayoutDecisionResult:
        """
        출금 승인 - 결과는 PAID 또는 REJECTED

        1. 회원의 미정산 요청 행 잠금 후 요청을 다시 읽음
        2. REQUESTED/APPROVED 가 아니면 InvalidStateError
        3. (PAYOUT, payout_id) 원장 항목이 이미 있으면 PAID 로 맞추고 종료
        4. 자신을 제외한 가용 잔액 < 요청 금액 이면 REJECTED
        5. 아니면 -amount 기록 후 PAID
        """
        now = utcnow()
        with atomic(self.db):
            payout = self._get_or_raise(payout_id)
            self.payout_repo.lock_pending_for_rewarder(payout.rewarder_id)
            payout = self._get_or_raise(payout_id)

            if payout.status not in PENDING_PAYOUT_STATUSES:
                raise InvalidStateError(
                    "Invalid status", details={"status": payout.status.value}
                )

            ref_id = str(payout.id)
            existing = self.credit_repo.get_entry(CreditReason.PAYOUT, ref_id)
            if existing is not None:
                self.payout_repo.transition(
                    payout.id, PENDING_PAYOUT_STATUSES, PayoutStatus.PAID, decided_at=now
                )
                payout = self._get_or_raise(payout_id)
                logger.info(f"Payout approve replayed: id={payout_id} entry={existing.id}")
                return PayoutDecisionResult(
                    payout=self.payout_repo.to_schema(payout),
                    ledger_entry_id=existing.id,
                    idempotent_replay=True,
                    message="Payout already debited",
                )

            available = self._available_balance(payout.rewarder_id, exclude_payout_id=payout.id)
            if available < payout.amount_krw:
                self.payout_repo.transition(
                    payout.id,
                    PENDING_PAYOUT_STATUSES,
                    PayoutStatus.REJECTED,
                    decided_at=now,
                    failure_reason=INSUFFICIENT_BALANCE_AT_APPROVAL,
                )
                self.audit_repo.record(
                    action="ADMIN_REJECT_PAYOUT_INSUFFICIENT_BALANCE",
                    actor_id=actor_id,
                    target_type="PayoutRequest",
                    target_id=payout.id,
                    payload={
                        "available_krw": available,
                        "amount_krw": payout.amount_krw,
                    },
                )
                payout = self._get_or_raise(payout_id)
                logger.warning(
                    f"Payout rejected at approval: id={payout_id} "
                    f"available={available} amount={payout.amount_krw}"
                )
                return PayoutDecisionResult(
                    payout=self.payout_repo.to_schema(payout),
                    message=INSUFFICIENT_BALANCE_AT_APPROVAL,
                )

            appended = self.credit_repo.append(
                owner_id=payout.rewarder_id,
                amount_krw=-payout.amount_krw,
                reason=CreditReason.PAYOUT,
                ref_id=ref_id,
            )
            self.payout_repo.transition(
                payout.id, PENDING_PAYOUT_STATUSES, PayoutStatus.PAID, decided_at=now
            )
            self.audit_repo.record(
                action="ADMIN_APPROVE_PAYOUT",
                actor_id=actor_id,
                target_type="PayoutRequest",
                target_id=payout.id,
                payload={"amount_krw": payout.amount_krw, "ledger_entry_id": appended.entry.id},
            )
            payout = self._get_or_raise(payout_id)

        logger.info(f"Payout paid: id={payout_id} amount={payout.amount_krw}")
        return PayoutDecisionResult(
            payout=self.payout_repo.to_schema(payout),
            ledger_entry_id=appended.entry.id,
            message="Payout paid",
        )

    def reject_payout(
        self, payout_id: int, reason: str, actor_id: Optional[int] = None
    ) -> PayoutDecisionResult:
        """REQUESTED/APPROVED -> REJECTED (관리자 반려)"""
        with atomic(self.db):
            payout = self._get_or_raise(payout_id)
            moved = self.payout_repo.transition(
                payout_id,
                PENDING_PAYOUT_STATUSES,
                PayoutStatus.REJECTED,
                decided_at=utcnow(),
                failure_reason=reason,
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": payout.status.value}
                )
            self.audit_repo.record(
                action="ADMIN_REJECT_PAYOUT",
                actor_id=actor_id,
                target_type="PayoutRequest",
                target_id=payout_id,
                payload={"reason": reason},
            )
            payout = self._get_or_raise(payout_id)

        logger.info(f"Payout rejected: id={payout_id} reason={reason}")
        return PayoutDecisionResult(
            payout=self.payout_repo.to_schema(payout), message=reason
        )

    def list_my_payouts(self, rewarder_id: int, limit: int = 20, offset: int = 0) -> PayoutListResponse:
        limit = min(limit, PaginationLimits.PAYOUTS["max"])
        payouts, total_count = self.payout_repo.list_for_rewarder(rewarder_id, limit, offset)
        return PayoutListResponse(
            payouts=payouts,
            total_count=total_count,
            has_next=(offset + limit) < total_count,
        )

    def list_payouts(
        self, status: Optional[PayoutStatus] = None, limit: int = 20, offset: int = 0
    ) -> PayoutListResponse:
        limit = min(limit, PaginationLimits.PAYOUTS["max"])
        payouts, total_count = self.payout_repo.list_by_status(status, limit, offset)
        return PayoutListResponse(
            payouts=payouts,
            total_count=total_count,
            has_next=(offset + limit) < total_count,
        )

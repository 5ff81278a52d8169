import logging
from typing import Optional

from sqlalchemy.orm import Session

from missionapi.core.exceptions import ValidationError
from missionapi.database.session import atomic
from missionapi.models.ledger import BudgetReason, CreditReason, LedgerKind
from missionapi.repositories.audit_repository import AuditRepository
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.repositories.payout_repository import PayoutRepository
from missionapi.schemas.ledger import (
    AdminAdjustmentRequest,
    AppendResult,
    BalanceResponse,
    LedgerHistoryResponse,
    LedgerIntegrityResponse,
)
from missionapi.schemas.pagination import PaginationLimits
from missionapi.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class LedgerService:
    """잔액 조회, 원장 내역, 관리자 조정, 정합성 검증"""

    def __init__(self, db: Session):
        self.db = db
        self.budget_repo = LedgerRepository(db, LedgerKind.BUDGET)
        self.credit_repo = LedgerRepository(db, LedgerKind.CREDIT)
        self.payout_repo = PayoutRepository(db)
        self.audit_repo = AuditRepository(db)

    def _repo(self, kind: LedgerKind) -> LedgerRepository:
        return self.budget_repo if kind == LedgerKind.BUDGET else self.credit_repo

    def get_available_balance(
        self, rewarder_id: int, exclude_payout_id: Optional[int] = None
    ) -> int:
        """출금 가능 잔액 = 적립금 잔액 - 미정산 지급 요청 합계

        exclude_payout_id: 승인 중인 요청 자신의 예약분은 제외
        """
        balance = self.credit_repo.get_balance(rewarder_id)
        pending = self.payout_repo.sum_pending(rewarder_id, exclude_id=exclude_payout_id)
        return balance - pending

    def get_advertiser_balance(self, advertiser_id: int) -> BalanceResponse:
        balance = self.budget_repo.get_balance(advertiser_id)
        return BalanceResponse(
            owner_id=advertiser_id,
            balance_krw=balance,
            pending_krw=0,
            available_krw=balance,
        )

    def get_member_balance(self, rewarder_id: int) -> BalanceResponse:
        balance = self.credit_repo.get_balance(rewarder_id)
        pending = self.payout_repo.sum_pending(rewarder_id)
        return BalanceResponse(
            owner_id=rewarder_id,
            balance_krw=balance,
            pending_krw=pending,
            available_krw=balance - pending,
        )

    def get_history(
        self, kind: LedgerKind, owner_id: int, limit: int = 50, offset: int = 0
    ) -> LedgerHistoryResponse:
        """원장 내역 조회 (최신순)

        Args:
            kind: BUDGET(광고주) / CREDIT(회원)
            owner_id: 소유자 프로필 ID
            limit: 페이지 크기 (최대 100)
            offset: 오프셋
        """
        limit = min(limit, PaginationLimits.LEDGER_HISTORY["max"])
        repo = self._repo(kind)
        entries, total_count = repo.get_history(owner_id, limit=limit, offset=offset)
        return LedgerHistoryResponse(
            balance_krw=repo.get_balance(owner_id),
            entries=entries,
            total_count=total_count,
            has_next=(offset + limit) < total_count,
        )

    def adjust(
        self, kind: LedgerKind, request: AdminAdjustmentRequest, actor_id: int
    ) -> AppendResult:
        """관리자 잔액 조정 - ref_id 기준 멱등"""
        if request.amount_krw == 0:
            raise ValidationError("Adjustment amount must not be zero")

        reason = (
            BudgetReason.ADMIN_ADJUSTMENT
            if kind == LedgerKind.BUDGET
            else CreditReason.ADMIN_ADJUSTMENT
        )
        with atomic(self.db):
            result = self._repo(kind).append(
                owner_id=request.owner_id,
                amount_krw=request.amount_krw,
                reason=reason,
                ref_id=request.ref_id,
            )
            if result.created:
                self.audit_repo.record(
                    action="ADMIN_LEDGER_ADJUSTMENT",
                    actor_id=actor_id,
                    target_type=f"{kind.value}_LEDGER",
                    target_id=request.owner_id,
                    payload={
                        "amount_krw": request.amount_krw,
                        "memo": request.memo,
                        "ref_id": request.ref_id,
                    },
                )

        logger.info(
            f"Ledger adjustment {kind.value} owner={request.owner_id} "
            f"amount={request.amount_krw} created={result.created}"
        )
        return result

    def verify_integrity(self, kind: LedgerKind, owner_id: int) -> LedgerIntegrityResponse:
        """SQL 합계와 항목 순회 합계 비교 + 멱등 키 중복 검사"""
        stats = self._repo(kind).verify_integrity(owner_id)
        ok = (
            stats["aggregated_balance_krw"] == stats["folded_balance_krw"]
            and stats["duplicate_keys"] == 0
        )
        if not ok:
            logger.warning(f"Ledger integrity mismatch {kind.value} owner={owner_id}: {stats}")
        return LedgerIntegrityResponse(
            kind=kind,
            owner_id=owner_id,
            status="OK" if ok else "MISMATCH",
            verified_at=utcnow(),
            **stats,
        )

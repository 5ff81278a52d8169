"""
원장(Ledger) 데이터 모델

광고주 예산(budget_ledger)과 회원 적립금(credit_ledger)의 모든 변동을 기록합니다.
잔액은 저장하지 않고 항상 amount_krw 의 합으로 계산합니다.
"""

import enum
from typing import Optional

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.schema import Index, UniqueConstraint

from missionapi.models.base import Base, IdType


class BudgetReason(str, enum.Enum):
    TOPUP = "TOPUP"
    PRODUCT_ORDER_CREDIT = "PRODUCT_ORDER_CREDIT"
    PRODUCT_ORDER_BURN = "PRODUCT_ORDER_BURN"
    PRODUCT_ORDER_POINTS_BURN = "PRODUCT_ORDER_POINTS_BURN"
    PRODUCT_ORDER_POINTS_REFUND = "PRODUCT_ORDER_POINTS_REFUND"
    MISSION_APPROVED_CHARGE = "MISSION_APPROVED_CHARGE"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class CreditReason(str, enum.Enum):
    MISSION_REWARD = "MISSION_REWARD"
    PAYOUT = "PAYOUT"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class LedgerKind(str, enum.Enum):
    BUDGET = "BUDGET"  # 광고주 예산
    CREDIT = "CREDIT"  # 회원 적립금


class LedgerEntryMixin:
    """
    원장 테이블 공통 컬럼

    1. 불변성(Immutable): 한번 생성된 레코드는 수정/삭제되지 않음
    2. 멱등성(Idempotent): (reason, ref_id) 유니크 제약으로 중복 기록 방지
    3. 잔액 = 소유자별 amount_krw 합계
    """

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)

    # 소유자 - 광고주 프로필 또는 회원 프로필
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # 부호 있는 금액 - 양수=적립, 음수=차감
    amount_krw: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[str] = mapped_column(String(40), nullable=False)

    # 원인이 된 비즈니스 객체 ID (주문, 지급 요청, 참여 등)
    ref_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now())


class BudgetLedger(LedgerEntryMixin, Base):
    __tablename__ = "budget_ledger"
    __table_args__ = (
        UniqueConstraint("reason", "ref_id", name="uq_budget_ledger_reason_ref"),
        Index("ix_budget_ledger_owner", "owner_id"),
    )


class CreditLedger(LedgerEntryMixin, Base):
    __tablename__ = "credit_ledger"
    __table_args__ = (
        UniqueConstraint("reason", "ref_id", name="uq_credit_ledger_reason_ref"),
        Index("ix_credit_ledger_owner", "owner_id"),
    )


LEDGER_MODELS = {
    LedgerKind.BUDGET: BudgetLedger,
    LedgerKind.CREDIT: CreditLedger,
}

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import CheckConstraint

from missionapi.models.base import BaseModel, IdType


class PayoutStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"  # 보류(hold) - 아직 지급 전
    REJECTED = "REJECTED"
    PAID = "PAID"


# 아직 정산되지 않은 지급 약정 (가용 잔액에서 차감 대상)
PENDING_PAYOUT_STATUSES = (PayoutStatus.REQUESTED, PayoutStatus.APPROVED)


class PayoutRequest(BaseModel):
    __tablename__ = "payout_requests"
    __table_args__ = (
        CheckConstraint("amount_krw > 0", name="ck_payout_requests_amount_positive"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    rewarder_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    amount_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PayoutStatus] = mapped_column(
        Enum(PayoutStatus, native_enum=False, length=20),
        default=PayoutStatus.REQUESTED,
        nullable=False,
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

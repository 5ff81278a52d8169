import enum
import datetime as dt
from typing import Optional

from sqlalchemy import BigInteger, Date, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from missionapi.models.base import BaseModel, IdType
from missionapi.models.campaign import MissionType


class PaymentStatus(str, enum.Enum):
    CREATED = "CREATED"
    PAID = "PAID"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"


class PaymentProvider(str, enum.Enum):
    DEV = "DEV"
    TOSS = "TOSS"
    POINTS = "POINTS"


class PaymentPurpose(str, enum.Enum):
    TOPUP = "TOPUP"
    PRODUCT_ORDER = "PRODUCT_ORDER"


class OrderStatus(str, enum.Enum):
    CREATED = "CREATED"
    PAID = "PAID"
    FULFILLED = "FULFILLED"
    CANCELED = "CANCELED"


class Payment(BaseModel):
    """결제 - ID는 용도 접두어를 가진 문자열 (pay_*: 충전, prd_*: 상품 주문)"""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    advertiser_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    purpose: Mapped[PaymentPurpose] = mapped_column(
        Enum(PaymentPurpose, native_enum=False, length=20), nullable=False
    )
    amount_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=20),
        default=PaymentStatus.CREATED,
        nullable=False,
    )
    provider: Mapped[PaymentProvider] = mapped_column(
        Enum(PaymentProvider, native_enum=False, length=20), nullable=False
    )
    provider_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ProductOrder(BaseModel):
    __tablename__ = "product_orders"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    advertiser_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    mission_type: Mapped[MissionType] = mapped_column(
        Enum(MissionType, native_enum=False, length=20), nullable=False
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    daily_target: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    budget_total_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    vat_amount_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    points_applied_krw: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payable_amount_krw: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, native_enum=False, length=20),
        default=OrderStatus.CREATED,
        nullable=False,
    )
    payment_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("payments.id"), nullable=True, unique=True
    )
    campaign_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("campaigns.id"), nullable=True
    )

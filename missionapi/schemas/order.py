import enum
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from missionapi.models.campaign import MissionType
from missionapi.models.order import (
    OrderStatus,
    PaymentProvider,
    PaymentPurpose,
    PaymentStatus,
)


class PaymentMethod(str, enum.Enum):
    DEV = "DEV"  # 즉시 결제 완료 (개발/테스트)
    TOSS = "TOSS"  # 외부 PG 결제 후 확인/웹훅으로 완료


class TopupRequest(BaseModel):
    """예산 충전 요청"""

    amount_krw: int = Field(..., gt=0, description="충전 금액")
    method: PaymentMethod = Field(PaymentMethod.DEV, description="결제 수단")


class PaymentResponse(BaseModel):
    id: str
    advertiser_id: int
    purpose: PaymentPurpose
    amount_krw: int
    status: PaymentStatus
    provider: PaymentProvider
    provider_ref: Optional[str] = None

    class Config:
        from_attributes = True


class TopupResponse(BaseModel):
    payment: PaymentResponse
    ledger_entry_id: Optional[int] = Field(None, description="충전 원장 항목 ID")
    balance_krw: int


class ProductOrderInitRequest(BaseModel):
    """상품 주문 생성 요청"""

    product_name: str = Field(..., min_length=1, max_length=200, description="상품명")
    mission_type: MissionType = Field(..., description="미션 유형")
    unit_price_krw: int = Field(..., gt=0, description="건당 단가")
    vat_percent: Optional[int] = Field(None, ge=0, le=100, description="부가세율(%)")
    start_date: date = Field(..., description="시작일")
    end_date: date = Field(..., description="종료일")
    daily_target: int = Field(..., ge=1, le=1_000_000, description="일일 목표 수량")
    payment_method: PaymentMethod = Field(PaymentMethod.DEV, description="결제 수단")
    points_applied_krw: int = Field(0, ge=0, description="사용할 예산 포인트")
    campaign_id: Optional[int] = Field(None, gt=0, description="연장할 기존 캠페인 ID")

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class OrderAmounts(BaseModel):
    total_days: int
    total_qty: int
    budget_total_krw: int
    vat_amount_krw: int
    total_amount_krw: int


class ProductOrderResponse(BaseModel):
    id: int
    advertiser_id: int
    product_name: str
    mission_type: MissionType
    start_date: date
    end_date: date
    daily_target: int
    unit_price_krw: int
    budget_total_krw: int
    vat_amount_krw: int
    total_amount_krw: int
    points_applied_krw: int
    payable_amount_krw: int
    status: OrderStatus
    payment_id: Optional[str] = None
    campaign_id: Optional[int] = None

    class Config:
        from_attributes = True


class ProductOrderInitResponse(BaseModel):
    order: ProductOrderResponse
    payment: PaymentResponse
    fulfilled: bool = Field(..., description="즉시 이행(결제 완료) 여부")


class OrderConfirmRequest(BaseModel):
    payment_id: str = Field(..., min_length=1, description="결제 ID (prd_*)")
    amount_krw: int = Field(..., ge=0, description="결제 금액")
    payment_key: Optional[str] = Field(None, description="PG 결제 키")


class OrderCancelRequest(BaseModel):
    payment_id: str = Field(..., min_length=1, description="결제 ID (prd_*)")


class FulfillmentResult(BaseModel):
    order: ProductOrderResponse
    campaign_id: Optional[int] = None
    mission_days_created: int = 0
    already_fulfilled: bool = False


class OrderCancelResult(BaseModel):
    order: Optional[ProductOrderResponse] = None
    payment: PaymentResponse
    points_refunded_krw: int = 0
    already_canceled: bool = Field(False, description="이미 취소된 결제에 대한 재요청 여부")


class WebhookPaymentStatus(str, enum.Enum):
    DONE = "DONE"
    CANCELED = "CANCELED"
    ABORTED = "ABORTED"
    EXPIRED = "EXPIRED"


class PaymentWebhookRequest(BaseModel):
    """PG 웹훅 - 최소 1회 이상 전달될 수 있음"""

    payment_id: str = Field(..., min_length=1, description="결제 ID (pay_* / prd_*)")
    status: WebhookPaymentStatus
    payment_key: Optional[str] = None
    amount_krw: Optional[int] = Field(None, ge=0)


class PaymentWebhookResult(BaseModel):
    payment: PaymentResponse
    action: str = Field(..., description="수행된 처리 (TOPUP_CREDITED, ORDER_FULFILLED, CANCELED, NOOP)")

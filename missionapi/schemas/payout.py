from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from missionapi.models.payout import PayoutStatus


class PayoutCreateRequest(BaseModel):
    """출금 요청"""

    amount_krw: int = Field(..., gt=0, description="출금 금액")


class PayoutResponse(BaseModel):
    id: int
    rewarder_id: int
    amount_krw: int
    status: PayoutStatus
    decided_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayoutListResponse(BaseModel):
    payouts: List[PayoutResponse]
    total_count: int
    has_next: bool


class PayoutDecisionResult(BaseModel):
    """지급 승인/반려 결과

    잔액 부족은 예외가 아니라 REJECTED 상태 + failure_reason 으로 표현된다.
    """

    payout: PayoutResponse
    ledger_entry_id: Optional[int] = Field(None, description="차감 원장 항목 ID")
    idempotent_replay: bool = Field(False, description="이미 차감된 요청 재처리 여부")
    message: str


class PayoutRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200, description="반려 사유")

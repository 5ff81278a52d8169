from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from missionapi.models.ledger import LedgerKind


class LedgerEntryCreate(BaseModel):
    """원장 기록 요청 (내부용)"""

    owner_id: int = Field(..., description="소유자 프로필 ID")
    amount_krw: int = Field(..., description="부호 있는 금액 (양수=적립, 음수=차감)")
    reason: str = Field(..., min_length=1, max_length=40, description="변동 사유 태그")
    ref_id: Optional[str] = Field(None, description="원인 객체 ID (멱등 키)")


class LedgerEntryResponse(BaseModel):
    """원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    owner_id: int = Field(..., description="소유자 프로필 ID")
    amount_krw: int = Field(..., description="금액")
    reason: str = Field(..., description="변동 사유")
    ref_id: Optional[str] = Field(None, description="참조 ID")
    created_at: Optional[datetime] = Field(None, description="생성 시간")

    class Config:
        from_attributes = True


class AppendResult(BaseModel):
    """원장 기록 결과 - 이미 존재하면 created=False 로 기존 항목 반환"""

    entry: LedgerEntryResponse
    created: bool


class BalanceResponse(BaseModel):
    """잔액 응답"""

    owner_id: int = Field(..., description="소유자 프로필 ID")
    balance_krw: int = Field(..., description="원장 합계 잔액")
    pending_krw: int = Field(0, description="미정산 지급 요청 합계")
    available_krw: int = Field(..., description="출금 가능 잔액")


class LedgerHistoryResponse(BaseModel):
    """원장 조회 응답"""

    balance_krw: int = Field(..., description="현재 잔액")
    entries: List[LedgerEntryResponse] = Field(..., description="원장 항목 목록")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class LedgerIntegrityResponse(BaseModel):
    """소유자별 원장 정합성 검증 결과"""

    kind: LedgerKind
    owner_id: int
    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    aggregated_balance_krw: int = Field(..., description="SQL 합계")
    folded_balance_krw: int = Field(..., description="항목 순회 합계")
    entry_count: int
    duplicate_keys: int = Field(0, description="중복된 (reason, ref_id) 수")
    verified_at: datetime


class AdminAdjustmentRequest(BaseModel):
    """관리자 잔액 조정 요청"""

    owner_id: int = Field(..., gt=0)
    amount_krw: int = Field(..., description="조정 금액 (양수: 적립, 음수: 차감)")
    memo: str = Field(..., min_length=1, max_length=200, description="조정 사유")
    ref_id: str = Field(..., min_length=1, max_length=100, description="멱등 키")

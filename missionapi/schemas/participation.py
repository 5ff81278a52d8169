from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from missionapi.models.participation import EvidenceType, ParticipationStatus


class ParticipationResponse(BaseModel):
    id: int
    mission_day_id: int
    rewarder_id: int
    status: ParticipationStatus
    expires_at: datetime
    submitted_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    class Config:
        from_attributes = True


class ParticipationListResponse(BaseModel):
    participations: List[ParticipationResponse]
    total_count: int
    has_next: bool


class JoinMissionResult(BaseModel):
    """미션 참여(슬롯 점유) 결과 - 매진은 예외가 아닌 success=False"""

    success: bool = Field(..., description="슬롯 점유 성공 여부")
    participation: Optional[ParticipationResponse] = None
    already_joined: bool = Field(False, description="기존 진행 중 참여 반환 여부")
    message: str


class EvidenceSubmitRequest(BaseModel):
    """인증 자료 제출 - 파일 저장은 외부, 참조만 전달"""

    type: EvidenceType = Field(EvidenceType.SCREENSHOT, description="인증 유형")
    file_ref: str = Field(..., min_length=1, max_length=1024, description="저장소 참조")
    metadata: Optional[Dict[str, Any]] = Field(None, description="부가 정보")


class ParticipationActionResult(BaseModel):
    success: bool
    participation: Optional[ParticipationResponse] = None
    quota_released: bool = False
    message: str


class ParticipationRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200, description="반려 사유")


class ExpireParticipationsResult(BaseModel):
    expired: int = Field(..., description="만료 처리된 참여 수")
    restored: int = Field(..., description="복구된 슬롯 수")

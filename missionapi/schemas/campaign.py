from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from missionapi.models.campaign import CampaignStatus, MissionDayStatus, MissionType


class CampaignResponse(BaseModel):
    id: int
    advertiser_id: int
    name: str
    mission_type: MissionType
    start_date: date
    end_date: date
    daily_target: int
    unit_price_krw: int
    reward_krw: int
    status: CampaignStatus

    class Config:
        from_attributes = True


class MissionDayResponse(BaseModel):
    id: int
    campaign_id: int
    date: date
    quota_total: int
    quota_remaining: int
    status: MissionDayStatus

    class Config:
        from_attributes = True


class MissionListItem(BaseModel):
    """회원용 오늘의 미션"""

    campaign_id: int
    mission_day_id: int
    name: str
    mission_type: MissionType
    reward_krw: int
    quota_remaining: int
    quota_total: int


class MissionListResponse(BaseModel):
    date: date
    missions: List[MissionListItem]


class CampaignActionResult(BaseModel):
    success: bool
    campaign: Optional[CampaignResponse] = None
    mission_days_upserted: int = 0
    message: str


class CloseCampaignsResult(BaseModel):
    today: date
    campaigns_ended: int = Field(..., description="종료 처리된 캠페인 수")
    mission_days_ended: int = Field(..., description="종료 처리된 미션 일자 수")
    closed_at: datetime

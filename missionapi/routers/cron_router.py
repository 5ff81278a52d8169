from fastapi import APIRouter, Depends

from missionapi.core.auth_middleware import verify_cron_secret
from missionapi.deps import get_campaign_service, get_mission_service
from missionapi.schemas.campaign import CloseCampaignsResult
from missionapi.schemas.participation import ExpireParticipationsResult
from missionapi.services.campaign_service import CampaignService
from missionapi.services.mission_service import MissionService

router = APIRouter(
    prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)]
)


@router.post("/expire-participations", response_model=ExpireParticipationsResult)
def expire_participations(
    mission_service: MissionService = Depends(get_mission_service),
) -> ExpireParticipationsResult:
    """마감 지난 참여 일괄 만료 + 슬롯 반환"""
    return mission_service.expire_participations()


@router.post("/close-campaigns", response_model=CloseCampaignsResult)
def close_campaigns(
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> CloseCampaignsResult:
    return campaign_service.close_ended_campaigns()

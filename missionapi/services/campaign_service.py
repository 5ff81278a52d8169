import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from missionapi.core.exceptions import InvalidStateError, NotFoundError
from missionapi.database.session import atomic
from missionapi.models.campaign import CampaignStatus, MissionDayStatus
from missionapi.repositories.audit_repository import AuditRepository
from missionapi.repositories.campaign_repository import CampaignRepository
from missionapi.repositories.mission_day_repository import MissionDayRepository
from missionapi.schemas.campaign import CampaignActionResult, CloseCampaignsResult
from missionapi.utils.date_utils import each_date_inclusive, today_utc, utcnow

logger = logging.getLogger(__name__)


class CampaignService:
    """캠페인 활성화/일시정지/종료 처리"""

    def __init__(self, db: Session):
        self.db = db
        self.campaign_repo = CampaignRepository(db)
        self.mission_day_repo = MissionDayRepository(db)
        self.audit_repo = AuditRepository(db)

    def _get_or_raise(self, campaign_id: int):
        campaign = self.campaign_repo.get_model(campaign_id, refresh=True)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return campaign

    def activate_campaign(self, campaign_id: int, actor_id: Optional[int] = None) -> CampaignActionResult:
        """DRAFT/PAUSED -> ACTIVE, 기간 내 일자별 한도 행 생성 또는 재활성화"""
        with atomic(self.db):
            campaign = self._get_or_raise(campaign_id)
            moved = self.campaign_repo.transition(
                campaign_id,
                [CampaignStatus.DRAFT, CampaignStatus.PAUSED],
                CampaignStatus.ACTIVE,
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": campaign.status.value}
                )

            created, updated = self.mission_day_repo.upsert_for_campaign(
                campaign_id,
                each_date_inclusive(campaign.start_date, campaign.end_date),
                campaign.daily_target,
                status=MissionDayStatus.ACTIVE,
            )
            self.audit_repo.record(
                action="ADMIN_ACTIVATE_CAMPAIGN",
                actor_id=actor_id,
                target_type="Campaign",
                target_id=campaign_id,
                payload={"mission_days_created": created, "mission_days_updated": updated},
            )
            campaign = self._get_or_raise(campaign_id)

        logger.info(f"Campaign activated: id={campaign_id} created={created} updated={updated}")
        return CampaignActionResult(
            success=True,
            campaign=self.campaign_repo.to_schema(campaign),
            mission_days_upserted=created + updated,
            message="Campaign activated",
        )

    def pause_campaign(self, campaign_id: int, actor_id: Optional[int] = None) -> CampaignActionResult:
        """ACTIVE -> PAUSED, 활성 일자도 함께 일시정지"""
        with atomic(self.db):
            campaign = self._get_or_raise(campaign_id)
            moved = self.campaign_repo.transition(
                campaign_id, [CampaignStatus.ACTIVE], CampaignStatus.PAUSED
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": campaign.status.value}
                )
            paused = self.mission_day_repo.set_status_for_campaign(
                campaign_id, MissionDayStatus.PAUSED, [MissionDayStatus.ACTIVE]
            )
            self.audit_repo.record(
                action="ADMIN_PAUSE_CAMPAIGN",
                actor_id=actor_id,
                target_type="Campaign",
                target_id=campaign_id,
                payload={"mission_days_paused": paused},
            )
            campaign = self._get_or_raise(campaign_id)

        logger.info(f"Campaign paused: id={campaign_id} mission_days={paused}")
        return CampaignActionResult(
            success=True,
            campaign=self.campaign_repo.to_schema(campaign),
            mission_days_upserted=paused,
            message="Campaign paused",
        )

    def close_ended_campaigns(self, today: Optional[date] = None) -> CloseCampaignsResult:
        """종료일이 지난 캠페인과 지난 일자 행을 ENDED 로 (cron)"""
        today = today or today_utc()
        with atomic(self.db):
            campaigns_ended = self.campaign_repo.end_before(today)
            mission_days_ended = self.mission_day_repo.end_before(today)
            self.audit_repo.record(
                action="CRON_CLOSE_CAMPAIGNS",
                target_type="Campaign",
                payload={
                    "today": today.isoformat(),
                    "campaigns_ended": campaigns_ended,
                    "mission_days_ended": mission_days_ended,
                },
            )

        logger.info(
            f"Closed ended campaigns before {today}: "
            f"campaigns={campaigns_ended} mission_days={mission_days_ended}"
        )
        return CloseCampaignsResult(
            today=today,
            campaigns_ended=campaigns_ended,
            mission_days_ended=mission_days_ended,
            closed_at=utcnow(),
        )

from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from missionapi.models.campaign import Campaign, CampaignStatus
from missionapi.repositories.base import BaseRepository
from missionapi.schemas.campaign import CampaignResponse


class CampaignRepository(BaseRepository[Campaign, CampaignResponse]):
    def __init__(self, db: Session):
        super().__init__(Campaign, CampaignResponse, db)

    def create(self, **kwargs) -> Campaign:
        return self.add(Campaign(**kwargs))

    def transition(
        self,
        campaign_id: int,
        from_statuses: Iterable[CampaignStatus],
        to_status: CampaignStatus,
    ) -> bool:
        """현재 상태가 from_statuses 중 하나일 때만 전이"""
        affected = self._conditional_update(
            [
                Campaign.id == campaign_id,
                Campaign.status.in_(list(from_statuses)),
            ],
            {"status": to_status},
        )
        return affected == 1

    def end_before(self, today: date) -> int:
        """종료일이 지난 캠페인을 ENDED 로"""
        return self._conditional_update(
            [
                Campaign.end_date < today,
                Campaign.status != CampaignStatus.ENDED,
            ],
            {"status": CampaignStatus.ENDED},
        )

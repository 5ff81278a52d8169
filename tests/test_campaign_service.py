from datetime import date

import pytest

from missionapi.core.exceptions import InvalidStateError, NotFoundError
from missionapi.models.campaign import (
    Campaign,
    CampaignStatus,
    MissionDay,
    MissionDayStatus,
    MissionType,
)
from missionapi.repositories.mission_day_repository import MissionDayRepository
from missionapi.services.campaign_service import CampaignService


@pytest.fixture
def campaign_service(db_session):
    return CampaignService(db_session)


@pytest.fixture
def draft_campaign(db_session):
    campaign = Campaign(
        advertiser_id=10,
        name="신규 캠페인",
        mission_type=MissionType.SHARE,
        start_date=date(2024, 1, 15),
        end_date=date(2024, 1, 18),
        daily_target=5,
        unit_price_krw=200,
        reward_krw=50,
        status=CampaignStatus.DRAFT,
    )
    db_session.add(campaign)
    db_session.commit()
    return campaign


def _days(db_session, campaign_id):
    return MissionDayRepository(db_session).list_for_campaign(campaign_id)


class TestCampaignService:
    """캠페인 활성화/일시정지/종료"""

    def test_activate_creates_mission_days(self, campaign_service, draft_campaign, db_session):
        # When
        result = campaign_service.activate_campaign(draft_campaign.id, actor_id=1)

        # Then
        assert result.success is True
        assert result.campaign.status == CampaignStatus.ACTIVE
        assert result.mission_days_upserted == 4
        days = _days(db_session, draft_campaign.id)
        assert len(days) == 4
        assert all(d.quota_total == d.quota_remaining == 5 for d in days)

    def test_pause_then_reactivate_keeps_quota(self, campaign_service, draft_campaign, db_session):
        """재활성화 시 기존 일자의 남은 수량은 그대로"""
        campaign_service.activate_campaign(draft_campaign.id)
        first_day = db_session.get(MissionDay, _days(db_session, draft_campaign.id)[0].id)
        first_day.quota_remaining = 2
        db_session.commit()

        paused = campaign_service.pause_campaign(draft_campaign.id)
        assert paused.campaign.status == CampaignStatus.PAUSED
        assert all(d.status == MissionDayStatus.PAUSED for d in _days(db_session, draft_campaign.id))

        reactivated = campaign_service.activate_campaign(draft_campaign.id)

        days = _days(db_session, draft_campaign.id)
        assert reactivated.mission_days_upserted == 4
        assert days[0].quota_remaining == 2
        assert all(d.status == MissionDayStatus.ACTIVE for d in days)

    def test_activate_active_campaign_is_invalid(self, campaign_service, draft_campaign):
        campaign_service.activate_campaign(draft_campaign.id)

        with pytest.raises(InvalidStateError):
            campaign_service.activate_campaign(draft_campaign.id)

    def test_pause_draft_is_invalid(self, campaign_service, draft_campaign):
        with pytest.raises(InvalidStateError):
            campaign_service.pause_campaign(draft_campaign.id)

    def test_unknown_campaign(self, campaign_service):
        with pytest.raises(NotFoundError):
            campaign_service.activate_campaign(404)

    def test_close_ended_campaigns(self, campaign_service, draft_campaign, db_session):
        """종료일이 지난 캠페인과 지난 일자는 ENDED"""
        campaign_service.activate_campaign(draft_campaign.id)

        result = campaign_service.close_ended_campaigns(today=date(2024, 1, 17))

        assert result.campaigns_ended == 0
        assert result.mission_days_ended == 2
        statuses = [d.status for d in _days(db_session, draft_campaign.id)]
        assert statuses == [
            MissionDayStatus.ENDED,
            MissionDayStatus.ENDED,
            MissionDayStatus.ACTIVE,
            MissionDayStatus.ACTIVE,
        ]

        final = campaign_service.close_ended_campaigns(today=date(2024, 1, 19))
        assert final.campaigns_ended == 1
        assert db_session.get(Campaign, draft_campaign.id, populate_existing=True).status == CampaignStatus.ENDED

from datetime import date

import pytest
from dependency_injector import providers

from missionapi.containers import Container
from missionapi.models.campaign import Campaign, CampaignStatus, MissionDay
from missionapi.models.participation import Participation, ParticipationStatus
from missionapi.services.campaign_service import CampaignService
from missionapi.services.mission_service import MissionService
from scripts.run_cron import run_job


@pytest.fixture
def container(db_session, test_settings):
    container = Container()
    container.services.mission_service.override(
        providers.Object(MissionService(db_session, test_settings))
    )
    container.services.campaign_service.override(
        providers.Object(CampaignService(db_session))
    )
    yield container
    container.services.mission_service.reset_override()
    container.services.campaign_service.reset_override()


class TestRunCron:
    """배치 스크립트"""

    def test_expire_participations_job(
        self, container, make_campaign, make_participation, db_session
    ):
        # Given - 마감이 지난 진행 중 참여
        _, mission_day = make_campaign(quota=1)
        participation = make_participation(mission_day, status=ParticipationStatus.IN_PROGRESS)

        # When
        result = run_job(container, "expire-participations")

        # Then
        assert result.expired == 1
        assert result.restored == 1
        assert db_session.get(Participation, participation.id).status == ParticipationStatus.EXPIRED
        assert db_session.get(MissionDay, mission_day.id).quota_remaining == 1

    def test_close_campaigns_job(self, container, make_campaign, db_session):
        campaign, _ = make_campaign(end_date=date(2024, 1, 16))

        result = run_job(container, "close-campaigns")

        assert result.campaigns_ended == 1
        assert db_session.get(Campaign, campaign.id).status == CampaignStatus.ENDED

    def test_unknown_job(self, container):
        with pytest.raises(ValueError):
            run_job(container, "vacuum")

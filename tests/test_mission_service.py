from datetime import timedelta

import pytest

from missionapi.core.exceptions import InvalidStateError, NotFoundError
from missionapi.models.campaign import CampaignStatus, MissionDay, MissionType
from missionapi.models.ledger import BudgetReason, CreditReason, LedgerKind
from missionapi.models.participation import (
    Participation,
    ParticipationStatus,
    VerificationEvidence,
)
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.schemas.participation import EvidenceSubmitRequest
from missionapi.services.mission_service import MissionService

from conftest import NOW, TODAY

REWARDER_ID = 100


@pytest.fixture
def mission_service(db_session, test_settings):
    return MissionService(db_session, test_settings)


def _quota(db_session, mission_day_id) -> int:
    return db_session.get(MissionDay, mission_day_id, populate_existing=True).quota_remaining


def _evidence() -> EvidenceSubmitRequest:
    return EvidenceSubmitRequest(file_ref="uploads/proof.png", metadata={"width": 1080})


class TestJoinMission:
    """미션 참여 (슬롯 점유)"""

    def test_join_claims_slot(self, mission_service, make_campaign, db_session):
        # Given
        campaign, mission_day = make_campaign(quota=2, mission_type=MissionType.SAVE)

        # When
        result = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        # Then
        assert result.success is True
        assert result.already_joined is False
        assert result.participation.status == ParticipationStatus.IN_PROGRESS
        assert result.participation.mission_day_id == mission_day.id
        expires_at = result.participation.expires_at.replace(tzinfo=None)
        assert expires_at == (NOW + timedelta(seconds=300)).replace(tzinfo=None)
        assert _quota(db_session, mission_day.id) == 1

    def test_slot_exhaustion(self, mission_service, make_campaign, db_session):
        """남은 슬롯 1개 - 두 회원 중 한 명만 성공"""
        campaign, mission_day = make_campaign(quota=1)

        first = mission_service.join_mission(1, campaign.id, now=NOW)
        second = mission_service.join_mission(2, campaign.id, now=NOW)

        assert first.success is True
        assert second.success is False
        assert second.message == "Mission capacity exhausted"
        assert db_session.query(Participation).count() == 1
        assert _quota(db_session, mission_day.id) == 0

    def test_rejoin_returns_existing(self, mission_service, make_campaign, db_session):
        """진행 중 참여가 있으면 슬롯을 다시 쓰지 않음"""
        campaign, mission_day = make_campaign(quota=3)

        first = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)
        second = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        assert second.already_joined is True
        assert second.participation.id == first.participation.id
        assert _quota(db_session, mission_day.id) == 2

    def test_rejoin_after_expiry(self, mission_service, make_campaign, db_session):
        """마감이 지난 참여는 만료 후 새 참여 생성 (슬롯 수 유지)"""
        campaign, mission_day = make_campaign(quota=1)
        first = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        later = NOW + timedelta(minutes=10)
        second = mission_service.join_mission(REWARDER_ID, campaign.id, now=later)

        assert second.success is True
        assert second.participation.id != first.participation.id
        expired = db_session.get(Participation, first.participation.id, populate_existing=True)
        assert expired.status == ParticipationStatus.EXPIRED
        assert _quota(db_session, mission_day.id) == 0

    def test_inactive_campaign(self, mission_service, make_campaign):
        campaign, _ = make_campaign(status=CampaignStatus.PAUSED)

        result = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        assert result.success is False
        assert result.message == "Campaign is not active"

    def test_unknown_campaign(self, mission_service):
        with pytest.raises(NotFoundError):
            mission_service.join_mission(REWARDER_ID, 999, now=NOW)

    def test_list_today_missions(self, mission_service, make_campaign):
        campaign, _ = make_campaign(quota=5)
        make_campaign(status=CampaignStatus.PAUSED)

        result = mission_service.list_today_missions(today=TODAY)

        assert [m.campaign_id for m in result.missions] == [campaign.id]
        assert result.missions[0].quota_remaining == 5


class TestParticipationLifecycle:
    """제출/만료/취소"""

    def test_submit_evidence(self, mission_service, make_campaign, db_session):
        campaign, _ = make_campaign()
        joined = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        result = mission_service.submit_evidence(
            REWARDER_ID, joined.participation.id, _evidence(), now=NOW + timedelta(seconds=30)
        )

        assert result.success is True
        assert result.participation.status == ParticipationStatus.PENDING_REVIEW
        assert result.participation.submitted_at is not None
        evidence = db_session.query(VerificationEvidence).one()
        assert evidence.file_ref == "uploads/proof.png"
        assert evidence.metadata_json == {"width": 1080}

    def test_expired_participation_releases_slot(self, mission_service, make_campaign, db_session):
        """마감이 지난 참여는 다음 요청에서 EXPIRED 가 되고 슬롯 1개 복구"""
        # Given
        campaign, mission_day = make_campaign(quota=1)
        joined = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)
        assert _quota(db_session, mission_day.id) == 0

        # When
        result = mission_service.submit_evidence(
            REWARDER_ID, joined.participation.id, _evidence(), now=NOW + timedelta(hours=1)
        )

        # Then
        assert result.success is False
        assert result.quota_released is True
        assert result.participation.status == ParticipationStatus.EXPIRED
        assert _quota(db_session, mission_day.id) == 1
        assert db_session.query(VerificationEvidence).count() == 0

    def test_submit_someone_elses_participation(self, mission_service, make_campaign):
        campaign, _ = make_campaign()
        joined = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        with pytest.raises(NotFoundError):
            mission_service.submit_evidence(999, joined.participation.id, _evidence(), now=NOW)

    def test_cancel_releases_slot(self, mission_service, make_campaign, db_session):
        campaign, mission_day = make_campaign(quota=1)
        joined = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        result = mission_service.cancel_participation(REWARDER_ID, joined.participation.id)

        assert result.participation.status == ParticipationStatus.CANCELED
        assert result.quota_released is True
        assert _quota(db_session, mission_day.id) == 1

    def test_cancel_twice_releases_once(self, mission_service, make_campaign, db_session):
        campaign, mission_day = make_campaign(quota=2)
        joined = mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)
        mission_service.join_mission(REWARDER_ID + 1, campaign.id, now=NOW)
        mission_service.cancel_participation(REWARDER_ID, joined.participation.id)

        with pytest.raises(InvalidStateError):
            mission_service.cancel_participation(REWARDER_ID, joined.participation.id)

        assert _quota(db_session, mission_day.id) == 1

    def test_batch_expiry(self, mission_service, make_campaign, db_session):
        """일괄 만료 - 전이된 행마다 한 번만 복구, 재실행은 변화 없음"""
        campaign, mission_day = make_campaign(quota=3)
        for rewarder_id in (1, 2, 3):
            mission_service.join_mission(rewarder_id, campaign.id, now=NOW)

        later = NOW + timedelta(hours=1)
        first = mission_service.expire_participations(now=later)
        second = mission_service.expire_participations(now=later)

        assert (first.expired, first.restored) == (3, 3)
        assert (second.expired, second.restored) == (0, 0)
        assert _quota(db_session, mission_day.id) == 3

    def test_listing_expires_overdue(self, mission_service, make_campaign, db_session):
        campaign, mission_day = make_campaign(quota=1)
        mission_service.join_mission(REWARDER_ID, campaign.id, now=NOW)

        result = mission_service.list_my_participations(
            REWARDER_ID, now=NOW + timedelta(hours=1)
        )

        assert result.total_count == 1
        assert result.participations[0].status == ParticipationStatus.EXPIRED
        assert _quota(db_session, mission_day.id) == 1


class TestReview:
    """검수 승인/반려"""

    def test_approve_writes_charge_and_reward(
        self, mission_service, make_campaign, make_participation, db_session
    ):
        # Given
        campaign, mission_day = make_campaign(unit_price_krw=1000, reward_krw=250)
        participation = make_participation(mission_day)

        # When
        result = mission_service.approve_participation(participation.id, actor_id=1)

        # Then
        assert result.participation.status == ParticipationStatus.APPROVED
        ref_id = str(participation.id)
        budget = LedgerRepository(db_session, LedgerKind.BUDGET)
        credit = LedgerRepository(db_session, LedgerKind.CREDIT)
        assert budget.get_entry(BudgetReason.MISSION_APPROVED_CHARGE, ref_id).amount_krw == -1000
        assert credit.get_entry(CreditReason.MISSION_REWARD, ref_id).amount_krw == 250
        assert credit.get_balance(REWARDER_ID) == 250

    def test_approve_twice_is_invalid(self, mission_service, make_campaign, make_participation, db_session):
        _, mission_day = make_campaign()
        participation = make_participation(mission_day)
        mission_service.approve_participation(participation.id)

        with pytest.raises(InvalidStateError):
            mission_service.approve_participation(participation.id)

        assert LedgerRepository(db_session, LedgerKind.CREDIT).get_balance(REWARDER_ID) == 250

    def test_approve_from_manual_review(self, mission_service, make_campaign, make_participation):
        _, mission_day = make_campaign()
        participation = make_participation(mission_day)

        flagged = mission_service.flag_manual_review(participation.id)
        approved = mission_service.approve_participation(participation.id)

        assert flagged.participation.status == ParticipationStatus.MANUAL_REVIEW
        assert approved.participation.status == ParticipationStatus.APPROVED

    def test_cannot_approve_in_progress(self, mission_service, make_campaign, make_participation):
        _, mission_day = make_campaign()
        participation = make_participation(mission_day, status=ParticipationStatus.IN_PROGRESS)

        with pytest.raises(InvalidStateError):
            mission_service.approve_participation(participation.id)

    def test_reject_releases_slot(self, mission_service, make_campaign, make_participation, db_session):
        _, mission_day = make_campaign(quota=2)
        participation = make_participation(mission_day)
        assert _quota(db_session, mission_day.id) == 1

        result = mission_service.reject_participation(participation.id, "인증 사진 불일치")

        assert result.participation.status == ParticipationStatus.REJECTED
        assert result.participation.failure_reason == "인증 사진 불일치"
        assert result.quota_released is True
        assert _quota(db_session, mission_day.id) == 2

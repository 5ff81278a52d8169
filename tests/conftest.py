import os
from datetime import date, datetime, timezone

# 앱/설정 import 전에 테스트용 DB 지정
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from missionapi.config import Settings
from missionapi.models.base import Base
from missionapi.models.campaign import (
    Campaign,
    CampaignStatus,
    MissionDay,
    MissionDayStatus,
    MissionType,
)
from missionapi.models.participation import Participation, ParticipationStatus
import missionapi.models.audit  # noqa: F401
import missionapi.models.ledger  # noqa: F401
import missionapi.models.order  # noqa: F401
import missionapi.models.payout  # noqa: F401

NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
TODAY = date(2024, 1, 15)


@pytest.fixture
def engine():
    """테스트마다 새 in-memory sqlite (커넥션 하나를 공유)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        MIN_PAYOUT_KRW=1000,
        MAX_PAYOUT_KRW=10_000_000,
        TOPUP_MIN_KRW=1000,
        TOPUP_MAX_KRW=100_000_000,
        DEFAULT_VAT_PERCENT=10,
    )


@pytest.fixture
def make_campaign(db_session):
    """ACTIVE 캠페인 + 오늘 날짜 미션 일자 생성"""

    def _make(
        quota: int = 3,
        unit_price_krw: int = 1000,
        reward_krw: int = 250,
        advertiser_id: int = 10,
        mission_type: MissionType = MissionType.TRAFFIC,
        status: CampaignStatus = CampaignStatus.ACTIVE,
        start_date: date = date(2024, 1, 14),
        end_date: date = date(2024, 1, 16),
    ):
        campaign = Campaign(
            advertiser_id=advertiser_id,
            name="테스트 캠페인",
            mission_type=mission_type,
            start_date=start_date,
            end_date=end_date,
            daily_target=quota,
            unit_price_krw=unit_price_krw,
            reward_krw=reward_krw,
            status=status,
        )
        db_session.add(campaign)
        db_session.flush()
        mission_day = MissionDay(
            campaign_id=campaign.id,
            date=TODAY,
            quota_total=quota,
            quota_remaining=quota,
            status=MissionDayStatus.ACTIVE,
        )
        db_session.add(mission_day)
        db_session.commit()
        return campaign, mission_day

    return _make


@pytest.fixture
def make_participation(db_session):
    """지정 상태의 참여 행 생성 (슬롯은 이미 점유된 것으로 간주해 quota 도 1 차감)"""

    def _make(
        mission_day: MissionDay,
        rewarder_id: int = 100,
        status: ParticipationStatus = ParticipationStatus.PENDING_REVIEW,
        expires_at: datetime = datetime(2024, 1, 15, 10, 3, 0, tzinfo=timezone.utc),
    ):
        participation = Participation(
            mission_day_id=mission_day.id,
            rewarder_id=rewarder_id,
            status=status,
            expires_at=expires_at,
        )
        mission_day.quota_remaining = mission_day.quota_remaining - 1
        db_session.add(participation)
        db_session.commit()
        return participation

    return _make

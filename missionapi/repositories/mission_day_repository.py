from datetime import date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from missionapi.models.campaign import (
    Campaign,
    CampaignStatus,
    MissionDay,
    MissionDayStatus,
)
from missionapi.repositories.base import BaseRepository
from missionapi.schemas.campaign import MissionDayResponse


class MissionDayRepository(BaseRepository[MissionDay, MissionDayResponse]):
    """일자별 수행 한도 - 차감/복구는 모두 단일 조건부 UPDATE"""

    def __init__(self, db: Session):
        super().__init__(MissionDay, MissionDayResponse, db)

    def claim(self, mission_day_id: int) -> bool:
        """슬롯 1개 점유 - 남은 수량이 있을 때만 1 감소

        동시에 N+1 번 호출되어도 quota_total = N 이면 최대 N 번만 True.
        """
        affected = self._conditional_update(
            [
                MissionDay.id == mission_day_id,
                MissionDay.quota_remaining > 0,
            ],
            {"quota_remaining": MissionDay.quota_remaining - 1},
        )
        return affected == 1

    def release(self, mission_day_id: int) -> bool:
        """슬롯 1개 반환 - quota_total 을 넘지 않도록 제한"""
        affected = self._conditional_update(
            [
                MissionDay.id == mission_day_id,
                MissionDay.quota_remaining < MissionDay.quota_total,
            ],
            {"quota_remaining": MissionDay.quota_remaining + 1},
        )
        return affected == 1

    def find_for_campaign_on(
        self, campaign_id: int, target_date: date
    ) -> Optional[MissionDay]:
        return self.db.scalars(
            select(MissionDay).where(
                MissionDay.campaign_id == campaign_id,
                MissionDay.date == target_date,
            )
            .execution_options(populate_existing=True)
        ).first()

    def list_for_campaign(self, campaign_id: int) -> List[MissionDayResponse]:
        rows = self.db.scalars(
            select(MissionDay)
            .where(MissionDay.campaign_id == campaign_id)
            .order_by(MissionDay.date)
            .execution_options(populate_existing=True)
        ).all()
        return self.to_schemas(rows)

    def upsert_for_campaign(
        self,
        campaign_id: int,
        dates: Iterable[date],
        daily_target: int,
        status: MissionDayStatus = MissionDayStatus.ACTIVE,
    ) -> Tuple[int, int]:
        """
        캠페인 기간의 일자별 행 생성/갱신

        기존 행은 status 만 바꾸고 (ENDED 는 유지) 남은 수량은 건드리지 않습니다.

        Returns:
            (created, updated)
        """
        created = 0
        updated = 0
        for target_date in dates:
            existing = self.find_for_campaign_on(campaign_id, target_date)
            if existing is not None:
                if existing.status not in (status, MissionDayStatus.ENDED):
                    existing.status = status
                    updated += 1
                continue
            self.db.add(
                MissionDay(
                    campaign_id=campaign_id,
                    date=target_date,
                    quota_total=daily_target,
                    quota_remaining=daily_target,
                    status=status,
                )
            )
            created += 1
        self.db.flush()
        return created, updated

    def set_status_for_campaign(
        self,
        campaign_id: int,
        status: MissionDayStatus,
        from_statuses: Iterable[MissionDayStatus],
    ) -> int:
        return self._conditional_update(
            [
                MissionDay.campaign_id == campaign_id,
                MissionDay.status.in_(list(from_statuses)),
            ],
            {"status": status},
        )

    def end_before(self, today: date) -> int:
        """오늘 이전 날짜의 미종료 행을 ENDED 로"""
        return self._conditional_update(
            [
                MissionDay.date < today,
                MissionDay.status != MissionDayStatus.ENDED,
            ],
            {"status": MissionDayStatus.ENDED},
        )

    def list_open_on(self, target_date: date) -> List[Tuple[MissionDay, Campaign]]:
        """특정 일자에 참여 가능한 (미션 일자, 캠페인) 목록"""
        rows = self.db.execute(
            select(MissionDay, Campaign)
            .join(Campaign, Campaign.id == MissionDay.campaign_id)
            .where(
                MissionDay.date == target_date,
                MissionDay.status == MissionDayStatus.ACTIVE,
                Campaign.status == CampaignStatus.ACTIVE,
            )
            .order_by(Campaign.id)
            .execution_options(populate_existing=True)
        ).all()
        return [(row[0], row[1]) for row in rows]

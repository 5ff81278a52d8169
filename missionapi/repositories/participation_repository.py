from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from missionapi.models.participation import (
    ACTIVE_PARTICIPATION_STATUSES,
    Participation,
    ParticipationStatus,
    VerificationEvidence,
)
from missionapi.repositories.base import BaseRepository
from missionapi.schemas.participation import ParticipationResponse


class ParticipationRepository(BaseRepository[Participation, ParticipationResponse]):
    """미션 참여 리포지토리

    상태 전이는 항상 `status IN (...)` 조건부 UPDATE 로 수행하여
    같은 전이가 두 번 적용되지 않도록 합니다 (슬롯 반환 1:1 보장).
    """

    def __init__(self, db: Session):
        super().__init__(Participation, ParticipationResponse, db)

    def find_active(
        self, mission_day_id: int, rewarder_id: int
    ) -> Optional[Participation]:
        """같은 (미션 일자, 회원) 의 진행 중 참여"""
        return self.db.scalars(
            select(Participation)
            .where(
                Participation.mission_day_id == mission_day_id,
                Participation.rewarder_id == rewarder_id,
                Participation.status.in_(ACTIVE_PARTICIPATION_STATUSES),
            )
            .order_by(desc(Participation.id))
            .execution_options(populate_existing=True)
        ).first()

    def create(
        self, mission_day_id: int, rewarder_id: int, expires_at: datetime
    ) -> Participation:
        return self.add(
            Participation(
                mission_day_id=mission_day_id,
                rewarder_id=rewarder_id,
                status=ParticipationStatus.IN_PROGRESS,
                expires_at=expires_at,
            )
        )

    def transition(
        self,
        participation_id: int,
        from_statuses: Iterable[ParticipationStatus],
        to_status: ParticipationStatus,
        extra_conditions: Optional[list] = None,
        **values: Any,
    ) -> bool:
        """조건부 상태 전이 - 정확히 1행이 바뀐 경우에만 True"""
        conditions = [
            Participation.id == participation_id,
            Participation.status.in_(list(from_statuses)),
        ]
        if extra_conditions:
            conditions.extend(extra_conditions)
        updates: Dict[str, Any] = {"status": to_status}
        updates.update(values)
        return self._conditional_update(conditions, updates) == 1

    def expire_if_overdue(self, participation_id: int, now: datetime) -> bool:
        """마감 시각이 지난 IN_PROGRESS 참여를 EXPIRED 로 (DB 시각 비교)"""
        return self.transition(
            participation_id,
            [ParticipationStatus.IN_PROGRESS],
            ParticipationStatus.EXPIRED,
            extra_conditions=[Participation.expires_at < now],
            decided_at=now,
            failure_reason="Expired",
        )

    def find_overdue(
        self, now: datetime, rewarder_id: Optional[int] = None, limit: int = 500
    ) -> List[Tuple[int, int]]:
        """만료 대상 (participation_id, mission_day_id) 목록"""
        stmt = select(Participation.id, Participation.mission_day_id).where(
            Participation.status == ParticipationStatus.IN_PROGRESS,
            Participation.expires_at < now,
        )
        if rewarder_id is not None:
            stmt = stmt.where(Participation.rewarder_id == rewarder_id)
        rows = self.db.execute(stmt.order_by(Participation.id).limit(limit)).all()
        return [(row[0], row[1]) for row in rows]

    def list_for_rewarder(
        self,
        rewarder_id: int,
        status: Optional[ParticipationStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[ParticipationResponse], int]:
        filters: Dict[str, Any] = {"rewarder_id": rewarder_id}
        if status is not None:
            filters["status"] = status
        total_count = self.count(filters)

        stmt = select(Participation).where(Participation.rewarder_id == rewarder_id)
        if status is not None:
            stmt = stmt.where(Participation.status == status)
        rows = self.db.scalars(
            stmt.order_by(desc(Participation.id))
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        ).all()
        return self.to_schemas(rows), total_count

    def add_evidence(
        self,
        participation_id: int,
        evidence_type,
        file_ref: str,
        metadata: Optional[dict] = None,
    ) -> VerificationEvidence:
        evidence = VerificationEvidence(
            participation_id=participation_id,
            type=evidence_type,
            file_ref=file_ref,
            metadata_json=metadata,
        )
        self.db.add(evidence)
        self.db.flush()
        return evidence

"""
미션 참여 서비스

- 참여(join): 일자별 한도에서 슬롯 1개를 조건부 차감으로 점유
- 만료/취소/반려: 참여 상태를 조건부로 전이한 경우에만 슬롯 1개 반환
- 승인: 광고주 예산 차감 + 회원 적립금 지급 (참여 ID 기준 멱등)
- 마감 시각은 백그라운드 타이머 없이 다음 요청 시점에 검사 (lazy expiry)
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from missionapi.config import Settings
from missionapi.core.exceptions import InvalidStateError, NotFoundError
from missionapi.database.session import atomic
from missionapi.models.campaign import CampaignStatus, MissionDayStatus
from missionapi.models.ledger import BudgetReason, CreditReason, LedgerKind
from missionapi.models.participation import ParticipationStatus
from missionapi.repositories.audit_repository import AuditRepository
from missionapi.repositories.campaign_repository import CampaignRepository
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.repositories.mission_day_repository import MissionDayRepository
from missionapi.repositories.participation_repository import ParticipationRepository
from missionapi.schemas.campaign import MissionListItem, MissionListResponse
from missionapi.schemas.pagination import PaginationLimits
from missionapi.schemas.participation import (
    EvidenceSubmitRequest,
    ExpireParticipationsResult,
    JoinMissionResult,
    ParticipationActionResult,
    ParticipationListResponse,
)
from missionapi.utils.date_utils import to_date_only_utc, today_utc, utcnow

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = (
    ParticipationStatus.PENDING_REVIEW,
    ParticipationStatus.MANUAL_REVIEW,
)


class MissionService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.campaign_repo = CampaignRepository(db)
        self.mission_day_repo = MissionDayRepository(db)
        self.participation_repo = ParticipationRepository(db)
        self.budget_repo = LedgerRepository(db, LedgerKind.BUDGET)
        self.credit_repo = LedgerRepository(db, LedgerKind.CREDIT)
        self.audit_repo = AuditRepository(db)

    def _timeout_seconds(self, mission_type) -> int:
        return self.settings.MISSION_TIMEOUT_SECONDS_BY_TYPE.get(
            mission_type.value, self.settings.DEFAULT_MISSION_TIMEOUT_SECONDS
        )

    def _get_participation(self, participation_id: int, rewarder_id: Optional[int] = None):
        participation = self.participation_repo.get_model(participation_id, refresh=True)
        if participation is None or (
            rewarder_id is not None and participation.rewarder_id != rewarder_id
        ):
            raise NotFoundError(f"Participation {participation_id} not found")
        return participation

    def _expire_and_release(self, participation_id: int, mission_day_id: int, now: datetime) -> bool:
        """마감이 지난 경우에만 EXPIRED 로 바꾸고 슬롯 반환"""
        if not self.participation_repo.expire_if_overdue(participation_id, now):
            return False
        self.mission_day_repo.release(mission_day_id)
        return True

    def list_today_missions(self, today: Optional[date] = None) -> MissionListResponse:
        """오늘 참여 가능한 미션 목록"""
        today = today or today_utc()
        missions = [
            MissionListItem(
                campaign_id=campaign.id,
                mission_day_id=mission_day.id,
                name=campaign.name,
                mission_type=campaign.mission_type,
                reward_krw=campaign.reward_krw,
                quota_remaining=mission_day.quota_remaining,
                quota_total=mission_day.quota_total,
            )
            for mission_day, campaign in self.mission_day_repo.list_open_on(today)
        ]
        return MissionListResponse(date=today, missions=missions)

    def join_mission(
        self, rewarder_id: int, campaign_id: int, now: Optional[datetime] = None
    ) -> JoinMissionResult:
        """
        미션 참여 - 오늘 일자 한도에서 슬롯 1개 점유

        Returns:
            JoinMissionResult: 매진/비활성은 success=False, 진행 중 참여가 있으면 그대로 반환
        """
        now = now or utcnow()
        today = to_date_only_utc(now)

        campaign = self.campaign_repo.get_model(campaign_id, refresh=True)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")

        if campaign.status != CampaignStatus.ACTIVE or not (
            campaign.start_date <= today <= campaign.end_date
        ):
            return JoinMissionResult(success=False, message="Campaign is not active")

        mission_day = self.mission_day_repo.find_for_campaign_on(campaign_id, today)
        if mission_day is None or mission_day.status != MissionDayStatus.ACTIVE:
            return JoinMissionResult(success=False, message="No mission available today")

        with atomic(self.db):
            existing = self.participation_repo.find_active(mission_day.id, rewarder_id)
            if existing is not None and existing.status == ParticipationStatus.IN_PROGRESS:
                if self._expire_and_release(existing.id, mission_day.id, now):
                    existing = None

            if existing is not None:
                existing = self._get_participation(existing.id)
                return JoinMissionResult(
                    success=True,
                    participation=self.participation_repo.to_schema(existing),
                    already_joined=True,
                    message="Already joined",
                )

            if not self.mission_day_repo.claim(mission_day.id):
                logger.info(
                    f"Mission capacity exhausted: campaign={campaign_id} "
                    f"mission_day={mission_day.id} rewarder={rewarder_id}"
                )
                return JoinMissionResult(success=False, message="Mission capacity exhausted")

            participation = self.participation_repo.create(
                mission_day_id=mission_day.id,
                rewarder_id=rewarder_id,
                expires_at=now + timedelta(seconds=self._timeout_seconds(campaign.mission_type)),
            )
            self.audit_repo.record(
                action="MISSION_CLAIMED",
                actor_id=rewarder_id,
                target_type="Participation",
                target_id=participation.id,
                payload={"campaign_id": campaign_id, "mission_day_id": mission_day.id},
            )

        logger.info(
            f"Mission joined: participation={participation.id} "
            f"mission_day={mission_day.id} rewarder={rewarder_id}"
        )
        return JoinMissionResult(
            success=True,
            participation=self.participation_repo.to_schema(participation),
            message="Joined",
        )

    def submit_evidence(
        self,
        rewarder_id: int,
        participation_id: int,
        request: EvidenceSubmitRequest,
        now: Optional[datetime] = None,
    ) -> ParticipationActionResult:
        """인증 자료 제출 - 마감이 지났으면 만료 처리 후 success=False"""
        now = now or utcnow()
        with atomic(self.db):
            participation = self._get_participation(participation_id, rewarder_id)

            if self._expire_and_release(participation.id, participation.mission_day_id, now):
                self.audit_repo.record(
                    action="PARTICIPATION_EXPIRED",
                    actor_id=rewarder_id,
                    target_type="Participation",
                    target_id=participation.id,
                )
                participation = self._get_participation(participation_id)
                logger.info(f"Participation expired on submit: id={participation_id}")
                return ParticipationActionResult(
                    success=False,
                    participation=self.participation_repo.to_schema(participation),
                    quota_released=True,
                    message="Participation expired",
                )

            moved = self.participation_repo.transition(
                participation.id,
                [ParticipationStatus.IN_PROGRESS],
                ParticipationStatus.PENDING_REVIEW,
                submitted_at=now,
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": participation.status.value}
                )
            self.participation_repo.add_evidence(
                participation.id, request.type, request.file_ref, request.metadata
            )
            self.audit_repo.record(
                action="MEMBER_SUBMIT_EVIDENCE",
                actor_id=rewarder_id,
                target_type="Participation",
                target_id=participation.id,
                payload={"type": request.type.value, "file_ref": request.file_ref},
            )
            participation = self._get_participation(participation_id)

        logger.info(f"Evidence submitted: participation={participation_id}")
        return ParticipationActionResult(
            success=True,
            participation=self.participation_repo.to_schema(participation),
            message="Submitted",
        )

    def cancel_participation(self, rewarder_id: int, participation_id: int) -> ParticipationActionResult:
        """IN_PROGRESS -> CANCELED + 슬롯 반환"""
        with atomic(self.db):
            participation = self._get_participation(participation_id, rewarder_id)
            moved = self.participation_repo.transition(
                participation.id,
                [ParticipationStatus.IN_PROGRESS],
                ParticipationStatus.CANCELED,
                decided_at=utcnow(),
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": participation.status.value}
                )
            released = self.mission_day_repo.release(participation.mission_day_id)
            self.audit_repo.record(
                action="MEMBER_CANCEL_PARTICIPATION",
                actor_id=rewarder_id,
                target_type="Participation",
                target_id=participation.id,
            )
            participation = self._get_participation(participation_id)

        logger.info(f"Participation canceled: id={participation_id} released={released}")
        return ParticipationActionResult(
            success=True,
            participation=self.participation_repo.to_schema(participation),
            quota_released=released,
            message="Canceled",
        )

    def expire_participations(
        self, now: Optional[datetime] = None, rewarder_id: Optional[int] = None
    ) -> ExpireParticipationsResult:
        """마감이 지난 IN_PROGRESS 참여 일괄 만료 - 실제로 전이된 행마다 슬롯 1개 반환"""
        now = now or utcnow()
        expired = 0
        restored = 0
        with atomic(self.db):
            for participation_id, mission_day_id in self.participation_repo.find_overdue(
                now, rewarder_id=rewarder_id
            ):
                if not self.participation_repo.expire_if_overdue(participation_id, now):
                    continue
                expired += 1
                if self.mission_day_repo.release(mission_day_id):
                    restored += 1

            if expired and rewarder_id is None:
                self.audit_repo.record(
                    action="CRON_EXPIRE_PARTICIPATIONS",
                    target_type="Participation",
                    payload={"expired": expired, "restored": restored},
                )

        if expired:
            logger.info(f"Expired participations: expired={expired} restored={restored}")
        return ExpireParticipationsResult(expired=expired, restored=restored)

    def flag_manual_review(self, participation_id: int, actor_id: Optional[int] = None) -> ParticipationActionResult:
        """PENDING_REVIEW -> MANUAL_REVIEW"""
        with atomic(self.db):
            participation = self._get_participation(participation_id)
            moved = self.participation_repo.transition(
                participation.id,
                [ParticipationStatus.PENDING_REVIEW],
                ParticipationStatus.MANUAL_REVIEW,
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": participation.status.value}
                )
            self.audit_repo.record(
                action="ADMIN_FLAG_MANUAL_REVIEW",
                actor_id=actor_id,
                target_type="Participation",
                target_id=participation.id,
            )
            participation = self._get_participation(participation_id)

        return ParticipationActionResult(
            success=True,
            participation=self.participation_repo.to_schema(participation),
            message="Moved to manual review",
        )

    def approve_participation(self, participation_id: int, actor_id: Optional[int] = None) -> ParticipationActionResult:
        """
        참여 승인

        광고주 예산에서 단가만큼 차감(MISSION_APPROVED_CHARGE)하고
        회원에게 보상액을 적립(MISSION_REWARD)합니다. 두 항목 모두 ref_id = 참여 ID.
        """
        with atomic(self.db):
            participation = self._get_participation(participation_id)
            moved = self.participation_repo.transition(
                participation.id,
                REVIEWABLE_STATUSES,
                ParticipationStatus.APPROVED,
                decided_at=utcnow(),
                failure_reason=None,
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": participation.status.value}
                )

            mission_day = self.mission_day_repo.get_model(participation.mission_day_id)
            campaign = self.campaign_repo.get_model(mission_day.campaign_id)
            ref_id = str(participation.id)

            self.budget_repo.append(
                owner_id=campaign.advertiser_id,
                amount_krw=-campaign.unit_price_krw,
                reason=BudgetReason.MISSION_APPROVED_CHARGE,
                ref_id=ref_id,
            )
            self.credit_repo.append(
                owner_id=participation.rewarder_id,
                amount_krw=campaign.reward_krw,
                reason=CreditReason.MISSION_REWARD,
                ref_id=ref_id,
            )
            self.audit_repo.record(
                action="ADMIN_APPROVE_PARTICIPATION",
                actor_id=actor_id,
                target_type="Participation",
                target_id=participation.id,
                payload={
                    "charge_krw": campaign.unit_price_krw,
                    "reward_krw": campaign.reward_krw,
                },
            )
            participation = self._get_participation(participation_id)

        logger.info(
            f"Participation approved: id={participation_id} "
            f"charge={campaign.unit_price_krw} reward={campaign.reward_krw}"
        )
        return ParticipationActionResult(
            success=True,
            participation=self.participation_repo.to_schema(participation),
            message="Approved",
        )

    def reject_participation(
        self, participation_id: int, reason: str, actor_id: Optional[int] = None
    ) -> ParticipationActionResult:
        """검수 반려 - 슬롯 반환 (quota_total 초과 없음)"""
        with atomic(self.db):
            participation = self._get_participation(participation_id)
            moved = self.participation_repo.transition(
                participation.id,
                REVIEWABLE_STATUSES,
                ParticipationStatus.REJECTED,
                decided_at=utcnow(),
                failure_reason=reason,
            )
            if not moved:
                raise InvalidStateError(
                    "Invalid status", details={"status": participation.status.value}
                )
            released = self.mission_day_repo.release(participation.mission_day_id)
            self.audit_repo.record(
                action="ADMIN_REJECT_PARTICIPATION",
                actor_id=actor_id,
                target_type="Participation",
                target_id=participation.id,
                payload={"reason": reason},
            )
            participation = self._get_participation(participation_id)

        logger.info(f"Participation rejected: id={participation_id} released={released}")
        return ParticipationActionResult(
            success=True,
            participation=self.participation_repo.to_schema(participation),
            quota_released=released,
            message=reason,
        )

    def list_my_participations(
        self,
        rewarder_id: int,
        status: Optional[ParticipationStatus] = None,
        limit: int = 20,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> ParticipationListResponse:
        """내 참여 목록 - 조회 전에 마감 지난 참여를 만료 처리"""
        self.expire_participations(now=now, rewarder_id=rewarder_id)

        limit = min(limit, PaginationLimits.PARTICIPATIONS["max"])
        participations, total_count = self.participation_repo.list_for_rewarder(
            rewarder_id, status=status, limit=limit, offset=offset
        )
        return ParticipationListResponse(
            participations=participations,
            total_count=total_count,
            has_next=(offset + limit) < total_count,
        )

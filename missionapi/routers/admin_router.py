"""
관리자 API 라우터

- 출금: 승인(approve) / 보류(hold) / 반려(reject), 상태별 목록
- 참여 검수: 승인 / 반려 / 수동 검수 전환
- 캠페인: 활성화 / 일시정지
- 원장: 정합성 검증, 잔액 조정

승인 결과의 잔액 부족은 200 응답 + REJECTED 상태로 전달됩니다.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from missionapi.core.auth_middleware import require_admin
from missionapi.deps import (
    get_campaign_service,
    get_ledger_service,
    get_mission_service,
    get_payout_service,
)
from missionapi.models.ledger import LedgerKind
from missionapi.models.payout import PayoutStatus
from missionapi.schemas.auth import Actor
from missionapi.schemas.campaign import CampaignActionResult
from missionapi.schemas.ledger import (
    AdminAdjustmentRequest,
    AppendResult,
    LedgerIntegrityResponse,
)
from missionapi.schemas.pagination import PaginationLimits
from missionapi.schemas.participation import (
    ParticipationActionResult,
    ParticipationRejectRequest,
)
from missionapi.schemas.payout import (
    PayoutDecisionResult,
    PayoutListResponse,
    PayoutRejectRequest,
    PayoutResponse,
)
from missionapi.services.campaign_service import CampaignService
from missionapi.services.ledger_service import LedgerService
from missionapi.services.mission_service import MissionService
from missionapi.services.payout_service import PayoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# 출금


@router.get("/payouts", response_model=PayoutListResponse)
def list_payouts(
    status: Optional[PayoutStatus] = Query(None, description="상태 필터"),
    limit: int = Query(
        PaginationLimits.PAYOUTS["default"],
        ge=PaginationLimits.PAYOUTS["min"],
        le=PaginationLimits.PAYOUTS["max"],
    ),
    offset: int = Query(0, ge=0),
    admin: Actor = Depends(require_admin),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutListResponse:
    return payout_service.list_payouts(status=status, limit=limit, offset=offset)


@router.post("/payouts/{payout_id}/approve", response_model=PayoutDecisionResult)
def approve_payout(
    payout_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutDecisionResult:
    """출금 승인 - 승인 시점 잔액 재검사 후 PAID 또는 REJECTED"""
    result = payout_service.approve_payout(payout_id, actor_id=admin.user_id)
    logger.info(
        f"Admin {admin.user_id} approved payout {payout_id}: {result.payout.status.value}"
    )
    return result


@router.post("/payouts/{payout_id}/hold", response_model=PayoutResponse)
def hold_payout(
    payout_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return payout_service.hold_payout(payout_id, actor_id=admin.user_id)


@router.post("/payouts/{payout_id}/reject", response_model=PayoutDecisionResult)
def reject_payout(
    request: PayoutRejectRequest,
    payout_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutDecisionResult:
    return payout_service.reject_payout(payout_id, request.reason, actor_id=admin.user_id)


# 참여 검수


@router.post(
    "/participations/{participation_id}/approve",
    response_model=ParticipationActionResult,
)
def approve_participation(
    participation_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    mission_service: MissionService = Depends(get_mission_service),
) -> ParticipationActionResult:
    return mission_service.approve_participation(participation_id, actor_id=admin.user_id)


@router.post(
    "/participations/{participation_id}/reject",
    response_model=ParticipationActionResult,
)
def reject_participation(
    request: ParticipationRejectRequest,
    participation_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    mission_service: MissionService = Depends(get_mission_service),
) -> ParticipationActionResult:
    return mission_service.reject_participation(
        participation_id, request.reason, actor_id=admin.user_id
    )


@router.post(
    "/participations/{participation_id}/manual-review",
    response_model=ParticipationActionResult,
)
def flag_manual_review(
    participation_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    mission_service: MissionService = Depends(get_mission_service),
) -> ParticipationActionResult:
    return mission_service.flag_manual_review(participation_id, actor_id=admin.user_id)


# 캠페인


@router.post("/campaigns/{campaign_id}/activate", response_model=CampaignActionResult)
def activate_campaign(
    campaign_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> CampaignActionResult:
    return campaign_service.activate_campaign(campaign_id, actor_id=admin.user_id)


@router.post("/campaigns/{campaign_id}/pause", response_model=CampaignActionResult)
def pause_campaign(
    campaign_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    campaign_service: CampaignService = Depends(get_campaign_service),
) -> CampaignActionResult:
    return campaign_service.pause_campaign(campaign_id, actor_id=admin.user_id)


# 원장


@router.get(
    "/ledger/integrity/{kind}/{owner_id}", response_model=LedgerIntegrityResponse
)
def verify_ledger_integrity(
    kind: LedgerKind,
    owner_id: int = Path(..., gt=0),
    admin: Actor = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> LedgerIntegrityResponse:
    return ledger_service.verify_integrity(kind, owner_id)


@router.post("/ledger/{kind}/adjust", response_model=AppendResult)
def adjust_ledger(
    kind: LedgerKind,
    request: AdminAdjustmentRequest,
    admin: Actor = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> AppendResult:
    """관리자 잔액 조정 - 같은 ref_id 로 재요청하면 기존 항목 반환"""
    return ledger_service.adjust(kind, request, actor_id=admin.user_id)

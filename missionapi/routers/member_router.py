"""
회원 API 라우터

미션 참여, 인증 제출, 적립금 잔액/내역, 출금 요청
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from missionapi.core.auth_middleware import require_member
from missionapi.deps import get_ledger_service, get_mission_service, get_payout_service
from missionapi.models.ledger import LedgerKind
from missionapi.models.participation import ParticipationStatus
from missionapi.schemas.auth import Actor
from missionapi.schemas.campaign import MissionListResponse
from missionapi.schemas.ledger import BalanceResponse, LedgerHistoryResponse
from missionapi.schemas.pagination import PaginationLimits
from missionapi.schemas.participation import (
    EvidenceSubmitRequest,
    JoinMissionResult,
    ParticipationActionResult,
    ParticipationListResponse,
)
from missionapi.schemas.payout import (
    PayoutCreateRequest,
    PayoutListResponse,
    PayoutResponse,
)
from missionapi.services.ledger_service import LedgerService
from missionapi.services.mission_service import MissionService
from missionapi.services.payout_service import PayoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/member", tags=["member"])


@router.get("/missions", response_model=MissionListResponse)
def list_missions(
    actor: Actor = Depends(require_member),
    mission_service: MissionService = Depends(get_mission_service),
) -> MissionListResponse:
    """오늘 참여 가능한 미션 목록"""
    return mission_service.list_today_missions()


@router.post("/missions/{campaign_id}/join", response_model=JoinMissionResult)
def join_mission(
    campaign_id: int = Path(..., gt=0),
    actor: Actor = Depends(require_member),
    mission_service: MissionService = Depends(get_mission_service),
) -> JoinMissionResult:
    """
    미션 참여

    매진 시에도 200 응답에 success=False, message="Mission capacity exhausted"
    """
    return mission_service.join_mission(actor.profile_id, campaign_id)


@router.get("/participations", response_model=ParticipationListResponse)
def list_participations(
    status: Optional[ParticipationStatus] = Query(None, description="상태 필터"),
    limit: int = Query(
        PaginationLimits.PARTICIPATIONS["default"],
        ge=PaginationLimits.PARTICIPATIONS["min"],
        le=PaginationLimits.PARTICIPATIONS["max"],
    ),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(require_member),
    mission_service: MissionService = Depends(get_mission_service),
) -> ParticipationListResponse:
    return mission_service.list_my_participations(
        actor.profile_id, status=status, limit=limit, offset=offset
    )


@router.post(
    "/participations/{participation_id}/evidence",
    response_model=ParticipationActionResult,
)
def submit_evidence(
    request: EvidenceSubmitRequest,
    participation_id: int = Path(..., gt=0),
    actor: Actor = Depends(require_member),
    mission_service: MissionService = Depends(get_mission_service),
) -> ParticipationActionResult:
    return mission_service.submit_evidence(actor.profile_id, participation_id, request)


@router.post(
    "/participations/{participation_id}/cancel",
    response_model=ParticipationActionResult,
)
def cancel_participation(
    participation_id: int = Path(..., gt=0),
    actor: Actor = Depends(require_member),
    mission_service: MissionService = Depends(get_mission_service),
) -> ParticipationActionResult:
    return mission_service.cancel_participation(actor.profile_id, participation_id)


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    actor: Actor = Depends(require_member),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> BalanceResponse:
    """적립금 잔액 / 미정산 출금 합계 / 출금 가능 잔액"""
    return ledger_service.get_member_balance(actor.profile_id)


@router.get("/ledger", response_model=LedgerHistoryResponse)
def get_ledger(
    limit: int = Query(
        PaginationLimits.LEDGER_HISTORY["default"],
        ge=PaginationLimits.LEDGER_HISTORY["min"],
        le=PaginationLimits.LEDGER_HISTORY["max"],
    ),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(require_member),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> LedgerHistoryResponse:
    return ledger_service.get_history(
        LedgerKind.CREDIT, actor.profile_id, limit=limit, offset=offset
    )


@router.get("/payouts", response_model=PayoutListResponse)
def list_payouts(
    limit: int = Query(
        PaginationLimits.PAYOUTS["default"],
        ge=PaginationLimits.PAYOUTS["min"],
        le=PaginationLimits.PAYOUTS["max"],
    ),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(require_member),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutListResponse:
    return payout_service.list_my_payouts(actor.profile_id, limit=limit, offset=offset)


@router.post("/payouts", response_model=PayoutResponse)
def request_payout(
    request: PayoutCreateRequest,
    actor: Actor = Depends(require_member),
    payout_service: PayoutService = Depends(get_payout_service),
) -> PayoutResponse:
    return payout_service.request_payout(actor.profile_id, request)

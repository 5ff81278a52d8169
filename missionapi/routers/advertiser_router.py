"""
광고주 API 라우터

- GET  /advertiser/balance: 예산 잔액
- GET  /advertiser/ledger: 예산 원장 내역
- POST /advertiser/topups: 예산 충전
- POST /advertiser/topups/confirm: 외부 결제 후 충전 확정
- POST /advertiser/product-orders/init: 상품 주문 생성
- POST /advertiser/product-orders/confirm: 결제 확인 후 주문 이행
- POST /advertiser/product-orders/cancel: 미결제 주문 취소
"""

import logging

from fastapi import APIRouter, Depends, Query

from missionapi.core.auth_middleware import require_advertiser
from missionapi.deps import get_ledger_service, get_order_service
from missionapi.models.ledger import LedgerKind
from missionapi.schemas.auth import Actor
from missionapi.schemas.ledger import BalanceResponse, LedgerHistoryResponse
from missionapi.schemas.order import (
    FulfillmentResult,
    OrderCancelRequest,
    OrderCancelResult,
    OrderConfirmRequest,
    ProductOrderInitRequest,
    ProductOrderInitResponse,
    TopupRequest,
    TopupResponse,
)
from missionapi.schemas.pagination import PaginationLimits
from missionapi.services.ledger_service import LedgerService
from missionapi.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/advertiser", tags=["advertiser"])


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    actor: Actor = Depends(require_advertiser),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> BalanceResponse:
    return ledger_service.get_advertiser_balance(actor.profile_id)


@router.get("/ledger", response_model=LedgerHistoryResponse)
def get_ledger(
    limit: int = Query(
        PaginationLimits.LEDGER_HISTORY["default"],
        ge=PaginationLimits.LEDGER_HISTORY["min"],
        le=PaginationLimits.LEDGER_HISTORY["max"],
        description="페이지 크기",
    ),
    offset: int = Query(0, ge=0, description="오프셋"),
    actor: Actor = Depends(require_advertiser),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> LedgerHistoryResponse:
    return ledger_service.get_history(
        LedgerKind.BUDGET, actor.profile_id, limit=limit, offset=offset
    )


@router.post("/topups", response_model=TopupResponse)
def create_topup(
    request: TopupRequest,
    actor: Actor = Depends(require_advertiser),
    order_service: OrderService = Depends(get_order_service),
) -> TopupResponse:
    """예산 충전 - DEV 는 즉시 완료, TOSS 는 확인/웹훅 대기"""
    return order_service.topup(actor.profile_id, request)


@router.post("/topups/confirm", response_model=TopupResponse)
def confirm_topup(
    request: OrderConfirmRequest,
    actor: Actor = Depends(require_advertiser),
    order_service: OrderService = Depends(get_order_service),
) -> TopupResponse:
    return order_service.confirm_topup(actor.profile_id, request)


@router.post("/product-orders/init", response_model=ProductOrderInitResponse)
def init_product_order(
    request: ProductOrderInitRequest,
    actor: Actor = Depends(require_advertiser),
    order_service: OrderService = Depends(get_order_service),
) -> ProductOrderInitResponse:
    """
    상품 주문 생성

    결제할 금액이 0 이거나 DEV 결제이면 같은 요청 안에서 이행까지 완료됩니다.
    """
    return order_service.init_order(actor.profile_id, request)


@router.post("/product-orders/confirm", response_model=FulfillmentResult)
def confirm_product_order(
    request: OrderConfirmRequest,
    actor: Actor = Depends(require_advertiser),
    order_service: OrderService = Depends(get_order_service),
) -> FulfillmentResult:
    return order_service.confirm_order(actor.profile_id, request)


@router.post("/product-orders/cancel", response_model=OrderCancelResult)
def cancel_product_order(
    request: OrderCancelRequest,
    actor: Actor = Depends(require_advertiser),
    order_service: OrderService = Depends(get_order_service),
) -> OrderCancelResult:
    return order_service.cancel_order(actor.profile_id, request)

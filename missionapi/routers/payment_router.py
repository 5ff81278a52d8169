from fastapi import APIRouter, Depends

from missionapi.core.auth_middleware import verify_webhook_secret
from missionapi.deps import get_order_service
from missionapi.schemas.order import PaymentWebhookRequest, PaymentWebhookResult
from missionapi.services.order_service import OrderService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/webhook",
    response_model=PaymentWebhookResult,
    dependencies=[Depends(verify_webhook_secret)],
)
def payment_webhook(
    request: PaymentWebhookRequest,
    order_service: OrderService = Depends(get_order_service),
) -> PaymentWebhookResult:
    """PG 결제 웹훅 - 같은 이벤트가 여러 번 와도 결과는 한 번만 반영"""
    return order_service.handle_payment_webhook(request)

"""
결제/주문 서비스

- 예산 충전(top-up): 결제 완료 시 TOPUP 원장 기록 (ref_id = 결제 ID)
- 상품 주문: 금액 계산 -> 포인트 차감 -> 결제 생성 -> 결제 완료 시 이행(fulfillment)
- 이행: 주문 FULFILLED, 예산 적립+소진 쌍 기록, 캠페인 생성/연장, 일자별 한도 생성
- 확인(confirm)과 웹훅은 여러 번 호출되어도 결과가 같아야 합니다
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from missionapi.config import Settings
from missionapi.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from missionapi.database.session import atomic
from missionapi.models.campaign import CampaignStatus, MissionDayStatus
from missionapi.models.ledger import BudgetReason, LedgerKind
from missionapi.models.order import (
    OrderStatus,
    Payment,
    PaymentProvider,
    PaymentPurpose,
    PaymentStatus,
)
from missionapi.repositories.audit_repository import AuditRepository
from missionapi.repositories.campaign_repository import CampaignRepository
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.repositories.mission_day_repository import MissionDayRepository
from missionapi.repositories.order_repository import OrderRepository, PaymentRepository
from missionapi.schemas.ledger import LedgerEntryCreate
from missionapi.schemas.order import (
    FulfillmentResult,
    OrderCancelRequest,
    OrderCancelResult,
    OrderConfirmRequest,
    PaymentMethod,
    PaymentWebhookRequest,
    PaymentWebhookResult,
    ProductOrderInitRequest,
    ProductOrderInitResponse,
    TopupRequest,
    TopupResponse,
    WebhookPaymentStatus,
)
from missionapi.utils.date_utils import days_inclusive, each_date_inclusive
from missionapi.utils.pricing import (
    calculate_order_amounts,
    calculate_reward_krw,
    clamp_points_applied,
)

logger = logging.getLogger(__name__)

TOPUP_PAYMENT_PREFIX = "pay_"
ORDER_PAYMENT_PREFIX = "prd_"


class OrderService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.order_repo = OrderRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.budget_repo = LedgerRepository(db, LedgerKind.BUDGET)
        self.campaign_repo = CampaignRepository(db)
        self.mission_day_repo = MissionDayRepository(db)
        self.audit_repo = AuditRepository(db)

    # ------------------------------------------------------------------ #
    # 공통
    # ------------------------------------------------------------------ #

    def _get_payment(self, payment_id: str, advertiser_id: Optional[int] = None) -> Payment:
        payment = self.payment_repo.get_model(payment_id, refresh=True)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        if advertiser_id is not None and payment.advertiser_id != advertiser_id:
            raise AuthorizationError("Payment belongs to another advertiser")
        return payment

    def _get_order(self, order_id: int):
        return self.order_repo.get_model(order_id, refresh=True)

    # ------------------------------------------------------------------ #
    # 예산 충전
    # ------------------------------------------------------------------ #

    def topup(self, advertiser_id: int, request: TopupRequest) -> TopupResponse:
        """예산 충전

        DEV: 결제 완료 + TOPUP 기록을 즉시 수행
        TOSS: CREATED 결제만 만들고 확인/웹훅에서 완료 처리
        """
        amount = request.amount_krw
        if amount < self.settings.TOPUP_MIN_KRW or amount > self.settings.TOPUP_MAX_KRW:
            raise ValidationError(
                "Top-up amount out of range",
                details={
                    "min_krw": self.settings.TOPUP_MIN_KRW,
                    "max_krw": self.settings.TOPUP_MAX_KRW,
                },
            )

        ledger_entry_id = None
        with atomic(self.db):
            paid_now = request.method == PaymentMethod.DEV
            payment = self.payment_repo.create(
                id=f"{TOPUP_PAYMENT_PREFIX}{uuid.uuid4().hex}",
                advertiser_id=advertiser_id,
                purpose=PaymentPurpose.TOPUP,
                amount_krw=amount,
                status=PaymentStatus.PAID if paid_now else PaymentStatus.CREATED,
                provider=PaymentProvider(request.method.value),
            )
            if paid_now:
                ledger_entry_id = self._credit_topup(payment).entry.id
            self.audit_repo.record(
                action="ADVERTISER_TOPUP",
                actor_id=advertiser_id,
                target_type="Payment",
                target_id=payment.id,
                payload={"amount_krw": amount, "method": request.method.value},
            )

        logger.info(
            f"Top-up created: payment={payment.id} advertiser={advertiser_id} "
            f"amount={amount} status={payment.status.value}"
        )
        return TopupResponse(
            payment=self.payment_repo.to_schema(payment),
            ledger_entry_id=ledger_entry_id,
            balance_krw=self.budget_repo.get_balance(advertiser_id),
        )

    def _credit_topup(self, payment: Payment):
        return self.budget_repo.append(
            owner_id=payment.advertiser_id,
            amount_krw=payment.amount_krw,
            reason=BudgetReason.TOPUP,
            ref_id=payment.id,
        )

    def _mark_paid(self, payment_id: str, payment_key: Optional[str]) -> Payment:
        """CREATED -> PAID 조건부 전이 후 DB 의 현재 상태를 다시 읽어 반환

        전이가 0행이면 다른 요청이 먼저 PAID 또는 CANCELED 로 바꾼 것이므로
        호출자는 반환된 status 로만 판단해야 한다.
        """
        self.payment_repo.transition(
            payment_id,
            [PaymentStatus.CREATED],
            PaymentStatus.PAID,
            provider_ref=payment_key,
        )
        return self._get_payment(payment_id)

    def _confirm_payment(self, payment_id: str, payment_key: Optional[str]) -> Payment:
        """클라이언트 확인 요청의 결제 완료 처리 (트랜잭션 내부)

        결제 키 없이 확인할 수 있는 건 웹훅으로 이미 PAID 가 된 결제뿐이다.
        """
        current = self._get_payment(payment_id)
        if current.status == PaymentStatus.CREATED and not payment_key:
            raise ValidationError("payment_key is required to confirm an unpaid payment")

        payment = self._mark_paid(payment_id, payment_key)
        if payment.status != PaymentStatus.PAID:
            raise InvalidStateError(
                "Payment is canceled", details={"status": payment.status.value}
            )
        return payment

    def confirm_topup(self, advertiser_id: int, request: OrderConfirmRequest) -> TopupResponse:
        """외부 결제 완료 후 충전 확정 (반복 호출 안전)"""
        if not request.payment_id.startswith(TOPUP_PAYMENT_PREFIX):
            raise ValidationError("Invalid payment type")
        payment = self._get_payment(request.payment_id, advertiser_id)
        if payment.amount_krw != request.amount_krw:
            raise ValidationError("Amount mismatch")

        with atomic(self.db):
            payment = self._confirm_payment(payment.id, request.payment_key)
            result = self._credit_topup(payment)
            if result.created:
                self.audit_repo.record(
                    action="ADVERTISER_TOPUP_CONFIRMED",
                    actor_id=advertiser_id,
                    target_type="Payment",
                    target_id=payment.id,
                )

        return TopupResponse(
            payment=self.payment_repo.to_schema(payment),
            ledger_entry_id=result.entry.id,
            balance_krw=self.budget_repo.get_balance(advertiser_id),
        )

    # ------------------------------------------------------------------ #
    # 상품 주문
    # ------------------------------------------------------------------ #

    def _check_extendable(self, advertiser_id: int, request: ProductOrderInitRequest) -> None:
        """기존 캠페인 연장 주문 - 소유자와 미션 유형이 같고 종료되지 않은 캠페인만"""
        campaign = self.campaign_repo.get_model(request.campaign_id, refresh=True)
        if campaign is None:
            raise NotFoundError(f"Campaign {request.campaign_id} not found")
        if campaign.advertiser_id != advertiser_id:
            raise AuthorizationError("Not the owner of this campaign")
        if campaign.status == CampaignStatus.ENDED:
            raise ValidationError("Campaign has ended")
        if campaign.mission_type != request.mission_type:
            raise ValidationError(
                "Mission type does not match the campaign",
                details={"campaign_mission_type": campaign.mission_type.value},
            )

    def init_order(self, advertiser_id: int, request: ProductOrderInitRequest) -> ProductOrderInitResponse:
        """
        상품 주문 생성

        1. 기간/금액 계산 (부가세 포함)
        2. 요청 포인트를 min(예산 잔액, 결제 금액) 이내로 검증 후 차감
        3. 결제(prd_<주문ID>) 생성 - 결제할 금액이 0 이거나 DEV 이면 즉시 완료 + 이행
        """
        total_days = days_inclusive(request.start_date, request.end_date)
        if total_days < self.settings.MIN_ORDER_DAYS:
            raise ValidationError(
                f"Order must cover at least {self.settings.MIN_ORDER_DAYS} day(s)"
            )

        vat_percent = (
            request.vat_percent
            if request.vat_percent is not None
            else self.settings.DEFAULT_VAT_PERCENT
        )
        amounts = calculate_order_amounts(
            request.unit_price_krw, vat_percent, total_days, request.daily_target
        )

        fulfilled = False
        with atomic(self.db):
            if request.campaign_id is not None:
                self._check_extendable(advertiser_id, request)

            balance = self.budget_repo.get_balance(advertiser_id)
            points_applied, max_points = clamp_points_applied(
                request.points_applied_krw, balance, amounts.total_amount_krw
            )
            if request.points_applied_krw > max_points:
                raise ValidationError(
                    "Requested points exceed the usable amount",
                    details={"max_points_krw": max_points},
                )

            payable = amounts.total_amount_krw - points_applied
            order = self.order_repo.create(
                advertiser_id=advertiser_id,
                product_name=request.product_name,
                mission_type=request.mission_type,
                start_date=request.start_date,
                end_date=request.end_date,
                daily_target=request.daily_target,
                unit_price_krw=request.unit_price_krw,
                budget_total_krw=amounts.budget_total_krw,
                vat_amount_krw=amounts.vat_amount_krw,
                total_amount_krw=amounts.total_amount_krw,
                points_applied_krw=points_applied,
                payable_amount_krw=payable,
                status=OrderStatus.CREATED,
                campaign_id=request.campaign_id,
            )

            if points_applied > 0:
                self.budget_repo.append(
                    owner_id=advertiser_id,
                    amount_krw=-points_applied,
                    reason=BudgetReason.PRODUCT_ORDER_POINTS_BURN,
                    ref_id=str(order.id),
                )

            paid_now = payable == 0 or request.payment_method == PaymentMethod.DEV
            payment = self.payment_repo.create(
                id=f"{ORDER_PAYMENT_PREFIX}{order.id}",
                advertiser_id=advertiser_id,
                purpose=PaymentPurpose.PRODUCT_ORDER,
                amount_krw=payable,
                status=PaymentStatus.PAID if paid_now else PaymentStatus.CREATED,
                provider=(
                    PaymentProvider.POINTS
                    if payable == 0
                    else PaymentProvider(request.payment_method.value)
                ),
            )
            order.payment_id = payment.id
            self.db.flush()

            self.audit_repo.record(
                action="ADVERTISER_PRODUCT_ORDER_INIT",
                actor_id=advertiser_id,
                target_type="ProductOrder",
                target_id=order.id,
                payload={
                    "payment_id": payment.id,
                    "total_amount_krw": amounts.total_amount_krw,
                    "points_applied_krw": points_applied,
                },
            )

            if paid_now:
                self.order_repo.transition(order.id, [OrderStatus.CREATED], OrderStatus.PAID)
                self._fulfill(order.id, actor_id=advertiser_id)
                fulfilled = True

            order = self._get_order(order.id)
            payment = self._get_payment(payment.id)

        logger.info(
            f"Product order created: order={order.id} payment={payment.id} "
            f"total={amounts.total_amount_krw} points={points_applied} fulfilled={fulfilled}"
        )
        return ProductOrderInitResponse(
            order=self.order_repo.to_schema(order),
            payment=self.payment_repo.to_schema(payment),
            fulfilled=fulfilled,
        )

    def _fulfill(self, order_id: int, actor_id: Optional[int] = None) -> FulfillmentResult:
        """
        주문 이행 - 호출자의 트랜잭션 안에서 실행

        적립/소진 쌍은 (reason, ref_id) 멱등 기록이라 재호출해도 잔액 변화가 없습니다.
        이미 FULFILLED 인 주문은 already_fulfilled=True 로 반환합니다.
        """
        order = self._get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status == OrderStatus.CANCELED:
            raise InvalidStateError("Order is canceled")

        ref_id = str(order.id)
        self.budget_repo.append_many(
            [
                LedgerEntryCreate(
                    owner_id=order.advertiser_id,
                    amount_krw=order.budget_total_krw,
                    reason=BudgetReason.PRODUCT_ORDER_CREDIT.value,
                    ref_id=ref_id,
                ),
                LedgerEntryCreate(
                    owner_id=order.advertiser_id,
                    amount_krw=-order.budget_total_krw,
                    reason=BudgetReason.PRODUCT_ORDER_BURN.value,
                    ref_id=ref_id,
                ),
            ]
        )

        moved = self.order_repo.transition(
            order.id, [OrderStatus.CREATED, OrderStatus.PAID], OrderStatus.FULFILLED
        )
        if not moved:
            order = self._get_order(order_id)
            return FulfillmentResult(
                order=self.order_repo.to_schema(order),
                campaign_id=order.campaign_id,
                already_fulfilled=True,
            )

        day_status = MissionDayStatus.ACTIVE
        if order.campaign_id is not None:
            campaign = self.campaign_repo.get_model(order.campaign_id, refresh=True)
            campaign.start_date = min(campaign.start_date, order.start_date)
            campaign.end_date = max(campaign.end_date, order.end_date)
            self.db.flush()
            if campaign.status == CampaignStatus.PAUSED:
                day_status = MissionDayStatus.PAUSED
            else:
                # 기간이 늘어난 종료 캠페인은 다시 진행
                self.campaign_repo.transition(
                    campaign.id,
                    [CampaignStatus.DRAFT, CampaignStatus.ENDED],
                    CampaignStatus.ACTIVE,
                )
        else:
            ratio = self.settings.REWARD_RATIO_BY_MISSION_TYPE.get(
                order.mission_type.value, 0.25
            )
            campaign = self.campaign_repo.create(
                advertiser_id=order.advertiser_id,
                name=order.product_name,
                mission_type=order.mission_type,
                start_date=order.start_date,
                end_date=order.end_date,
                daily_target=order.daily_target,
                unit_price_krw=order.unit_price_krw,
                reward_krw=calculate_reward_krw(order.unit_price_krw, ratio),
                status=CampaignStatus.ACTIVE,
            )
            self.order_repo.link_campaign(order.id, campaign.id)

        created, _ = self.mission_day_repo.upsert_for_campaign(
            campaign.id,
            each_date_inclusive(order.start_date, order.end_date),
            order.daily_target,
            status=day_status,
        )
        self.audit_repo.record(
            action="ADVERTISER_PRODUCT_ORDER_FULFILLED",
            actor_id=actor_id,
            target_type="ProductOrder",
            target_id=order.id,
            payload={
                "payment_id": order.payment_id,
                "campaign_id": campaign.id,
                "mission_days_created": created,
            },
        )
        order = self._get_order(order_id)
        logger.info(
            f"Product order fulfilled: order={order.id} campaign={campaign.id} "
            f"mission_days={created}"
        )
        return FulfillmentResult(
            order=self.order_repo.to_schema(order),
            campaign_id=campaign.id,
            mission_days_created=created,
        )

    def confirm_order(self, advertiser_id: int, request: OrderConfirmRequest) -> FulfillmentResult:
        """결제 확인 후 주문 이행 (반복 호출 안전)"""
        if not request.payment_id.startswith(ORDER_PAYMENT_PREFIX):
            raise ValidationError("Invalid payment type")
        payment = self._get_payment(request.payment_id, advertiser_id)
        if payment.amount_krw != request.amount_krw:
            raise ValidationError("Amount mismatch")

        order = self.order_repo.find_by_payment_id(payment.id)
        if order is None:
            raise NotFoundError("Order not found")

        with atomic(self.db):
            self._confirm_payment(payment.id, request.payment_key)
            self.order_repo.transition(order.id, [OrderStatus.CREATED], OrderStatus.PAID)
            result = self._fulfill(order.id, actor_id=advertiser_id)

        return result

    def _cancel_unpaid(self, payment: Payment, actor_id: Optional[int] = None) -> OrderCancelResult:
        """
        미결제 결제/주문 취소 + 사용 포인트 환급 (트랜잭션 내부)

        결제 CREATED -> CANCELED 전이가 실제로 일어난 경우에만 주문 취소, 환급, 감사 기록.
        이미 CANCELED 이면 변경 없이 현재 상태를 반환하고, PAID 이면 InvalidStateError.
        """
        moved = self.payment_repo.transition(
            payment.id, [PaymentStatus.CREATED], PaymentStatus.CANCELED
        )
        payment = self._get_payment(payment.id)
        if not moved and payment.status == PaymentStatus.PAID:
            raise InvalidStateError("Paid payment cannot be canceled")

        refunded = 0
        order = self.order_repo.find_by_payment_id(payment.id)
        if moved:
            if order is not None:
                self.order_repo.transition(
                    order.id, [OrderStatus.CREATED], OrderStatus.CANCELED
                )
                if order.points_applied_krw > 0:
                    refund = self.budget_repo.append(
                        owner_id=order.advertiser_id,
                        amount_krw=order.points_applied_krw,
                        reason=BudgetReason.PRODUCT_ORDER_POINTS_REFUND,
                        ref_id=str(order.id),
                    )
                    if refund.created:
                        refunded = refund.entry.amount_krw
                order = self._get_order(order.id)

            self.audit_repo.record(
                action="PAYMENT_CANCELED",
                actor_id=actor_id,
                target_type="Payment",
                target_id=payment.id,
                payload={"points_refunded_krw": refunded},
            )

        return OrderCancelResult(
            order=self.order_repo.to_schema(order),
            payment=self.payment_repo.to_schema(payment),
            points_refunded_krw=refunded,
            already_canceled=not moved,
        )

    def cancel_order(self, advertiser_id: int, request: OrderCancelRequest) -> OrderCancelResult:
        """미결제 주문 취소 (반복 호출 안전)"""
        payment = self._get_payment(request.payment_id, advertiser_id)
        with atomic(self.db):
            result = self._cancel_unpaid(payment, actor_id=advertiser_id)

        logger.info(
            f"Payment canceled: payment={payment.id} refunded={result.points_refunded_krw}"
        )
        return result

    # ------------------------------------------------------------------ #
    # 웹훅
    # ------------------------------------------------------------------ #

    def handle_payment_webhook(self, request: PaymentWebhookRequest) -> PaymentWebhookResult:
        """
        PG 웹훅 처리 - 최소 1회 전달을 가정하고 멱등하게 처리

        DONE: 결제 완료 후 충전 기록 또는 주문 이행
        CANCELED/ABORTED/EXPIRED: 미결제 건만 취소
        """
        payment = self._get_payment(request.payment_id)
        if request.amount_krw is not None and request.amount_krw != payment.amount_krw:
            raise ValidationError("Amount mismatch")

        with atomic(self.db):
            if request.status == WebhookPaymentStatus.DONE:
                payment = self._mark_paid(payment.id, request.payment_key)
                if payment.status != PaymentStatus.PAID:
                    logger.warning(f"Webhook DONE for canceled payment {payment.id}")
                    action = "NOOP"
                elif payment.purpose == PaymentPurpose.TOPUP:
                    self._credit_topup(payment)
                    action = "TOPUP_CREDITED"
                else:
                    order = self.order_repo.find_by_payment_id(payment.id)
                    if order is None:
                        raise NotFoundError("Order not found")
                    self.order_repo.transition(
                        order.id, [OrderStatus.CREATED], OrderStatus.PAID
                    )
                    self._fulfill(order.id)
                    action = "ORDER_FULFILLED"
            elif self._get_payment(payment.id).status == PaymentStatus.PAID:
                logger.warning(
                    f"Webhook {request.status.value} ignored for paid payment {payment.id}"
                )
                action = "NOOP"
            else:
                try:
                    result = self._cancel_unpaid(payment)
                except InvalidStateError:
                    # DONE 처리와 경합해 방금 PAID 가 된 경우
                    logger.warning(
                        f"Webhook {request.status.value} lost to payment completion {payment.id}"
                    )
                    action = "NOOP"
                else:
                    action = "NOOP" if result.already_canceled else "CANCELED"

            payment = self._get_payment(payment.id)

        logger.info(f"Payment webhook handled: payment={payment.id} action={action}")
        return PaymentWebhookResult(
            payment=self.payment_repo.to_schema(payment), action=action
        )

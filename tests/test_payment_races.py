"""
결제 상태 경합 - 두 세션이 같은 결제를 동시에 처리하는 경우

파일 sqlite 에 세션을 두 개 열고, 세션 A 의 조건부 전이 직전에
세션 B 의 경쟁 요청을 끝까지 커밋시켜 인터리빙을 재현한다.
"""
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from missionapi.core.exceptions import InvalidStateError
from missionapi.models.base import Base
from missionapi.models.campaign import MissionType
from missionapi.models.ledger import BudgetReason, LedgerKind
from missionapi.models.order import OrderStatus, PaymentStatus
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.schemas.order import (
    OrderCancelRequest,
    OrderConfirmRequest,
    PaymentMethod,
    PaymentWebhookRequest,
    ProductOrderInitRequest,
    TopupRequest,
    WebhookPaymentStatus,
)
from missionapi.services.order_service import OrderService

ADVERTISER_ID = 10


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'payments.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sessions(file_engine):
    factory = sessionmaker(
        autocommit=False, autoflush=False, bind=file_engine, expire_on_commit=False
    )
    first, second = factory(), factory()
    try:
        yield first, second
    finally:
        first.close()
        second.close()


@pytest.fixture
def services(sessions, test_settings):
    first, second = sessions
    return OrderService(first, test_settings), OrderService(second, test_settings)


def _run_before_first_transition(monkeypatch, service, competitor):
    """service 의 첫 결제 전이 직전에 competitor 를 한 번 실행"""
    original = service.payment_repo.transition
    pending = [competitor]

    def transition(*args, **kwargs):
        while pending:
            pending.pop()()
        return original(*args, **kwargs)

    monkeypatch.setattr(service.payment_repo, "transition", transition)


class TestPaymentRaces:
    def test_confirm_topup_loses_to_cancel(self, services, sessions, monkeypatch):
        """확인 요청이 CREATED 를 읽은 뒤 취소가 먼저 커밋되면 적립하지 않음"""
        # Given
        service_a, service_b = services
        created = service_a.topup(
            ADVERTISER_ID, TopupRequest(amount_krw=5000, method=PaymentMethod.TOSS)
        )
        _run_before_first_transition(
            monkeypatch,
            service_a,
            lambda: service_b.cancel_order(
                ADVERTISER_ID, OrderCancelRequest(payment_id=created.payment.id)
            ),
        )

        # When
        with pytest.raises(InvalidStateError):
            service_a.confirm_topup(
                ADVERTISER_ID,
                OrderConfirmRequest(
                    payment_id=created.payment.id, amount_krw=5000, payment_key="pk_a"
                ),
            )

        # Then
        ledger = LedgerRepository(sessions[1], LedgerKind.BUDGET)
        assert ledger.get_entry(BudgetReason.TOPUP, created.payment.id) is None
        assert ledger.get_balance(ADVERTISER_ID) == 0
        payment = service_b.payment_repo.get_model(created.payment.id, refresh=True)
        assert payment.status == PaymentStatus.CANCELED

    def test_cancel_loses_to_webhook_done(self, services, sessions, monkeypatch):
        """취소가 CREATED 를 읽은 뒤 DONE 웹훅이 먼저 커밋되면 포인트 환급 없이 이행 유지"""
        # Given
        service_a, service_b = services
        service_a.topup(ADVERTISER_ID, TopupRequest(amount_krw=1000))
        init = service_a.init_order(
            ADVERTISER_ID,
            ProductOrderInitRequest(
                product_name="플레이스 트래픽",
                mission_type=MissionType.TRAFFIC,
                unit_price_krw=100,
                vat_percent=10,
                start_date=date(2024, 1, 15),
                end_date=date(2024, 1, 17),
                daily_target=10,
                payment_method=PaymentMethod.TOSS,
                points_applied_krw=1000,
            ),
        )
        assert init.payment.status == PaymentStatus.CREATED
        _run_before_first_transition(
            monkeypatch,
            service_a,
            lambda: service_b.handle_payment_webhook(
                PaymentWebhookRequest(
                    payment_id=init.payment.id,
                    status=WebhookPaymentStatus.DONE,
                    payment_key="pk_b",
                )
            ),
        )

        # When
        with pytest.raises(InvalidStateError):
            service_a.cancel_order(ADVERTISER_ID, OrderCancelRequest(payment_id=init.payment.id))

        # Then
        ledger = LedgerRepository(sessions[1], LedgerKind.BUDGET)
        assert (
            ledger.get_entry(BudgetReason.PRODUCT_ORDER_POINTS_REFUND, str(init.order.id))
            is None
        )
        assert ledger.get_balance(ADVERTISER_ID) == 0
        order = service_b.order_repo.get_model(init.order.id, refresh=True)
        assert order.status == OrderStatus.FULFILLED
        payment = service_b.payment_repo.get_model(init.payment.id, refresh=True)
        assert payment.status == PaymentStatus.PAID

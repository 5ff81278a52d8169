import pytest

from missionapi.core.exceptions import ValidationError
from missionapi.models.audit import AuditLog
from missionapi.models.ledger import CreditReason, LedgerKind
from missionapi.models.payout import PayoutRequest, PayoutStatus
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.schemas.ledger import AdminAdjustmentRequest
from missionapi.services.ledger_service import LedgerService


@pytest.fixture
def ledger_service(db_session):
    return LedgerService(db_session)


@pytest.fixture
def funded_member(db_session):
    """적립금 3000 + 미정산 출금 요청 1000 (REQUESTED) + 500 (APPROVED) + 지급 완료 200"""
    repo = LedgerRepository(db_session, LedgerKind.CREDIT)
    repo.append(owner_id=100, amount_krw=3000, reason=CreditReason.MISSION_REWARD, ref_id="p-1")
    db_session.add_all(
        [
            PayoutRequest(rewarder_id=100, amount_krw=1000, status=PayoutStatus.REQUESTED),
            PayoutRequest(rewarder_id=100, amount_krw=500, status=PayoutStatus.APPROVED),
            PayoutRequest(rewarder_id=100, amount_krw=200, status=PayoutStatus.PAID),
        ]
    )
    db_session.commit()
    return 100


class TestBalances:
    """잔액 / 출금 가능 잔액"""

    def test_member_balance_subtracts_pending(self, ledger_service, funded_member):
        balance = ledger_service.get_member_balance(funded_member)

        assert balance.balance_krw == 3000
        assert balance.pending_krw == 1500
        assert balance.available_krw == 1500

    def test_available_balance_excluding_one_request(
        self, ledger_service, funded_member, db_session
    ):
        requested = (
            db_session.query(PayoutRequest)
            .filter(PayoutRequest.status == PayoutStatus.REQUESTED)
            .one()
        )

        assert ledger_service.get_available_balance(funded_member) == 1500
        assert (
            ledger_service.get_available_balance(funded_member, exclude_payout_id=requested.id)
            == 2500
        )

    def test_unknown_advertiser_has_zero(self, ledger_service):
        balance = ledger_service.get_advertiser_balance(999)

        assert balance.balance_krw == 0
        assert balance.available_krw == 0


class TestAdjustment:
    """관리자 조정"""

    def test_adjust_is_idempotent_by_ref(self, ledger_service, db_session):
        request = AdminAdjustmentRequest(
            owner_id=10, amount_krw=7000, memo="보상 지급", ref_id="adj-1"
        )

        first = ledger_service.adjust(LedgerKind.BUDGET, request, actor_id=1)
        second = ledger_service.adjust(LedgerKind.BUDGET, request, actor_id=1)

        assert first.created is True
        assert second.created is False
        assert second.entry.id == first.entry.id
        assert ledger_service.get_advertiser_balance(10).balance_krw == 7000
        audits = (
            db_session.query(AuditLog)
            .filter(AuditLog.action == "ADMIN_LEDGER_ADJUSTMENT")
            .count()
        )
        assert audits == 1

    def test_zero_adjustment_rejected(self, ledger_service):
        request = AdminAdjustmentRequest(owner_id=10, amount_krw=0, memo="x", ref_id="adj-0")

        with pytest.raises(ValidationError):
            ledger_service.adjust(LedgerKind.CREDIT, request, actor_id=1)


class TestHistoryAndIntegrity:
    def test_history_paging(self, ledger_service, db_session):
        repo = LedgerRepository(db_session, LedgerKind.CREDIT)
        for i in range(3):
            repo.append(owner_id=100, amount_krw=100, reason=CreditReason.MISSION_REWARD, ref_id=f"p-{i}")
        db_session.commit()

        page = ledger_service.get_history(LedgerKind.CREDIT, 100, limit=2, offset=0)

        assert page.balance_krw == 300
        assert page.total_count == 3
        assert len(page.entries) == 2
        assert page.has_next is True

    def test_integrity_ok(self, ledger_service, funded_member):
        result = ledger_service.verify_integrity(LedgerKind.CREDIT, funded_member)

        assert result.status == "OK"
        assert result.aggregated_balance_krw == 3000
        assert result.entry_count == 1

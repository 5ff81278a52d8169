import pytest

from missionapi.models.ledger import BudgetReason, CreditReason, LedgerKind
from missionapi.repositories.ledger_repository import LedgerRepository
from missionapi.schemas.ledger import LedgerEntryCreate


@pytest.fixture
def credit_repo(db_session):
    return LedgerRepository(db_session, LedgerKind.CREDIT)


@pytest.fixture
def budget_repo(db_session):
    return LedgerRepository(db_session, LedgerKind.BUDGET)


class TestLedgerAppend:
    """원장 기록 멱등성 테스트"""

    def test_append_creates_entry(self, credit_repo, db_session):
        """새 (reason, ref_id) 는 기록되고 created=True"""
        # When
        result = credit_repo.append(100, 5000, CreditReason.MISSION_REWARD, "p-1")
        db_session.commit()

        # Then
        assert result.created is True
        assert result.entry.owner_id == 100
        assert result.entry.amount_krw == 5000
        assert result.entry.reason == "MISSION_REWARD"
        assert credit_repo.get_balance(100) == 5000

    def test_append_same_key_is_noop(self, credit_repo, db_session):
        """같은 키로 다시 기록하면 기존 항목을 돌려주고 잔액은 그대로"""
        # Given
        first = credit_repo.append(100, 5000, CreditReason.MISSION_REWARD, "p-1")
        db_session.commit()

        # When
        second = credit_repo.append(100, 5000, CreditReason.MISSION_REWARD, "p-1")
        db_session.commit()

        # Then
        assert second.created is False
        assert second.entry.id == first.entry.id
        assert credit_repo.get_balance(100) == 5000
        assert credit_repo.count({"owner_id": 100}) == 1

    def test_same_ref_with_different_reason_is_distinct(self, budget_repo, db_session):
        """ref_id 가 같아도 reason 이 다르면 별도 항목"""
        budget_repo.append(10, 30000, BudgetReason.PRODUCT_ORDER_CREDIT, "1")
        budget_repo.append(10, -30000, BudgetReason.PRODUCT_ORDER_BURN, "1")
        db_session.commit()

        assert budget_repo.count({"owner_id": 10}) == 2
        assert budget_repo.get_balance(10) == 0

    def test_append_many_replay_produces_one_entry_per_key(self, budget_repo, db_session):
        """append_many 를 두 번 호출해도 키마다 한 건"""
        # Given
        entries = [
            LedgerEntryCreate(owner_id=10, amount_krw=50000, reason="PRODUCT_ORDER_CREDIT", ref_id="7"),
            LedgerEntryCreate(owner_id=10, amount_krw=-50000, reason="PRODUCT_ORDER_BURN", ref_id="7"),
        ]
        budget_repo.append(10, 20000, BudgetReason.TOPUP, "pay_1")
        db_session.commit()

        # When
        first = budget_repo.append_many(entries)
        db_session.commit()
        second = budget_repo.append_many(entries)
        db_session.commit()

        # Then
        assert [r.created for r in first] == [True, True]
        assert [r.created for r in second] == [False, False]
        assert [r.entry.id for r in first] == [r.entry.id for r in second]
        assert budget_repo.count({"owner_id": 10}) == 3
        assert budget_repo.get_balance(10) == 20000

    def test_duplicate_key_within_one_batch(self, credit_repo, db_session):
        """한 배치 안의 중복 키는 첫 번째만 created"""
        entries = [
            LedgerEntryCreate(owner_id=1, amount_krw=100, reason="MISSION_REWARD", ref_id="dup"),
            LedgerEntryCreate(owner_id=1, amount_krw=100, reason="MISSION_REWARD", ref_id="dup"),
        ]

        results = credit_repo.append_many(entries)
        db_session.commit()

        assert [r.created for r in results] == [True, False]
        assert credit_repo.get_balance(1) == 100

    def test_entries_without_ref_id_always_insert(self, credit_repo, db_session):
        """ref_id 가 없으면 멱등 키가 없으므로 매번 기록"""
        credit_repo.append(1, 100, CreditReason.ADMIN_ADJUSTMENT)
        credit_repo.append(1, 100, CreditReason.ADMIN_ADJUSTMENT)
        db_session.commit()

        assert credit_repo.get_balance(1) == 200

    def test_append_many_empty(self, credit_repo):
        assert credit_repo.append_many([]) == []

    def test_ledgers_are_separate(self, credit_repo, budget_repo, db_session):
        """예산 원장과 적립금 원장은 서로 영향 없음"""
        credit_repo.append(5, 1000, CreditReason.MISSION_REWARD, "x")
        budget_repo.append(5, 3000, BudgetReason.TOPUP, "x")
        db_session.commit()

        assert credit_repo.get_balance(5) == 1000
        assert budget_repo.get_balance(5) == 3000


class TestLedgerQueries:
    """잔액/내역/정합성 조회 테스트"""

    def test_balance_of_unknown_owner_is_zero(self, credit_repo):
        assert credit_repo.get_balance(999) == 0

    def test_history_newest_first(self, credit_repo, db_session):
        for i in range(3):
            credit_repo.append(7, 100 * (i + 1), CreditReason.MISSION_REWARD, f"p-{i}")
        db_session.commit()

        entries, total = credit_repo.get_history(7, limit=2, offset=0)

        assert total == 3
        assert [e.amount_krw for e in entries] == [300, 200]

    def test_get_entry_by_key(self, credit_repo, db_session):
        credit_repo.append(7, -500, CreditReason.PAYOUT, "42")
        db_session.commit()

        assert credit_repo.get_entry(CreditReason.PAYOUT, "42").amount_krw == -500
        assert credit_repo.get_entry(CreditReason.PAYOUT, "43") is None

    def test_verify_integrity(self, credit_repo, db_session):
        credit_repo.append(7, 5000, CreditReason.MISSION_REWARD, "a")
        credit_repo.append(7, -3000, CreditReason.PAYOUT, "b")
        db_session.commit()

        stats = credit_repo.verify_integrity(7)

        assert stats == {
            "aggregated_balance_krw": 2000,
            "folded_balance_krw": 2000,
            "entry_count": 2,
            "duplicate_keys": 0,
        }

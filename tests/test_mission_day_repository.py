from missionapi.models.campaign import MissionDay
from missionapi.repositories.mission_day_repository import MissionDayRepository


def _reload(db_session, mission_day_id) -> MissionDay:
    return db_session.get(MissionDay, mission_day_id, populate_existing=True)


class TestQuotaCounter:
    """일자별 한도 조건부 차감/복구 테스트"""

    def test_claim_never_exceeds_quota(self, db_session, make_campaign):
        """quota_total=N 이면 N 번만 성공하고 남은 수량은 음수가 되지 않음"""
        # Given
        _, mission_day = make_campaign(quota=2)
        repo = MissionDayRepository(db_session)

        # When
        results = [repo.claim(mission_day.id) for _ in range(5)]
        db_session.commit()

        # Then
        assert results == [True, True, False, False, False]
        assert _reload(db_session, mission_day.id).quota_remaining == 0

    def test_single_slot_two_joins(self, db_session, make_campaign):
        """남은 1개를 두 요청이 노리면 정확히 하나만 성공"""
        _, mission_day = make_campaign(quota=1)
        repo = MissionDayRepository(db_session)

        first = repo.claim(mission_day.id)
        second = repo.claim(mission_day.id)

        assert (first, second) == (True, False)

    def test_release_restores_slot(self, db_session, make_campaign):
        _, mission_day = make_campaign(quota=1)
        repo = MissionDayRepository(db_session)
        repo.claim(mission_day.id)

        assert repo.release(mission_day.id) is True
        db_session.commit()
        assert _reload(db_session, mission_day.id).quota_remaining == 1

    def test_release_is_clamped_to_total(self, db_session, make_campaign):
        """이미 가득 찬 상태에서 반환해도 quota_total 을 넘지 않음"""
        _, mission_day = make_campaign(quota=3)
        repo = MissionDayRepository(db_session)

        assert repo.release(mission_day.id) is False
        db_session.commit()
        assert _reload(db_session, mission_day.id).quota_remaining == 3

    def test_claim_unknown_mission_day(self, db_session):
        assert MissionDayRepository(db_session).claim(12345) is False

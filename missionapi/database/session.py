import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from missionapi.database.connection import SessionLocal

logger = logging.getLogger(__name__)


def get_db() -> Iterator[Session]:
    """요청 단위 세션 - 커밋은 서비스의 atomic 블록이 담당"""
    db = SessionLocal()
    try:
        yield db
    finally:
        if db.in_transaction():
            db.rollback()
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """하나의 비즈니스 연산을 단일 트랜잭션으로 묶는다.

    블록이 정상 종료되면 commit, 예외가 나면 모든 쓰기를 rollback 후 재발생.
    원장 기록, 슬롯 차감/반환, 상태 전이가 함께 반영되거나 함께 취소된다.
    """
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.warning(f"Transaction rolled back: {type(e).__name__}: {e}")
        db.rollback()
        raise

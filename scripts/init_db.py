import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from missionapi.config import settings
from missionapi.database.connection import engine
from missionapi.models.base import Base

# 테이블 등록을 위해 모든 모델 모듈 import
import missionapi.models.audit  # noqa: F401
import missionapi.models.campaign  # noqa: F401
import missionapi.models.ledger  # noqa: F401
import missionapi.models.order  # noqa: F401
import missionapi.models.participation  # noqa: F401
import missionapi.models.payout  # noqa: F401


def init_db():
    """데이터베이스 초기화"""
    try:
        Base.metadata.create_all(bind=engine)
        print(f"Database initialized successfully ({settings.ENVIRONMENT})")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    init_db()

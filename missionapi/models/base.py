from sqlalchemy import BigInteger, Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()

# sqlite는 INTEGER PRIMARY KEY 만 자동 증가하므로 variant 지정
IdType = BigInteger().with_variant(Integer(), "sqlite")


class TimestampMixin:
    """created_at / updated_at (DB 시각)"""

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now())

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
        )


class BaseModel(Base, TimestampMixin):
    """상태를 가진 엔티티 공통 베이스 (원장 테이블은 created_at 만 사용)"""

    __abstract__ = True

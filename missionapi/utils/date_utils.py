from datetime import date, datetime, timedelta, timezone
from typing import Iterator
import logging

# 로거 설정
logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """timezone-aware 현재 UTC 시각"""
    return datetime.now(timezone.utc)


def to_date_only_utc(value: datetime) -> date:
    """
    시각을 UTC 기준 달력 날짜로 정규화

    Examples:
        >>> to_date_only_utc(datetime(2024, 1, 15, 23, 30, tzinfo=timezone.utc))
        date(2024, 1, 15)

    naive datetime 은 이미 UTC 로 간주합니다.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def today_utc() -> date:
    return to_date_only_utc(utcnow())


def each_date_inclusive(start: date, end: date) -> Iterator[date]:
    """start ~ end (양끝 포함) 의 모든 날짜. start > end 이면 빈 iterator"""
    current = start
    while current <= end:
        yield current
        current = current + timedelta(days=1)


def days_inclusive(start: date, end: date) -> int:
    """양끝 포함 일수 (2024-01-01 ~ 2024-01-03 => 3)"""
    return (end - start).days + 1

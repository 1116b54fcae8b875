"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_regist_time(dt: datetime) -> str:
    """
    datetime을 채팅 메시지의 registTime 문자열로 변환합니다.

    항상 마이크로초와 UTC 오프셋을 포함한 고정 길이 ISO-8601 문자열을 반환하므로
    문자열 비교만으로 시간 순서를 비교할 수 있습니다.

    Examples:
        >>> to_regist_time(datetime(2024, 1, 1, tzinfo=timezone.utc))
        '2024-01-01T00:00:00.000000+00:00'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_regist_time() -> str:
    """현재 시각의 registTime 문자열"""
    return to_regist_time(utc_now())


def latest_regist_time(candidate: str, previous: Optional[str]) -> str:
    """이전 메시지보다 앞서지 않는 registTime을 반환합니다."""
    if previous is not None and candidate < previous:
        return previous
    return candidate

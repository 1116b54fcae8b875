"""
채팅방 참여자 식별 규칙

두 사용자 ID를 (작은 ID, 큰 ID) 순서의 canonical pair로 정규화합니다.
채팅방은 호출 순서와 관계없이 이 pair 하나로만 식별됩니다.
"""

from typing import Tuple

from turtlechat.core.errors import InvalidParticipants


def _validate_user_id(value, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidParticipants(
            f"{field_name} must be a positive integer",
            details={field_name: value}
        )
    return value


def canonical_pair(a: int, b: int) -> Tuple[int, int]:
    """(min(a, b), max(a, b)) 반환. 같은 사용자이거나 양의 정수가 아니면 InvalidParticipants"""
    a = _validate_user_id(a, "user_a")
    b = _validate_user_id(b, "user_b")
    if a == b:
        raise InvalidParticipants("Cannot create chat room with yourself", details={"user_id": a})
    return (a, b) if a < b else (b, a)

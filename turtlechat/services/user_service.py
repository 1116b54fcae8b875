"""
User lookup - 채팅에서 참조하는 사용자 프로필 조회 (MySQL)
"""

from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turtlechat.models.users import User
from turtlechat.schemas.user import UserProfile


async def find_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """사용자 ID로 조회"""
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    return result.scalar_one_or_none()


class UserDirectory(Protocol):
    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        ...


class SqlUserDirectory:
    """요청 세션에 묶인 UserDirectory 구현"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        user = await find_user_by_id(self.db, user_id)
        if user is None:
            return None
        return UserProfile.model_validate(user)

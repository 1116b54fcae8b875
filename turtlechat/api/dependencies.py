"""
공통 FastAPI 의존성 - 인증, ChatService 조립
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from turtlechat.core.config import settings
from turtlechat.core.errors import AuthenticationException, invalid_token_error
from turtlechat.core.logging import user_id_var
from turtlechat.database.mysql import get_async_session
from turtlechat.services.chat_service import ChatService
from turtlechat.services.chat_store import ChatStore, get_chat_store
from turtlechat.services.push_channel import PushChannel, get_push_channel
from turtlechat.services.transaction_service import SqlListingDirectory
from turtlechat.services.user_service import SqlUserDirectory
from turtlechat.utils.auth import decode_access_token, subject_user_id

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user_id(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme)
) -> int:
    """Bearer 토큰의 subject(사용자 ID) 반환"""
    if not token:
        raise AuthenticationException("Not authenticated")

    payload = decode_access_token(token)
    if not payload:
        raise invalid_token_error()

    user_id = subject_user_id(payload)
    if user_id is None:
        raise invalid_token_error()

    # 로깅 컨텍스트에 사용자 정보 추가
    request.state.user_id = user_id
    user_id_var.set(user_id)
    return user_id


def get_chat_service(
    db: AsyncSession = Depends(get_async_session),
    store: ChatStore = Depends(get_chat_store),
    push: PushChannel = Depends(get_push_channel)
) -> ChatService:
    return ChatService(
        store=store,
        users=SqlUserDirectory(db),
        listings=SqlListingDirectory(db),
        push=push,
        listing_card_resend=settings.listing_card_resend,
    )

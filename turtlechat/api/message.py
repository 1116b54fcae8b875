from typing import List
from fastapi import APIRouter, Depends, Query

from turtlechat.api.dependencies import get_chat_service, get_current_user_id
from turtlechat.core.config import settings
from turtlechat.schemas.chat import EnrichedMessage, TextMessageCreate, TextMessageResponse
from turtlechat.services.chat_service import ChatService

router = APIRouter(prefix="/chat/rooms", tags=["Messages"])


@router.post("/{room_id}/messages", response_model=TextMessageResponse)
async def send_message(
    room_id: str,
    message_data: TextMessageCreate,
    current_user_id: int = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service)
) -> TextMessageResponse:
    """
    메시지 전송

    - **text**: 메시지 내용

    상대방의 활성 SSE 구독으로 실시간 알림이 전달됩니다.
    """
    # 비즈니스 로직: 권한 확인 (채팅방 참여자인지)
    room = await chat_service.room_for_member(room_id, current_user_id)

    message = await chat_service.send_text(
        current_user_id,
        room.other_participant(current_user_id),
        message_data.text
    )
    return TextMessageResponse.model_validate(message.model_dump())


@router.get("/{room_id}/messages", response_model=List[EnrichedMessage])
async def get_messages(
    room_id: str,
    page: int = Query(0, ge=0, description="페이지 번호 (0부터)"),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="페이지 크기"),
    current_user_id: int = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service)
) -> List[EnrichedMessage]:
    """
    메시지 히스토리 조회 (최신 메시지부터)

    조회한 사용자의 읽지 않은 메시지 수는 0으로 초기화됩니다.
    """
    room = await chat_service.room_for_member(room_id, current_user_id)

    return await chat_service.history(
        current_user_id,
        room.other_participant(current_user_id),
        page,
        size
    )

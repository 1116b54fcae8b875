from typing import Optional
from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from turtlechat.api.dependencies import get_current_user_id
from turtlechat.core.config import settings
from turtlechat.core.errors import AuthorizationException, ResourceNotFoundException
from turtlechat.domain.events import NotificationInjected
from turtlechat.schemas.chat import NotificationCreate, NotificationResponse
from turtlechat.services.push_channel import PushChannel, get_push_channel
from turtlechat.utils.time_utils import utc_now

router = APIRouter(prefix="/main/notifications", tags=["Notifications"])


@router.get("/sse/subscribe/{user_id}")
async def subscribe(
    user_id: int,
    current_user_id: int = Depends(get_current_user_id),
    push: PushChannel = Depends(get_push_channel)
):
    """
    실시간 알림 구독 (Server-Sent Events)

    새 메시지, 거래글 카드, 새 채팅방 이벤트를 `event: chat`으로 전달합니다.
    """
    # 비즈니스 로직: 본인 알림만 구독 가능
    if current_user_id != user_id:
        raise AuthorizationException("Cannot subscribe to another user's notifications")

    subscription = push.subscribe(user_id)

    return EventSourceResponse(
        push.stream(subscription),
        ping=settings.sse_keepalive_seconds,
        send_timeout=settings.sse_send_timeout_seconds
    )


@router.post("/send-data/{user_id}", response_model=NotificationResponse)
async def send_data(
    user_id: int,
    notification: Optional[NotificationCreate] = None,
    current_user_id: int = Depends(get_current_user_id),
    push: PushChannel = Depends(get_push_channel)
) -> NotificationResponse:
    """
    테스트용 알림 주입

    `notification_hook_enabled`가 꺼져 있으면 404를 반환합니다.
    """
    if not settings.notification_hook_enabled:
        raise ResourceNotFoundException("Notification hook")

    if notification is None:
        notification = NotificationCreate()

    delivered = push.notify(user_id, NotificationInjected(
        message=notification.message,
        timestamp=utc_now()
    ))
    return NotificationResponse(delivered=delivered)

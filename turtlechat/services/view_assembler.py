"""
View assembler - 저장된 메시지/채팅방을 응답 모델로 변환 (I/O 없음)
"""

from typing import Mapping, Optional

from turtlechat.models.chats import ChatMessage, ListingCardMessage, Room, TextMessage
from turtlechat.schemas.chat import (
    EnrichedMessage,
    EnrichedTextMessage,
    ListingCardView,
    RoomSummary,
)
from turtlechat.schemas.user import UserProfile


def enrich_text(message: TextMessage, sender: Optional[UserProfile]) -> EnrichedTextMessage:
    return EnrichedTextMessage(
        id=message.id,
        sender=message.sender,
        text=message.text,
        regist_time=message.regist_time,
        nickname=sender.nickname if sender else None,
        profile_image=sender.profile_image if sender else None,
    )


def render_listing_card(card: ListingCardMessage) -> ListingCardView:
    return ListingCardView(
        id=card.id,
        listing_id=card.listing_id,
        title=card.title,
        price=card.price,
        image=card.image,
        regist_time=card.regist_time,
    )


def assemble_message(
    message: ChatMessage,
    profiles: Mapping[int, Optional[UserProfile]],
) -> EnrichedMessage:
    if isinstance(message, TextMessage):
        return enrich_text(message, profiles.get(message.sender))
    return render_listing_card(message)


def summarize_room(room: Room, self_id: int, other: Optional[UserProfile]) -> RoomSummary:
    recent = room.recent_message
    return RoomSummary(
        room_id=room.id,
        other_user_id=room.other_participant(self_id),
        other_nickname=other.nickname if other else None,
        other_profile_image=other.profile_image if other else None,
        last_text=recent.text,
        last_timestamp=recent.regist_time,
        unread_for_self=room.unread_for(self_id),
    )

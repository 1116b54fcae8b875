"""
Chat service - 1:1 채팅 비즈니스 로직

채팅방 생성/조회, 메시지 전송, 히스토리 조회(읽음 처리 포함)와
실시간 알림 전달을 조합합니다.
"""

import logging
from typing import Dict, List, Optional, Tuple

from turtlechat.core.config import settings
from turtlechat.core.errors import (
    BusinessLogicException,
    ListingNotFound,
    NotAParticipant,
    RoomAlreadyExists,
    RoomNotFound,
    UserNotFound,
)
from turtlechat.domain.events import (
    ChatListingPushed,
    ChatRoomOpened,
    ChatTextPushed,
    DomainEvent,
)
from turtlechat.models.chats import ListingCardMessage, Room, TextMessage
from turtlechat.schemas.chat import EnrichedMessage, RoomSummary
from turtlechat.schemas.user import UserProfile
from turtlechat.services.chat_store import ChatStore, new_object_id
from turtlechat.services.push_channel import PushChannel
from turtlechat.services.room_identity import canonical_pair
from turtlechat.services.transaction_service import ListingDirectory
from turtlechat.services.user_service import UserDirectory
from turtlechat.services.view_assembler import assemble_message, summarize_room
from turtlechat.utils.time_utils import now_regist_time, utc_now

logger = logging.getLogger(__name__)


class _ProfileCache:
    """요청 하나 동안 같은 사용자 프로필을 한 번만 조회"""

    def __init__(self, users: UserDirectory):
        self.users = users
        self.profiles: Dict[int, Optional[UserProfile]] = {}

    async def get(self, user_id: int) -> Optional[UserProfile]:
        if user_id not in self.profiles:
            self.profiles[user_id] = await self.users.get_profile(user_id)
        return self.profiles[user_id]


class ChatService:
    def __init__(
        self,
        store: ChatStore,
        users: UserDirectory,
        listings: ListingDirectory,
        push: PushChannel,
        listing_card_resend: bool = False,
    ):
        self.store = store
        self.users = users
        self.listings = listings
        self.push = push
        self.listing_card_resend = listing_card_resend

    # =========================================================================
    # 채팅방
    # =========================================================================

    async def _open_room(self, left: int, right: int) -> Tuple[str, bool]:
        """(room_id, 새로 생성 여부). 생성 시에만 두 사용자 존재를 확인"""
        existing_id = await self.store.find_room_id(left, right)
        if existing_id is not None:
            return existing_id, False

        for user_id in (left, right):
            if await self.users.get_profile(user_id) is None:
                raise UserNotFound(user_id)

        try:
            room_id = await self.store.create_room(left, right)
        except RoomAlreadyExists as e:
            # 동시에 생성된 경우 기존 방을 그대로 반환
            if e.room_id:
                return e.room_id, False
            existing_id = await self.store.find_room_id(left, right)
            if existing_id is None:
                raise
            return existing_id, False

        logger.info(f"Chat room created: {room_id} ({left}, {right})")
        return room_id, True

    async def open_or_create_from_users(self, self_id: int, other_id: int) -> str:
        left, right = canonical_pair(self_id, other_id)
        room_id, created = await self._open_room(left, right)

        if created:
            self._push(other_id, ChatRoomOpened(
                room_id=room_id,
                other_user_id=self_id,
                timestamp=utc_now(),
            ))
        return room_id

    async def open_from_listing(self, self_id: int, listing_id: int) -> str:
        listing = await self.listings.get_listing(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)

        seller_id = listing.seller_id
        left, right = canonical_pair(self_id, seller_id)
        room_id, created = await self._open_room(left, right)

        card = ListingCardMessage(
            id=new_object_id(),
            listing_id=listing.id,
            title=listing.title,
            price=listing.price,
            image=listing.photos[0] if listing.photos else None,
            regist_time=now_regist_time(),
        )

        if self.listing_card_resend:
            await self.store.append_message(left, right, card)
            appended = True
        else:
            appended = await self.store.append_listing_card_once(left, right, card)

        if created:
            self._push(seller_id, ChatRoomOpened(
                room_id=room_id,
                other_user_id=self_id,
                timestamp=utc_now(),
            ))
        if appended:
            self._push(seller_id, ChatListingPushed(
                room_id=room_id,
                message_id=card.id,
                listing_id=card.listing_id,
                title=card.title,
                price=card.price,
                image=card.image,
                timestamp=utc_now(),
            ))

        return room_id

    async def room_for_member(self, room_id: str, user_id: int) -> Room:
        """room_id로 채팅방 조회 후 참여자인지 확인"""
        room = await self.store.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.index_of(user_id) is None:
            raise NotAParticipant(user_id)
        return room

    async def room_summary(self, room_id: str, user_id: int) -> RoomSummary:
        room = await self.room_for_member(room_id, user_id)
        other = await self.users.get_profile(room.other_participant(user_id))
        return summarize_room(room, user_id, other)

    async def rooms(self, self_id: int, page: int, size: int) -> List[RoomSummary]:
        """최근 메시지 순 채팅방 목록"""
        rooms = await self.store.recent_rooms(self_id, page, size)

        profiles = _ProfileCache(self.users)
        summaries = []
        for room in rooms:
            other = await profiles.get(room.other_participant(self_id))
            summaries.append(summarize_room(room, self_id, other))
        return summaries

    # =========================================================================
    # 메시지
    # =========================================================================

    async def send_text(self, self_id: int, other_id: int, text: str) -> TextMessage:
        if not text or not text.strip():
            raise BusinessLogicException("Message text cannot be empty", error="invalid_message")
        if len(text) > settings.max_message_length:
            raise BusinessLogicException(
                f"Message text exceeds {settings.max_message_length} characters",
                error="invalid_message"
            )

        left, right = canonical_pair(self_id, other_id)
        room_id, _ = await self._open_room(left, right)

        message = TextMessage(
            id=new_object_id(),
            sender=self_id,
            text=text,
            regist_time=now_regist_time(),
        )
        stored = await self.store.append_message(left, right, message)

        # 메시지는 이미 저장됨 - 알림 실패는 전송 결과에 영향 없음
        self._push(other_id, ChatTextPushed(
            room_id=room_id,
            message_id=stored.id,
            sender=stored.sender,
            text=stored.text,
            regist_time=stored.regist_time,
            timestamp=utc_now(),
        ))
        return stored

    async def history(self, self_id: int, other_id: int, page: int, size: int) -> List[EnrichedMessage]:
        """최신 -> 오래된 순 메시지. 조회한 사용자의 unread는 0으로 초기화"""
        left, right = canonical_pair(self_id, other_id)
        messages = await self.store.page(left, right, page, size)

        profiles = _ProfileCache(self.users)
        for message in messages:
            if isinstance(message, TextMessage):
                await profiles.get(message.sender)

        enriched = [assemble_message(message, profiles.profiles) for message in messages]

        await self.store.reset_unread(left, right, self_id)
        return enriched

    def _push(self, user_id: int, event: DomainEvent) -> None:
        try:
            delivered = self.push.notify(user_id, event)
            if delivered:
                logger.debug(f"{event.__class__.__name__} delivered to {delivered} subscription(s) of user {user_id}")
        except Exception as e:
            logger.error(f"Failed to push {event.__class__.__name__} to user {user_id}: {e}")

"""
Chat store - 채팅방과 메시지를 보관하는 저장소

ChatStore는 저장소 엔진과 무관한 연산만 정의합니다. 모든 연산은 canonical pair
(left < right)를 받으며, 변경 연산은 채팅방 단위로 원자적으로 수행됩니다.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from bson import ObjectId

from turtlechat.core.errors import (
    InvalidPagination,
    NotAParticipant,
    RoomAlreadyExists,
    RoomNotFound,
)
from turtlechat.core.logging import log_store_operation
from turtlechat.models.chats import (
    ChatMessage,
    ListingCardMessage,
    RecentMessage,
    Room,
    TextMessage,
    pair_key,
)
from turtlechat.utils.time_utils import latest_regist_time

logger = logging.getLogger(__name__)


def new_object_id() -> str:
    return str(ObjectId())


def check_page(page: int, size: int) -> None:
    if page < 0 or size < 1:
        raise InvalidPagination(page, size)


def reader_index(left: int, right: int, reader: int) -> int:
    if reader == left:
        return 0
    if reader == right:
        return 1
    raise NotAParticipant(reader)


def _without_messages(room: Room) -> Room:
    return Room(
        id=room.id,
        participants=list(room.participants),
        unread_count=list(room.unread_count),
        recent_message=room.recent_message.model_copy(),
    )


def recency_key(room: Room) -> Tuple[bool, str, str]:
    """recentRooms 정렬 키 (내림차순 정렬용): 빈 recent_message는 맨 뒤"""
    recent = room.recent_message
    return (not recent.is_empty, recent.regist_time or "", room.id)


class ChatStore(ABC):
    """채팅방 저장소 인터페이스"""

    @abstractmethod
    async def create_room(self, left: int, right: int) -> str:
        """새 채팅방 생성. 이미 있으면 RoomAlreadyExists"""

    @abstractmethod
    async def find_room(self, left: int, right: int) -> Optional[Room]:
        """pair로 채팅방 조회 (messages 포함)"""

    @abstractmethod
    async def find_room_id(self, left: int, right: int) -> Optional[str]:
        """pair로 채팅방 ID만 조회 (messages를 읽지 않음)"""

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[Room]:
        """ID로 채팅방 조회 (messages 제외)"""

    @abstractmethod
    async def append_message(self, left: int, right: int, message: ChatMessage) -> ChatMessage:
        """메시지 추가. 텍스트 메시지는 recent_message와 상대방 unread를 함께 갱신"""

    @abstractmethod
    async def append_listing_card_once(self, left: int, right: int, card: ListingCardMessage) -> bool:
        """같은 listing_id 카드가 없을 때만 추가. 추가했으면 True"""

    @abstractmethod
    async def reset_unread(self, left: int, right: int, reader: int) -> None:
        """reader의 unread 카운트를 0으로"""

    @abstractmethod
    async def page(self, left: int, right: int, page: int, size: int) -> List[ChatMessage]:
        """최신 -> 오래된 순 메시지 페이지"""

    @abstractmethod
    async def recent_rooms(self, user_id: int, page: int, size: int) -> List[Room]:
        """사용자가 참여한 채팅방 목록 (최근 메시지 순, messages 제외)"""


class _RoomEntry:
    __slots__ = ("room", "lock")

    def __init__(self, room: Room):
        self.room = room
        self.lock = asyncio.Lock()


class InMemoryChatStore(ChatStore):
    """
    프로세스 메모리 기반 저장소

    채팅방마다 asyncio.Lock으로 변경을 직렬화하고, 읽기는 deep copy 스냅샷을 반환합니다.
    """

    def __init__(self):
        self._rooms: Dict[Tuple[int, int], _RoomEntry] = {}
        self._ids: Dict[str, Tuple[int, int]] = {}
        self._registry_lock = asyncio.Lock()

    def _entry(self, left: int, right: int) -> _RoomEntry:
        entry = self._rooms.get((left, right))
        if entry is None:
            raise RoomNotFound(pair_key(left, right))
        return entry

    async def create_room(self, left: int, right: int) -> str:
        async with self._registry_lock:
            existing = self._rooms.get((left, right))
            if existing is not None:
                raise RoomAlreadyExists(existing.room.id)

            room = Room(id=new_object_id(), participants=[left, right])
            self._rooms[(left, right)] = _RoomEntry(room)
            self._ids[room.id] = (left, right)

        log_store_operation(logger, "create_room", pair_key(left, right), room_id=room.id)
        return room.id

    async def find_room(self, left: int, right: int) -> Optional[Room]:
        entry = self._rooms.get((left, right))
        if entry is None:
            return None
        async with entry.lock:
            return entry.room.model_copy(deep=True)

    async def find_room_id(self, left: int, right: int) -> Optional[str]:
        entry = self._rooms.get((left, right))
        return entry.room.id if entry is not None else None

    async def get_room(self, room_id: str) -> Optional[Room]:
        pair = self._ids.get(room_id)
        if pair is None:
            return None
        entry = self._rooms[pair]
        async with entry.lock:
            return _without_messages(entry.room)

    def _append_locked(self, room: Room, message: ChatMessage) -> ChatMessage:
        sender_index = None
        if isinstance(message, TextMessage):
            sender_index = room.index_of(message.sender)
            if sender_index is None:
                raise NotAParticipant(message.sender)

        previous = room.messages[-1].regist_time if room.messages else None
        stored = message.model_copy(
            update={"regist_time": latest_regist_time(message.regist_time, previous)}
        )
        room.messages.append(stored)

        if sender_index is not None:
            room.recent_message = RecentMessage.from_text(stored)
            room.unread_count[1 - sender_index] += 1

        return stored.model_copy(deep=True)

    async def append_message(self, left: int, right: int, message: ChatMessage) -> ChatMessage:
        entry = self._entry(left, right)
        async with entry.lock:
            stored = self._append_locked(entry.room, message)

        log_store_operation(logger, "append_message", pair_key(left, right), kind=stored.kind)
        return stored

    async def append_listing_card_once(self, left: int, right: int, card: ListingCardMessage) -> bool:
        entry = self._entry(left, right)
        async with entry.lock:
            for message in entry.room.messages:
                if isinstance(message, ListingCardMessage) and message.listing_id == card.listing_id:
                    return False
            self._append_locked(entry.room, card)

        log_store_operation(logger, "append_listing_card", pair_key(left, right), listing_id=card.listing_id)
        return True

    async def reset_unread(self, left: int, right: int, reader: int) -> None:
        index = reader_index(left, right, reader)
        entry = self._entry(left, right)
        async with entry.lock:
            entry.room.unread_count[index] = 0

    async def page(self, left: int, right: int, page: int, size: int) -> List[ChatMessage]:
        check_page(page, size)
        entry = self._entry(left, right)
        async with entry.lock:
            newest_first = list(reversed(entry.room.messages))
            return [m.model_copy(deep=True) for m in newest_first[page * size:(page + 1) * size]]

    async def recent_rooms(self, user_id: int, page: int, size: int) -> List[Room]:
        check_page(page, size)
        rooms = []
        for entry in list(self._rooms.values()):
            if user_id in entry.room.participants:
                async with entry.lock:
                    rooms.append(_without_messages(entry.room))

        rooms.sort(key=recency_key, reverse=True)
        return rooms[page * size:(page + 1) * size]


_store: Optional[ChatStore] = None


def init_chat_store(backend: str) -> ChatStore:
    """설정된 backend에 맞는 전역 저장소 생성"""
    global _store

    if backend == "mongodb":
        from turtlechat.services.mongo_chat_store import MongoChatStore
        _store = MongoChatStore()
    elif backend == "memory":
        _store = InMemoryChatStore()
    else:
        raise ValueError(f"Unknown chat store backend: {backend}")

    logger.info(f"Chat store initialized: {backend}")
    return _store


def get_chat_store() -> ChatStore:
    """FastAPI dependency - 전역 저장소 반환"""
    if _store is None:
        raise RuntimeError("Chat store not initialized. Call init_chat_store() first.")
    return _store

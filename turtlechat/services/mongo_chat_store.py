"""
MongoDB(Beanie) 기반 채팅 저장소

채팅방 하나가 문서 하나이므로, 메시지 추가와 recent_message / unread_count 갱신을
단일 update_one으로 처리해 원자성을 보장합니다.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional

from beanie import PydanticObjectId
from bson import Decimal128, ObjectId
from pydantic import TypeAdapter
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from turtlechat.core.errors import RoomAlreadyExists, RoomNotFound, StoreFailure
from turtlechat.core.logging import log_store_operation
from turtlechat.models.chats import (
    ChatDocument,
    ChatMessage,
    ChatSummaryView,
    ListingCardMessage,
    RecentMessage,
    Room,
    TextMessage,
    pair_key,
)
from turtlechat.services.chat_store import ChatStore, check_page, reader_index

logger = logging.getLogger(__name__)

_messages_adapter = TypeAdapter(List[ChatMessage])


@contextmanager
def _store_errors(operation: str, key: str):
    """PyMongoError -> StoreFailure"""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"Mongo {operation} failed for {key}: {e}")
        raise StoreFailure(details={"operation": operation}) from e


def message_document(message: ChatMessage) -> Dict[str, Any]:
    """BSON으로 저장할 메시지 dict (Decimal -> Decimal128)"""
    document = message.model_dump()
    for field, value in document.items():
        if isinstance(value, Decimal):
            document[field] = Decimal128(value)
    return document


def append_update(left: int, right: int, message: ChatMessage) -> Dict[str, Any]:
    """메시지 추가 update 문서. 배열은 (regist_time, id) 오름차순을 유지"""
    document = message_document(message)
    update: Dict[str, Any] = {
        "$push": {
            "messages": {
                "$each": [document],
                "$sort": {"regist_time": 1, "id": 1},
            }
        }
    }

    if isinstance(message, TextMessage):
        receiver = 1 - reader_index(left, right, message.sender)
        update["$set"] = {"recent_message": RecentMessage.from_text(message).model_dump()}
        update["$inc"] = {f"unread_count.{receiver}": 1}

    return update


def listing_card_absent_filter(key: str, listing_id: Optional[int]) -> Dict[str, Any]:
    return {
        "pair_key": key,
        "messages": {"$not": {"$elemMatch": {"kind": "listing", "listing_id": listing_id}}},
    }


def page_pipeline(key: str, page: int, size: int) -> List[Dict[str, Any]]:
    """최신 -> 오래된 순 메시지 slice를 한 번의 aggregation으로 조회"""
    return [
        {"$match": {"pair_key": key}},
        {
            "$project": {
                "_id": 0,
                "messages": {"$slice": [{"$reverseArray": "$messages"}, page * size, size]},
            }
        },
    ]


class MongoChatStore(ChatStore):
    """init_beanie(ChatDocument) 이후에 사용"""

    @staticmethod
    def _collection():
        return ChatDocument.get_motor_collection()

    async def create_room(self, left: int, right: int) -> str:
        key = pair_key(left, right)
        document = ChatDocument(pair_key=key, participants=[left, right])

        with _store_errors("create_room", key):
            try:
                await document.insert()
            except DuplicateKeyError:
                raise RoomAlreadyExists(await self.find_room_id(left, right))

        log_store_operation(logger, "create_room", key, room_id=str(document.id))
        return str(document.id)

    async def find_room(self, left: int, right: int) -> Optional[Room]:
        key = pair_key(left, right)
        with _store_errors("find_room", key):
            document = await ChatDocument.find_one(ChatDocument.pair_key == key)
        return document.to_room() if document else None

    async def find_room_id(self, left: int, right: int) -> Optional[str]:
        key = pair_key(left, right)
        with _store_errors("find_room_id", key):
            view = await ChatDocument.find_one(
                ChatDocument.pair_key == key,
                projection_model=ChatSummaryView,
            )
        return view.id if view else None

    async def get_room(self, room_id: str) -> Optional[Room]:
        if not ObjectId.is_valid(room_id):
            return None

        with _store_errors("get_room", room_id):
            view = await ChatDocument.find_one(
                ChatDocument.id == PydanticObjectId(room_id),
                projection_model=ChatSummaryView,
            )
        return view.to_room() if view else None

    async def append_message(self, left: int, right: int, message: ChatMessage) -> ChatMessage:
        key = pair_key(left, right)
        update = append_update(left, right, message)

        with _store_errors("append_message", key):
            result = await self._collection().update_one({"pair_key": key}, update)

        if result.matched_count == 0:
            raise RoomNotFound(key)

        log_store_operation(logger, "append_message", key, kind=message.kind)
        return message

    async def append_listing_card_once(self, left: int, right: int, card: ListingCardMessage) -> bool:
        key = pair_key(left, right)

        with _store_errors("append_listing_card", key):
            result = await self._collection().update_one(
                listing_card_absent_filter(key, card.listing_id),
                append_update(left, right, card),
            )
            if result.matched_count == 0:
                exists = await self._collection().count_documents({"pair_key": key}, limit=1)
                if not exists:
                    raise RoomNotFound(key)
                return False

        log_store_operation(logger, "append_listing_card", key, listing_id=card.listing_id)
        return True

    async def reset_unread(self, left: int, right: int, reader: int) -> None:
        key = pair_key(left, right)
        index = reader_index(left, right, reader)

        with _store_errors("reset_unread", key):
            result = await self._collection().update_one(
                {"pair_key": key},
                {"$set": {f"unread_count.{index}": 0}},
            )

        if result.matched_count == 0:
            raise RoomNotFound(key)

    async def page(self, left: int, right: int, page: int, size: int) -> List[ChatMessage]:
        check_page(page, size)
        key = pair_key(left, right)

        with _store_errors("page", key):
            cursor = self._collection().aggregate(page_pipeline(key, page, size))
            results = await cursor.to_list(length=1)

        if not results:
            raise RoomNotFound(key)
        return _messages_adapter.validate_python(results[0].get("messages", []))

    async def recent_rooms(self, user_id: int, page: int, size: int) -> List[Room]:
        check_page(page, size)

        with _store_errors("recent_rooms", str(user_id)):
            views = await ChatDocument.find(
                ChatDocument.participants == user_id
            ).sort(
                [("recent_message.regist_time", DESCENDING), ("_id", DESCENDING)]
            ).skip(page * size).limit(size).project(ChatSummaryView).to_list()

        return [view.to_room() for view in views]

import asyncio
from decimal import Decimal

import pytest

from turtlechat.core.errors import (
    InvalidPagination,
    NotAParticipant,
    RoomAlreadyExists,
    RoomNotFound,
)
from turtlechat.models.chats import ListingCardMessage, TextMessage
from turtlechat.services.chat_store import InMemoryChatStore, init_chat_store, get_chat_store, new_object_id


def text(sender: int, body: str, regist_time: str) -> TextMessage:
    return TextMessage(id=new_object_id(), sender=sender, text=body, regist_time=regist_time)


def card(listing_id: int, regist_time: str) -> ListingCardMessage:
    return ListingCardMessage(
        id=new_object_id(),
        listing_id=listing_id,
        title="Red-eared",
        price=Decimal("50000"),
        image="img/1",
        regist_time=regist_time,
    )


def ts(second: int) -> str:
    return f"2024-01-01T00:00:{second:02d}.000000+00:00"


@pytest.fixture
def store() -> InMemoryChatStore:
    return InMemoryChatStore()


class TestRoomLifecycle:
    """채팅방 생성/조회 테스트"""

    @pytest.mark.asyncio
    async def test_create_room_initial_state(self, store):
        room_id = await store.create_room(7, 13)
        room = await store.find_room(7, 13)

        assert room.id == room_id
        assert room.participants == [7, 13]
        assert room.unread_count == [0, 0]
        assert room.recent_message.is_empty
        assert room.messages == []

    @pytest.mark.asyncio
    async def test_create_duplicate_room(self, store):
        room_id = await store.create_room(7, 13)

        with pytest.raises(RoomAlreadyExists) as exc_info:
            await store.create_room(7, 13)

        assert exc_info.value.status_code == 409
        assert exc_info.value.room_id == room_id

    @pytest.mark.asyncio
    async def test_find_missing_room(self, store):
        assert await store.find_room(1, 2) is None

    @pytest.mark.asyncio
    async def test_find_room_id_skips_messages(self, store):
        room_id = await store.create_room(7, 13)
        await store.append_message(7, 13, text(7, "hi", ts(1)))

        assert await store.find_room_id(7, 13) == room_id
        assert await store.find_room_id(1, 2) is None

    @pytest.mark.asyncio
    async def test_get_room_by_id_without_messages(self, store):
        room_id = await store.create_room(7, 13)
        await store.append_message(7, 13, text(7, "hi", ts(1)))

        room = await store.get_room(room_id)

        assert room.participants == [7, 13]
        assert room.messages == []
        assert room.recent_message.text == "hi"
        assert await store.get_room("missing") is None

    @pytest.mark.asyncio
    async def test_snapshot_is_isolated(self, store):
        await store.create_room(7, 13)
        room = await store.find_room(7, 13)
        room.unread_count[0] = 42

        assert (await store.find_room(7, 13)).unread_count == [0, 0]


class TestAppendMessage:
    """메시지 추가 테스트"""

    @pytest.mark.asyncio
    async def test_text_updates_recent_and_receiver_unread(self, store):
        await store.create_room(7, 13)

        await store.append_message(7, 13, text(7, "hi", ts(1)))
        await store.append_message(7, 13, text(7, "again", ts(2)))
        room = await store.find_room(7, 13)

        assert room.unread_count == [0, 2]
        assert room.recent_message.text == "again"
        assert room.recent_message.sender == 7

    @pytest.mark.asyncio
    async def test_sender_counter_stays_zero(self, store):
        await store.create_room(7, 13)

        for i in range(5):
            await store.append_message(7, 13, text(13, f"m{i}", ts(i)))
            room = await store.find_room(7, 13)
            assert room.unread_count[1] == 0

        assert room.unread_count[0] == 5

    @pytest.mark.asyncio
    async def test_listing_card_leaves_recent_and_unread(self, store):
        await store.create_room(4, 20)
        await store.append_message(4, 20, text(20, "hello", ts(1)))

        await store.append_message(4, 20, card(1, ts(2)))
        room = await store.find_room(4, 20)

        assert room.unread_count == [1, 0]
        assert room.recent_message.text == "hello"
        assert len(room.messages) == 2

    @pytest.mark.asyncio
    async def test_append_to_missing_room(self, store):
        with pytest.raises(RoomNotFound):
            await store.append_message(7, 13, text(7, "hi", ts(1)))

    @pytest.mark.asyncio
    async def test_append_from_outsider(self, store):
        await store.create_room(7, 13)

        with pytest.raises(NotAParticipant):
            await store.append_message(7, 13, text(99, "hi", ts(1)))

        assert (await store.find_room(7, 13)).messages == []

    @pytest.mark.asyncio
    async def test_regist_time_never_goes_backwards(self, store):
        await store.create_room(7, 13)
        await store.append_message(7, 13, text(7, "later", ts(5)))

        stored = await store.append_message(7, 13, text(7, "earlier clock", ts(3)))

        assert stored.regist_time == ts(5)

    @pytest.mark.asyncio
    async def test_listing_card_once(self, store):
        await store.create_room(4, 20)

        assert await store.append_listing_card_once(4, 20, card(1, ts(1))) is True
        assert await store.append_listing_card_once(4, 20, card(1, ts(2))) is False
        assert await store.append_listing_card_once(4, 20, card(2, ts(3))) is True

        room = await store.find_room(4, 20)
        assert [m.listing_id for m in room.messages] == [1, 2]

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_serialized(self, store):
        await store.create_room(7, 13)

        await asyncio.gather(*[
            store.append_message(7, 13, text(7, f"m{i}", ts(i % 60)))
            for i in range(50)
        ])
        room = await store.find_room(7, 13)

        assert len(room.messages) == 50
        assert room.unread_count == [0, 50]
        times = [m.regist_time for m in room.messages]
        assert times == sorted(times)


class TestUnreadAndPaging:
    """읽음 처리와 페이지 조회 테스트"""

    @pytest.mark.asyncio
    async def test_reset_unread_only_for_reader(self, store):
        await store.create_room(7, 13)
        await store.append_message(7, 13, text(7, "a", ts(1)))
        await store.append_message(7, 13, text(13, "b", ts(2)))

        await store.reset_unread(7, 13, 13)
        room = await store.find_room(7, 13)

        assert room.unread_count == [1, 0]

    @pytest.mark.asyncio
    async def test_reset_unread_errors(self, store):
        with pytest.raises(RoomNotFound):
            await store.reset_unread(7, 13, 7)

        await store.create_room(7, 13)
        with pytest.raises(NotAParticipant):
            await store.reset_unread(7, 13, 99)

    @pytest.mark.asyncio
    async def test_pages_cover_history_newest_first(self, store):
        await store.create_room(7, 13)
        for i in range(7):
            await store.append_message(7, 13, text(7, f"m{i}", ts(i)))

        pages = []
        for page in range(4):
            pages.extend(await store.page(7, 13, page, 3))

        assert [m.text for m in pages] == [f"m{i}" for i in reversed(range(7))]
        assert await store.page(7, 13, 10, 3) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page, size", [(-1, 10), (0, 0), (0, -5)])
    async def test_invalid_pagination(self, store, page, size):
        await store.create_room(7, 13)

        with pytest.raises(InvalidPagination):
            await store.page(7, 13, page, size)
        with pytest.raises(InvalidPagination):
            await store.recent_rooms(7, page, size)

    @pytest.mark.asyncio
    async def test_page_missing_room(self, store):
        with pytest.raises(RoomNotFound):
            await store.page(7, 13, 0, 10)


class TestRecentRooms:
    """채팅방 목록 정렬 테스트"""

    @pytest.mark.asyncio
    async def test_only_rooms_of_user_by_recency(self, store):
        quiet_id = await store.create_room(7, 50)
        older_id = await store.create_room(7, 13)
        newer_id = await store.create_room(4, 7)
        await store.create_room(4, 20)

        await store.append_message(7, 13, text(13, "old", ts(1)))
        await store.append_message(4, 7, text(4, "new", ts(2)))

        rooms = await store.recent_rooms(7, 0, 10)

        assert [room.id for room in rooms] == [newer_id, older_id, quiet_id]
        assert all(room.messages == [] for room in rooms)

    @pytest.mark.asyncio
    async def test_empty_rooms_tie_break_by_id_desc(self, store):
        ids = [await store.create_room(7, other) for other in (8, 9, 10)]

        rooms = await store.recent_rooms(7, 0, 10)

        assert [room.id for room in rooms] == sorted(ids, reverse=True)

    @pytest.mark.asyncio
    async def test_recent_rooms_uses_page_size(self, store):
        for other in range(8, 13):
            await store.create_room(7, other)

        assert len(await store.recent_rooms(7, 0, 2)) == 2
        assert len(await store.recent_rooms(7, 2, 2)) == 1
        assert await store.recent_rooms(7, 3, 2) == []


class TestStoreRegistry:

    def test_init_memory_store(self):
        store = init_chat_store("memory")

        assert isinstance(store, InMemoryChatStore)
        assert get_chat_store() is store

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            init_chat_store("cassandra")

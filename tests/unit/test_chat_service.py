import asyncio
from decimal import Decimal

import pytest

from turtlechat.core.errors import (
    BusinessLogicException,
    InvalidParticipants,
    ListingNotFound,
    NotAParticipant,
    RoomNotFound,
    UserNotFound,
)
from turtlechat.services.chat_service import ChatService
from turtlechat.services.chat_store import InMemoryChatStore

from tests.conftest import BUYER_ID, OUTSIDER_ID, SELLER_ID


class TestOpenRoom:
    """채팅방 열기 테스트"""

    @pytest.mark.asyncio
    async def test_open_or_create_is_order_independent(self, chat_service):
        first = await chat_service.open_or_create_from_users(7, 13)
        second = await chat_service.open_or_create_from_users(13, 7)

        assert first == second

    @pytest.mark.asyncio
    async def test_open_with_missing_user(self, chat_service):
        with pytest.raises(UserNotFound):
            await chat_service.open_or_create_from_users(7, 12345)

    @pytest.mark.asyncio
    async def test_open_with_self(self, chat_service):
        with pytest.raises(InvalidParticipants):
            await chat_service.open_or_create_from_users(7, 7)

    @pytest.mark.asyncio
    async def test_concurrent_open_returns_one_room(self, chat_service, chat_store):
        room_ids = await asyncio.gather(*[
            chat_service.open_or_create_from_users(7, 13) for _ in range(10)
        ])

        assert len(set(room_ids)) == 1
        assert len(await chat_store.recent_rooms(7, 0, 10)) == 1

    @pytest.mark.asyncio
    async def test_new_room_notifies_other_user(self, chat_service, push):
        subscription = push.subscribe(13)

        await chat_service.open_or_create_from_users(7, 13)
        await chat_service.open_or_create_from_users(7, 13)

        event = await subscription.next_event()
        assert event.to_dict()["kind"] == "room"
        assert event.to_dict()["otherUserId"] == 7
        assert subscription.pending == 0


class TestOpenFromListing:
    """거래글 채팅 테스트"""

    @pytest.mark.asyncio
    async def test_listing_card_appended(self, chat_service, chat_store):
        room_id = await chat_service.open_from_listing(BUYER_ID, 1)

        history = await chat_service.history(BUYER_ID, SELLER_ID, 0, 10)
        room = await chat_store.find_room(SELLER_ID, BUYER_ID)

        assert room.id == room_id
        assert history[0].kind == "listing"
        assert history[0].title == "Red-eared"
        assert history[0].price == Decimal("50000")
        assert history[0].image == "img/1"
        assert room.recent_message.is_empty
        assert room.unread_count == [0, 0]

    @pytest.mark.asyncio
    async def test_listing_without_photo(self, chat_service):
        await chat_service.open_from_listing(BUYER_ID, 2)

        history = await chat_service.history(BUYER_ID, SELLER_ID, 0, 10)

        assert history[0].image is None

    @pytest.mark.asyncio
    async def test_reentering_does_not_repeat_card(self, chat_service):
        first = await chat_service.open_from_listing(BUYER_ID, 1)
        second = await chat_service.open_from_listing(BUYER_ID, 1)

        history = await chat_service.history(BUYER_ID, SELLER_ID, 0, 10)

        assert first == second
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_resend_mode_appends_every_time(self, chat_store, user_directory, listing_directory, push):
        service = ChatService(chat_store, user_directory, listing_directory, push, listing_card_resend=True)

        await service.open_from_listing(BUYER_ID, 1)
        await service.open_from_listing(BUYER_ID, 1)

        assert len(await service.history(BUYER_ID, SELLER_ID, 0, 10)) == 2

    @pytest.mark.asyncio
    async def test_missing_listing(self, chat_service):
        with pytest.raises(ListingNotFound):
            await chat_service.open_from_listing(BUYER_ID, 404)

    @pytest.mark.asyncio
    async def test_seller_cannot_chat_own_listing(self, chat_service):
        with pytest.raises(InvalidParticipants):
            await chat_service.open_from_listing(SELLER_ID, 1)

    @pytest.mark.asyncio
    async def test_seller_is_notified(self, chat_service, push):
        subscription = push.subscribe(SELLER_ID)

        await chat_service.open_from_listing(BUYER_ID, 1)

        kinds = [(await subscription.next_event()).to_dict()["kind"] for _ in range(2)]
        assert kinds == ["room", "listing"]


class TestSendAndHistory:
    """메시지 전송/조회 테스트"""

    @pytest.mark.asyncio
    async def test_send_text_assigns_id_and_time(self, chat_service):
        await chat_service.open_or_create_from_users(7, 13)

        message = await chat_service.send_text(7, 13, "hi")

        assert message.sender == 7
        assert message.text == "hi"
        assert message.id
        assert message.regist_time.endswith("+00:00")

    @pytest.mark.asyncio
    async def test_send_to_existing_room_never_reads_history(self, chat_service, chat_store, monkeypatch):
        """기존 방에 보낼 때는 메시지 목록을 읽지 않아야 함"""
        room_id = await chat_service.open_or_create_from_users(7, 13)
        for i in range(5):
            await chat_service.send_text(7, 13, f"message {i}")

        async def history_loaded(*args, **kwargs):
            raise AssertionError("history loaded")

        monkeypatch.setattr(chat_store, "find_room", history_loaded)
        monkeypatch.setattr(chat_store, "page", history_loaded)

        message = await chat_service.send_text(13, 7, "reply")
        listing_room_id = await chat_service.open_from_listing(BUYER_ID, 1)

        assert message.text == "reply"
        assert listing_room_id != room_id
        assert (await chat_store.get_room(room_id)).recent_message.text == "reply"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["", "   ", "\n"])
    async def test_blank_text_rejected(self, chat_service, body):
        with pytest.raises(BusinessLogicException):
            await chat_service.send_text(7, 13, body)

    @pytest.mark.asyncio
    async def test_too_long_text_rejected(self, chat_service):
        with pytest.raises(BusinessLogicException):
            await chat_service.send_text(7, 13, "x" * 1001)

    @pytest.mark.asyncio
    async def test_send_creates_room_when_missing(self, chat_service, chat_store):
        await chat_service.send_text(7, 13, "first contact")

        room = await chat_store.find_room(7, 13)
        assert room.unread_count == [0, 1]

    @pytest.mark.asyncio
    async def test_history_enriches_and_resets_unread(self, chat_service, chat_store):
        await chat_service.send_text(7, 13, "hi")
        await chat_service.send_text(13, 7, "hey")

        history = await chat_service.history(13, 7, 0, 10)
        room = await chat_store.find_room(7, 13)

        assert [m.text for m in history] == ["hey", "hi"]
        assert history[1].nickname == "user7"
        assert history[1].profile_image == "profile/7.png"
        assert room.unread_count == [1, 0]

    @pytest.mark.asyncio
    async def test_history_looks_up_each_sender_once(self, chat_service, user_directory):
        for i in range(5):
            await chat_service.send_text(7, 13, f"m{i}")
        before = user_directory.lookups

        await chat_service.history(13, 7, 0, 10)

        assert user_directory.lookups - before == 1

    @pytest.mark.asyncio
    async def test_history_of_missing_room(self, chat_service):
        with pytest.raises(RoomNotFound):
            await chat_service.history(7, 13, 0, 10)

    @pytest.mark.asyncio
    async def test_deleted_sender_keeps_history_readable(self, chat_service, user_directory):
        await chat_service.send_text(7, 13, "hi")
        user_directory.delete(7)

        history = await chat_service.history(13, 7, 0, 10)

        assert history[0].text == "hi"
        assert history[0].nickname is None
        assert history[0].profile_image is None

    @pytest.mark.asyncio
    async def test_push_failure_does_not_fail_send(self, chat_store, user_directory, listing_directory):
        class BrokenPush:
            def notify(self, user_id, event):
                raise RuntimeError("push down")

        service = ChatService(chat_store, user_directory, listing_directory, BrokenPush())

        message = await service.send_text(7, 13, "still stored")

        assert (await chat_store.find_room(7, 13)).messages[0].id == message.id


class TestRooms:
    """채팅방 목록 테스트"""

    @pytest.mark.asyncio
    async def test_rooms_summary(self, chat_service):
        await chat_service.send_text(7, 13, "hi")
        await chat_service.open_or_create_from_users(13, BUYER_ID)

        rooms = await chat_service.rooms(13, 0, 10)

        assert rooms[0].other_user_id == 7
        assert rooms[0].other_nickname == "user7"
        assert rooms[0].last_text == "hi"
        assert rooms[0].unread_for_self == 1
        assert rooms[1].other_user_id == BUYER_ID
        assert rooms[1].last_text is None

    @pytest.mark.asyncio
    async def test_room_for_member(self, chat_service):
        room_id = await chat_service.open_or_create_from_users(7, 13)

        room = await chat_service.room_for_member(room_id, 13)
        assert room.participants == [7, 13]

        with pytest.raises(NotAParticipant):
            await chat_service.room_for_member(room_id, OUTSIDER_ID)
        with pytest.raises(RoomNotFound):
            await chat_service.room_for_member("missing", 7)

    @pytest.mark.asyncio
    async def test_room_summary(self, chat_service):
        room_id = await chat_service.open_or_create_from_users(7, 13)

        summary = await chat_service.room_summary(room_id, 7)

        assert summary.room_id == room_id
        assert summary.other_nickname == "user13"


@pytest.mark.asyncio
async def test_services_share_store():
    """요청마다 새 ChatService가 만들어져도 같은 저장소를 사용"""
    from tests.conftest import FakeListingDirectory, FakeUserDirectory
    from turtlechat.services.push_channel import PushChannel

    store = InMemoryChatStore()
    push = PushChannel()

    first = ChatService(store, FakeUserDirectory(), FakeListingDirectory(), push)
    second = ChatService(store, FakeUserDirectory(), FakeListingDirectory(), push)

    room_id = await first.open_or_create_from_users(7, 13)
    assert await second.open_or_create_from_users(13, 7) == room_id

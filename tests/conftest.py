import pytest
import pytest_asyncio
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from turtlechat.main import app
from turtlechat.database.mysql import Base, get_async_session
from turtlechat.models.users import User
from turtlechat.models.transactions import Transaction, TransactionPhoto
from turtlechat.schemas.transaction import Listing
from turtlechat.schemas.user import UserProfile
from turtlechat.services.chat_service import ChatService
from turtlechat.services.chat_store import InMemoryChatStore, get_chat_store
from turtlechat.services.push_channel import PushChannel, get_push_channel
from turtlechat.utils.auth import create_access_token


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 시나리오에서 쓰는 사용자 ID
BUYER_ID = 20
SELLER_ID = 4
OUTSIDER_ID = 99


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    # 테이블 생성
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # 정리
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def users(test_session) -> Dict[int, User]:
    """테스트용 사용자 (7, 13, 판매자 4, 구매자 20, 외부인 99)"""
    created = {}
    for user_id, nickname in [
        (7, "user7"),
        (13, "user13"),
        (SELLER_ID, "seller"),
        (BUYER_ID, "buyer"),
        (OUTSIDER_ID, "outsider"),
    ]:
        user = User(
            id=user_id,
            email=f"{nickname}@example.com",
            nickname=nickname,
            profile_image=f"profile/{user_id}.png"
        )
        test_session.add(user)
        created[user_id] = user

    await test_session.commit()
    return created


@pytest_asyncio.fixture
async def listing(test_session, users) -> Transaction:
    """판매자 4의 거래글 (사진 1장)"""
    transaction = Transaction(
        seller_id=SELLER_ID,
        title="Red-eared",
        content="red-eared slider",
        price=Decimal("50000"),
        photos=[TransactionPhoto(image_address="img/1")]
    )
    test_session.add(transaction)
    await test_session.commit()
    await test_session.refresh(transaction)
    return transaction


@pytest_asyncio.fixture
async def listing_without_photo(test_session, users) -> Transaction:
    transaction = Transaction(
        seller_id=SELLER_ID,
        title="Map turtle",
        price=Decimal("120000")
    )
    test_session.add(transaction)
    await test_session.commit()
    await test_session.refresh(transaction)
    return transaction


def auth_headers(user_id: int) -> Dict[str, str]:
    token = create_access_token(data={"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def chat_store() -> InMemoryChatStore:
    return InMemoryChatStore()


@pytest.fixture
def push() -> PushChannel:
    return PushChannel(queue_size=10)


@pytest_asyncio.fixture
async def client(test_session, chat_store, push) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    def get_test_session():
        return test_session

    app.dependency_overrides[get_async_session] = get_test_session
    app.dependency_overrides[get_chat_store] = lambda: chat_store
    app.dependency_overrides[get_push_channel] = lambda: push

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# =============================================================================
# 서비스 단위 테스트용 in-memory 디렉터리
# =============================================================================

class FakeUserDirectory:
    def __init__(self, user_ids=(7, 13, SELLER_ID, BUYER_ID, OUTSIDER_ID)):
        self.profiles: Dict[int, UserProfile] = {
            user_id: UserProfile(id=user_id, nickname=f"user{user_id}", profile_image=f"profile/{user_id}.png")
            for user_id in user_ids
        }
        self.lookups = 0

    def delete(self, user_id: int):
        self.profiles.pop(user_id, None)

    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        self.lookups += 1
        return self.profiles.get(user_id)


class FakeListingDirectory:
    def __init__(self):
        self.listings: Dict[int, Listing] = {
            1: Listing(id=1, seller_id=SELLER_ID, title="Red-eared", price=Decimal("50000"), photos=["img/1"]),
            2: Listing(id=2, seller_id=SELLER_ID, title="Map turtle", price=Decimal("120000"), photos=[]),
        }

    async def get_listing(self, listing_id: int) -> Optional[Listing]:
        return self.listings.get(listing_id)


@pytest.fixture
def user_directory() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def listing_directory() -> FakeListingDirectory:
    return FakeListingDirectory()


@pytest.fixture
def chat_service(chat_store, user_directory, listing_directory, push) -> ChatService:
    return ChatService(chat_store, user_directory, listing_directory, push)

"""
Transaction lookup - 채팅방 카드에 쓰이는 거래글 조회 (MySQL)
"""

from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from turtlechat.models.transactions import Transaction
from turtlechat.schemas.transaction import Listing


async def find_transaction_by_id(db: AsyncSession, transaction_id: int) -> Optional[Transaction]:
    """거래 ID로 조회 (사진 포함)"""
    result = await db.execute(
        select(Transaction)
        .options(selectinload(Transaction.photos))
        .where(Transaction.id == transaction_id)
    )
    return result.scalar_one_or_none()


class ListingDirectory(Protocol):
    async def get_listing(self, listing_id: int) -> Optional[Listing]:
        ...


class SqlListingDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_listing(self, listing_id: int) -> Optional[Listing]:
        transaction = await find_transaction_by_id(self.db, listing_id)
        if transaction is None:
            return None

        return Listing(
            id=transaction.id,
            seller_id=transaction.seller_id,
            title=transaction.title,
            price=transaction.price,
            photos=[photo.image_address for photo in transaction.photos],
        )

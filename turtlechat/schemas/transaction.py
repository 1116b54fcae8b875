from decimal import Decimal
from typing import List
from pydantic import BaseModel, Field


class Listing(BaseModel):
    """채팅 카드로 쓰이는 거래글 정보"""
    id: int = Field(..., description="거래 ID")
    seller_id: int = Field(..., description="판매자 사용자 ID")
    title: str
    price: Decimal
    photos: List[str] = Field(default_factory=list, description="사진 URL (등록 순)")

from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from beanie import Document
from bson import Decimal128
from pydantic import BaseModel, Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel


class TextMessage(BaseModel):
    kind: Literal["text"] = "text"
    id: str = Field(..., description="Message ID")
    sender: int = Field(..., description="User ID who sent the message")
    text: str
    regist_time: str = Field(..., description="ISO-8601 UTC timestamp")


class ListingCardMessage(BaseModel):
    """채팅방에 표시되는 거래글 카드"""
    kind: Literal["listing"] = "listing"
    id: str = Field(..., description="Message ID")
    listing_id: Optional[int] = Field(None, description="Transaction this card was drawn from")
    title: str
    price: Decimal
    image: Optional[str] = Field(None, description="Opaque image URL stored verbatim")
    regist_time: str = Field(..., description="ISO-8601 UTC timestamp")

    @field_validator("price", mode="before")
    @classmethod
    def _from_decimal128(cls, value):
        if isinstance(value, Decimal128):
            return value.to_decimal()
        return value


ChatMessage = Annotated[Union[TextMessage, ListingCardMessage], Field(discriminator="kind")]


class RecentMessage(BaseModel):
    """최근 텍스트 메시지 (비어있으면 sentinel)"""
    sender: Optional[int] = None
    text: Optional[str] = None
    regist_time: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.regist_time is None

    @classmethod
    def from_text(cls, message: TextMessage) -> "RecentMessage":
        return cls(sender=message.sender, text=message.text, regist_time=message.regist_time)


class Room(BaseModel):
    """두 사용자 사이의 채팅방. participants는 항상 [작은 ID, 큰 ID]"""
    id: str
    participants: List[int]
    unread_count: List[int] = Field(default_factory=lambda: [0, 0])
    recent_message: RecentMessage = Field(default_factory=RecentMessage)
    messages: List[ChatMessage] = Field(default_factory=list)

    def index_of(self, user_id: int) -> Optional[int]:
        try:
            return self.participants.index(user_id)
        except ValueError:
            return None

    def other_participant(self, user_id: int) -> int:
        left, right = self.participants
        return right if user_id == left else left

    def unread_for(self, user_id: int) -> int:
        index = self.index_of(user_id)
        return 0 if index is None else self.unread_count[index]


def pair_key(left: int, right: int) -> str:
    return f"{left}:{right}"


class ChatDocument(Document):
    pair_key: str = Field(..., description="Canonical 'left:right' participant key")
    participants: List[int]
    unread_count: List[int] = Field(default_factory=lambda: [0, 0])
    recent_message: RecentMessage = Field(default_factory=RecentMessage)
    messages: List[ChatMessage] = Field(default_factory=list)

    class Settings:
        name = "chats"
        indexes = [
            IndexModel([("pair_key", ASCENDING)], unique=True),
            [("participants", ASCENDING)],
            [("participants", ASCENDING), ("recent_message.regist_time", DESCENDING)],  # For room list by recency
        ]

    def to_room(self, with_messages: bool = True) -> Room:
        return Room(
            id=str(self.id),
            participants=list(self.participants),
            unread_count=list(self.unread_count),
            recent_message=self.recent_message,
            messages=list(self.messages) if with_messages else [],
        )

    def __repr__(self):
        return f"<ChatDocument(id={self.id}, participants={self.participants})>"


class ChatSummaryView(BaseModel):
    """채팅방 목록용 projection (messages 제외)"""
    id: str = Field(alias="_id")
    participants: List[int]
    unread_count: List[int]
    recent_message: RecentMessage

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)

    class Settings:
        projection = {"_id": 1, "participants": 1, "unread_count": 1, "recent_message": 1}

    def to_room(self) -> Room:
        return Room(
            id=self.id,
            participants=self.participants,
            unread_count=self.unread_count,
            recent_message=self.recent_message,
        )

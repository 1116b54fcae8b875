from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from turtlechat.core.config import settings


class CamelModel(BaseModel):
    """JSON 필드는 camelCase로 주고받음"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# 응답 JSON에서는 숫자로 직렬화. 가격은 Numeric(14, 2)라 유효숫자 15자리 이내이므로
# float 변환 후에도 원래 십진 값으로 정확히 복원됨
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class RoomCreate(CamelModel):
    """1:1 채팅방 생성 스키마"""
    other_user_id: int = Field(..., gt=0, description="상대방 사용자 ID")


class RoomFromListingCreate(CamelModel):
    """거래글에서 채팅방 생성 스키마"""
    listing_id: int = Field(..., gt=0, description="거래 ID")


class RoomIdResponse(CamelModel):
    room_id: str = Field(..., description="채팅방 ID")


class TextMessageCreate(CamelModel):
    """메시지 전송 스키마"""
    text: str = Field(..., min_length=1, max_length=settings.max_message_length, description="메시지 내용")


class TextMessageResponse(CamelModel):
    """저장된 텍스트 메시지"""
    kind: Literal["text"] = "text"
    id: str = Field(..., description="메시지 ID")
    sender: int = Field(..., description="보낸 사용자 ID")
    text: str = Field(..., description="메시지 내용")
    regist_time: str = Field(..., description="전송 시각 (ISO-8601)")


class EnrichedTextMessage(TextMessageResponse):
    """보낸 사람 프로필이 붙은 텍스트 메시지. 탈퇴한 사용자면 프로필은 null"""
    nickname: Optional[str] = Field(None, description="보낸 사용자 닉네임")
    profile_image: Optional[str] = Field(None, description="보낸 사용자 프로필 이미지")


class ListingCardView(CamelModel):
    """거래글 카드 메시지"""
    kind: Literal["listing"] = "listing"
    id: str = Field(..., description="메시지 ID")
    listing_id: Optional[int] = Field(None, description="거래 ID")
    title: str = Field(..., description="거래 제목")
    price: JsonDecimal = Field(..., description="가격")
    image: Optional[str] = Field(None, description="대표 사진 URL")
    regist_time: str = Field(..., description="카드 생성 시각 (ISO-8601)")


EnrichedMessage = Annotated[
    Union[EnrichedTextMessage, ListingCardView],
    Field(discriminator="kind"),
]


class RoomSummary(CamelModel):
    """채팅방 목록 항목"""
    room_id: str = Field(..., description="채팅방 ID")
    other_user_id: int = Field(..., description="상대방 사용자 ID")
    other_nickname: Optional[str] = Field(None, description="상대방 닉네임")
    other_profile_image: Optional[str] = Field(None, description="상대방 프로필 이미지")
    last_text: Optional[str] = Field(None, description="마지막 텍스트 메시지")
    last_timestamp: Optional[str] = Field(None, description="마지막 텍스트 메시지 시각")
    unread_for_self: int = Field(0, description="내가 읽지 않은 메시지 수")


class NotificationCreate(CamelModel):
    """테스트용 알림 주입 스키마"""
    message: str = Field(default="data", max_length=1000, description="알림 내용")


class NotificationResponse(CamelModel):
    delivered: int = Field(..., description="전달된 구독 수")


__all__ = [
    "RoomCreate",
    "RoomFromListingCreate",
    "RoomIdResponse",
    "TextMessageCreate",
    "TextMessageResponse",
    "EnrichedTextMessage",
    "ListingCardView",
    "EnrichedMessage",
    "RoomSummary",
    "NotificationCreate",
    "NotificationResponse",
]

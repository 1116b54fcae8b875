"""
Chat Context Domain Events (SSE push payload)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from .base import DomainEvent


@dataclass
class ChatTextPushed(DomainEvent):
    """텍스트 메시지 수신 이벤트"""
    room_id: str
    message_id: str
    sender: int
    text: str
    regist_time: str
    timestamp: datetime
    kind: str = "text"


@dataclass
class ChatListingPushed(DomainEvent):
    """거래글 카드 수신 이벤트"""
    room_id: str
    message_id: str
    listing_id: Optional[int]
    title: str
    price: Decimal
    image: Optional[str]
    timestamp: datetime
    kind: str = "listing"


@dataclass
class ChatRoomOpened(DomainEvent):
    """새 채팅방 생성 이벤트"""
    room_id: str
    other_user_id: int
    timestamp: datetime
    kind: str = "room"


@dataclass
class NotificationInjected(DomainEvent):
    """send-data 훅으로 주입된 알림"""
    message: str
    timestamp: datetime

    event_name = "notification"

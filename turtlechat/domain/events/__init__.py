from .base import DomainEvent
from .chat_events import ChatTextPushed, ChatListingPushed, ChatRoomOpened, NotificationInjected

__all__ = [
    "DomainEvent",
    "ChatTextPushed",
    "ChatListingPushed",
    "ChatRoomOpened",
    "NotificationInjected",
]

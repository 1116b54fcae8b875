from .users import User
from .transactions import Transaction, TransactionPhoto
from .chats import (
    ChatDocument,
    ChatMessage,
    ListingCardMessage,
    RecentMessage,
    Room,
    TextMessage,
)

__all__ = [
    "User",
    "Transaction",
    "TransactionPhoto",
    "ChatDocument",
    "ChatMessage",
    "ListingCardMessage",
    "RecentMessage",
    "Room",
    "TextMessage",
]

"""SQLModel tables owned by the data gateway."""

from .profile import Profile, UserType
from .farm import Farm
from .market import MarketPrice, WeatherRecord, Product
from .conversation import Conversation, IMMUTABLE_CONVERSATION_FIELDS
from .message import Message, MessageRole

__all__ = [
    "Profile",
    "UserType",
    "Farm",
    "MarketPrice",
    "WeatherRecord",
    "Product",
    "Conversation",
    "IMMUTABLE_CONVERSATION_FIELDS",
    "Message",
    "MessageRole",
]

"""Profile model for SQLModel."""
from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
import uuid


class UserType(str, Enum):
    """Dashboard roles."""
    FARMER = "farmer"
    AGENT = "agent"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class Profile(SQLModel, table=True):
    """Profile row linked to a gateway auth identity."""
    __tablename__ = "profiles"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True
    )
    user_id: str = Field(unique=True, index=True, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)
    user_type: str = Field(default=UserType.FARMER.value, max_length=20)
    location: str | None = Field(default=None, max_length=255)
    phone_number: str | None = Field(default=None, max_length=32)
    is_verified: bool = Field(default=False)
    avatar_url: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

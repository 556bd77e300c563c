"""Dashboard shell schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class ProfileView(BaseModel):
    """Profile as shown in the dashboard header."""
    id: Optional[str] = None
    user_id: str
    full_name: Optional[str] = None
    user_type: str = "farmer"
    location: Optional[str] = None
    phone_number: Optional[str] = None
    is_verified: bool = False
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    degraded: bool = False  # guest profile, not persisted

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Schema for updating the caller's profile."""
    full_name: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=32)
    avatar_url: Optional[str] = Field(None, max_length=500)


class AgentSummary(BaseModel):
    total_farmers: int
    total_products: int
    territory: str


class DashboardResponse(BaseModel):
    profile: ProfileView
    tabs: List[str]
    default_tab: str = "overview"
    agent_summary: Optional[AgentSummary] = None

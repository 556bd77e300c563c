"""Farm model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import List, Optional


class Farm(SQLModel, table=True):
    """A farm in a farmer's portfolio."""
    __tablename__ = "farms"

    id: int | None = Field(default=None, primary_key=True)
    farmer_id: str = Field(foreign_key="profiles.id", index=True)
    name: str = Field(max_length=200, min_length=1)
    location: str = Field(max_length=255)
    size_hectares: float = Field(default=0.0)
    soil_type: Optional[str] = Field(default=None, max_length=50)
    crops: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    coordinates: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

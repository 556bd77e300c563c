"""Market data models: crop prices, weather rows and marketplace products."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint
import datetime as dt
from typing import Optional


class MarketPrice(SQLModel, table=True):
    """Daily crop price at one market. Natural key: crop, market, date."""
    __tablename__ = "market_prices"
    __table_args__ = (UniqueConstraint("crop_name", "market_location", "date"),)

    id: int | None = Field(default=None, primary_key=True)
    crop_name: str = Field(index=True, max_length=100)
    market_location: str = Field(max_length=255)
    country: str = Field(index=True, max_length=100)
    price_per_kg: float
    currency: str = Field(default="USD", max_length=8)
    date: dt.date = Field(index=True)
    source: Optional[str] = Field(default=None, max_length=255)


class WeatherRecord(SQLModel, table=True):
    """Daily weather for a location. Natural key: location, date."""
    __tablename__ = "weather_data"
    __table_args__ = (UniqueConstraint("location", "date"),)

    id: int | None = Field(default=None, primary_key=True)
    location: str = Field(index=True, max_length=255)
    date: dt.date = Field(index=True)
    temperature_min: float
    temperature_max: float
    humidity: float
    precipitation: float = Field(default=0.0)
    wind_speed: float = Field(default=0.0)
    conditions: str = Field(default="sunny", max_length=32)  # sunny, partly_cloudy, cloudy, rainy
    advice: Optional[str] = Field(default=None, max_length=500)


class Product(SQLModel, table=True):
    """Marketplace product offered by a supplier. Natural key: supplier, name."""
    __tablename__ = "agricultural_products"
    __table_args__ = (UniqueConstraint("supplier_id", "name"),)

    id: int | None = Field(default=None, primary_key=True)
    supplier_id: str = Field(foreign_key="profiles.id", index=True)
    name: str = Field(max_length=200)
    category: str = Field(index=True, max_length=50)  # seeds, fertilizers, pesticides, equipment
    description: Optional[str] = Field(default=None, max_length=1000)
    price: float
    currency: str = Field(default="USD", max_length=8)
    stock_quantity: int = Field(default=0)
    is_organic: bool = Field(default=False)
    specifications: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow, index=True)

"""Widget schemas: weather, market prices, marketplace, farms and cart."""
from pydantic import BaseModel, Field
import datetime as dt
from typing import Dict, List, Optional


class WeatherDay(BaseModel):
    location: str
    date: dt.date
    temperature_min: float
    temperature_max: float
    humidity: float
    precipitation: float
    wind_speed: float
    conditions: str
    advice: Optional[str] = None

    model_config = {"from_attributes": True}


class MarketPriceItem(BaseModel):
    crop_name: str
    market_location: str
    country: str
    price_per_kg: float
    currency: str
    date: dt.date
    source: Optional[str] = None

    model_config = {"from_attributes": True}


class ProductItem(BaseModel):
    id: Optional[str] = None
    name: str
    category: str
    description: Optional[str] = None
    price: float
    currency: str = "USD"
    stock_quantity: int
    is_organic: bool = False
    specifications: Dict[str, str] = Field(default_factory=dict)
    supplier_id: str
    supplier_name: Optional[str] = None
    supplier_verified: bool = False


class FarmItem(BaseModel):
    id: int
    name: str
    location: str
    size_hectares: float
    soil_type: Optional[str] = None
    crops: List[str] = Field(default_factory=list)
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class WidgetCard(BaseModel):
    """
    Common envelope for widget payloads.

    ``sample`` marks locally generated placeholder rows; ``degraded`` marks a
    card whose own query failed.
    """
    sample: bool = False
    degraded: bool = False
    notice: Optional[str] = None


class WeatherCard(WidgetCard):
    days: List[WeatherDay]


class MarketPriceCard(WidgetCard):
    prices: List[MarketPriceItem]


class ProductCard(WidgetCard):
    products: List[ProductItem]


class FarmPortfolio(WidgetCard):
    farms: List[FarmItem]
    total_farms: int = 0
    total_hectares: float = 0.0
    crops: List[str] = Field(default_factory=list)


class FarmCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=255)
    size_hectares: float = Field(..., gt=0)
    soil_type: Optional[str] = Field(None, pattern=r"^(Loamy|Sandy|Clay|Silt|Rocky|Organic)$")
    crops: List[str] = Field(default_factory=list, max_length=10)


class CartLine(BaseModel):
    product_id: str
    quantity: int


class CartView(BaseModel):
    items: List[CartLine]
    total_items: int


class CartAdd(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1, le=1000)


class ForecastCurrent(BaseModel):
    temperature: int
    weather_code: int
    description: str
    wind_speed: int
    humidity: float


class ForecastDay(BaseModel):
    date: str
    temp_max: int
    temp_min: int
    weather_code: int
    description: str


class Forecast(BaseModel):
    location_name: str
    latitude: float
    longitude: float
    current: ForecastCurrent
    daily: List[ForecastDay]
    cached: bool = False

"""
Placeholder data for an unpopulated gateway.

Widgets show these rows (flagged as samples) when a query comes back empty.
The same generators feed the explicit seed step, which is the only place
sample rows are ever written.
"""

import random
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from agrimarket.models.market import MarketPrice, Product, WeatherRecord

COUNTRIES = ["Nigeria", "Kenya", "Ghana", "South Africa", "Uganda", "Tanzania"]
CROPS = ["Rice", "Maize", "Wheat", "Yam", "Cassava", "Tomato", "Onion", "Pepper"]

CROP_PRICE_RANGES = {
    "Rice": (0.8, 1.5),
    "Maize": (0.3, 0.8),
    "Wheat": (0.4, 0.9),
    "Yam": (0.6, 1.2),
    "Cassava": (0.2, 0.5),
    "Tomato": (0.5, 1.8),
    "Onion": (0.4, 1.0),
    "Pepper": (2.0, 5.0),
}

MARKETS = {
    "Nigeria": ["Lagos Market", "Kano Market", "Abuja Market"],
    "Kenya": ["Nairobi Market", "Mombasa Market", "Kisumu Market"],
    "Ghana": ["Accra Market", "Kumasi Market", "Tamale Market"],
    "South Africa": ["Johannesburg Market", "Cape Town Market", "Durban Market"],
    "Uganda": ["Kampala Market", "Entebbe Market", "Jinja Market"],
    "Tanzania": ["Dar es Salaam Market", "Arusha Market", "Mwanza Market"],
}

WEATHER_CONDITIONS = ["sunny", "partly_cloudy", "cloudy", "rainy"]

PRODUCT_CATEGORIES = ["seeds", "fertilizers", "pesticides", "equipment"]

SAMPLE_PRODUCTS: List[Dict] = [
    {
        "name": "Premium Maize Seeds",
        "category": "seeds",
        "description": "High-yield drought-resistant maize variety suitable for all seasons",
        "price": 25.00,
        "stock_quantity": 500,
        "is_organic": False,
        "specifications": {"variety": "Premium Hybrid", "germination_rate": "95%", "maturity": "90-120 days"},
    },
    {
        "name": "Organic Compost Fertilizer",
        "category": "fertilizers",
        "description": "100% organic compost made from farm waste and natural materials",
        "price": 15.50,
        "stock_quantity": 200,
        "is_organic": True,
        "specifications": {"n_p_k": "3-2-2", "organic_matter": "85%", "ph": "6.5-7.0"},
    },
    {
        "name": "Bio Pesticide Spray",
        "category": "pesticides",
        "description": "Natural pest control solution safe for crops and environment",
        "price": 32.00,
        "stock_quantity": 150,
        "is_organic": True,
        "specifications": {"active_ingredient": "Neem Extract", "concentration": "2%", "application_rate": "2ml/L"},
    },
    {
        "name": "Rice Seeds - Premium Variety",
        "category": "seeds",
        "description": "High-quality rice seeds with excellent grain quality and yield",
        "price": 18.75,
        "stock_quantity": 300,
        "is_organic": False,
        "specifications": {"variety": "FARO 44", "yield_potential": "6-8 tons/ha", "maturity": "120-130 days"},
    },
    {
        "name": "NPK Fertilizer 20:10:10",
        "category": "fertilizers",
        "description": "Balanced fertilizer perfect for vegetable and grain crops",
        "price": 28.00,
        "stock_quantity": 180,
        "is_organic": False,
        "specifications": {"n_p_k": "20-10-10", "granule_size": "2-4mm", "water_soluble": "95%"},
    },
    {
        "name": "Hand Weeder Tool",
        "category": "equipment",
        "description": "Durable hand tool for efficient weed removal in small farms",
        "price": 12.50,
        "stock_quantity": 75,
        "is_organic": False,
        "specifications": {"material": "Steel", "handle": "Wooden", "weight": "0.8kg"},
    },
]


def sample_weather(location: str, days: int, start: Optional[date] = None, rng: Optional[random.Random] = None) -> List[WeatherRecord]:
    """Random daily weather for ``days`` days starting at ``start``."""
    rng = rng or random.Random()
    start = start or date.today()
    rows = []
    for offset in range(days):
        rows.append(WeatherRecord(
            location=location,
            date=start + timedelta(days=offset),
            temperature_min=rng.randint(20, 29),
            temperature_max=rng.randint(30, 39),
            humidity=rng.randint(60, 89),
            precipitation=rng.randint(0, 19),
            wind_speed=rng.randint(5, 19),
            conditions=rng.choice(WEATHER_CONDITIONS),
            advice=(
                "Good day for planting. Soil moisture is optimal."
                if offset == 0 else "Monitor crop growth conditions."
            ),
        ))
    return rows


def sample_market_prices(day: Optional[date] = None, rng: Optional[random.Random] = None) -> List[MarketPrice]:
    """One random price per crop and market for ``day``."""
    rng = rng or random.Random()
    day = day or date.today()
    rows = []
    for crop in CROPS:
        low, high = CROP_PRICE_RANGES[crop]
        for country in COUNTRIES:
            for market in MARKETS.get(country, [f"{country} Central Market"]):
                rows.append(MarketPrice(
                    crop_name=crop,
                    market_location=market,
                    country=country,
                    price_per_kg=round(rng.uniform(low, high), 2),
                    currency="USD",
                    date=day,
                    source=f"{country} Agricultural Market Board",
                ))
    return rows


def sample_products(supplier_id: str) -> List[Product]:
    now = datetime.utcnow()
    return [
        Product(supplier_id=supplier_id, currency="USD", created_at=now, **fields)
        for fields in SAMPLE_PRODUCTS
    ]

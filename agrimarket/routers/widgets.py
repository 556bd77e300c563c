"""
Widgets API Router

Weather, market prices, marketplace, farms and cart. Every widget degrades
on its own: a failing query returns a card flagged ``degraded`` instead of an
error response.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from agrimarket.errors import ForecastUnavailable
from agrimarket.gateway.base import DataGateway
from agrimarket.routers.deps import get_gateway, get_profile, get_stored_profile
from agrimarket.schemas.dashboard import ProfileView
from agrimarket.schemas.widgets import (
    CartAdd,
    CartView,
    FarmCreate,
    FarmItem,
    FarmPortfolio,
    Forecast,
    MarketPriceCard,
    ProductCard,
    WeatherCard,
)
from agrimarket.services.farm_service import FarmService
from agrimarket.services.forecast_service import ForecastService
from agrimarket.services.market_service import MarketPriceService
from agrimarket.services.marketplace_service import CartStore, MarketplaceService
from agrimarket.services.weather_service import WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["widgets"])


def get_cart_store(request: Request) -> CartStore:
    return request.app.state.carts


def get_forecast_service(request: Request) -> ForecastService:
    return request.app.state.forecast


@router.get("/weather", response_model=WeatherCard)
async def get_weather(
    expanded: bool = False,
    profile: ProfileView = Depends(get_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    return await WeatherService(gateway).load(profile.location, expanded=expanded)


@router.get("/weather/forecast", response_model=Forecast)
async def get_forecast(
    location: Optional[str] = None,
    profile: ProfileView = Depends(get_profile),
    forecast: ForecastService = Depends(get_forecast_service),
):
    place = location or profile.location
    if not place:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unable to determine your location. Please set a location in your profile.",
        )
    try:
        return await forecast.forecast_for(place)
    except ForecastUnavailable as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/market-prices", response_model=MarketPriceCard)
async def get_market_prices(
    country: str = "all",
    crop: str = "all",
    expanded: bool = False,
    profile: ProfileView = Depends(get_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    return await MarketPriceService(gateway).load(country, crop, expanded=expanded)


@router.get("/products", response_model=ProductCard)
async def get_products(
    category: str = "all",
    search: Optional[str] = Query(None, max_length=100),
    compact: bool = False,
    profile: ProfileView = Depends(get_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    return await MarketplaceService(gateway).load(category, search, compact=compact)


@router.get("/farms", response_model=FarmPortfolio)
async def get_farms(
    profile: ProfileView = Depends(get_stored_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    return await FarmService(gateway).load(profile.id)


@router.post("/farms", response_model=FarmItem, status_code=status.HTTP_201_CREATED)
async def add_farm(
    data: FarmCreate,
    profile: ProfileView = Depends(get_stored_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    return await FarmService(gateway).add_farm(profile.id, data)


@router.get("/cart", response_model=CartView)
async def get_cart(profile: ProfileView = Depends(get_profile), carts: CartStore = Depends(get_cart_store)):
    return carts.view(profile.user_id)


@router.post("/cart", response_model=CartView)
async def add_to_cart(
    item: CartAdd,
    profile: ProfileView = Depends(get_profile),
    carts: CartStore = Depends(get_cart_store),
):
    return carts.add(profile.user_id, item.product_id, item.quantity)


@router.delete("/cart/{product_id}", response_model=CartView)
async def remove_from_cart(
    product_id: str,
    profile: ProfileView = Depends(get_profile),
    carts: CartStore = Depends(get_cart_store),
):
    return carts.remove(profile.user_id, product_id)


@router.delete("/cart", response_model=CartView)
async def clear_cart(profile: ProfileView = Depends(get_profile), carts: CartStore = Depends(get_cart_store)):
    return carts.clear(profile.user_id)

"""Market prices widget loader."""
import logging
from typing import Optional

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.models.market import MarketPrice
from agrimarket.schemas.widgets import MarketPriceCard, MarketPriceItem
from agrimarket.services.samples import sample_market_prices

logger = logging.getLogger(__name__)

ALL = "all"


class MarketPriceService:
    """Latest crop prices, filtered by country and crop."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def load(self, country: Optional[str] = ALL, crop: Optional[str] = ALL, expanded: bool = False) -> MarketPriceCard:
        limit = 20 if expanded else 5

        query = (
            self.gateway.table(MarketPrice)
            .order("date", descending=True)
            .limit(limit)
        )
        if country and country != ALL:
            query = query.eq("country", country)
        if crop and crop != ALL:
            query = query.eq("crop_name", crop)

        try:
            rows = await query.all()
        except PersistenceError as e:
            logger.error(f"Error fetching market prices: {str(e)}")
            return MarketPriceCard(
                prices=self._placeholder(country, crop, limit),
                sample=True,
                degraded=True,
                notice="Unable to fetch current market prices.",
            )

        if not rows:
            return MarketPriceCard(prices=self._placeholder(country, crop, limit), sample=True)
        return MarketPriceCard(prices=[MarketPriceItem.model_validate(row) for row in rows])

    def _placeholder(self, country: Optional[str], crop: Optional[str], limit: int):
        rows = sample_market_prices()
        if country and country != ALL:
            rows = [r for r in rows if r.country == country]
        if crop and crop != ALL:
            rows = [r for r in rows if r.crop_name == crop]
        return [MarketPriceItem.model_validate(row) for row in rows[:limit]]

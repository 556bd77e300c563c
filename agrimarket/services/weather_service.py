"""Weather widget loader."""
import logging
from datetime import date
from typing import Optional

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.models.market import WeatherRecord
from agrimarket.schemas.widgets import WeatherCard, WeatherDay
from agrimarket.services.samples import sample_weather

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Lagos, Nigeria"


class WeatherService:
    """Reads daily weather rows for a location from the gateway."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def load(self, location: Optional[str], expanded: bool = False, today: Optional[date] = None) -> WeatherCard:
        """
        Today's weather (or a 7-day outlook when expanded).

        Empty results fall back to placeholder rows, and a failing query to a
        degraded card; neither is written anywhere.
        """
        location = location or DEFAULT_LOCATION
        today = today or date.today()
        days = 7 if expanded else 1

        try:
            rows = await (
                self.gateway.table(WeatherRecord)
                .eq("location", location)
                .gte("date", today)
                .order("date")
                .limit(days)
                .all()
            )
        except PersistenceError as e:
            logger.error(f"Error fetching weather data: {str(e)}")
            return WeatherCard(
                days=self._placeholder(location, days, today),
                sample=True,
                degraded=True,
                notice="Unable to fetch current weather information.",
            )

        if not rows:
            return WeatherCard(days=self._placeholder(location, days, today), sample=True)
        return WeatherCard(days=[WeatherDay.model_validate(row) for row in rows])

    def _placeholder(self, location: str, days: int, today: date):
        return [WeatherDay.model_validate(row) for row in sample_weather(location, days, today)]

"""Farm portfolio service."""
import logging
from datetime import datetime

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.models.farm import Farm
from agrimarket.schemas.widgets import FarmCreate, FarmItem, FarmPortfolio
from agrimarket.security.validation import sanitize_text

logger = logging.getLogger(__name__)


class FarmService:
    """Farms owned by one profile."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def load(self, owner_id: str) -> FarmPortfolio:
        try:
            rows = await (
                self.gateway.table(Farm)
                .eq("farmer_id", owner_id)
                .order("created_at", descending=True)
                .all()
            )
        except PersistenceError as e:
            logger.error(f"Error fetching farms: {str(e)}")
            return FarmPortfolio(farms=[], degraded=True, notice="Unable to fetch your farm data.")

        farms = [FarmItem.model_validate(row) for row in rows]
        crops = sorted({crop for farm in farms for crop in farm.crops})
        return FarmPortfolio(
            farms=farms,
            total_farms=len(farms),
            total_hectares=round(sum(farm.size_hectares for farm in farms), 2),
            crops=crops,
        )

    async def add_farm(self, owner_id: str, data: FarmCreate) -> FarmItem:
        """
        Add a farm to the owner's portfolio.

        Raises:
            PersistenceError: If the gateway rejects the insert
        """
        farm = Farm(
            farmer_id=owner_id,
            name=sanitize_text(data.name),
            location=sanitize_text(data.location),
            size_hectares=data.size_hectares,
            soil_type=data.soil_type,
            crops=[sanitize_text(crop) for crop in data.crops],
            coordinates=None,
            created_at=datetime.utcnow(),
        )
        farm = await self.gateway.insert(farm)
        logger.info(f"Farm {farm.id} added for {owner_id}")
        return FarmItem.model_validate(farm)

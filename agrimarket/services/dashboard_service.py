"""Dashboard shell: role tabs and the agent summary card."""
import logging
from typing import Dict, List, Optional

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.models.market import Product
from agrimarket.models.profile import Profile, UserType
from agrimarket.schemas.dashboard import AgentSummary, DashboardResponse, ProfileView

logger = logging.getLogger(__name__)

ROLE_TABS: Dict[str, List[str]] = {
    UserType.FARMER.value: ["overview", "weather", "market", "farms", "marketplace", "ai"],
    UserType.AGENT.value: ["overview", "agent", "market", "weather", "ai"],
    UserType.SUPPLIER.value: ["overview", "marketplace", "market", "ai"],
    UserType.ADMIN.value: ["overview", "weather", "market", "farms", "marketplace", "agent", "ai"],
}


def tabs_for(profile: ProfileView) -> List[str]:
    """Tabs visible to a role; unknown roles get the farmer layout."""
    return list(ROLE_TABS.get(profile.user_type, ROLE_TABS[UserType.FARMER.value]))


class DashboardService:
    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def agent_summary(self, profile: ProfileView) -> Optional[AgentSummary]:
        """Farmers in the agent's territory plus the marketplace size. None on failure."""
        territory = profile.location or "Local Area"
        try:
            farmers = self.gateway.table(Profile).eq("user_type", UserType.FARMER.value)
            if profile.location:
                farmers = farmers.eq("location", profile.location)
            farmer_rows = await farmers.all()
            product_rows = await self.gateway.table(Product).gt("stock_quantity", 0).all()
        except PersistenceError as e:
            logger.error(f"Error fetching agent stats: {str(e)}")
            return None
        return AgentSummary(
            total_farmers=len(farmer_rows),
            total_products=len(product_rows),
            territory=territory,
        )

    async def build(self, profile: ProfileView) -> DashboardResponse:
        summary = None
        if profile.user_type in (UserType.AGENT.value, UserType.ADMIN.value) and not profile.degraded:
            summary = await self.agent_summary(profile)
        return DashboardResponse(profile=profile, tabs=tabs_for(profile), agent_summary=summary)

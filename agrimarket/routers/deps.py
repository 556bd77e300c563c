"""Shared FastAPI dependencies: gateway, session and profile."""
from fastapi import Depends, Request

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.middleware.auth import AuthSession, get_auth_session
from agrimarket.schemas.dashboard import ProfileView
from agrimarket.services.profile_service import ProfileService


def get_gateway(request: Request) -> DataGateway:
    return request.app.state.gateway


async def get_profile(
    session: AuthSession = Depends(get_auth_session),
    gateway: DataGateway = Depends(get_gateway),
) -> ProfileView:
    """Caller's profile, self-healed or degraded to a guest profile."""
    return await ProfileService(gateway).load_profile(session)


async def get_stored_profile(profile: ProfileView = Depends(get_profile)) -> ProfileView:
    """
    Caller's persisted profile, for routes that write rows owned by it.

    Raises:
        PersistenceError: If only a guest profile is available
    """
    if profile.degraded or profile.id is None:
        raise PersistenceError("Profile is unavailable right now")
    return profile

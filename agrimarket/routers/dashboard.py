"""
Dashboard API Router

Profile, role tabs and sign-out for the dashboard shell.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from agrimarket.errors import ProfileMissing
from agrimarket.gateway.base import DataGateway
from agrimarket.middleware.auth import AuthSession, get_auth_session, session_provider
from agrimarket.routers.deps import get_gateway, get_profile
from agrimarket.schemas.dashboard import DashboardResponse, ProfileUpdate, ProfileView
from agrimarket.services.dashboard_service import DashboardService
from agrimarket.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    profile: ProfileView = Depends(get_profile),
    gateway: DataGateway = Depends(get_gateway),
):
    """Profile header plus the tabs the caller's role can see."""
    return await DashboardService(gateway).build(profile)


@router.patch("/profile", response_model=ProfileView)
async def update_profile(
    data: ProfileUpdate,
    session: AuthSession = Depends(get_auth_session),
    gateway: DataGateway = Depends(get_gateway),
):
    try:
        return await ProfileService(gateway).update_profile(session, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ProfileMissing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")


@router.post("/auth/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(request: Request, session: AuthSession = Depends(get_auth_session)):
    provider = getattr(request.app.state, "session_provider", session_provider)
    provider.sign_out(session)
    logger.info(f"User {session.user_id} signed out")

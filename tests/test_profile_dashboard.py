"""Tests for profile resolution, role tabs and the agent summary."""
from datetime import datetime, timedelta

import pytest

from agrimarket.errors import AuthRequired, ProfileMissing
from agrimarket.middleware.auth import AuthSession, SessionProvider
from agrimarket.models.profile import Profile
from agrimarket.schemas.dashboard import ProfileUpdate, ProfileView
from agrimarket.services.dashboard_service import DashboardService, tabs_for
from agrimarket.services.profile_service import ProfileService


def session_for(user_id="user-9", **metadata):
    return AuthSession(
        user_id=user_id,
        email="kofi@example.com",
        metadata=metadata,
        expires_at=datetime.utcnow() + timedelta(hours=1),
    )


async def test_no_session_requires_sign_in(gateway):
    with pytest.raises(AuthRequired):
        await ProfileService(gateway).load_profile(None)


async def test_missing_profile_is_created_once(gateway):
    service = ProfileService(gateway)
    session = session_for(full_name="Kofi Mensah", user_type="supplier", location="Kumasi")

    first = await service.load_profile(session)
    second = await service.load_profile(session)

    assert first.degraded is False
    assert first.full_name == "Kofi Mensah"
    assert first.user_type == "supplier"
    assert second.id == first.id
    assert len(await gateway.table(Profile).all()) == 1


async def test_default_profile_falls_back_to_email_and_farmer(gateway):
    profile = await ProfileService(gateway).load_profile(session_for(user_type="wizard"))
    assert profile.full_name == "kofi"
    assert profile.user_type == "farmer"


async def test_gateway_failure_gives_guest_profile(broken_gateway):
    profile = await ProfileService(broken_gateway).load_profile(session_for(full_name="Kofi"))
    assert profile.degraded is True
    assert profile.id is None
    assert profile.full_name == "Kofi"


async def test_update_profile_validates_and_sanitizes(gateway, owner):
    service = ProfileService(gateway)
    session = session_for(user_id=owner.user_id)

    updated = await service.update_profile(session, ProfileUpdate(full_name="Ada Obi", location="<Ibadan>"))
    assert updated.full_name == "Ada Obi"
    assert updated.location == "Ibadan"

    with pytest.raises(ValueError):
        await service.update_profile(session, ProfileUpdate(full_name="R2-D2"))
    with pytest.raises(ValueError):
        await service.update_profile(session, ProfileUpdate(phone_number="123"))


async def test_update_without_profile_row(gateway):
    with pytest.raises(ProfileMissing):
        await ProfileService(gateway).update_profile(session_for(), ProfileUpdate(location="Kano"))


@pytest.mark.parametrize("role,tabs", [
    ("farmer", ["overview", "weather", "market", "farms", "marketplace", "ai"]),
    ("agent", ["overview", "agent", "market", "weather", "ai"]),
    ("supplier", ["overview", "marketplace", "market", "ai"]),
    ("admin", ["overview", "weather", "market", "farms", "marketplace", "agent", "ai"]),
    ("unknown", ["overview", "weather", "market", "farms", "marketplace", "ai"]),
])
def test_tabs_follow_role(role, tabs):
    assert tabs_for(ProfileView(user_id="u", user_type=role)) == tabs


async def test_agent_summary_counts_local_farmers(gateway):
    await gateway.insert(Profile(user_id="f-1", user_type="farmer", location="Kano"))
    await gateway.insert(Profile(user_id="f-2", user_type="farmer", location="Kano"))
    await gateway.insert(Profile(user_id="f-3", user_type="farmer", location="Lagos"))
    agent = await gateway.insert(Profile(user_id="a-1", user_type="agent", location="Kano"))

    dashboard = await DashboardService(gateway).build(ProfileView.model_validate(agent))

    assert dashboard.tabs[1] == "agent"
    assert dashboard.agent_summary.total_farmers == 2
    assert dashboard.agent_summary.total_products == 0
    assert dashboard.agent_summary.territory == "Kano"


async def test_farmer_dashboard_has_no_agent_summary(gateway, owner):
    dashboard = await DashboardService(gateway).build(ProfileView.model_validate(owner))
    assert dashboard.agent_summary is None


def test_session_tokens_round_trip_and_revoke():
    provider = SessionProvider(secret="test-secret")
    issued = provider.issue("user-1", "ada@example.com", {"user_type": "agent"})

    session = provider.acquire(issued.token)
    assert session.user_id == "user-1"
    assert session.metadata == {"user_type": "agent"}

    provider.sign_out(session)
    assert provider.acquire(issued.token) is None
    assert provider.acquire("garbage") is None
    assert provider.acquire(None) is None


def test_expired_tokens_are_refused():
    provider = SessionProvider(secret="test-secret", ttl=timedelta(seconds=-5))
    issued = provider.issue("user-1")
    assert provider.acquire(issued.token) is None

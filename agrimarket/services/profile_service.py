"""
Profile Service

Resolves the profile behind a gateway session. A session without a profile
row gets exactly one self-healing insert; when that also fails, the caller
sees a guest profile that is never persisted.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from agrimarket.errors import AuthRequired, PersistenceError, ProfileMissing
from agrimarket.gateway.base import DataGateway
from agrimarket.middleware.auth import AuthSession
from agrimarket.models.profile import Profile, UserType
from agrimarket.schemas.dashboard import ProfileUpdate, ProfileView
from agrimarket.security.validation import sanitize_text, validate_input

logger = logging.getLogger(__name__)


def default_profile(session: AuthSession) -> Profile:
    """Build a profile row from the session's sign-up metadata."""
    metadata = session.metadata or {}
    user_type = metadata.get("user_type", UserType.FARMER.value)
    if user_type not in {t.value for t in UserType}:
        user_type = UserType.FARMER.value
    full_name = metadata.get("full_name")
    if not full_name and session.email:
        full_name = session.email.split("@")[0]
    return Profile(
        user_id=session.user_id,
        full_name=full_name,
        user_type=user_type,
        location=metadata.get("location"),
        phone_number=metadata.get("phone_number"),
    )


class ProfileService:
    """Loads and updates the caller's profile row."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def fetch_profile(self, session: AuthSession) -> Profile:
        """
        Raises:
            ProfileMissing: If no row exists for the session's user
            PersistenceError: If the lookup fails
        """
        profile = await self.gateway.table(Profile).eq("user_id", session.user_id).first()
        if profile is None:
            raise ProfileMissing(f"No profile for user {session.user_id}")
        return profile

    async def load_profile(self, session: Optional[AuthSession]) -> ProfileView:
        """
        Profile for the dashboard shell.

        Raises:
            AuthRequired: If there is no session
        """
        if session is None:
            raise AuthRequired("Sign in to continue")

        try:
            return ProfileView.model_validate(await self.fetch_profile(session))
        except ProfileMissing:
            logger.warning(f"Profile missing for {session.user_id}, creating default profile")
        except PersistenceError as e:
            logger.error(f"Error fetching profile: {str(e)}")
            return self._guest(session)

        try:
            created = await self.gateway.insert(default_profile(session))
        except PersistenceError as e:
            logger.error(f"Error creating profile for {session.user_id}: {str(e)}")
            return self._guest(session)
        return ProfileView.model_validate(created)

    def _guest(self, session: AuthSession) -> ProfileView:
        guest = default_profile(session)
        return ProfileView(
            user_id=session.user_id,
            full_name=guest.full_name or "Guest",
            user_type=guest.user_type,
            location=guest.location,
            degraded=True,
        )

    async def update_profile(self, session: AuthSession, data: ProfileUpdate) -> ProfileView:
        """
        Validate, sanitise and apply a profile patch.

        Raises:
            ValueError: If a field fails validation
            ProfileMissing: If the caller has no profile row
            PersistenceError: If the update fails
        """
        values: Dict[str, object] = {}
        if data.full_name is not None:
            result = validate_input(data.full_name, "name")
            if not result.valid:
                raise ValueError(result.error)
            values["full_name"] = sanitize_text(data.full_name)
        if data.phone_number is not None:
            result = validate_input(data.phone_number, "phone")
            if not result.valid:
                raise ValueError(result.error)
            values["phone_number"] = data.phone_number.strip()
        if data.location is not None:
            values["location"] = sanitize_text(data.location)
        if data.avatar_url is not None:
            values["avatar_url"] = sanitize_text(data.avatar_url)

        profile = await self.fetch_profile(session)
        if not values:
            return ProfileView.model_validate(profile)

        values["updated_at"] = datetime.utcnow()
        updated = await self.gateway.update(Profile, profile.id, values)
        logger.info(f"Profile {profile.id} updated: {sorted(values)}")
        return ProfileView.model_validate(updated)

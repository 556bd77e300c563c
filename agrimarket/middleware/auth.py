"""Gateway session handling for FastAPI."""
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set

from fastapi import Request
from jose import jwt, JWTError
from pydantic import BaseModel, Field

from agrimarket import config
from agrimarket.errors import AuthRequired


class AuthSession(BaseModel):
    """
    An authenticated gateway session.

    Passed explicitly to every view that talks to the gateway; nothing reads
    the current session from ambient state.
    """
    user_id: str
    email: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    expires_at: datetime
    token: Optional[str] = None
    token_id: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at


class SessionProvider:
    """Acquires, issues and revokes gateway session tokens."""

    def __init__(
        self,
        secret: str = config.GATEWAY_JWT_SECRET,
        algorithm: str = config.GATEWAY_JWT_ALGORITHM,
        ttl: timedelta = timedelta(hours=config.SESSION_TTL_HOURS),
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self.revoked: Set[str] = set()

    def issue(self, user_id: str, email: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> AuthSession:
        """Issue a signed session token (development sign-in and tests)."""
        now = datetime.utcnow()
        expires_at = now + self.ttl
        token_id = str(uuid.uuid4())
        payload = {
            "sub": user_id,
            "email": email,
            "user_metadata": metadata or {},
            "exp": expires_at,
            "iat": now,
            "jti": token_id,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return AuthSession(
            user_id=user_id,
            email=email,
            metadata=metadata or {},
            expires_at=expires_at,
            token=token,
            token_id=token_id,
        )

    def acquire(self, token: Optional[str]) -> Optional[AuthSession]:
        """
        Decode a session token.

        Args:
            token: Raw bearer token, possibly None

        Returns:
            AuthSession, or None when the token is missing, invalid, expired or revoked
        """
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            return None

        user_id = payload.get("sub")
        token_id = payload.get("jti")
        if user_id is None or (token_id and token_id in self.revoked):
            return None

        session = AuthSession(
            user_id=user_id,
            email=payload.get("email"),
            metadata=payload.get("user_metadata") or {},
            expires_at=datetime.utcfromtimestamp(payload["exp"]),
            token=token,
            token_id=token_id,
        )
        if session.is_expired():
            return None
        return session

    def sign_out(self, session: AuthSession):
        if session.token_id:
            self.revoked.add(session.token_id)


session_provider = SessionProvider()


def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:]  # Remove "Bearer " prefix


async def get_auth_session(request: Request) -> AuthSession:
    """
    FastAPI dependency resolving the caller's gateway session.

    Raises:
        AuthRequired: If no valid session is present
    """
    provider: SessionProvider = getattr(request.app.state, "session_provider", session_provider)
    session = provider.acquire(bearer_token(request))
    if session is None:
        raise AuthRequired("Sign in to continue")
    return session

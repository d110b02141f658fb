"""
JWT Service for access tokens and signed OAuth state.

Access tokens are short-lived HS256 bearer tokens identifying an Identity.
The OAuth ``state`` parameter is signed with the same secret so the Google
callback can trust which user started the flow.
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from pydantic import BaseModel

from core.config import JWT_SECRET_KEY, JWT_ACCESS_TOKEN_EXPIRE_MINUTES


class TokenPayload(BaseModel):
    """Payload structure for JWT tokens."""
    sub: str  # Identity id
    email: str
    roles: list[str] = []  # e.g. ["admin"], ["doctor"]
    clinic_id: Optional[int] = None  # null until a clinic is provisioned
    name: str = ""
    iat: Optional[int] = None  # Set by JWT service
    exp: Optional[int] = None  # Set by JWT service


class JWTService:
    """Service for JWT token operations."""

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    OAUTH_STATE_EXPIRE_MINUTES = 10

    @classmethod
    def create_access_token(cls, payload: TokenPayload) -> str:
        """Create a JWT access token."""
        to_encode = payload.model_dump(exclude={"iat", "exp"})
        now = datetime.now(timezone.utc)
        to_encode.update({"exp": now + timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES), "iat": now})
        return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """Verify and decode a JWT token. Returns None when invalid or expired."""
        try:
            payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[cls.ALGORITHM])
            return TokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def sign_oauth_state(cls, state_data: Dict[str, Any]) -> str:
        """Sign OAuth state parameter to prevent tampering."""
        now = datetime.now(timezone.utc)
        payload = {
            **state_data,
            "iat": now,
            "exp": now + timedelta(minutes=cls.OAUTH_STATE_EXPIRE_MINUTES),
        }
        return jwt.encode(payload, JWT_SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_oauth_state(cls, signed_state: str) -> Optional[Dict[str, Any]]:
        """Verify and decode signed OAuth state parameter."""
        try:
            payload = jwt.decode(signed_state, JWT_SECRET_KEY, algorithms=[cls.ALGORITHM])
        except jwt.InvalidTokenError:
            return None
        # Remove JWT claims, return only the state data
        return {k: v for k, v in payload.items() if k not in ['iat', 'exp']}


# Global instance
jwt_service = JWTService()

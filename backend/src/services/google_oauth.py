from typing import Any
import logging
import urllib.parse
import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, API_BASE_URL, GOOGLE_HTTP_TIMEOUT_SECONDS
from core.constants import GOOGLE_OAUTH_SCOPES
from models import GoogleIntegration, Identity
from services.encryption_service import get_encryption_service

logger = logging.getLogger(__name__)


class GoogleOAuthService:
    """Service for connecting a user's Google account (calendar integration)"""

    AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    SCOPES = GOOGLE_OAUTH_SCOPES

    def __init__(self, redirect_uri: str | None = None) -> None:
        super().__init__()
        self.client_id = GOOGLE_CLIENT_ID
        self.client_secret = GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or f"{API_BASE_URL}/api/auth/google/callback"
        self.timeout = httpx.Timeout(GOOGLE_HTTP_TIMEOUT_SECONDS)

    def get_authorization_url(self, user_id: str) -> str:
        """Generate Google OAuth2 authorization URL"""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.SCOPES),
            "response_type": "code",
            "access_type": "offline",  # Request refresh token
            "prompt": "consent",  # Force consent screen to get refresh token
            "state": self._generate_state(user_id),
        }
        return f"{self.AUTH_URL}?{urllib.parse.urlencode(params)}"

    async def exchange_code_for_tokens(self, code: str) -> dict[str, Any]:
        """Exchange authorization code for access and refresh tokens"""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.TOKEN_URL, data=data)
            response.raise_for_status()
            return response.json()

    async def get_user_info(self, access_token: str) -> dict[str, Any]:
        """Get user information from Google"""
        headers = {"Authorization": f"Bearer {access_token}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.USERINFO_URL, headers=headers)
            response.raise_for_status()
            return response.json()

    def _generate_state(self, user_id: str) -> str:
        """Generate signed state parameter for OAuth flow"""
        from services.jwt_service import jwt_service
        return jwt_service.sign_oauth_state({"user_id": user_id})

    def _parse_state(self, state: str) -> str:
        """Parse signed state parameter to extract the user id"""
        from services.jwt_service import jwt_service
        state_data = jwt_service.verify_oauth_state(state)
        if not state_data:
            raise ValueError("Invalid or expired OAuth state")
        user_id = state_data.get("user_id")
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("Invalid state data")
        return user_id

    async def handle_oauth_callback(self, db: Session, code: str, state: str) -> GoogleIntegration:
        """
        Exchange the code and store the user's refresh token.

        Raises:
            ValueError: Invalid state, unknown user or no refresh token granted
            httpx.HTTPError: Google rejected the exchange
        """
        user_id = self._parse_state(state)
        identity = db.query(Identity).filter(Identity.id == user_id).first()
        if identity is None:
            raise ValueError(f"User {user_id} not found")

        token_data = await self.exchange_code_for_tokens(code)
        refresh_token = token_data.get("refresh_token")
        if not refresh_token:
            raise ValueError("Google did not return a refresh token")

        user_info = await self.get_user_info(token_data["access_token"])
        logger.info(f"Google account {user_info.get('email')} connected for user {user_id}")

        return self._store_refresh_token(db, user_id, refresh_token)

    def _store_refresh_token(self, db: Session, user_id: str, refresh_token: str) -> GoogleIntegration:
        """Store the encrypted refresh token, replacing any previous one."""
        encrypted = get_encryption_service().encrypt_text(refresh_token)
        integration = db.query(GoogleIntegration).filter(GoogleIntegration.user_id == user_id).first()
        try:
            if integration is None:
                integration = GoogleIntegration(user_id=user_id, encrypted_refresh_token=encrypted)
                db.add(integration)
            else:
                integration.encrypted_refresh_token = encrypted
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return integration


google_oauth_service = GoogleOAuthService()

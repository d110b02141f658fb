"""
Unit tests for Google OAuth service.
"""

import re

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

from models import GoogleIntegration
from services.encryption_service import EncryptionService
from services.google_oauth import GoogleOAuthService
from services.jwt_service import jwt_service

VALID_FERNET_KEY = "YyD8O45QlfRZUXT9kzjW3xEf6iNqz5EtF_OB8WEOBqw="


class TestGoogleOAuthService:
    """Test cases for GoogleOAuthService."""

    @pytest.fixture
    def oauth_service(self):
        """Create a GoogleOAuthService instance for testing."""
        with patch('services.google_oauth.GOOGLE_CLIENT_ID', "test_client_id"), \
             patch('services.google_oauth.GOOGLE_CLIENT_SECRET', "test_client_secret"), \
             patch('services.google_oauth.API_BASE_URL', "http://localhost:8000"):
            return GoogleOAuthService()

    @pytest.fixture
    def encryption(self):
        service = EncryptionService(VALID_FERNET_KEY)
        with patch('services.google_oauth.get_encryption_service', return_value=service):
            yield service

    def test_init(self, oauth_service):
        assert oauth_service.client_id == "test_client_id"
        assert oauth_service.client_secret == "test_client_secret"
        assert oauth_service.redirect_uri == "http://localhost:8000/api/auth/google/callback"

    def test_get_authorization_url(self, oauth_service):
        """Authorization URL requests offline access and carries a signed state."""
        url = oauth_service.get_authorization_url(user_id="user-1")

        assert url.startswith("https://accounts.google.com/o/oauth2/auth?")
        assert "client_id=test_client_id" in url
        assert "redirect_uri=http%3A%2F%2Flocalhost%3A8000%2Fapi%2Fauth%2Fgoogle%2Fcallback" in url
        assert "response_type=code" in url
        assert "access_type=offline" in url
        assert "prompt=consent" in url

        state_match = re.search(r'state=([^&]+)', url)
        assert state_match is not None
        state_data = jwt_service.verify_oauth_state(state_match.group(1))
        assert state_data == {"user_id": "user-1"}

    def test_parse_state(self, oauth_service):
        signed_state = jwt_service.sign_oauth_state({"user_id": "user-123"})
        assert oauth_service._parse_state(signed_state) == "user-123"

    def test_parse_state_rejects_tampered_state(self, oauth_service):
        with pytest.raises(ValueError):
            oauth_service._parse_state("not-a-jwt")

    def test_parse_state_rejects_missing_user(self, oauth_service):
        signed_state = jwt_service.sign_oauth_state({"clinic_id": 1})
        with pytest.raises(ValueError):
            oauth_service._parse_state(signed_state)

    @pytest.mark.asyncio
    @patch('services.google_oauth.httpx.AsyncClient')
    async def test_exchange_code_for_tokens_success(self, mock_client_class, oauth_service):
        mock_response = MagicMock()
        mock_response.json.return_value = {
            "access_token": "test_access_token",
            "refresh_token": "test_refresh_token",
            "expires_in": 3600,
        }
        mock_response.raise_for_status = MagicMock()

        mock_client = AsyncMock()
        mock_client.post.return_value = mock_response
        mock_client_class.return_value.__aenter__.return_value = mock_client

        result = await oauth_service.exchange_code_for_tokens("test_code")

        assert result["refresh_token"] == "test_refresh_token"
        call_args = mock_client.post.call_args
        assert call_args[0][0] == "https://oauth2.googleapis.com/token"
        assert call_args[1]["data"]["grant_type"] == "authorization_code"

    @pytest.mark.asyncio
    @patch('services.google_oauth.httpx.AsyncClient')
    async def test_exchange_code_for_tokens_failure(self, mock_client_class, oauth_service):
        mock_response = MagicMock()
        mock_response.raise_for_status.side_effect = Exception("HTTP Error")

        mock_client = AsyncMock()
        mock_client.post.return_value = mock_response
        mock_client_class.return_value.__aenter__.return_value = mock_client

        with pytest.raises(Exception):
            await oauth_service.exchange_code_for_tokens("invalid_code")

    @pytest.mark.asyncio
    async def test_handle_oauth_callback_stores_encrypted_token(self, oauth_service, encryption, db_session, make_identity):
        identity = make_identity(email="doc@clinic.com")
        signed_state = jwt_service.sign_oauth_state({"user_id": identity.id})

        with patch.object(oauth_service, 'exchange_code_for_tokens', new_callable=AsyncMock) as mock_exchange, \
             patch.object(oauth_service, 'get_user_info', new_callable=AsyncMock) as mock_user_info:
            mock_exchange.return_value = {"access_token": "at", "refresh_token": "rt-1"}
            mock_user_info.return_value = {"email": "doc@gmail.com"}

            integration = await oauth_service.handle_oauth_callback(db_session, "code", signed_state)

        assert integration.user_id == identity.id
        assert integration.encrypted_refresh_token != "rt-1"
        assert encryption.decrypt_text(integration.encrypted_refresh_token) == "rt-1"

    @pytest.mark.asyncio
    async def test_handle_oauth_callback_replaces_existing_token(self, oauth_service, encryption, db_session, make_identity):
        identity = make_identity(email="doc@clinic.com")
        signed_state = jwt_service.sign_oauth_state({"user_id": identity.id})

        for refresh_token in ("rt-old", "rt-new"):
            with patch.object(oauth_service, 'exchange_code_for_tokens', new_callable=AsyncMock) as mock_exchange, \
                 patch.object(oauth_service, 'get_user_info', new_callable=AsyncMock) as mock_user_info:
                mock_exchange.return_value = {"access_token": "at", "refresh_token": refresh_token}
                mock_user_info.return_value = {}
                await oauth_service.handle_oauth_callback(db_session, "code", signed_state)

        rows = db_session.query(GoogleIntegration).filter(GoogleIntegration.user_id == identity.id).all()
        assert len(rows) == 1
        assert encryption.decrypt_text(rows[0].encrypted_refresh_token) == "rt-new"

    @pytest.mark.asyncio
    async def test_handle_oauth_callback_without_refresh_token(self, oauth_service, encryption, db_session, make_identity):
        identity = make_identity(email="doc@clinic.com")
        signed_state = jwt_service.sign_oauth_state({"user_id": identity.id})

        with patch.object(oauth_service, 'exchange_code_for_tokens', new_callable=AsyncMock) as mock_exchange:
            mock_exchange.return_value = {"access_token": "at"}
            with pytest.raises(ValueError):
                await oauth_service.handle_oauth_callback(db_session, "code", signed_state)

        assert db_session.query(GoogleIntegration).count() == 0

    @pytest.mark.asyncio
    async def test_handle_oauth_callback_unknown_user(self, oauth_service, encryption, db_session):
        signed_state = jwt_service.sign_oauth_state({"user_id": "missing"})
        with pytest.raises(ValueError):
            await oauth_service.handle_oauth_callback(db_session, "code", signed_state)

"""Google OAuth2 authorization-code exchange."""
import logging
from typing import Optional

import httpx

from config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    GOOGLE_TOKEN_URL,
    AUTH_TIMEOUT_SECONDS,
)
from models.api import TokenResponse
from services.errors import AuthExchangeFailed, AuthUnavailable

logger = logging.getLogger(__name__)


class GoogleAuthClient:
    """Exchange an authorization code from the frontend for Google tokens."""

    def __init__(
        self,
        client_id: Optional[str] = GOOGLE_CLIENT_ID,
        client_secret: Optional[str] = GOOGLE_CLIENT_SECRET,
        redirect_uri: Optional[str] = GOOGLE_REDIRECT_URI,
        token_url: str = GOOGLE_TOKEN_URL,
        timeout: float = AUTH_TIMEOUT_SECONDS
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_url = token_url
        self.timeout = timeout

    def exchange_code(self, code: str) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code received by the frontend

        Returns:
            TokenResponse from Google

        Raises:
            AuthExchangeFailed: Google rejected the code
            AuthUnavailable: Google could not be reached or answered garbage
        """
        payload = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        logger.info(
            "Sending request to Google OAuth2",
            extra={"fields": {"client_id": self.client_id, "redirect_uri": self.redirect_uri}}
        )

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.token_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send request to Google OAuth server: {e}", exc_info=True)
            raise AuthUnavailable("Failed to contact Google")

        logger.info("Received response from Google OAuth server", extra={"fields": {"status": response.status_code}})

        if response.status_code != 200:
            logger.error("Google OAuth2 error response", extra={"fields": {"google_error_response": response.text[:500]}})
            raise AuthExchangeFailed("Failed to exchange code", {"status": response.status_code})

        try:
            tokens = TokenResponse.model_validate(response.json())
        except ValueError as e:
            logger.error(f"Failed to parse Google's token response: {e}")
            raise AuthUnavailable("Invalid response from Google")

        logger.info(
            "Successfully exchanged code for tokens",
            extra={"fields": {
                "access_token_present": bool(tokens.access_token),
                "id_token_present": bool(tokens.id_token),
            }}
        )
        return tokens

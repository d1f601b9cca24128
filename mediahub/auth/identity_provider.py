"""External identity provider (Google OpenID Connect) client."""

import base64
import hashlib
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from mediahub.config import Settings
from mediahub.schemas.user import ExternalProfile
from mediahub.services.exceptions import IdentityProviderError

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_SCOPES = ("openid", "profile", "email")


def generate_state() -> str:
    """Random value binding the callback to the browser that started the login."""
    return secrets.token_urlsafe(32)


def generate_code_verifier() -> str:
    """PKCE code verifier (43-128 characters)."""
    return secrets.token_urlsafe(64)


def code_challenge_s256(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class IdentityProvider(ABC):
    """
    Abstract interface for an OAuth 2.0 / OpenID Connect identity provider.

    The profile it returns is trusted without further verification.
    """

    @abstractmethod
    def authorization_url(self, state: str, code_verifier: str) -> str:
        """
        Build the URL the browser is redirected to for consent.

        Args:
            state: Anti-CSRF state value
            code_verifier: PKCE verifier; only its S256 challenge is sent

        Returns:
            Authorization URL
        """
        pass

    @abstractmethod
    def fetch_profile(self, code: str, code_verifier: str) -> ExternalProfile:
        """
        Exchange an authorization code and return the verified profile.

        Args:
            code: Authorization code from the callback
            code_verifier: PKCE verifier stored when the login started

        Returns:
            Verified ExternalProfile

        Raises:
            IdentityProviderError: If the exchange or profile fetch fails
        """
        pass


class GoogleIdentityProvider(IdentityProvider):
    """Google OpenID Connect provider using the authorization code flow with PKCE."""

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = settings.GOOGLE_REDIRECT_URI
        self.timeout = httpx.Timeout(settings.OAUTH_HTTP_TIMEOUT)
        self._client = client

    def authorization_url(self, state: str, code_verifier: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(GOOGLE_SCOPES),
            "state": state,
            "code_challenge": code_challenge_s256(code_verifier),
            "code_challenge_method": "S256",
        }
        return f"{GOOGLE_AUTHORIZATION_URL}?{urlencode(params)}"

    def fetch_profile(self, code: str, code_verifier: str) -> ExternalProfile:
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            token_response = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "code_verifier": code_verifier,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                },
            )
            token_response.raise_for_status()
            access_token = token_response.json()["access_token"]

            userinfo_response = client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            userinfo_response.raise_for_status()
            userinfo = userinfo_response.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Google token exchange failed: {e.__class__.__name__}")
            raise IdentityProviderError("Failed to fetch Google user") from e
        finally:
            if self._client is None:
                client.close()

        try:
            return ExternalProfile(
                external_id=userinfo.get("sub", ""),
                email=userinfo.get("email", ""),
                name=userinfo.get("name"),
                picture=userinfo.get("picture"),
                email_verified=bool(userinfo.get("email_verified", False)),
            )
        except PydanticValidationError as e:
            raise IdentityProviderError("Google returned an incomplete profile") from e

"""
TaxBandits OAuth authentication.

Exchanges client credentials for a short-lived bearer token and caches it
until shortly before it expires.

Security notes:
- Never log tokens, client secrets or user tokens
- The token cache lives on the authenticator instance only, never on disk
"""

import time
import logging
from typing import Callable, Optional
from dataclasses import dataclass, field

import jwt
import requests

from .config import TaxBanditConfig
from .errors import ApiErrorDetail, AuthenticationFailed, NetworkError

# Configure logger - NEVER log tokens or secrets
logger = logging.getLogger(__name__)

# Tokens are treated as stale this long before their nominal expiry
TOKEN_REFRESH_BUFFER_SECONDS = 5 * 60

# Used when the OAuth response omits ExpiresIn
DEFAULT_EXPIRES_IN = 3600


@dataclass
class AccessToken:
    """Represents a TaxBandits API access token."""
    token: str
    expires_at: float  # Unix timestamp, refresh buffer already subtracted
    token_type: str = "Bearer"
    # Same clock the issuing authenticator checks expiry against
    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    def expired(self, now: float) -> bool:
        """True once ``now`` has reached the (buffered) expiry."""
        return now >= self.expires_at

    @property
    def is_expired(self) -> bool:
        return self.expired(self.clock())

    def __repr__(self) -> str:
        """Safe repr that doesn't expose token value."""
        status = "expired" if self.is_expired else "valid"
        return f"<AccessToken type={self.token_type} status={status}>"


class TaxBanditAuthenticator:
    """
    Handles TaxBandits OAuth using a signed client assertion.

    The OAuth exchange is a single POST:
    1. The ``Authentication`` header carries a JWS signed with the client secret
    2. The JSON body carries ClientId, ClientSecret and UserToken
    3. TaxBandits answers with AccessToken, TokenType, ExpiresIn, StatusCode, StatusName

    A StatusCode other than 200 is a failure even when the HTTP status is 200.

    Usage:
        auth = TaxBanditAuthenticator(load_config())
        token = auth.get_access_token()
        # Use token.token in Authorization header
    """

    def __init__(
        self,
        config: TaxBanditConfig,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize authenticator with configuration.

        Args:
            config: TaxBanditConfig instance with credentials and endpoints
            session: HTTP session to use (a new one by default)
            clock: Returns the current Unix time; time.time by default
        """
        self.config = config
        self.use_sandbox = config.use_sandbox
        self._session = session or requests.Session()
        self._clock = clock or time.time
        self._cached_token: Optional[AccessToken] = None

    @property
    def oauth_url(self) -> str:
        return self.config.oauth_url_for(self.use_sandbox)

    def set_environment(self, use_sandbox: bool) -> bool:
        """
        Switch between sandbox and production.

        Tokens are not valid across environments, so switching drops the cache.

        Returns:
            bool: True if the environment actually changed
        """
        if self.use_sandbox == use_sandbox:
            return False
        self.use_sandbox = use_sandbox
        self.invalidate()
        logger.info(f"Switched TaxBandits environment to {'SANDBOX' if use_sandbox else 'PRODUCTION'}")
        return True

    def invalidate(self) -> None:
        """Discard the cached token so the next call re-authenticates."""
        self._cached_token = None

    def has_valid_token(self) -> bool:
        return self._cached_token is not None and not self._cached_token.expired(self._clock())

    def _create_client_assertion(self) -> str:
        """
        Create the signed JWS sent in the Authentication header.

        Claims:
        - iss, sub: Client ID
        - aud: User token
        - iat: Current time

        Raises:
            AuthenticationFailed: If signing fails
        """
        claims = {
            "iss": self.config.client_id,
            "sub": self.config.client_id,
            "aud": self.config.user_token,
            "iat": int(self._clock()),
        }
        try:
            return jwt.encode(
                claims,
                self.config.client_secret,
                algorithm=self.config.jwt_algorithm,
            )
        except Exception as e:
            # Don't log the secret or the claims
            raise AuthenticationFailed(0, "AssertionFailed", [
                ApiErrorDetail(
                    id="AUTH",
                    name="AssertionFailed",
                    message=f"Failed to create client assertion: {type(e).__name__}",
                ),
            ]) from e

    def authenticate(self) -> AccessToken:
        """
        Request a new access token and cache it.

        Returns:
            AccessToken: Token whose expires_at is now + ExpiresIn - refresh buffer

        Raises:
            NetworkError: If the OAuth endpoint cannot be reached
            AuthenticationFailed: If the exchange is rejected
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authentication": self._create_client_assertion(),
        }
        body = {
            "ClientId": self.config.client_id,
            "ClientSecret": self.config.client_secret,
            "UserToken": self.config.user_token,
        }

        try:
            logger.info(f"Requesting token from {self.oauth_url}")
            response = self._session.post(
                self.oauth_url,
                json=body,
                headers=headers,
                timeout=self.config.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error during token request: {type(e).__name__}")
            raise NetworkError(f"OAuth request failed: {type(e).__name__}") from e

        if not response.ok:
            # Log status but NOT response body
            logger.error(f"Token request failed: HTTP {response.status_code}")
            raise AuthenticationFailed(response.status_code, "AuthenticationFailed", [
                ApiErrorDetail(
                    id="AUTH",
                    name="AuthenticationFailed",
                    message=f"OAuth returned {response.status_code}: {response.reason}",
                ),
            ])

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationFailed(response.status_code, "InvalidTokenResponse", [
                ApiErrorDetail(id="AUTH", name="InvalidTokenResponse", message="OAuth response is not JSON"),
            ]) from e

        status_code = data.get("StatusCode")
        if status_code != 200:
            status_name = data.get("StatusName") or "AuthenticationFailed"
            logger.error(f"Token request rejected: {status_name} ({status_code})")
            raise AuthenticationFailed(status_code or 0, status_name, [
                ApiErrorDetail(id="AUTH", name=status_name, message=f"OAuth status: {status_name}"),
            ])

        access_token = data.get("AccessToken")
        if not access_token:
            raise AuthenticationFailed(200, "InvalidTokenResponse", [
                ApiErrorDetail(id="AUTH", name="InvalidTokenResponse", message="No AccessToken in response"),
            ])

        expires_in = data.get("ExpiresIn") or DEFAULT_EXPIRES_IN
        token = AccessToken(
            token=access_token,
            expires_at=self._clock() + expires_in - TOKEN_REFRESH_BUFFER_SECONDS,
            token_type=data.get("TokenType") or "Bearer",
            clock=self._clock,
        )
        self._cached_token = token

        logger.info(f"Token obtained successfully, expires in {expires_in}s")
        return token

    def get_access_token(self, force_refresh: bool = False) -> AccessToken:
        """
        Get a valid access token, refreshing if necessary.

        Args:
            force_refresh: If True, always request new token

        Returns:
            AccessToken: Valid access token
        """
        if not force_refresh and self.has_valid_token():
            logger.debug("Using cached access token")
            return self._cached_token

        logger.info("Obtaining new access token...")
        return self.authenticate()

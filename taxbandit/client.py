"""
TaxBandits API client.

Provides one authenticated request method used by every service built on top
of it (form services, business service):
- Transparent token acquisition and refresh
- JSON request/response handling
- Classification of failures into TaxBanditError subclasses

Security notes:
- Never log request/response bodies (may contain TINs)
- A 401 drops the cached token; the failing call still raises
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import TaxBanditConfig
from .auth import TaxBanditAuthenticator, AccessToken
from .errors import ApiErrorDetail, NetworkError, RemoteError, Unauthorized

# Configure logger - be careful about what gets logged
logger = logging.getLogger(__name__)


class TaxBanditClient:
    """
    Client for the TaxBandits REST API.

    Usage:
        config = load_config()
        client = TaxBanditClient(config)

        result = client.request("Form1099NEC/Create", method="POST", body=payload)
        status = client.request("Form1099NEC/Status", params={"SubmissionId": sid})
    """

    def __init__(
        self,
        config: TaxBanditConfig,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize TaxBandits client.

        Args:
            config: TaxBanditConfig instance with credentials and endpoints
            session: HTTP session shared by OAuth and API calls
            clock: Returns the current Unix time; used for token expiry
        """
        self.config = config
        self._session = session or requests.Session()
        self._auth = TaxBanditAuthenticator(config, session=self._session, clock=clock)

    @property
    def use_sandbox(self) -> bool:
        return self._auth.use_sandbox

    @property
    def api_url(self) -> str:
        """Base API URL for the current environment."""
        return self.config.api_url_for(self._auth.use_sandbox)

    @property
    def oauth_url(self) -> str:
        """OAuth URL for the current environment."""
        return self._auth.oauth_url

    def set_environment(self, use_sandbox: bool) -> None:
        """Switch between sandbox and production, dropping any cached token."""
        self._auth.set_environment(use_sandbox)

    def authenticate(self) -> AccessToken:
        """Force an OAuth exchange and cache the resulting token."""
        return self._auth.authenticate()

    def has_credentials(self) -> bool:
        """Check if the client has credentials configured."""
        return bool(self.config.client_id and self.config.client_secret and self.config.user_token)

    def is_authenticated(self) -> bool:
        """Check if the client has a valid (non-expired) token."""
        return self._auth.has_valid_token()

    def request(
        self,
        path: str,
        method: str = "GET",
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make authenticated request to the TaxBandits API.

        Args:
            path: Path relative to the API base URL, e.g. "FormW2/Create"
            method: HTTP method (GET, POST, PUT, DELETE)
            body: JSON-serializable request body
            params: Query parameters

        Returns:
            Parsed JSON body, or None for an empty response

        Raises:
            NetworkError: Transport failure
            Unauthorized: HTTP 401 (the cached token is dropped)
            RemoteError: Any other non-2xx response
            AuthenticationFailed: If a token had to be obtained and the exchange failed
        """
        token = self._auth.get_access_token()
        url = f"{self.api_url}/{path}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"{token.token_type} {token.token}",
        }

        try:
            logger.info(f"Making {method} request to {path}")
            response = self._session.request(
                method=method,
                url=url,
                headers=headers,
                json=body,
                params=params,
                timeout=self.config.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Request failed: {type(e).__name__}")
            raise NetworkError(f"Network request failed: {type(e).__name__}") from e

        # Log status but NOT response body
        logger.debug(f"Response status: {response.status_code}")

        if response.status_code == 401:
            self._auth.invalidate()
            logger.warning(f"{method} {path} returned 401; cached token dropped")
            raise Unauthorized()

        if not response.ok:
            payload = self._parse_error_body(response)
            status_name = payload.get("StatusName") or response.reason or "Error"
            logger.error(f"{method} {path} failed: HTTP {response.status_code} {status_name}")
            raise RemoteError(response.status_code, status_name, self._parse_errors(payload))

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(response.status_code, "MalformedResponse") from e

    def _parse_error_body(self, response: requests.Response) -> Dict[str, Any]:
        """Best-effort JSON parse of an error response."""
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _parse_errors(self, payload: Dict[str, Any]) -> List[ApiErrorDetail]:
        errors = payload.get("Errors")
        if not isinstance(errors, list):
            return []
        return [ApiErrorDetail.from_wire(e) for e in errors if isinstance(e, dict)]

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "TaxBanditClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

"""
Configuration module for TaxBandits e-filing.

Loads settings from environment variables with sensible defaults for the sandbox environment.
Never logs or exposes sensitive values like client secrets or user tokens.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


# TaxBandits OAuth endpoints
SANDBOX_OAUTH_URL = "https://testoauth.expressauth.net/v2/tbsauth"
PROD_OAUTH_URL = "https://oauth.expressauth.net/v2/tbsauth"

# TaxBandits API endpoints
SANDBOX_API_URL = "https://testapi.taxbandits.com/v1.7.3"
PROD_API_URL = "https://api.taxbandits.com/v1.7.3"


@dataclass(frozen=True)
class TaxBanditConfig:
    """Immutable credentials and endpoints for the TaxBandits API."""

    # Issued by TaxBandits in the developer console
    client_id: str
    client_secret: str
    user_token: str

    # Sandbox vs production
    use_sandbox: bool = True

    sandbox_oauth_url: str = SANDBOX_OAUTH_URL
    production_oauth_url: str = PROD_OAUTH_URL
    sandbox_api_url: str = SANDBOX_API_URL
    production_api_url: str = PROD_API_URL

    # HTTP timeout in seconds
    request_timeout: float = 30.0

    # Signing algorithm for the Authentication header assertion
    jwt_algorithm: str = "HS256"

    def __post_init__(self):
        """Validate configuration on creation."""
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    @property
    def environment(self) -> str:
        return "SANDBOX" if self.use_sandbox else "PRODUCTION"

    def oauth_url_for(self, sandbox: bool) -> str:
        """OAuth token endpoint for the given environment."""
        return self.sandbox_oauth_url if sandbox else self.production_oauth_url

    def api_url_for(self, sandbox: bool) -> str:
        """API base URL for the given environment."""
        return self.sandbox_api_url if sandbox else self.production_api_url

    def masked_client_id(self) -> str:
        """Client ID safe for logs."""
        if len(self.client_id) > 12:
            return f"{self.client_id[:8]}...{self.client_id[-4:]}"
        return "***" if self.client_id else "(not set)"

    def __repr__(self) -> str:
        """Safe repr that doesn't expose the secret or user token."""
        return (
            f"<TaxBanditConfig client_id={self.masked_client_id()} "
            f"environment={self.environment}>"
        )


@dataclass(frozen=True)
class PollOptions:
    """
    Timing for acknowledgement status polling, in seconds.

    Polls every ``initial_interval`` until ``switch_after`` has elapsed, then
    every ``long_interval``, and gives up once ``max_duration`` has elapsed.
    """

    initial_interval: float = 10.0
    long_interval: float = 60.0
    switch_after: float = 5 * 60.0
    max_duration: float = 60 * 60.0

    def __post_init__(self):
        for name in ("initial_interval", "long_interval", "switch_after", "max_duration"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def load_config() -> TaxBanditConfig:
    """
    Load TaxBandits configuration from environment variables.

    Credentials (an empty value is allowed here, see TaxBanditClient.has_credentials):
        TAXBANDIT_CLIENT_ID
        TAXBANDIT_CLIENT_SECRET
        TAXBANDIT_USER_TOKEN

    Optional environment variables:
        TAXBANDIT_ENVIRONMENT: "SANDBOX" or "PRODUCTION" (default: SANDBOX)
        TAXBANDIT_OAUTH_URL: OAuth endpoint override for the selected environment
        TAXBANDIT_API_URL: API base URL override for the selected environment
        TAXBANDIT_REQUEST_TIMEOUT: HTTP timeout in seconds (default: 30)

    Returns:
        TaxBanditConfig: Validated configuration object

    Raises:
        ValueError: If the environment name or a numeric value is invalid
    """
    environment = os.environ.get("TAXBANDIT_ENVIRONMENT", "SANDBOX").upper()
    if environment not in ("SANDBOX", "PRODUCTION"):
        raise ValueError(
            f"Invalid TAXBANDIT_ENVIRONMENT: {environment}. Must be 'SANDBOX' or 'PRODUCTION'."
        )
    use_sandbox = environment == "SANDBOX"

    # Overrides only apply to the environment being configured
    oauth_override = os.environ.get("TAXBANDIT_OAUTH_URL", "")
    api_override = os.environ.get("TAXBANDIT_API_URL", "")

    endpoints = {
        "sandbox_oauth_url": SANDBOX_OAUTH_URL,
        "production_oauth_url": PROD_OAUTH_URL,
        "sandbox_api_url": SANDBOX_API_URL,
        "production_api_url": PROD_API_URL,
    }
    prefix = "sandbox" if use_sandbox else "production"
    if oauth_override:
        endpoints[f"{prefix}_oauth_url"] = oauth_override
    if api_override:
        endpoints[f"{prefix}_api_url"] = api_override.rstrip("/")

    return TaxBanditConfig(
        client_id=os.environ.get("TAXBANDIT_CLIENT_ID", ""),
        client_secret=os.environ.get("TAXBANDIT_CLIENT_SECRET", ""),
        user_token=os.environ.get("TAXBANDIT_USER_TOKEN", ""),
        use_sandbox=use_sandbox,
        request_timeout=_env_float("TAXBANDIT_REQUEST_TIMEOUT", 30.0),
        **endpoints,
    )


def load_poll_options() -> PollOptions:
    """
    Load status polling timings from environment variables.

    Optional environment variables (seconds):
        TAXBANDIT_POLL_INITIAL_INTERVAL (default: 10)
        TAXBANDIT_POLL_LONG_INTERVAL (default: 60)
        TAXBANDIT_POLL_SWITCH_AFTER (default: 300)
        TAXBANDIT_POLL_MAX_DURATION (default: 3600)
    """
    defaults = PollOptions()
    return PollOptions(
        initial_interval=_env_float("TAXBANDIT_POLL_INITIAL_INTERVAL", defaults.initial_interval),
        long_interval=_env_float("TAXBANDIT_POLL_LONG_INTERVAL", defaults.long_interval),
        switch_after=_env_float("TAXBANDIT_POLL_SWITCH_AFTER", defaults.switch_after),
        max_duration=_env_float("TAXBANDIT_POLL_MAX_DURATION", defaults.max_duration),
    )


def load_config_from_dotenv(dotenv_path: Optional[Path] = None) -> TaxBanditConfig:
    """
    Load configuration after reading from .env file.

    Args:
        dotenv_path: Path to .env file. Defaults to project root/.env

    Returns:
        TaxBanditConfig: Validated configuration object
    """
    from dotenv import load_dotenv

    if dotenv_path is None:
        dotenv_path = Path(__file__).parent.parent / ".env"

    load_dotenv(dotenv_path)
    return load_config()

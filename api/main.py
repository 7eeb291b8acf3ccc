"""
TaxBandits E-Filing FastAPI Backend.

Main application entry point.
Run with: uvicorn api.main:app --reload --port 8002
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import List
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from taxbandit import __version__, load_config

from .polling import PollRegistry
from .routers import efile

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = [
    "http://localhost:8002",
    "http://127.0.0.1:8002",
]

# Filing responses carry TINs and submission ids; never let intermediaries keep them
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


def allowed_origins() -> List[str]:
    """Comma-separated EFILE_ALLOWED_ORIGINS, or the local dev origins."""
    raw = os.getenv("EFILE_ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or DEFAULT_ORIGINS


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the TaxBandits target on startup; stop background polling on shutdown."""
    logger.info(f"TaxBandits e-filing API {__version__} starting up")
    try:
        config = load_config()
    except ValueError as e:
        logger.warning(f"TaxBandits config is invalid, every filing call will fail: {e}")
    else:
        # Client id is masked; secret and user token are never logged
        logger.info(
            f"TaxBandits {config.environment}: client={config.masked_client_id()} "
            f"oauth={config.oauth_url_for(config.use_sandbox)} "
            f"api={config.api_url_for(config.use_sandbox)}"
        )
        if not (config.client_id and config.client_secret and config.user_token):
            logger.warning("TaxBandits credentials are incomplete; API calls will fail")

    yield

    stopped = efile.get_poll_registry().stop_all()
    logger.info(f"TaxBandits e-filing API shutting down, {stopped} poll session(s) stopped")


app = FastAPI(
    title="TaxBandits E-Filing API",
    description="Submit, validate, transmit and track IRS filings through TaxBandits",
    version=__version__,
    lifespan=lifespan,
)

# SlowAPI looks the limiter up on app state
app.state.limiter = efile.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.include_router(efile.router, prefix="/api/efile", tags=["E-Filing"])


@app.get("/health")
async def health(registry: PollRegistry = Depends(efile.get_poll_registry)):
    """Liveness plus the number of submissions currently being polled."""
    return {
        "status": "healthy",
        "version": __version__,
        "active_polls": registry.active_count(),
    }

"""
Error types raised by the TaxBandits client.

Every failure of an authenticated call surfaces as a TaxBanditError subclass
carrying the HTTP (or application) status code, a status name and the
structured error list returned by the API.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ApiErrorDetail:
    """One entry of the ``Errors`` list in an error envelope."""
    id: str = ""
    name: str = ""
    message: str = ""

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "ApiErrorDetail":
        return cls(
            id=str(data.get("Id") or ""),
            name=str(data.get("Name") or ""),
            message=str(data.get("Message") or ""),
        )


class TaxBanditError(Exception):
    """Base class for classified TaxBandits API failures."""

    retryable = False

    def __init__(
        self,
        status_code: int,
        status_name: str,
        errors: Optional[List[ApiErrorDetail]] = None,
    ):
        super().__init__(f"TaxBandit API error: {status_name} ({status_code})")
        self.status_code = status_code
        self.status_name = status_name
        self.errors: List[ApiErrorDetail] = list(errors or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "status_name": self.status_name,
            "errors": [
                {"id": e.id, "name": e.name, "message": e.message}
                for e in self.errors
            ],
        }


class NetworkError(TaxBanditError):
    """Transport-level failure (DNS, refused connection, timeout)."""

    retryable = True

    def __init__(self, message: str):
        super().__init__(0, "NetworkError", [
            ApiErrorDetail(id="NETWORK", name="NetworkError", message=message),
        ])


class AuthenticationFailed(TaxBanditError):
    """OAuth exchange was rejected."""
    pass


class Unauthorized(TaxBanditError):
    """A previously issued token was rejected by the API."""

    def __init__(self):
        super().__init__(401, "Unauthorized", [
            ApiErrorDetail(
                id="AUTH",
                name="Unauthorized",
                message="Invalid or expired credentials. Please re-authenticate.",
            ),
        ])


class RemoteError(TaxBanditError):
    """Any other non-success response from the API."""
    pass

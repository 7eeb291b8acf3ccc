"""
TaxBandits E-Filing Module

Provides the TaxBandits API integration used to file information returns
and employment tax forms with the IRS.

Modules:
    config: Configuration management via environment variables
    auth: OAuth token exchange and caching
    client: Authenticated API client
    form_service: Create/validate/transmit/status operations for any form type
    forms: Supported form types
    submission: Submission lifecycle (in progress, filed, accepted, rejected)
    status_poller: Acknowledgement status polling
    business_service: Business (payer) records
    kyc_service: TIN matching and address validation

Usage:
    from taxbandit import TaxBanditClient, FormType, create_form_service, load_config, submit, track

    client = TaxBanditClient(load_config())
    service = create_form_service(client, FormType.NEC_1099.value)
    submission = submit(service, payload)
    session = track(submission, service, on_update=print)
"""

from .config import PollOptions, TaxBanditConfig, load_config, load_config_from_dotenv, load_poll_options
from .errors import (
    ApiErrorDetail,
    AuthenticationFailed,
    NetworkError,
    RemoteError,
    TaxBanditError,
    Unauthorized,
)
from .auth import AccessToken, TaxBanditAuthenticator
from .client import TaxBanditClient
from .form_service import (
    CreateResult,
    FormService,
    IRSError,
    ListResult,
    StatusResult,
    TaxBanditValidationError,
    create_form_service,
)
from .forms import FormType, build_form_services, form_type_from_path
from .status_poller import PollSession, StatusPoller, ThreadingScheduler, start_polling
from .submission import FilingState, FormSubmission, LifecycleError, submit, track
from .business_service import BusinessData, BusinessList, BusinessRecord, BusinessService
from .kyc_service import AddressInput, AddressValidation, CorrectedAddress, KycService, TinVerification

__all__ = [
    # Config
    "TaxBanditConfig",
    "PollOptions",
    "load_config",
    "load_poll_options",
    "load_config_from_dotenv",
    # Errors
    "TaxBanditError",
    "NetworkError",
    "AuthenticationFailed",
    "Unauthorized",
    "RemoteError",
    "ApiErrorDetail",
    # Auth / client
    "AccessToken",
    "TaxBanditAuthenticator",
    "TaxBanditClient",
    # Forms
    "FormService",
    "create_form_service",
    "CreateResult",
    "TaxBanditValidationError",
    "IRSError",
    "StatusResult",
    "ListResult",
    "FormType",
    "build_form_services",
    "form_type_from_path",
    # Lifecycle
    "FilingState",
    "FormSubmission",
    "LifecycleError",
    "submit",
    "track",
    # Polling
    "StatusPoller",
    "PollSession",
    "ThreadingScheduler",
    "start_polling",
    # Business
    "BusinessService",
    "BusinessData",
    "BusinessRecord",
    "BusinessList",
    # KYC
    "KycService",
    "TinVerification",
    "AddressInput",
    "AddressValidation",
    "CorrectedAddress",
]

__version__ = "0.1.0"

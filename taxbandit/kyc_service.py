"""
Pre-filing checks on payees and payers.

TIN matching confirms a TIN belongs to the given name before it goes on a
form the IRS would otherwise reject; address validation returns the USPS
corrected form of a mailing address.
"""

import logging
from dataclasses import dataclass, field
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .business_service import _digits
from .client import TaxBanditClient
from .form_service import parse_envelope

logger = logging.getLogger(__name__)


@dataclass
class TinVerification:
    is_valid: bool
    tin_type: str
    status_code: str
    status_message: str


@dataclass
class AddressInput:
    address1: str
    city: str
    state: str
    zip: str
    address2: str = ""


@dataclass
class CorrectedAddress:
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    zip_plus4: str = ""


@dataclass
class AddressValidation:
    is_valid: bool
    corrected_address: CorrectedAddress
    footnotes: List[str] = field(default_factory=list)
    dpv_confirmation: str = ""


class _TinResultWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    is_valid: Optional[bool] = Field(None, alias="IsValid")
    tin_type: Optional[str] = Field(None, alias="TINType")
    status_code: Optional[str] = Field(None, alias="StatusCode")
    status_message: Optional[str] = Field(None, alias="StatusMessage")


class _TinEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status_code: Optional[int] = Field(None, alias="StatusCode")
    status_name: Optional[str] = Field(None, alias="StatusName")
    result: Optional[_TinResultWire] = Field(None, alias="TINMatchingResult")


class _CorrectedAddressWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    address1: Optional[str] = Field(None, alias="Address1")
    address2: Optional[str] = Field(None, alias="Address2")
    city: Optional[str] = Field(None, alias="City")
    state: Optional[str] = Field(None, alias="State")
    zip: Optional[str] = Field(None, alias="ZipCode")
    zip_plus4: Optional[str] = Field(None, alias="ZipPlus4")

    def to_address(self) -> CorrectedAddress:
        return CorrectedAddress(
            address1=self.address1 or "",
            address2=self.address2 or "",
            city=self.city or "",
            state=self.state or "",
            zip=self.zip or "",
            zip_plus4=self.zip_plus4 or "",
        )


class _AddressResultWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    is_valid: Optional[bool] = Field(None, alias="IsValid")
    corrected_address: Optional[_CorrectedAddressWire] = Field(None, alias="CorrectedAddress")
    footnotes: Annotated[
        List[str], BeforeValidator(lambda v: [] if v is None else v)
    ] = Field(default_factory=list, alias="Footnotes")
    dpv_confirmation: Optional[str] = Field(None, alias="DPVConfirmation")


class _AddressEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status_code: Optional[int] = Field(None, alias="StatusCode")
    status_name: Optional[str] = Field(None, alias="StatusName")
    result: Optional[_AddressResultWire] = Field(None, alias="AddressResult")


class KycService:
    """TINMatching/Verify and Address/Validate."""

    def __init__(self, client: TaxBanditClient):
        self.client = client

    def verify_tin(self, tin: str, name: str) -> TinVerification:
        """Check that a TIN (SSN or EIN, punctuation allowed) matches the name on file with the IRS."""
        result = self.client.request(
            "TINMatching/Verify", method="POST", body={"TIN": _digits(tin), "Name": name}
        )
        wire = parse_envelope(_TinEnvelope, result, "TINMatching/Verify").result or _TinResultWire()
        verification = TinVerification(
            is_valid=bool(wire.is_valid),
            tin_type=wire.tin_type or "",
            status_code=wire.status_code or "",
            status_message=wire.status_message or "",
        )
        # The TIN itself is never logged
        logger.info(f"TIN match for {verification.tin_type or 'TIN'}: valid={verification.is_valid}")
        return verification

    def validate_address(self, address: AddressInput) -> AddressValidation:
        result = self.client.request(
            "Address/Validate",
            method="POST",
            body={
                "Address1": address.address1,
                "Address2": address.address2 or "",
                "City": address.city,
                "State": address.state,
                "ZipCode": address.zip,
            },
        )
        wire = parse_envelope(_AddressEnvelope, result, "Address/Validate").result or _AddressResultWire()
        corrected = wire.corrected_address or _CorrectedAddressWire()
        return AddressValidation(
            is_valid=bool(wire.is_valid),
            corrected_address=corrected.to_address(),
            footnotes=list(wire.footnotes),
            dpv_confirmation=wire.dpv_confirmation or "",
        )

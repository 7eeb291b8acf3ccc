"""
Business (payer) records.

Every TaxBandits form submission is filed on behalf of a business. This
service creates and reads those records through the Business endpoints.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .client import TaxBanditClient
from .form_service import parse_envelope

logger = logging.getLogger(__name__)


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


@dataclass
class BusinessData:
    """Payer details as entered by the user."""
    business_name: str
    tax_id_type: str  # EIN or SSN
    tin: str
    is_ein: bool
    contact_name: str
    phone: str
    email: str
    address1: str
    city: str
    state: str
    zip: str
    address2: str = ""
    payer_ref: str = ""


@dataclass
class BusinessRecord(BusinessData):
    business_id: str = ""
    country: str = "US"


@dataclass
class BusinessList:
    businesses: List[BusinessRecord] = field(default_factory=list)
    total_records: int = 0


class _BusinessWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    status_code: Optional[int] = Field(None, alias="StatusCode")
    status_name: Optional[str] = Field(None, alias="StatusName")
    business_id: Optional[str] = Field(None, alias="BusinessId")
    business_name: Optional[str] = Field(None, alias="BusinessName")
    payer_ref: Optional[str] = Field(None, alias="PayerRef")
    tax_id_type: Optional[str] = Field(None, alias="TaxIdType")
    tin: Optional[str] = Field(None, alias="TINorSSN")
    is_ein: Optional[bool] = Field(None, alias="IsEIN")
    contact_name: Optional[str] = Field(None, alias="ContactName")
    phone: Optional[str] = Field(None, alias="Phone")
    email: Optional[str] = Field(None, alias="Email")
    address1: Optional[str] = Field(None, alias="Address1")
    address2: Optional[str] = Field(None, alias="Address2")
    city: Optional[str] = Field(None, alias="City")
    state: Optional[str] = Field(None, alias="State")
    zip: Optional[str] = Field(None, alias="ZipCode")
    country: Optional[str] = Field(None, alias="Country")

    def to_record(self) -> BusinessRecord:
        return BusinessRecord(
            business_id=self.business_id or "",
            business_name=self.business_name or "",
            payer_ref=self.payer_ref or "",
            tax_id_type=self.tax_id_type or "",
            tin=self.tin or "",
            is_ein=bool(self.is_ein),
            contact_name=self.contact_name or "",
            phone=self.phone or "",
            email=self.email or "",
            address1=self.address1 or "",
            address2=self.address2 or "",
            city=self.city or "",
            state=self.state or "",
            zip=self.zip or "",
            country=self.country or "US",
        )


class _BusinessListWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status_code: Optional[int] = Field(None, alias="StatusCode")
    status_name: Optional[str] = Field(None, alias="StatusName")
    total_records: Optional[int] = Field(None, alias="TotalRecords")
    businesses: Annotated[
        List[_BusinessWire], BeforeValidator(lambda v: [] if v is None else v)
    ] = Field(default_factory=list, alias="Businesses")


def build_business_payload(data: BusinessData) -> Dict[str, Any]:
    """Wire payload for Business/Create and Business/Update."""
    return {
        "BusinessName": data.business_name,
        "PayerRef": data.payer_ref,
        "TaxIdType": data.tax_id_type,
        "TINorSSN": _digits(data.tin),
        "IsEIN": data.is_ein,
        "ContactName": data.contact_name,
        "Phone": _digits(data.phone),
        "Email": data.email,
        "Address1": data.address1,
        "Address2": data.address2,
        "City": data.city,
        "State": data.state,
        "ZipCode": data.zip,
        "Country": "US",
    }


class BusinessService:
    """Business/Create, Get, Update and List."""

    def __init__(self, client: TaxBanditClient):
        self.client = client

    def create(self, data: BusinessData) -> str:
        """Create a business and return its BusinessId."""
        result = self.client.request(
            "Business/Create", method="POST", body=build_business_payload(data)
        )
        business_id = parse_envelope(_BusinessWire, result, "Business/Create").business_id or ""
        logger.info(f"Created business {business_id}")
        return business_id

    def get(self, business_id: str) -> BusinessRecord:
        result = self.client.request("Business/Get", params={"BusinessId": business_id})
        return parse_envelope(_BusinessWire, result, "Business/Get").to_record()

    def update(self, business_id: str, data: BusinessData) -> None:
        body = {"BusinessId": business_id}
        body.update(build_business_payload(data))
        self.client.request("Business/Update", method="PUT", body=body)

    def list(self) -> BusinessList:
        result = self.client.request("Business/List")
        envelope = parse_envelope(_BusinessListWire, result, "Business/List")
        return BusinessList(
            businesses=[b.to_record() for b in envelope.businesses],
            total_records=envelope.total_records or 0,
        )

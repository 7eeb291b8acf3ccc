"""
Generic form service for TaxBandits form endpoints.

Every supported form (W-2, 1099-NEC, 941, 1095-C, ...) exposes the same
lifecycle under its own path segment:

    {FormPath}/Create, /Update, /Validate, /Transmit, /Status,
    /Get, /List, /Delete, /RequestPDFURL

FormService implements that operation set once, parameterized only by the
path segment and the caller's payload type, so all form types share one code
path and one set of defaulting rules.

Wire envelopes are parsed with pydantic models; absent or null lists become
empty lists here so callers never check for None.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Generic, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .client import TaxBanditClient
from .errors import ApiErrorDetail, RemoteError

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT")
EnvelopeT = TypeVar("EnvelopeT", bound=BaseModel)


# =============================================================================
# WIRE ENVELOPES
# =============================================================================

def _empty_if_none(value: Any) -> Any:
    return [] if value is None else value


class _Envelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    status_code: Optional[int] = Field(None, alias="StatusCode")
    status_name: Optional[str] = Field(None, alias="StatusName")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)


class WireRecord(_WireModel):
    record_id: Optional[str] = Field(None, alias="RecordId")
    status: Optional[str] = Field(None, alias="Status")


class CreateEnvelope(_Envelope):
    submission_id: Optional[str] = Field(None, alias="SubmissionId")
    records: Annotated[List[WireRecord], BeforeValidator(_empty_if_none)] = Field(
        default_factory=list, alias="Records"
    )


class WireValidationError(_WireModel):
    id: Optional[str] = Field(None, alias="Id")
    field: Optional[str] = Field(None, alias="Field")
    message: Optional[str] = Field(None, alias="Message")
    code: Optional[str] = Field(None, alias="Code")


class ValidateEnvelope(_Envelope):
    errors: Annotated[List[WireValidationError], BeforeValidator(_empty_if_none)] = Field(
        default_factory=list, alias="Errors"
    )


class WireIRSError(_WireModel):
    error_code: Optional[str] = Field(None, alias="ErrorCode")
    error_message: Optional[str] = Field(None, alias="ErrorMessage")


class StatusRecord(WireRecord):
    acknowledgement_status: Optional[str] = Field(None, alias="AcknowledgementStatus")
    irs_errors: Annotated[List[WireIRSError], BeforeValidator(_empty_if_none)] = Field(
        default_factory=list, alias="IRSErrors"
    )


class StatusEnvelope(_Envelope):
    submission_id: Optional[str] = Field(None, alias="SubmissionId")
    records: Annotated[List[StatusRecord], BeforeValidator(_empty_if_none)] = Field(
        default_factory=list, alias="Records"
    )


class ListEnvelope(_Envelope):
    records: Annotated[List[Any], BeforeValidator(_empty_if_none)] = Field(
        default_factory=list, alias="Records"
    )
    total_records: Optional[int] = Field(None, alias="TotalRecords")
    page: Optional[int] = Field(None, alias="Page")
    page_size: Optional[int] = Field(None, alias="PageSize")
    total_pages: Optional[int] = Field(None, alias="TotalPages")


class PdfEnvelope(_Envelope):
    pdf_url: Optional[str] = Field(None, alias="PDFURL")


def parse_envelope(model: Type[EnvelopeT], data: Any, path: str) -> EnvelopeT:
    """Validate a response body against its envelope, classifying mismatches."""
    try:
        return model.model_validate(data if data is not None else {})
    except PydanticValidationError as e:
        logger.error(f"Unexpected response shape from {path}: {e.error_count()} error(s)")
        raise RemoteError(200, "MalformedResponse", [
            ApiErrorDetail(
                id="PARSE",
                name="MalformedResponse",
                message=f"Response from {path} did not match {model.__name__}",
            ),
        ]) from e


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class CreateResult:
    """Identifiers assigned by TaxBandits when a submission is created."""
    submission_id: str
    record_id: str
    record_ids: List[str] = field(default_factory=list)


@dataclass
class TaxBanditValidationError:
    """A field-level problem reported by {FormPath}/Validate."""
    id: str
    field: str
    message: str
    code: str


@dataclass
class IRSError:
    """An error reported by the IRS for a transmitted record."""
    code: str
    message: str


@dataclass
class StatusResult:
    """One observation of a submission's processing and acknowledgement status."""
    status: str
    acknowledgement_status: str
    irs_errors: List[IRSError] = field(default_factory=list)

    @property
    def is_accepted(self) -> bool:
        return self.acknowledgement_status.lower() == "accepted"

    @property
    def is_rejected(self) -> bool:
        return self.acknowledgement_status.lower() == "rejected"

    @property
    def is_terminal(self) -> bool:
        return self.is_accepted or self.is_rejected


@dataclass
class ListResult:
    """One page of submissions for a form type."""
    records: List[Any]
    total_records: int
    page: int
    page_size: int
    total_pages: int


# =============================================================================
# SERVICE
# =============================================================================

class FormService(Generic[PayloadT]):
    """
    Lifecycle operations for one TaxBandits form type.

    Args:
        client: Authenticated TaxBandits client
        form_path: Path segment of the form, e.g. "Form1099NEC"
        payload_builder: Turns the caller's payload into the wire body (dict() by default)
        record_mapper: Applied to records returned by get() and list() (identity by default)

    Errors raised by the client propagate unchanged; no retries happen here.
    """

    def __init__(
        self,
        client: TaxBanditClient,
        form_path: str,
        payload_builder: Optional[Callable[[PayloadT], Mapping[str, Any]]] = None,
        record_mapper: Optional[Callable[[Any], Any]] = None,
    ):
        self.client = client
        self.form_path = form_path
        self._build_payload = payload_builder or dict
        self._map_record = record_mapper or (lambda record: record)

    def __repr__(self) -> str:
        return f"<FormService {self.form_path}>"

    def _path(self, operation: str) -> str:
        return f"{self.form_path}/{operation}"

    def create(self, payload: PayloadT) -> CreateResult:
        """POST {FormPath}/Create. record_id is the first record's id, or "" if none."""
        path = self._path("Create")
        data = self.client.request(path, method="POST", body=dict(self._build_payload(payload)))
        envelope = parse_envelope(CreateEnvelope, data, path)

        record_ids = [r.record_id or "" for r in envelope.records]
        result = CreateResult(
            submission_id=envelope.submission_id or "",
            record_id=record_ids[0] if record_ids else "",
            record_ids=record_ids,
        )
        logger.info(f"Created {self.form_path} submission {result.submission_id} ({len(record_ids)} record(s))")
        return result

    def update(self, submission_id: str, payload: PayloadT) -> None:
        """PUT {FormPath}/Update with SubmissionId merged into the payload."""
        body = {"SubmissionId": submission_id}
        body.update(self._build_payload(payload))
        self.client.request(self._path("Update"), method="PUT", body=body)

    def validate(self, submission_id: str) -> List[TaxBanditValidationError]:
        """GET {FormPath}/Validate. A clean submission yields an empty list."""
        path = self._path("Validate")
        data = self.client.request(path, params={"SubmissionId": submission_id})
        envelope = parse_envelope(ValidateEnvelope, data, path)

        return [
            TaxBanditValidationError(
                id=e.id or str(uuid.uuid4()),
                field=e.field or "",
                message=e.message or "Unknown validation error",
                code=e.code or "",
            )
            for e in envelope.errors
        ]

    def transmit(self, submission_id: str, record_ids: List[str]) -> None:
        """POST {FormPath}/Transmit with every record id of the submission."""
        self.client.request(
            self._path("Transmit"),
            method="POST",
            body={"SubmissionId": submission_id, "RecordIds": list(record_ids)},
        )
        logger.info(f"Transmitted {self.form_path} submission {submission_id} ({len(record_ids)} record(s))")

    def get_status(self, submission_id: str) -> StatusResult:
        """GET {FormPath}/Status, reporting the first record's status."""
        path = self._path("Status")
        data = self.client.request(path, params={"SubmissionId": submission_id})
        envelope = parse_envelope(StatusEnvelope, data, path)

        if not envelope.records:
            return StatusResult(status="Unknown", acknowledgement_status="Pending")

        record = envelope.records[0]
        return StatusResult(
            status=record.status or "Unknown",
            acknowledgement_status=record.acknowledgement_status or "Pending",
            irs_errors=[
                IRSError(code=e.error_code or "", message=e.error_message or "")
                for e in record.irs_errors
            ],
        )

    def get(self, submission_id: str) -> Any:
        """GET {FormPath}/Get; the record is passed through the record mapper."""
        data = self.client.request(self._path("Get"), params={"SubmissionId": submission_id})
        return self._map_record(data)

    def list(self, page: int = 1, page_size: int = 10) -> ListResult:
        """GET {FormPath}/List for one page of submissions."""
        path = self._path("List")
        data = self.client.request(path, params={"Page": page, "PageSize": page_size})
        envelope = parse_envelope(ListEnvelope, data, path)

        return ListResult(
            records=[self._map_record(r) for r in envelope.records],
            total_records=envelope.total_records or 0,
            page=envelope.page if envelope.page is not None else page,
            page_size=envelope.page_size if envelope.page_size is not None else page_size,
            total_pages=envelope.total_pages or 0,
        )

    def delete_filing(self, submission_id: str) -> None:
        """DELETE {FormPath}/Delete."""
        self.client.request(
            self._path("Delete"),
            method="DELETE",
            body={"SubmissionId": submission_id},
        )
        logger.info(f"Deleted {self.form_path} submission {submission_id}")

    def get_pdf(self, submission_id: str) -> str:
        """GET {FormPath}/RequestPDFURL and return the URL."""
        path = self._path("RequestPDFURL")
        data = self.client.request(path, params={"SubmissionId": submission_id})
        return parse_envelope(PdfEnvelope, data, path).pdf_url or ""


def create_form_service(
    client: TaxBanditClient,
    form_path: str,
    payload_builder: Optional[Callable[[PayloadT], Mapping[str, Any]]] = None,
    record_mapper: Optional[Callable[[Any], Any]] = None,
) -> "FormService[PayloadT]":
    """Build the lifecycle service for one form path."""
    return FormService(client, form_path, payload_builder=payload_builder, record_mapper=record_mapper)

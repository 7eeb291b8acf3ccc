"""
Pydantic models for API request/response validation.

These schemas mirror the taxbandit result types; filings themselves are not persisted.
"""

from datetime import datetime
from typing import Optional, List, Any, Dict
from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# FORMS
# =============================================================================

class FormTypeInfo(BaseModel):
    form_type: str = Field(..., description="Path segment, e.g. Form1099NEC")
    label: str


# =============================================================================
# SUBMISSIONS
# =============================================================================

class SubmitRequest(BaseModel):
    """Wire payload for {FormType}/Create plus optional record selection."""
    payload: Dict[str, Any] = Field(..., description="Form payload in TaxBandits wire format")
    record_ids: Optional[List[str]] = Field(
        None, description="Records to transmit. Defaults to every created record."
    )
    submission_id: Optional[str] = Field(
        None,
        description=(
            "Resume a submission that was already created, e.g. from the detail of a "
            "failed attempt. Create is skipped and payload is not sent again."
        ),
    )


class ValidationErrorOut(BaseModel):
    id: str
    field: str
    message: str
    code: str


class IRSErrorOut(BaseModel):
    code: str
    message: str


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    form_type: str
    submission_id: Optional[str] = None
    record_ids: List[str] = Field(default_factory=list)
    state: str
    validation_errors: List[ValidationErrorOut] = Field(default_factory=list)
    irs_errors: List[IRSErrorOut] = Field(default_factory=list)
    created_at: datetime
    filed_at: Optional[datetime] = None


class StatusOut(BaseModel):
    status: str
    acknowledgement_status: str
    irs_errors: List[IRSErrorOut] = Field(default_factory=list)
    message: str = ""


class PollStatusResponse(BaseModel):
    form_type: str
    submission_id: str
    active: bool
    timed_out: bool
    poll_count: int
    current_interval: float
    last_result: Optional[StatusOut] = None
    message: str = ""


class ListResponse(BaseModel):
    records: List[Any] = Field(default_factory=list)
    total_records: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0


class PdfResponse(BaseModel):
    submission_id: str
    pdf_url: str

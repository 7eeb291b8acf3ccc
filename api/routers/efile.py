"""
E-Filing API Router.

Exposes the TaxBandits submission pipeline:
- Submit a form (create, validate, transmit)
- Check status once, or poll in the background until IRS acknowledgement
- Retrieve the PDF, list and delete submissions
"""

import logging
from functools import lru_cache
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from taxbandit import (
    FormService,
    FormType,
    NetworkError,
    PollOptions,
    StatusResult,
    TaxBanditClient,
    TaxBanditError,
    create_form_service,
    form_type_from_path,
    load_config,
    load_poll_options,
    submit,
)
from taxbandit.submission import FormSubmission

from ..polling import PollRegistry
from ..schemas import (
    FormTypeInfo,
    IRSErrorOut,
    ListResponse,
    PdfResponse,
    PollStatusResponse,
    StatusOut,
    SubmissionResponse,
    SubmitRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Submissions hit the IRS pipeline; keep them per-IP limited
limiter = Limiter(key_func=get_remote_address)

STATUS_MESSAGES = {
    "pending": "Submission transmitted. The IRS has not acknowledged it yet.",
    "accepted": "The IRS accepted this submission.",
    "rejected": "The IRS rejected this submission. See irs_errors for details.",
}
TIMED_OUT_MESSAGE = "Status unknown. Polling stopped without an IRS acknowledgement; check back later."


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache(maxsize=1)
def get_client() -> TaxBanditClient:
    """Shared client; one token cache per process."""
    return TaxBanditClient(load_config())


@lru_cache(maxsize=1)
def get_poll_registry() -> PollRegistry:
    return PollRegistry()


def get_poll_options() -> PollOptions:
    return load_poll_options()


def get_form_service(form_type: str, client: TaxBanditClient = Depends(get_client)) -> FormService:
    try:
        form = form_type_from_path(form_type)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unsupported form type: {form_type}")
    return create_form_service(client, form.value)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def raise_for_taxbandit_error(
    e: TaxBanditError, submission: Optional[FormSubmission] = None
) -> NoReturn:
    """
    Network problems are 503, anything the API rejected is 502.

    When the submission was already created remotely its id and records go in
    the detail, so a retry can resume instead of creating a duplicate.
    """
    status_code = 503 if isinstance(e, NetworkError) else 502
    detail = e.to_dict()
    if submission is not None and submission.submission_id:
        detail["submission_id"] = submission.submission_id
        detail["record_ids"] = list(submission.record_ids)
        logger.error(f"TaxBandits call failed for submission {submission.submission_id}: {e}")
    else:
        logger.error(f"TaxBandits call failed: {e}")
    raise HTTPException(status_code=status_code, detail=detail) from e


def status_out(result: StatusResult) -> StatusOut:
    return StatusOut(
        status=result.status,
        acknowledgement_status=result.acknowledgement_status,
        irs_errors=[IRSErrorOut(code=e.code, message=e.message) for e in result.irs_errors],
        message=STATUS_MESSAGES.get(result.acknowledgement_status.lower(), ""),
    )


def submission_out(submission: FormSubmission) -> SubmissionResponse:
    return SubmissionResponse.model_validate(submission.to_dict())


# =============================================================================
# ROUTES
# =============================================================================

@router.get("/forms", response_model=List[FormTypeInfo])
def list_form_types():
    """Form types that can be filed."""
    return [FormTypeInfo(form_type=form.value, label=form.label) for form in FormType]


@router.post("/{form_type}/submit", response_model=SubmissionResponse)
@limiter.limit("10/minute")
def submit_form(
    request: Request,
    body: SubmitRequest,
    service: FormService = Depends(get_form_service),
):
    """
    Create, validate and transmit a submission.

    Validation errors are returned in the response with state "rejected";
    nothing is transmitted in that case. If a later step fails the error
    detail carries the submission id; send it back as submission_id to
    retry without creating the filing again.
    """
    submission = FormSubmission(
        form_type=service.form_path,
        submission_id=body.submission_id,
        record_ids=list(body.record_ids or []),
    )
    try:
        submit(service, body.payload, record_ids=body.record_ids, submission=submission)
    except TaxBanditError as e:
        raise_for_taxbandit_error(e, submission)
    return submission_out(submission)


@router.get("/{form_type}/{submission_id}/status", response_model=StatusOut)
def check_status(submission_id: str, service: FormService = Depends(get_form_service)):
    """Check the current status of a transmitted submission once."""
    try:
        result = service.get_status(submission_id)
    except TaxBanditError as e:
        raise_for_taxbandit_error(e)
    return status_out(result)


def poll_out(service: FormService, submission_id: str, registry: PollRegistry) -> PollStatusResponse:
    session = registry.get(service.form_path, submission_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No polling session for this submission")

    last = status_out(session.last_result) if session.last_result else None
    if session.timed_out:
        message = TIMED_OUT_MESSAGE
    elif last is not None:
        message = last.message
    else:
        message = "Waiting for the first status check."

    return PollStatusResponse(
        form_type=service.form_path,
        submission_id=submission_id,
        active=session.active,
        timed_out=session.timed_out,
        poll_count=session.poll_count,
        current_interval=session.current_interval,
        last_result=last,
        message=message,
    )


@router.post("/{form_type}/{submission_id}/poll", response_model=PollStatusResponse, status_code=202)
def start_poll(
    submission_id: str,
    service: FormService = Depends(get_form_service),
    registry: PollRegistry = Depends(get_poll_registry),
    options: PollOptions = Depends(get_poll_options),
):
    """Start background polling until the IRS accepts or rejects the submission."""
    registry.start(service, submission_id, options)
    return poll_out(service, submission_id, registry)


@router.get("/{form_type}/{submission_id}/poll", response_model=PollStatusResponse)
def get_poll(
    submission_id: str,
    service: FormService = Depends(get_form_service),
    registry: PollRegistry = Depends(get_poll_registry),
):
    """Latest observation from the background poller."""
    return poll_out(service, submission_id, registry)


@router.delete("/{form_type}/{submission_id}/poll", status_code=204)
def stop_poll(
    submission_id: str,
    service: FormService = Depends(get_form_service),
    registry: PollRegistry = Depends(get_poll_registry),
):
    if not registry.stop(service.form_path, submission_id):
        raise HTTPException(status_code=404, detail="No polling session for this submission")


@router.get("/{form_type}/{submission_id}/pdf", response_model=PdfResponse)
def get_pdf(submission_id: str, service: FormService = Depends(get_form_service)):
    try:
        url = service.get_pdf(submission_id)
    except TaxBanditError as e:
        raise_for_taxbandit_error(e)
    return PdfResponse(submission_id=submission_id, pdf_url=url)


@router.get("/{form_type}", response_model=ListResponse)
def list_submissions(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    service: FormService = Depends(get_form_service),
):
    try:
        result = service.list(page=page, page_size=page_size)
    except TaxBanditError as e:
        raise_for_taxbandit_error(e)
    return ListResponse(
        records=result.records,
        total_records=result.total_records,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.delete("/{form_type}/{submission_id}", status_code=204)
def delete_submission(
    submission_id: str,
    service: FormService = Depends(get_form_service),
    registry: PollRegistry = Depends(get_poll_registry),
):
    """Delete a submission remotely and stop any polling for it."""
    try:
        service.delete_filing(submission_id)
    except TaxBanditError as e:
        raise_for_taxbandit_error(e)
    registry.stop(service.form_path, submission_id)

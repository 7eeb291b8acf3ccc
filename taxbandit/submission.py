"""
Submission lifecycle for a single filing attempt.

States only move forward:

    IN_PROGRESS -> FILED -> ACCEPTED | REJECTED
    IN_PROGRESS -> REJECTED   (validation errors, transmit is never called)

Deleting a submission is an out-of-band removal, not a lifecycle state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .config import PollOptions
from .form_service import (
    CreateResult,
    FormService,
    IRSError,
    StatusResult,
    TaxBanditValidationError,
)
from .status_poller import PollSession, Scheduler, StatusPoller

logger = logging.getLogger(__name__)


class LifecycleError(ValueError):
    """Raised when an operation would violate the submission lifecycle."""
    pass


class FilingState(str, Enum):
    """Lifecycle states of a submission."""
    IN_PROGRESS = "in_progress"
    FILED = "filed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (FilingState.ACCEPTED, FilingState.REJECTED)


ALLOWED_TRANSITIONS: Dict[FilingState, frozenset] = {
    FilingState.IN_PROGRESS: frozenset({FilingState.FILED, FilingState.REJECTED}),
    FilingState.FILED: frozenset({FilingState.ACCEPTED, FilingState.REJECTED}),
    FilingState.ACCEPTED: frozenset(),
    FilingState.REJECTED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FormSubmission:
    """Local record of one filing attempt, correlated by the remote submission id."""
    form_type: str
    submission_id: Optional[str] = None
    record_ids: List[str] = field(default_factory=list)
    state: FilingState = FilingState.IN_PROGRESS
    validation_errors: List[TaxBanditValidationError] = field(default_factory=list)
    irs_errors: List[IRSError] = field(default_factory=list)
    status: str = ""
    acknowledgement_status: str = ""
    pdf_url: Optional[str] = None
    deleted: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    filed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    state_history: List[FilingState] = field(default_factory=lambda: [FilingState.IN_PROGRESS])

    def __repr__(self) -> str:
        return (
            f"<FormSubmission {self.form_type} id={self.submission_id} "
            f"state={self.state.value}>"
        )

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def require_submission_id(self) -> str:
        if not self.submission_id:
            raise LifecycleError(f"{self.form_type} submission has not been created yet")
        return self.submission_id

    def transition_to(self, state: FilingState) -> bool:
        """
        Move to ``state``.

        Returns:
            bool: False if already in ``state``

        Raises:
            LifecycleError: If the transition is not allowed
        """
        if state == self.state:
            return False
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise LifecycleError(
                f"Cannot move {self.form_type} submission {self.submission_id} "
                f"from {self.state.value} to {state.value}"
            )

        logger.info(
            f"{self.form_type} submission {self.submission_id}: "
            f"{self.state.value} -> {state.value}"
        )
        self.state = state
        self.state_history.append(state)
        self._touch()
        if state == FilingState.FILED:
            self.filed_at = self.updated_at
        elif state.is_terminal:
            self.completed_at = self.updated_at
        return True

    def record_created(self, result: CreateResult) -> None:
        self.submission_id = result.submission_id
        self.record_ids = list(result.record_ids) or ([result.record_id] if result.record_id else [])
        self._touch()

    def mark_validation_failed(self, errors: List[TaxBanditValidationError]) -> None:
        self.validation_errors = list(errors)
        self.transition_to(FilingState.REJECTED)

    def mark_filed(self) -> None:
        self.validation_errors = []
        self.transition_to(FilingState.FILED)

    def apply_status(self, result: StatusResult) -> FilingState:
        """
        Fold one status observation into the submission.

        A terminal acknowledgement moves a filed submission to ACCEPTED or
        REJECTED; IRS errors alongside a terminal acknowledgement mean REJECTED.
        """
        if self.state == FilingState.IN_PROGRESS:
            raise LifecycleError(
                f"{self.form_type} submission {self.submission_id} has not been transmitted"
            )

        self.status = result.status
        self.acknowledgement_status = result.acknowledgement_status
        self.irs_errors = list(result.irs_errors)
        self._touch()

        if result.is_terminal:
            if result.is_rejected or result.irs_errors:
                self.transition_to(FilingState.REJECTED)
            else:
                self.transition_to(FilingState.ACCEPTED)
        return self.state

    def fetch_pdf(self, service: FormService) -> str:
        """Request the generated PDF and remember its URL."""
        self.pdf_url = service.get_pdf(self.require_submission_id())
        self._touch()
        return self.pdf_url

    def delete(self, service: FormService) -> None:
        """Delete the submission remotely; only allowed before a terminal state."""
        if self.state.is_terminal:
            raise LifecycleError(
                f"{self.form_type} submission {self.submission_id} is already {self.state.value}"
            )
        service.delete_filing(self.require_submission_id())
        self.deleted = True
        self._touch()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "form_type": self.form_type,
            "submission_id": self.submission_id,
            "record_ids": list(self.record_ids),
            "state": self.state.value,
            "validation_errors": [
                {"id": e.id, "field": e.field, "message": e.message, "code": e.code}
                for e in self.validation_errors
            ],
            "irs_errors": [{"code": e.code, "message": e.message} for e in self.irs_errors],
            "status": self.status,
            "acknowledgement_status": self.acknowledgement_status,
            "pdf_url": self.pdf_url,
            "deleted": self.deleted,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "filed_at": self.filed_at.isoformat() if self.filed_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def submit(
    service: FormService,
    payload: Any,
    record_ids: Optional[List[str]] = None,
    submission: Optional[FormSubmission] = None,
) -> FormSubmission:
    """
    Create, validate and transmit a filing.

    Validation errors end the attempt as REJECTED without transmitting.
    Transport and API errors propagate; pass ``submission`` to keep a handle on
    the partially completed attempt; a later call with the same submission
    resumes after create instead of creating a duplicate.

    Args:
        service: Form service for the form type being filed
        payload: Caller payload, passed to service.create
        record_ids: Records to transmit (all created records by default)
        submission: Existing in-progress submission to continue

    Returns:
        FormSubmission: FILED or REJECTED
    """
    if submission is None:
        submission = FormSubmission(form_type=service.form_path)
    if submission.state != FilingState.IN_PROGRESS:
        raise LifecycleError(f"Submission is already {submission.state.value}")
    if submission.deleted:
        raise LifecycleError("Submission has been deleted")

    if not submission.submission_id:
        submission.record_created(service.create(payload))
    submission_id = submission.submission_id

    errors = service.validate(submission_id)
    if errors:
        logger.info(f"{service.form_path} submission {submission_id} failed validation ({len(errors)} error(s))")
        submission.mark_validation_failed(errors)
        return submission

    service.transmit(submission_id, record_ids if record_ids is not None else submission.record_ids)
    submission.mark_filed()
    return submission


def track(
    submission: FormSubmission,
    service: FormService,
    on_update: Optional[Callable[[StatusResult], None]] = None,
    options: Optional[PollOptions] = None,
    scheduler: Optional[Scheduler] = None,
) -> PollSession:
    """
    Poll a filed submission, applying each observation before forwarding it.

    Raises:
        LifecycleError: If the submission has not been transmitted
    """
    if submission.state != FilingState.FILED:
        raise LifecycleError(
            f"Only filed submissions can be tracked; this one is {submission.state.value}"
        )
    submission_id = submission.require_submission_id()

    def apply_and_forward(result: StatusResult) -> None:
        submission.apply_status(result)
        if on_update is not None:
            on_update(result)

    return StatusPoller(service, options, scheduler).start(submission_id, apply_and_forward)

"""
Acknowledgement status polling for transmitted submissions.

IRS acknowledgements arrive anywhere from seconds to hours after
transmission. A PollSession calls the form's Status endpoint on a timer:

- every ``initial_interval`` until ``switch_after`` has elapsed, then every
  ``long_interval``
- until the acknowledgement status is Accepted or Rejected (case-insensitive),
  ``max_duration`` has elapsed, or stop() is called

A failed status check is logged and skipped; it never reaches ``on_update``
and never stops the session. Polls are strictly sequential: the next timer is
armed only after the previous poll has completely finished.
"""

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from .client import TaxBanditClient
from .config import PollOptions
from .form_service import FormService, StatusResult, create_form_service

logger = logging.getLogger(__name__)

StatusCheck = Callable[[str], StatusResult]
UpdateCallback = Callable[[StatusResult], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timers."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs each callback on a daemon threading.Timer."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class PollSession:
    """
    One polling loop for one submission.

    Created by StatusPoller.start(); the only thing callers are expected to do
    with it is stop() it or inspect its progress.
    """

    def __init__(
        self,
        status_check: StatusCheck,
        submission_id: str,
        on_update: UpdateCallback,
        options: PollOptions,
        scheduler: Scheduler,
        form_path: str = "",
    ):
        self.submission_id = submission_id
        self.form_path = form_path
        self.options = options
        self.start_time: Optional[float] = None
        self.current_interval = options.initial_interval
        self.poll_count = 0
        self.last_result: Optional[StatusResult] = None

        self._check = status_check
        self._on_update = on_update
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._timer: Optional[TimerHandle] = None
        self._stopped = False
        self._timed_out = False

    def __repr__(self) -> str:
        state = "stopped" if self._stopped else "active"
        return f"<PollSession {self.form_path} {self.submission_id} {state} polls={self.poll_count}>"

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def timed_out(self) -> bool:
        """True if the session gave up at max_duration without a verdict."""
        return self._timed_out

    @property
    def active(self) -> bool:
        return not self._stopped

    def start(self) -> "PollSession":
        self.start_time = self._scheduler.now()
        logger.info(f"Polling {self.form_path} submission {self.submission_id}")
        self._arm(self.options.initial_interval)
        return self

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly and after the session ended itself."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        logger.info(f"Polling stopped for submission {self.submission_id}")

    def _finish(self, reason: str) -> None:
        with self._lock:
            self._stopped = True
            self._timer = None
        logger.info(f"Polling finished for submission {self.submission_id}: {reason}")

    def _arm(self, delay: float) -> None:
        with self._lock:
            if self._stopped:
                return
            self.current_interval = delay
            self._timer = self._scheduler.call_later(delay, self._poll)

    def _poll(self) -> None:
        if self._stopped:
            return

        self.poll_count += 1
        try:
            result: Optional[StatusResult] = self._check(self.submission_id)
        except Exception as e:
            logger.warning(
                f"Status check {self.poll_count} for {self.submission_id} failed: "
                f"{type(e).__name__}; will retry"
            )
            result = None

        # stop() may have been called while the request was in flight
        if self._stopped:
            return

        if result is not None:
            self.last_result = result
            try:
                self._on_update(result)
            except Exception:
                logger.exception(f"Status update callback failed for {self.submission_id}")

            if result.is_terminal:
                self._finish(f"acknowledgement {result.acknowledgement_status}")
                return

        elapsed = self._scheduler.now() - self.start_time
        if elapsed > self.options.max_duration:
            self._timed_out = True
            self._finish(f"no acknowledgement after {elapsed:.0f}s")
            return

        if elapsed > self.options.switch_after:
            self._arm(self.options.long_interval)
        else:
            self._arm(self.options.initial_interval)


class StatusPoller:
    """
    Starts poll sessions against one form service.

    Usage:
        poller = StatusPoller(service, PollOptions(initial_interval=5))
        session = poller.start(submission_id, on_update=print)
        ...
        session.stop()
    """

    def __init__(
        self,
        service: FormService,
        options: Optional[PollOptions] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.service = service
        self.options = options or PollOptions()
        self.scheduler = scheduler or ThreadingScheduler()

    def start(self, submission_id: str, on_update: UpdateCallback) -> PollSession:
        """Schedule the first poll after initial_interval and return the session."""
        session = PollSession(
            self.service.get_status,
            submission_id,
            on_update,
            self.options,
            self.scheduler,
            form_path=self.service.form_path,
        )
        return session.start()


def start_polling(
    client: TaxBanditClient,
    submission_id: str,
    form_path: str,
    on_update: UpdateCallback,
    options: Optional[PollOptions] = None,
    scheduler: Optional[Scheduler] = None,
) -> PollSession:
    """Poll {form_path}/Status for a submission until it reaches a verdict."""
    service = create_form_service(client, form_path)
    return StatusPoller(service, options, scheduler).start(submission_id, on_update)

"""
In-memory registry of poll sessions.

One session per (form type, submission id); starting a new one stops the old
one. Stopped sessions are dropped immediately. Sessions that ended on their
own (verdict or timeout) are kept so their outcome can still be read, up to
max_finished; the oldest are evicted first. Sessions are lost on restart,
which only means the client has to start polling again.
"""

import logging
import threading
from typing import Dict, Optional, Tuple

from taxbandit import FormService, PollOptions, PollSession, StatusPoller, StatusResult
from taxbandit.status_poller import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_MAX_FINISHED = 100


class PollRegistry:
    """Owns the poll sessions started through the API."""

    def __init__(self, scheduler: Optional[Scheduler] = None, max_finished: int = DEFAULT_MAX_FINISHED):
        self._scheduler = scheduler
        self._max_finished = max_finished
        self._sessions: Dict[Tuple[str, str], PollSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _prune(self) -> None:
        # Caller holds the lock; dict order is start order, so oldest go first
        finished = [key for key, s in self._sessions.items() if not s.active]
        excess = len(finished) - self._max_finished
        for key in finished[:max(excess, 0)]:
            del self._sessions[key]
        if excess > 0:
            logger.debug(f"Evicted {excess} finished poll session(s)")

    def start(self, service: FormService, submission_id: str, options: PollOptions) -> PollSession:
        key = (service.form_path, submission_id)

        def log_update(result: StatusResult) -> None:
            logger.info(
                f"{service.form_path} {submission_id}: status={result.status} "
                f"ack={result.acknowledgement_status} irs_errors={len(result.irs_errors)}"
            )

        with self._lock:
            previous = self._sessions.pop(key, None)
        if previous is not None:
            previous.stop()

        session = StatusPoller(service, options, self._scheduler).start(submission_id, log_update)
        with self._lock:
            self._sessions[key] = session
            self._prune()
        return session

    def get(self, form_path: str, submission_id: str) -> Optional[PollSession]:
        with self._lock:
            return self._sessions.get((form_path, submission_id))

    def stop(self, form_path: str, submission_id: str) -> bool:
        """Stop and forget a session. Returns False if none was registered."""
        with self._lock:
            session = self._sessions.pop((form_path, submission_id), None)
        if session is None:
            return False
        session.stop()
        return True

    def active_count(self) -> int:
        with self._lock:
            self._prune()
            return sum(1 for s in self._sessions.values() if s.active)

    def stop_all(self) -> int:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.stop()
        return len(sessions)

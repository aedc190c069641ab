"""Deferred grading of attempts whose time window elapses without the user."""
import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session as DBSession

from learnhub.config import EXPIRY_SWEEP_INTERVAL_SECONDS
from learnhub.database import SessionLocal
from learnhub.services import attempt_repository, attempt_service
from learnhub.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class GradingScheduler(Protocol):
    """Fire-and-forget, at-least-once delivery of finalize requests."""

    def schedule_at(self, when: datetime, attempt_id: int) -> None:
        ...


def run_scheduled_finalization(
    attempt_id: int,
    session_factory: Callable[[], DBSession] = SessionLocal,
    now: datetime | None = None,
) -> bool:
    """
    Finalize one attempt in its own session.
    Returns True when this call graded the attempt, False if it was a no-op.
    """
    db = session_factory()
    try:
        finalization = attempt_service.finalize_attempt(db, attempt_id, now or utc_now())
        return finalization is not None and finalization.finalized
    except Exception:
        db.rollback()
        logger.exception("Scheduled grading of attempt %s failed", attempt_id)
        return False
    finally:
        db.close()


class ThreadingGradingScheduler:
    """Runs each finalize request on a daemon timer thread."""

    def __init__(
        self,
        session_factory: Callable[[], DBSession] = SessionLocal,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def schedule_at(self, when: datetime, attempt_id: int) -> None:
        delay = (ensure_utc(when) - self._clock()).total_seconds()
        timer = threading.Timer(max(delay, 0.0), self._run, args=(attempt_id,))
        timer.name = f"grade_attempt_{attempt_id}"
        timer.daemon = True
        timer.start()
        logger.debug("Scheduled grading of attempt %s in %.0fs", attempt_id, max(delay, 0.0))

    def _run(self, attempt_id: int) -> None:
        if run_scheduled_finalization(attempt_id, self._session_factory, self._clock()):
            logger.info("Auto-submitted expired attempt %s", attempt_id)


def sweep_expired_attempts(db: DBSession, now: datetime) -> int:
    """Finalize every expired, unsubmitted attempt. Returns how many were graded."""
    finalized = 0
    attempt_ids = [attempt.id for attempt in attempt_repository.get_expired_open_attempts(db, now)]
    for attempt_id in attempt_ids:
        try:
            finalization = attempt_service.finalize_attempt(db, attempt_id, now)
        except Exception:
            # Skip the broken attempt; the next sweep retries it
            db.rollback()
            logger.exception("Sweep could not grade attempt %s", attempt_id)
            continue
        if finalization is not None and finalization.finalized:
            finalized += 1
    if finalized > 0:
        logger.info(f"Auto-submitted {finalized} expired attempts")
    return finalized


def schedule_expiry_sweep(
    interval: int = EXPIRY_SWEEP_INTERVAL_SECONDS,
) -> threading.Thread | None:
    """Periodically finalize attempts whose timers were lost (e.g. after a restart)."""
    if interval <= 0:
        return None

    def _worker() -> None:
        while True:
            db = SessionLocal()
            try:
                sweep_expired_attempts(db, utc_now())
            except Exception as e:
                db.rollback()
                logger.error(f"Failed to sweep expired attempts: {e}")
            finally:
                db.close()
            time.sleep(interval)

    thread = threading.Thread(
        target=_worker,
        name="expired_attempts_sweep",
        daemon=True,
    )
    thread.start()
    return thread

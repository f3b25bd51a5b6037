"""
Scheduler runner using APScheduler with Postgres advisory locks.

This module provides a singleton scheduler that runs the booking sweeps
in a background thread. Each sweep is wrapped in an advisory lock keyed
on its job id, so with several API replicas only one of them runs a
given sweep at a time. The run is recorded in the jobs table.

Usage:
    scheduler = get_scheduler()
    scheduler.add_interval_job(auto_complete_job, "auto_complete", minutes=15)
    scheduler.start()
"""
import hashlib
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import Connection, Engine, select, text
from sqlalchemy.orm import Session

from marketplace.lib.db import SessionLocal, utcnow
from marketplace.lib.logging import get_logger, log_context
from marketplace.models import Job, JobStatus, JobType

logger = get_logger(__name__)


# Singleton scheduler instance
_scheduler: Optional["SchedulerManager"] = None


def get_lock_key(job_id: str) -> int:
    """
    Generate a consistent integer lock key from job ID for pg_advisory_lock.

    Args:
        job_id: Job identifier string

    Returns:
        Non-negative integer within the Postgres bigint range
    """
    hash_bytes = hashlib.sha256(job_id.encode()).digest()[:8]
    return int.from_bytes(hash_bytes, byteorder="big", signed=False) & (2**63 - 1)


def try_acquire_lock(conn: Connection, lock_key: int) -> bool:
    """Try to take a session-level advisory lock on ``conn``."""
    acquired = bool(conn.execute(text("SELECT pg_try_advisory_lock(:lock_key)"), {"lock_key": lock_key}).scalar())
    conn.commit()
    return acquired


def release_lock(conn: Connection, lock_key: int) -> None:
    conn.execute(text("SELECT pg_advisory_unlock(:lock_key)"), {"lock_key": lock_key})
    conn.commit()


@contextmanager
def advisory_lock(bind: Engine, lock_key: int) -> Iterator[bool]:
    """
    Hold an advisory lock for the duration of the block.

    Postgres ties the lock to the connection that took it, so acquire and
    release run on one dedicated connection kept out of the pool until the
    block exits. Yields False when another process holds the lock.
    Databases without advisory locks (SQLite in tests) always yield True.
    """
    if bind.dialect.name != "postgresql":
        yield True
        return

    with bind.connect() as conn:
        if not try_acquire_lock(conn, lock_key):
            yield False
            return
        try:
            yield True
        finally:
            release_lock(conn, lock_key)
            logger.info(f"Released advisory lock {lock_key}")


def _start_job_record(db: Session, job_type: JobType, lock_key: int) -> Job:
    now = utcnow()
    job_record = db.execute(select(Job).where(Job.lock_key == lock_key)).scalar_one_or_none()
    if job_record is None:
        job_record = Job(
            type=job_type,
            scheduled_for=now,
            run_at=now,
            status=JobStatus.PROCESSING,
            attempts=1,
            lock_key=lock_key,
        )
        db.add(job_record)
    else:
        job_record.status = JobStatus.PROCESSING
        job_record.run_at = now
        job_record.attempts += 1
    db.commit()
    return job_record


def with_advisory_lock(
    job_id: str,
    job_type: JobType = JobType.OTHER,
    session_factory: Callable[[], Session] = SessionLocal,
):
    """
    Decorator to run a sweep under an advisory lock.

    The wrapped function receives the locked session as its first
    argument. When another process holds the lock the run is skipped and
    the wrapper returns None.

    Example:
        @with_advisory_lock("reminders", JobType.REMINDERS)
        def reminders_job(db: Session) -> dict:
            ...
    """
    def decorator(func: Callable[..., Any]):
        def execute(*args, **kwargs):
            lock_key = get_lock_key(job_id)
            db = session_factory()
            try:
                with advisory_lock(db.get_bind(), lock_key) as acquired:
                    if not acquired:
                        logger.info(f"Job {job_id} already running (lock {lock_key}), skipping")
                        return None

                    logger.info(f"Job {job_id} acquired lock {lock_key}, executing")
                    job_record = _start_job_record(db, job_type, lock_key)
                    started = time.monotonic()

                    try:
                        result = func(db, *args, **kwargs)
                    except Exception as e:
                        db.rollback()
                        job_record.status = JobStatus.FAILED
                        job_record.payload = {"error": str(e)[:500]}
                        db.commit()
                        logger.error(f"Job {job_id} failed: {e}", exc_info=True)
                        raise

                    job_record.status = JobStatus.DONE
                    job_record.payload = {
                        "result": result if isinstance(result, dict) else None,
                        "duration_seconds": round(time.monotonic() - started, 3),
                    }
                    db.commit()
                    logger.info(f"Job {job_id} completed successfully: {result}")
                    return result
            finally:
                db.close()

        @wraps(func)
        def wrapper(*args, **kwargs):
            with log_context(job=job_id):
                return execute(*args, **kwargs)

        return wrapper
    return decorator


class SchedulerManager:
    """
    Manager for APScheduler with lifecycle management.
    """

    def __init__(self):
        self.scheduler = BackgroundScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )
        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

        logger.info("SchedulerManager initialized")

    def _on_job_executed(self, event):
        logger.info(f"Job {event.job_id} executed (result: {event.retval})")

    def _on_job_error(self, event):
        logger.error(
            f"Job {event.job_id} raised {event.exception.__class__.__name__}: {event.exception}",
            exc_info=event.exception,
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: Whether to wait for running jobs to finish
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler shutdown")
        else:
            logger.warning("Scheduler not running")

    def add_cron_job(
        self,
        func: Callable,
        job_id: str,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
        day_of_week: Optional[str] = None,
        **kwargs,
    ) -> None:
        trigger = CronTrigger(hour=hour, minute=minute, day_of_week=day_of_week, timezone="UTC")
        self.scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True, **kwargs)
        logger.info(f"Added cron job: {job_id} (hour={hour}, minute={minute})")

    def add_interval_job(
        self,
        func: Callable,
        job_id: str,
        seconds: Optional[int] = None,
        minutes: Optional[int] = None,
        hours: Optional[int] = None,
        **kwargs,
    ) -> None:
        """
        Add an interval-scheduled job.

        Raises:
            ValueError: No interval given
        """
        if not any([seconds, minutes, hours]):
            raise ValueError("At least one of seconds, minutes, or hours must be specified")

        trigger = IntervalTrigger(
            seconds=seconds or 0,
            minutes=minutes or 0,
            hours=hours or 0,
            timezone="UTC",
        )
        self.scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True, **kwargs)
        logger.info(f"Added interval job: {job_id} (seconds={seconds}, minutes={minutes}, hours={hours})")

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        logger.info(f"Removed job: {job_id}")

    def get_jobs(self) -> list:
        return self.scheduler.get_jobs()


def get_scheduler() -> SchedulerManager:
    """Get singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = SchedulerManager()
    return _scheduler

"""
Job model - run records for the scheduler sweeps.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import Integer, BigInteger, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.lib.db import Base, JSONType, UTCDateTime, utcnow


class JobType(str, enum.Enum):
    """Job type enumeration."""
    AUTO_COMPLETE = "auto_complete"
    REMINDERS = "reminders"
    PAYMENT_EXPIRY = "payment_expiry"
    OUTBOX_REDELIVERY = "outbox_redelivery"
    OTHER = "other"


class JobStatus(str, enum.Enum):
    """Job execution status."""
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class Job(Base):
    """
    Job entity - one row per sweep, keyed by its advisory lock key.
    Uses Postgres advisory locks to prevent concurrent execution across
    API replicas.
    """
    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    type: Mapped[JobType] = mapped_column(
        SQLEnum(JobType, name="job_type"),
        nullable=False,
        index=True,
    )

    # Scheduling
    scheduled_for: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    run_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # Execution
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, name="job_status"),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Result of the last run (processed counts)
    payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    lock_key: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        unique=True,
        comment="Used with pg_try_advisory_lock for distributed locking",
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, type={self.type}, status={self.status})>"

# pos_edge/db/models/print_jobs.py
import enum

from sqlalchemy import JSON, BigInteger, Column, Index, Integer, String, Text

from pos_edge.db.base import Base


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    PRINTING = "printing"
    FAILED = "failed"


class PrintJob(Base):
    __tablename__ = "print_jobs"

    """A unit of background work addressed to a print destination.

    A job is eligible when it is ``queued`` and ``next_run_at`` has passed;
    eligible jobs run in ``(priority, created_at)`` order, lower priority first.
    Successful jobs are deleted, exhausted ones stay behind as ``failed``.
    """

    id = Column(String, primary_key=True)
    destination = Column(String, nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(String, nullable=False, default=JobStatus.QUEUED.value)
    priority = Column(Integer, nullable=False, default=0)
    attempts = Column(Integer, nullable=False, default=0)
    next_run_at = Column(BigInteger, nullable=False)
    error = Column(Text, nullable=True)

    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_print_jobs_status_priority_created", "status", "priority", "created_at"),
    )

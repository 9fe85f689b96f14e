"""In-memory registry of asynchronous analysis jobs.

Each job lives behind its own lock so concurrent ``advance`` calls on the
same job are serialized while different jobs proceed independently. Reads
return immutable snapshots and take no lock.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from repo_analyzer.core.exceptions import InvariantError, NotFoundError

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Job status enumeration."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.IN_PROGRESS: 1,
    JobStatus.DONE: 2,
    JobStatus.FAILED: 2,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    """Snapshot of a job's state."""

    job_id: str
    status: JobStatus
    progress: int
    message: str
    created_at: datetime
    updated_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class _Entry:
    job: Job
    lock: threading.Lock = field(default_factory=threading.Lock)


class JobRegistry:
    """Owner of all job state for one process.

    Created at application startup and closed at shutdown.
    """

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def create(self, payload: Optional[Dict[str, Any]] = None, job_id: Optional[str] = None) -> Job:
        """Register a new job in the queued state.

        Raises:
            InvariantError: If the identifier is already registered
        """
        job_id = job_id or str(uuid4())
        now = _utcnow()
        job = Job(
            job_id=job_id,
            status=JobStatus.QUEUED,
            progress=0,
            message="Analysis has been queued",
            created_at=now,
            updated_at=now,
            payload=dict(payload or {}),
        )
        with self._lock:
            if job_id in self._entries:
                raise InvariantError(f"Duplicate job id: {job_id}")
            self._entries[job_id] = _Entry(job=job)

        logger.info(f"Job created: job_id={job_id}", extra={"job_id": job_id})
        return job

    def get(self, job_id: str) -> Job:
        """Return the current snapshot of a job.

        Raises:
            NotFoundError: If the job is unknown
        """
        entry = self._entries.get(job_id)
        if entry is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return entry.job

    def advance(
        self,
        job_id: str,
        status: JobStatus | str,
        progress: Optional[int] = None,
        message: Optional[str] = None,
    ) -> Job:
        """Move a job forward through queued -> in_progress -> done|failed.

        Progress never decreases. A ``done`` transition without explicit
        progress sets it to 100.

        Raises:
            NotFoundError: If the job is unknown
            InvariantError: On a terminal, backward or out-of-range update
        """
        try:
            status = JobStatus(status)
        except ValueError:
            raise InvariantError(f"Unknown job status: {status}") from None
        entry = self._entries.get(job_id)
        if entry is None:
            raise NotFoundError(f"Job not found: {job_id}")

        with entry.lock:
            current = entry.job
            if current.status.is_terminal:
                raise InvariantError(
                    f"Job {job_id} is already {current.status.value}; cannot move to {status.value}"
                )
            if status.rank < current.status.rank:
                raise InvariantError(
                    f"Illegal transition for job {job_id}: {current.status.value} -> {status.value}"
                )

            if progress is None:
                progress = 100 if status is JobStatus.DONE else current.progress
            if not 0 <= progress <= 100:
                raise InvariantError(f"Progress out of range for job {job_id}: {progress}")
            if progress < current.progress:
                raise InvariantError(
                    f"Progress may not decrease for job {job_id}: {current.progress} -> {progress}"
                )

            updated = replace(
                current,
                status=status,
                progress=progress,
                message=current.message if message is None else message,
                updated_at=_utcnow(),
            )
            entry.job = updated

        logger.info(
            f"Job advanced: job_id={job_id}, status={status.value}, progress={progress}",
            extra={"job_id": job_id, "status": status.value, "progress": progress},
        )
        return updated

    def evict_expired(self, max_age_seconds: float) -> int:
        """Drop finished jobs not updated within ``max_age_seconds``.

        Returns:
            Number of evicted jobs
        """
        cutoff = _utcnow() - timedelta(seconds=max_age_seconds)
        with self._lock:
            expired = [
                job_id
                for job_id, entry in self._entries.items()
                if entry.job.status.is_terminal and entry.job.updated_at < cutoff
            ]
            for job_id in expired:
                del self._entries[job_id]

        if expired:
            logger.info(f"Evicted {len(expired)} expired jobs")
        return len(expired)

    def close(self) -> None:
        """Drop all jobs."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

"""In-memory registry owning every job created by the service."""

from __future__ import annotations

import itertools
import threading

import structlog

from retailpulse.jobs.models import Job

logger = structlog.get_logger(__name__)


class JobRegistry:
    """Allocate job identifiers and hold job state for the process lifetime.

    The registry lock only covers identifier allocation and map insertion;
    job fields are guarded by each job's own lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[int, Job] = {}
        self._ids = itertools.count(1)

    def create(self) -> int:
        """Register a new ``ongoing`` job and return its identifier."""

        with self._lock:
            job_id = next(self._ids)
            job = Job(id=job_id)
            self._jobs[job_id] = job
        logger.info("jobs.registry.created", job_id=job_id)
        return job_id

    def get(self, job_id: int) -> Job | None:
        """Return the job registered under ``job_id`` or ``None``."""

        with self._lock:
            return self._jobs.get(job_id)

    def jobs(self) -> list[Job]:
        """Return the registered jobs ordered by identifier."""

        with self._lock:
            return [self._jobs[key] for key in sorted(self._jobs)]

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

"""Service facade combining the job registry and processor."""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Sequence

import structlog

from retailpulse.config import Settings
from retailpulse.imaging.fetcher import ImageFetcher
from retailpulse.jobs.models import JobSnapshot, JobStatus, Visit
from retailpulse.jobs.processor import DimensionFetcher, JobProcessor
from retailpulse.jobs.registry import JobRegistry
from retailpulse.stores.directory import StoreDirectory

logger = structlog.get_logger(__name__)


class JobService:
    """Create jobs, launch their processing and expose their state."""

    def __init__(
        self,
        directory: StoreDirectory,
        fetcher: DimensionFetcher,
        *,
        registry: JobRegistry | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self._directory = directory
        self._fetcher = fetcher
        self._registry = registry or JobRegistry()
        self._processor = JobProcessor(
            directory, fetcher, max_concurrency=max_concurrency
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "JobService":
        """Build a service wired with the configured store master and fetcher."""

        if settings.store_master_path is not None:
            directory = StoreDirectory.from_csv(settings.store_master_path)
        else:
            directory = StoreDirectory.default()
        fetcher = ImageFetcher(
            timeout=settings.fetch_timeout,
            delay_range=settings.delay_range,
            formats=settings.formats,
        )
        return cls(directory, fetcher, max_concurrency=settings.max_concurrency)

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def processor(self) -> JobProcessor:
        return self._processor

    @property
    def directory(self) -> StoreDirectory:
        return self._directory

    @property
    def fetcher(self) -> DimensionFetcher:
        return self._fetcher

    def submit(self, visits: Sequence[Visit]) -> int:
        """Register a job for ``visits`` and start processing it detached."""

        job_id = self._registry.create()
        job = self._registry.get(job_id)
        assert job is not None
        self._processor.submit(job, list(visits))
        return job_id

    def status(self, job_id: int) -> JobSnapshot | None:
        """Return a consistent snapshot of the job or ``None`` when unknown."""

        job = self._registry.get(job_id)
        if job is None:
            return None
        return job.snapshot()

    def metrics(self) -> dict[str, Any]:
        counts: Counter[str] = Counter(
            job.snapshot().status.value for job in self._registry.jobs()
        )
        return {
            "total": len(self._registry),
            "in_flight": self._processor.pending,
            "by_status": {status.value: counts.get(status.value, 0) for status in JobStatus},
            "stores": len(self._directory),
        }

    async def join(self) -> None:
        await self._processor.join()

    async def aclose(self) -> None:
        """Stop in-flight processing and release the fetcher."""

        await self._processor.shutdown()
        close = getattr(self._fetcher, "aclose", None)
        if close is not None:
            result = close()
            if asyncio.iscoroutine(result):
                await result

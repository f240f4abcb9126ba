"""Concurrent orchestration of image processing for submitted jobs."""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncContextManager, Protocol, Sequence, runtime_checkable

import structlog

from retailpulse.errors import FetchError
from retailpulse.imaging.fetcher import ImageDimensions
from retailpulse.jobs.models import (
    UNKNOWN_STORE_MESSAGE,
    ImageResult,
    Job,
    StoreError,
    Visit,
)
from retailpulse.stores.directory import Store, StoreDirectory

logger = structlog.get_logger(__name__)


@runtime_checkable
class DimensionFetcher(Protocol):
    """Protocol implemented by image fetchers consumed by the processor."""

    async def fetch(self, url: str) -> ImageDimensions:
        """Return the pixel dimensions of the image at ``url``."""


class JobProcessor:
    """Fan out one task per image and aggregate outcomes into the job.

    Visits are scanned in submission order. The first unknown store fails the
    job and stops the scan: later visits are never examined, while images
    already launched for earlier visits run to completion and are still
    recorded. Once every launched task has joined, the job is settled.
    """

    def __init__(
        self,
        directory: StoreDirectory,
        fetcher: DimensionFetcher,
        *,
        max_concurrency: int | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be a positive integer or None.")
        self._directory = directory
        self._fetcher = fetcher
        self._max_concurrency = max_concurrency
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def max_concurrency(self) -> int | None:
        """Cap on concurrently fetched images per job, ``None`` when unbounded."""

        return self._max_concurrency

    @property
    def pending(self) -> int:
        """Number of jobs whose processing has not finished yet."""

        return len(self._tasks)

    def submit(self, job: Job, visits: Sequence[Visit]) -> asyncio.Task[None]:
        """Launch :meth:`run` in the background and return the detached task."""

        loop = asyncio.get_running_loop()
        task = loop.create_task(self.run(job, visits), name=f"retailpulse-job-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, job: Job, visits: Sequence[Visit]) -> None:
        """Process every image of ``visits`` and settle ``job``."""

        logger.info("jobs.processor.start", job_id=job.id, visits=len(visits))
        semaphore = (
            asyncio.Semaphore(self._max_concurrency)
            if self._max_concurrency is not None
            else None
        )
        units: list[asyncio.Task[None]] = []
        for visit in visits:
            store = self._directory.lookup(visit.store_id)
            if store is None:
                logger.warning(
                    "jobs.processor.store.unknown",
                    job_id=job.id,
                    store_id=visit.store_id,
                )
                job.record_error(
                    StoreError(store_id=visit.store_id, error=UNKNOWN_STORE_MESSAGE)
                )
                break
            for image_url in visit.image_urls:
                units.append(
                    asyncio.create_task(
                        self._process_image(job, store, image_url, semaphore)
                    )
                )

        if units:
            await asyncio.gather(*units, return_exceptions=True)

        status = job.finish()
        snapshot = job.snapshot()
        logger.info(
            "jobs.processor.complete",
            job_id=job.id,
            status=status.value,
            results=len(snapshot.results),
            errors=len(snapshot.errors),
        )

    async def _process_image(
        self,
        job: Job,
        store: Store,
        image_url: str,
        semaphore: asyncio.Semaphore | None,
    ) -> None:
        guard: AsyncContextManager[object] = (
            semaphore if semaphore is not None else contextlib.nullcontext()
        )
        try:
            async with guard:
                dimensions = await self._fetcher.fetch(image_url)
        except FetchError as exc:
            logger.warning(
                "jobs.processor.image.failed",
                job_id=job.id,
                store_id=store.store_id,
                url=image_url,
                error=str(exc),
            )
            job.record_error(StoreError(store_id=store.store_id, error=str(exc)))
            return
        except Exception as exc:
            logger.exception(
                "jobs.processor.image.error",
                job_id=job.id,
                store_id=store.store_id,
                url=image_url,
            )
            job.record_error(
                StoreError(
                    store_id=store.store_id, error=f"error processing image: {exc}"
                )
            )
            return

        job.record_result(ImageResult.build(store, image_url, dimensions))

    async def join(self) -> None:
        """Wait until every submitted job has been settled."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs when the process stops."""

        tasks = list(self._tasks)
        if not tasks:
            return
        logger.info("jobs.processor.shutdown", pending=len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

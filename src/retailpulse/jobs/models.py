"""Domain records describing jobs and their accumulated outcomes."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from retailpulse.imaging.fetcher import ImageDimensions
from retailpulse.stores.directory import Store

UNKNOWN_STORE_MESSAGE = "Store ID does not exist"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _serialise_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


class JobStatus(str, Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.ONGOING


@dataclass(frozen=True, slots=True)
class Visit:
    """One store's images submitted together within a job."""

    store_id: str
    image_urls: tuple[str, ...]
    visit_time: str = ""


@dataclass(frozen=True, slots=True)
class ImageResult:
    """Outcome of a successfully processed image."""

    store_id: str
    store_name: str
    area_code: str
    image_url: str
    width: int
    height: int
    perimeter: float

    @classmethod
    def build(
        cls, store: Store, image_url: str, dimensions: ImageDimensions
    ) -> "ImageResult":
        return cls(
            store_id=store.store_id,
            store_name=store.store_name,
            area_code=store.area_code,
            image_url=image_url,
            width=dimensions.width,
            height=dimensions.height,
            perimeter=dimensions.perimeter,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "store_id": self.store_id,
            "store_name": self.store_name,
            "area_code": self.area_code,
            "image_url": self.image_url,
            "width": self.width,
            "height": self.height,
            "perimeter": self.perimeter,
        }


@dataclass(frozen=True, slots=True)
class StoreError:
    """Failure recorded against a store while processing a job."""

    store_id: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"store_id": self.store_id, "error": self.error}


@dataclass(frozen=True, slots=True)
class JobSnapshot:
    """Consistent point-in-time copy of a job's state."""

    job_id: int
    status: JobStatus
    results: tuple[ImageResult, ...]
    errors: tuple[StoreError, ...]
    created_at: datetime
    completed_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "results": [result.to_dict() for result in self.results],
            "errors": [error.to_dict() for error in self.errors],
            "created_at": _serialise_datetime(self.created_at),
            "completed_at": _serialise_datetime(self.completed_at),
        }


@dataclass(eq=False)
class Job:
    """Mutable job state guarded by its own exclusive lock.

    ``results`` and ``errors`` only ever grow. The status leaves ``ongoing``
    exactly once and ``completed_at`` is stamped exactly once.
    """

    id: int
    status: JobStatus = JobStatus.ONGOING
    results: list[ImageResult] = field(default_factory=list)
    errors: list[StoreError] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def record_result(self, result: ImageResult) -> None:
        with self._lock:
            self.results.append(result)

    def record_error(self, error: StoreError) -> None:
        """Append ``error`` and mark the job as failed."""

        with self._lock:
            self.errors.append(error)
            self.status = JobStatus.FAILED

    def finish(self) -> JobStatus:
        """Settle the job once all work has joined and return its status."""

        with self._lock:
            if self.status is JobStatus.ONGOING:
                self.status = JobStatus.COMPLETED
            if self.completed_at is None:
                self.completed_at = _utcnow()
            return self.status

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return JobSnapshot(
                job_id=self.id,
                status=self.status,
                results=tuple(self.results),
                errors=tuple(self.errors),
                created_at=self.created_at,
                completed_at=self.completed_at,
            )

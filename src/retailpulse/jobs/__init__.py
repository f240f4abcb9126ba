"""Job lifecycle: registry, processing and aggregated outcomes."""

from .models import (
    UNKNOWN_STORE_MESSAGE,
    ImageResult,
    Job,
    JobSnapshot,
    JobStatus,
    StoreError,
    Visit,
)
from .processor import DimensionFetcher, JobProcessor
from .registry import JobRegistry
from .service import JobService

__all__ = [
    "UNKNOWN_STORE_MESSAGE",
    "DimensionFetcher",
    "ImageResult",
    "Job",
    "JobProcessor",
    "JobRegistry",
    "JobService",
    "JobSnapshot",
    "JobStatus",
    "StoreError",
    "Visit",
]

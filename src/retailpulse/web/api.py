"""FastAPI application exposing job submission and status endpoints."""

from __future__ import annotations

import threading
from datetime import datetime
from functools import lru_cache
from typing import Any, Awaitable, Callable, Mapping, Sequence

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from starlette.responses import Response

from retailpulse.config import load_settings
from retailpulse.errors import RetailPulseValidationError
from retailpulse.jobs.models import JobSnapshot, JobStatus, Visit
from retailpulse.jobs.service import JobService
from retailpulse.version import RETAILPULSE_VERSION

logger = structlog.get_logger(__name__)

INVALID_PAYLOAD_MESSAGE = "Invalid request payload"
COUNT_MISMATCH_MESSAGE = "Count does not match number of visits"
INVALID_METHOD_MESSAGE = "Invalid Method"

_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


class VisitPayload(BaseModel):
    """A single store visit within a submission."""

    model_config = ConfigDict(extra="forbid", strict=True)

    store_id: str = Field("", description="Identifier of the visited store.")
    image_url: list[str] = Field(
        default_factory=list, description="Images captured during the visit."
    )
    visit_time: str = Field("", description="Timestamp of the visit as supplied.")

    @field_validator("store_id", "visit_time", mode="before")
    @classmethod
    def null_strings_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("image_url", mode="before")
    @classmethod
    def null_image_urls_as_empty(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return ["" if item is None else item for item in value]
        return value

    def to_visit(self) -> Visit:
        return Visit(
            store_id=self.store_id,
            image_urls=tuple(self.image_url),
            visit_time=self.visit_time,
        )


class SubmitJobRequest(BaseModel):
    """Request payload describing a batch of store visits."""

    model_config = ConfigDict(extra="forbid", strict=True)

    count: int = Field(0, description="Number of visits included in the batch.")
    visits: list[VisitPayload] = Field(
        default_factory=list, description="Store visits to process."
    )

    @field_validator("count", mode="before")
    @classmethod
    def null_count_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("visits", mode="before")
    @classmethod
    def null_visits_as_empty(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [{} if item is None else item for item in value]
        return value

    def to_visits(self) -> list[Visit]:
        return [visit.to_visit() for visit in self.visits]


class JobCreatedResponse(BaseModel):
    job_id: int = Field(..., description="Identifier allocated for the job.")


class StoreErrorPayload(BaseModel):
    store_id: str
    error: str


class JobStatusResponse(BaseModel):
    """Status payload returned when polling a job."""

    status: JobStatus
    job_id: str
    error: list[StoreErrorPayload] | None = Field(
        None, description="Failures recorded for the job; only set when failed."
    )

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "JobStatusResponse":
        errors: list[StoreErrorPayload] | None = None
        if snapshot.status is JobStatus.FAILED:
            errors = [
                StoreErrorPayload(store_id=error.store_id, error=error.error)
                for error in snapshot.errors
            ]
        return cls(status=snapshot.status, job_id=str(snapshot.job_id), error=errors)


class ImageResultPayload(BaseModel):
    store_id: str
    store_name: str
    area_code: str
    image_url: str
    width: int
    height: int
    perimeter: float


class JobDetailResponse(BaseModel):
    """Full job state including every recorded result and error."""

    job_id: int
    status: JobStatus
    results: Sequence[ImageResultPayload]
    errors: Sequence[StoreErrorPayload]
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "JobDetailResponse":
        return cls.model_validate(snapshot.to_dict())


def parse_submission(raw_body: bytes) -> SubmitJobRequest:
    """Validate a raw submission body, raising on schema or count mismatches."""

    try:
        request = SubmitJobRequest.model_validate_json(raw_body)
    except ValidationError as exc:
        raise RetailPulseValidationError(INVALID_PAYLOAD_MESSAGE) from exc
    if request.count == 0 and request.visits:
        raise RetailPulseValidationError(INVALID_PAYLOAD_MESSAGE)
    if request.count != len(request.visits):
        raise RetailPulseValidationError(COUNT_MISMATCH_MESSAGE)
    return request


_service_lock = threading.Lock()


@lru_cache
def _build_job_service() -> JobService:
    return JobService.from_settings(load_settings())


def get_job_service() -> JobService:
    """Return the process-wide job service, building it on first use."""

    with _service_lock:
        return _build_job_service()


app = FastAPI(title="RetailPulse Job Service", version=RETAILPULSE_VERSION)


@app.on_event("shutdown")
async def stop_job_processing() -> None:
    with _service_lock:
        if _build_job_service.cache_info().currsize == 0:
            return
        service = _build_job_service()
        _build_job_service.cache_clear()
    await service.aclose()


@app.exception_handler(RetailPulseValidationError)
async def validation_error_handler(
    request: Request, exc: RetailPulseValidationError
) -> JSONResponse:
    logger.warning(
        "web.api.validation_error",
        message=exc.message,
        path=str(request.url.path),
    )
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.middleware("http")
async def log_requests(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    logger.info("web.api.request.start", method=request.method, path=request.url.path)
    response = await call_next(request)
    logger.info(
        "web.api.request.complete",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
    )
    return response


@app.api_route("/submit/", methods=_ALL_METHODS)
@app.api_route("/submit", methods=_ALL_METHODS, include_in_schema=False)
async def submit_job(
    request: Request,
    service: JobService = Depends(get_job_service),
) -> JSONResponse:
    if request.method != "POST":
        raise RetailPulseValidationError(INVALID_METHOD_MESSAGE)

    submission = parse_submission(await request.body())
    job_id = service.submit(submission.to_visits())
    logger.info(
        "web.api.submit.complete",
        job_id=job_id,
        visits=submission.count,
        images=sum(len(visit.image_url) for visit in submission.visits),
    )
    return JSONResponse(
        status_code=201, content=JobCreatedResponse(job_id=job_id).model_dump()
    )


@app.api_route("/status", methods=_ALL_METHODS)
def job_status(
    request: Request,
    service: JobService = Depends(get_job_service),
) -> Response:
    if request.method != "GET":
        return PlainTextResponse("Method not allowed", status_code=405)

    raw_job_id = request.query_params.get("jobid", "")
    if not raw_job_id:
        return PlainTextResponse("Missing job ID", status_code=400)
    try:
        job_id = int(raw_job_id)
    except ValueError:
        return PlainTextResponse("Invalid job ID", status_code=400)

    snapshot = service.status(job_id)
    if snapshot is None:
        logger.info("web.api.status.not_found", job_id=job_id)
        return JSONResponse(status_code=400, content={})

    payload = JobStatusResponse.from_snapshot(snapshot)
    return JSONResponse(content=payload.model_dump(mode="json", exclude_none=True))


@app.get("/jobs/{job_id}", response_model=JobDetailResponse)
def get_job(
    job_id: int,
    service: JobService = Depends(get_job_service),
) -> JobDetailResponse:
    snapshot = service.status(job_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Job not found.")
    return JobDetailResponse.from_snapshot(snapshot)


@app.get("/health")
def health(
    service: JobService = Depends(get_job_service),
) -> Mapping[str, Any]:
    return {"status": "ok", "jobs": service.metrics()}

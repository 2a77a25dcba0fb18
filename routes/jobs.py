# User value: This file lets users create, browse and remove their own OCR history entries.
# routes/jobs.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.exceptions import RedisError

import config
from schemas.job import JobRecord
from schemas.requests import CreateJobRequest
from schemas.responses import JobCreatedResponse, JobDeletedResponse, JobListResponse
from services.auth import Identity
from services.dependencies import current_identity, get_job_store
from services.errors import JobNotFound
from services.jobs import JobStore
from utils.metrics import incr
from utils.stage_logging import log_stage

router = APIRouter(tags=["jobs"])
logger = logging.getLogger("api.jobs")


def _store_unavailable(exc: Exception) -> HTTPException:
    logger.error("job_store_unavailable error=%s: %s", exc.__class__.__name__, exc)
    return HTTPException(
        status_code=503,
        detail={
            "error_code": "INFRA_REDIS",
            "error_message": "Job store temporarily unavailable",
        },
    )


@router.post("/jobs", response_model=JobCreatedResponse, status_code=201)
# User value: registers the picked image as a pending job before any text is extracted.
def create_job(
    payload: CreateJobRequest,
    user: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
):
    language = (payload.language or config.OCR_DEFAULT_LANGUAGE).strip()
    try:
        record = store.insert(user.owner_id, payload.image_ref, language)
    except RedisError as exc:
        incr("api_jobs_create_failed_total", reason="store_unavailable")
        raise _store_unavailable(exc) from exc

    incr("api_jobs_created_total")
    log_stage(job_id=record.id, stage="JOB_CREATE", event="COMPLETED", owner=user.owner_id, status=record.status)
    return JobCreatedResponse(job_id=record.id, created_at=record.created_at.isoformat())


@router.get("/jobs", response_model=JobListResponse)
# User value: shows the newest OCR results first so recent work is easy to find.
def list_jobs(
    limit: int | None = Query(default=None, ge=1, description="Maximum number of jobs, newest first"),
    user: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
):
    effective = min(limit or config.HISTORY_DEFAULT_LIMIT, config.HISTORY_MAX_LIMIT)
    try:
        items = store.list_by_owner(user.owner_id, effective)
    except RedisError as exc:
        raise _store_unavailable(exc) from exc

    incr("api_jobs_list_total")
    return JobListResponse(items=items, limit=effective, count=len(items))


@router.get("/jobs/{job_id}", response_model=JobRecord)
def get_job(
    job_id: str,
    user: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
):
    try:
        record = store.get(job_id, user.owner_id)
    except RedisError as exc:
        raise _store_unavailable(exc) from exc

    if record is None:
        raise JobNotFound(job_id=job_id)
    return record


@router.delete("/jobs/{job_id}", response_model=JobDeletedResponse)
# User value: removes a single result the user no longer wants to keep.
def delete_job(
    job_id: str,
    user: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
):
    try:
        deleted = store.delete(job_id, user.owner_id)
    except RedisError as exc:
        incr("api_jobs_delete_failed_total", reason="store_unavailable")
        raise _store_unavailable(exc) from exc

    if not deleted:
        incr("api_jobs_delete_failed_total", reason="not_found")
        raise JobNotFound(job_id=job_id)

    incr("api_jobs_deleted_total", mode="single")
    log_stage(job_id=job_id, stage="JOB_DELETE", event="COMPLETED", owner=user.owner_id)
    return JobDeletedResponse(deleted=deleted, job_id=job_id)


@router.delete("/jobs", response_model=JobDeletedResponse)
# User value: clears the whole history in one step; other users' history is untouched.
def clear_jobs(
    user: Identity = Depends(current_identity),
    store: JobStore = Depends(get_job_store),
):
    try:
        deleted = store.delete_all_by_owner(user.owner_id)
    except RedisError as exc:
        incr("api_jobs_delete_failed_total", reason="store_unavailable")
        raise _store_unavailable(exc) from exc

    incr("api_jobs_deleted_total", mode="all")
    log_stage(job_id="jobs-clear", stage="JOB_CLEAR", event="COMPLETED", owner=user.owner_id, deleted=deleted)
    return JobDeletedResponse(deleted=deleted)

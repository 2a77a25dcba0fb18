from fastapi import APIRouter, Depends, HTTPException

import config
from services.dependencies import get_job_store
from services.jobs import JobStore

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(store: JobStore = Depends(get_job_store)):
    try:
        store.ping()
    except Exception as exc:
        raise HTTPException(
            status_code=503,
            detail={"error_code": "INFRA_STORE", "error_message": f"Job store unreachable: {exc.__class__.__name__}"},
        ) from exc
    return {
        "status": "OK",
        "store": config.JOB_STORE_BACKEND,
    }

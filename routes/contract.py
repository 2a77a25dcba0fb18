# User value: This file publishes the job field/status contract so clients render history consistently.
from fastapi import APIRouter

from schemas.job_contract import (
    CONTRACT_VERSION,
    JOB_STATUSES,
    TERMINAL_STATUSES,
    CANONICAL_FIELDS,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    DEFAULT_LANGUAGE,
)

router = APIRouter()


@router.get("/contract/job-status")
def job_status_contract():
    return {
        "contract_version": CONTRACT_VERSION,
        "job_statuses": list(JOB_STATUSES),
        "terminal_statuses": list(TERMINAL_STATUSES),
        "canonical_fields": list(CANONICAL_FIELDS),
        "confidence_tiers": {
            "full_parse": CONFIDENCE_HIGH,
            "partial_or_unknown": CONFIDENCE_LOW,
        },
        "default_language": DEFAULT_LANGUAGE,
        # A duplicate request for a finished job changes nothing; the stored result stands.
        "already_processed": {
            "status_code": 409,
            "error_code": "STATE_CONFLICT",
            "result_unchanged": True,
            "read_result_from": "/jobs/{job_id}",
        },
    }

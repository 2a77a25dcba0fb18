import logging
from typing import Any, Optional

from utils.request_id import get_request_id

logger = logging.getLogger("api.stage")

STAGE_EVENTS = {"STARTED", "COMPLETED", "FAILED"}


def _loggable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def log_stage(
    *,
    job_id: str,
    stage: str,
    event: str,
    owner: Optional[str] = None,
    status: Optional[str] = None,
    error: Optional[str] = None,
    **extra: Any,
) -> None:
    """
    Emit one structured lifecycle event for a job.

    Fields travel as ``extra`` so the JSON formatter writes them as top-level
    keys; the message line stays short for plain-text handlers.
    """
    event = event.upper()
    if event not in STAGE_EVENTS:
        raise ValueError(f"Unknown stage event: {event}")

    fields = {"job_id": job_id, "stage": stage, "event": event}
    optional = {"owner": owner, "status": status, "error": error, "request_id": get_request_id()}
    optional.update(extra)
    fields.update({key: _loggable(value) for key, value in optional.items() if value not in (None, "")})

    level = logging.ERROR if event == "FAILED" or error else logging.INFO
    logger.log(level, "stage_event stage=%s event=%s job_id=%s", stage, event, job_id, extra=fields)

# User value: This file guarantees each OCR job finishes exactly once, so history never shows a result overwritten.
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from schemas.job import JobRecord, utcnow
from schemas.job_contract import (
    JOB_STATUS_PENDING,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
)
from services.errors import InvalidTransition

logger = logging.getLogger("api.status_machine")

# Only the terminal transition is governed here; pending is set on insert.
_ALLOWED = {
    JOB_STATUS_PENDING: {JOB_STATUS_COMPLETED, JOB_STATUS_FAILED},
    JOB_STATUS_COMPLETED: set(),
    JOB_STATUS_FAILED: set(),
}


def _norm(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    s = str(status).strip().lower()
    return s or None


def is_allowed_transition(current: Optional[str], target: Optional[str]) -> bool:
    current_n = _norm(current)
    target_n = _norm(target)
    if not current_n or not target_n:
        return False
    return target_n in _ALLOWED.get(current_n, set())


@dataclass(frozen=True)
class TerminalTransition:
    """Fields a terminal transition writes; passed as-is to the store's conditional update."""

    job_id: str
    owner_id: str
    expected_status: str
    new_status: str
    extracted_text: str
    confidence: float
    error_message: Optional[str]
    processed_at: datetime

    def applied_to(self, record: JobRecord) -> JobRecord:
        return record.model_copy(
            update={
                "status": self.new_status,
                "extracted_text": self.extracted_text,
                "confidence": self.confidence,
                "error_message": self.error_message,
                "processed_at": self.processed_at,
            }
        )


class JobStateMachine:
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    def _guard(self, record: JobRecord, target: str, context: str) -> None:
        if is_allowed_transition(record.status, target):
            return
        logger.warning(
            "status_transition_blocked context=%s job_id=%s current=%s target=%s",
            context,
            record.id,
            record.status,
            target,
        )
        raise InvalidTransition(
            f"Invalid status transition to {target} from {record.status}",
            current=record.status,
            target=target,
            job_id=record.id,
        )

    def apply_success(self, record: JobRecord, text: str, confidence: float) -> TerminalTransition:
        self._guard(record, JOB_STATUS_COMPLETED, "APPLY_SUCCESS")
        return TerminalTransition(
            job_id=record.id,
            owner_id=record.owner_id,
            expected_status=JOB_STATUS_PENDING,
            new_status=JOB_STATUS_COMPLETED,
            extracted_text=text or "",
            confidence=float(confidence),
            error_message=None,
            processed_at=self._clock(),
        )

    def apply_failure(self, record: JobRecord, message: str) -> TerminalTransition:
        self._guard(record, JOB_STATUS_FAILED, "APPLY_FAILURE")
        return TerminalTransition(
            job_id=record.id,
            owner_id=record.owner_id,
            expected_status=JOB_STATUS_PENDING,
            new_status=JOB_STATUS_FAILED,
            extracted_text="",
            confidence=0.0,
            error_message=message,
            processed_at=self._clock(),
        )

# User value: This file turns one uploaded image into a finished history entry, exactly once, for its owner only.
import logging
from dataclasses import dataclass
from typing import Any, Optional

from schemas.job import JobRecord
from schemas.job_contract import DEFAULT_LANGUAGE, GENERIC_PROVIDER_ERROR
from services.auth import Identity, IdentityVerifier
from services.errors import (
    BadRequest,
    InternalError,
    InvalidTransition,
    JobNotFound,
    OcrJobError,
    ProviderFailure,
)
from services.jobs import JobStore
from services.ocr_provider import OcrProviderClient, RecognitionError, RecognitionSuccess
from utils.metrics import incr
from utils.stage_logging import log_stage
from utils.status_machine import JobStateMachine, TerminalTransition

logger = logging.getLogger("api.ocr")

MAX_LANGUAGE_LENGTH = 16


@dataclass(frozen=True)
class ProcessResult:
    job_id: str
    text: str
    confidence: float
    record: JobRecord


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (bytes, bytearray)):
        return len(value) == 0
    return not str(value).strip()


class OcrJobService:
    """
    Orchestrates a single OCR job: caller check, job load, provider call and
    the one conditional terminal write.

    Collaborators are injected so each can be replaced by a test double.
    """

    def __init__(
        self,
        *,
        store: JobStore,
        identity: IdentityVerifier,
        provider: OcrProviderClient,
        state_machine: Optional[JobStateMachine] = None,
        default_language: str = DEFAULT_LANGUAGE,
    ):
        self.store = store
        self.identity = identity
        self.provider = provider
        self.state_machine = state_machine or JobStateMachine()
        self.default_language = default_language or DEFAULT_LANGUAGE

    def authenticate(self, credential: str | None) -> Identity:
        return self.identity.verify(credential)

    def process(
        self,
        job_id: Any,
        credential: str | None,
        image: Any,
        language: Any = None,
    ) -> ProcessResult:
        caller = self.authenticate(credential)

        if _is_blank(job_id) or _is_blank(image):
            incr("api_ocr_process_rejected_total", reason="missing_fields")
            raise BadRequest("Missing image or jobId")
        if not isinstance(job_id, str) or not isinstance(image, (str, bytes, bytearray)):
            incr("api_ocr_process_rejected_total", reason="invalid_fields")
            raise BadRequest("Invalid image or jobId")
        if language is not None and (not isinstance(language, str) or len(language) > MAX_LANGUAGE_LENGTH):
            incr("api_ocr_process_rejected_total", reason="invalid_language")
            raise BadRequest("Invalid language")

        job_id = str(job_id).strip()
        owner_id = caller.owner_id
        log_stage(job_id=job_id, stage="OCR_PROCESS", event="STARTED", owner=owner_id)

        try:
            record = self._load_pending(job_id, owner_id)
            outcome = self.provider.recognize(image, language or record.language or self.default_language)

            if isinstance(outcome, RecognitionSuccess):
                transition = self.state_machine.apply_success(record, outcome.text, outcome.confidence_hint)
            elif isinstance(outcome, RecognitionError):
                transition = self.state_machine.apply_failure(record, outcome.message or GENERIC_PROVIDER_ERROR)
            else:
                raise TypeError(f"Unexpected recognition outcome {outcome.__class__.__name__}")

            self._persist(transition)
        except OcrJobError:
            raise
        except Exception as exc:
            logger.exception(
                "ocr_process_internal_error job_id=%s owner=%s error=%s: %s",
                job_id,
                owner_id,
                exc.__class__.__name__,
                exc,
            )
            log_stage(
                job_id=job_id,
                stage="OCR_PROCESS",
                event="FAILED",
                owner=owner_id,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            incr("api_ocr_process_total", outcome="internal_error")
            raise InternalError(job_id=job_id) from exc

        final = transition.applied_to(record)
        if isinstance(outcome, RecognitionError):
            incr("api_ocr_process_total", outcome="provider_failure")
            log_stage(
                job_id=job_id,
                stage="OCR_PROCESS",
                event="COMPLETED",
                owner=owner_id,
                status=final.status,
                provider_message=final.error_message,
            )
            raise ProviderFailure(final.error_message, job_id=job_id)

        incr("api_ocr_process_total", outcome="completed")
        log_stage(
            job_id=job_id,
            stage="OCR_PROCESS",
            event="COMPLETED",
            owner=owner_id,
            status=final.status,
            confidence=final.confidence,
            text_length=len(final.extracted_text),
        )
        return ProcessResult(
            job_id=job_id,
            text=final.extracted_text,
            confidence=final.confidence,
            record=final,
        )

    def _load_pending(self, job_id: str, owner_id: str) -> JobRecord:
        record = self.store.get(job_id, owner_id)
        if record is None:
            incr("api_ocr_process_rejected_total", reason="not_found")
            raise JobNotFound(job_id=job_id)
        if record.is_terminal:
            incr("api_ocr_process_rejected_total", reason="already_terminal")
            raise InvalidTransition(
                f"Job already {record.status}",
                current=record.status,
                job_id=job_id,
            )
        return record

    def _persist(self, transition: TerminalTransition) -> None:
        affected = self.store.apply(transition)
        if affected == 0:
            # Another invocation finished this job first; its result stands.
            logger.info(
                "ocr_terminal_write_skipped job_id=%s target=%s affected_rows=0",
                transition.job_id,
                transition.new_status,
            )
            incr("api_ocr_process_rejected_total", reason="lost_race")
            raise InvalidTransition(
                "Job was already processed by another request",
                target=transition.new_status,
                job_id=transition.job_id,
            )

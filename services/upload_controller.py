# User value: This file runs the upload flow: register the image, extract its text, then refresh the user's history.
import base64
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from schemas.job_contract import DEFAULT_LANGUAGE, JOB_STATUS_COMPLETED
from services.errors import (
    BadRequest,
    InternalError,
    InvalidTransition,
    JobNotFound,
    OcrJobError,
    ProviderFailure,
    Unauthorized,
)
from services.jobs import JobStore
from utils.request_id import REQUEST_ID_HEADER, current_or_new_request_id

logger = logging.getLogger("client.upload")

_ERRORS_BY_STATUS = {
    400: BadRequest,
    401: Unauthorized,
    404: JobNotFound,
    409: InvalidTransition,
    502: ProviderFailure,
}


@dataclass(frozen=True)
class HistoryRefresh:
    job_id: Optional[str]
    status: Optional[str]
    error: Optional[str] = None


class HistoryRefreshNotifier:
    """Replaces a shared refresh counter: the controller publishes, history views subscribe."""

    def __init__(self):
        self._listeners: List[Callable[[HistoryRefresh], None]] = []

    def subscribe(self, listener: Callable[[HistoryRefresh], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, event: HistoryRefresh) -> None:
        for listener in list(self._listeners):
            listener(event)


@dataclass(frozen=True)
class ProcessedText:
    text: str
    confidence: float


class HttpOcrProcessor:
    """Calls ``POST /process-ocr`` on a running API and maps error responses back to OcrJobError."""

    def __init__(self, base_url: str, http_client: httpx.Client | None = None):
        self._client = http_client or httpx.Client(base_url=base_url.rstrip("/"))

    def close(self) -> None:
        self._client.close()

    def process(self, job_id: str, credential: str | None, image: str, language: str | None = None) -> ProcessedText:
        headers = {REQUEST_ID_HEADER: current_or_new_request_id()}
        if credential:
            headers["Authorization"] = credential if credential.lower().startswith("bearer ") else f"Bearer {credential}"

        body = {"image": image, "jobId": job_id}
        if language:
            body["language"] = language

        try:
            response = self._client.post("/process-ocr", json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise InternalError(f"OCR service unreachable: {exc.__class__.__name__}", job_id=job_id) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            message = str(payload.get("error") or "OCR processing failed") if isinstance(payload, dict) else "OCR processing failed"
            error_cls = _ERRORS_BY_STATUS.get(response.status_code, InternalError)
            raise error_cls(message, job_id=job_id)

        if not isinstance(payload, dict) or payload.get("success") is not True:
            logger.warning("ocr_service_malformed_response job_id=%s status=%s", job_id, response.status_code)
            raise InternalError("Malformed OCR service response", job_id=job_id)

        return ProcessedText(text=str(payload.get("text") or ""), confidence=float(payload.get("confidence") or 0.0))


@dataclass(frozen=True)
class UploadResult:
    job_id: Optional[str]
    status: Optional[str]
    text: str = ""
    confidence: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def image_file_to_data_url(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    if not mime or not mime.startswith("image/"):
        raise BadRequest("Please select an image file")
    with open(path, "rb") as fh:
        encoded = base64.b64encode(fh.read()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class UploadController:
    """
    Client-side upload flow for one signed-in user.

    The processor is either an ``OcrJobService`` (in-process) or an
    ``HttpOcrProcessor``; both take ``(job_id, credential, image, language)``.
    """

    def __init__(
        self,
        *,
        store: JobStore,
        processor,
        owner_id: str,
        credential: Callable[[], Optional[str]],
        notifier: Optional[HistoryRefreshNotifier] = None,
        language: str = DEFAULT_LANGUAGE,
    ):
        self.store = store
        self.processor = processor
        self.owner_id = owner_id
        self._credential = credential
        self.notifier = notifier or HistoryRefreshNotifier()
        self.language = language or DEFAULT_LANGUAGE
        self.processing = False

    def submit_file(self, path: str) -> UploadResult:
        data_url = image_file_to_data_url(path)
        logger.info("upload_file_selected name=%s bytes=%s", os.path.basename(path), os.path.getsize(path))
        return self.submit(data_url, image_ref=data_url)

    def submit(self, image: str, image_ref: Optional[str] = None) -> UploadResult:
        if self.processing:
            raise BadRequest("An image is already being processed")

        self.processing = True
        try:
            # A failed insert leaves nothing to show in history, so no refresh is sent.
            record = self.store.insert(self.owner_id, image_ref or image, self.language)
            result = self._process(record.id, image)
        finally:
            self.processing = False

        self.notifier.notify(HistoryRefresh(job_id=result.job_id, status=result.status, error=result.error))
        return result

    def _process(self, job_id: str, image: str) -> UploadResult:
        try:
            processed = self.processor.process(job_id, self._credential(), image, language=self.language)
        except OcrJobError as exc:
            logger.warning("upload_processing_failed job_id=%s error_code=%s error=%s", job_id, exc.error_code, exc.message)
            return UploadResult(
                job_id=job_id,
                status=self._current_status(job_id),
                error=exc.message,
                error_code=exc.error_code,
            )

        return UploadResult(
            job_id=job_id,
            status=JOB_STATUS_COMPLETED,
            text=processed.text,
            confidence=processed.confidence,
        )

    def _current_status(self, job_id: str) -> Optional[str]:
        try:
            record = self.store.get(job_id, self.owner_id)
        except Exception as exc:
            logger.warning("upload_status_read_failed job_id=%s error=%s", job_id, exc.__class__.__name__)
            return None
        return record.status if record else None

# User value: This endpoint extracts text from the user's image and records the outcome in their history.
# routes/ocr.py
from typing import Any

from fastapi import APIRouter, Body, Depends, Header

from schemas.requests import ProcessOcrRequest
from schemas.responses import ProcessOcrResponse
from services.dependencies import get_ocr_job_service
from services.ocr_jobs import OcrJobService

router = APIRouter(tags=["ocr"])


@router.post("/process-ocr", response_model=ProcessOcrResponse)
# Sync handler: runs in the threadpool so a slow provider call never blocks other jobs.
def process_ocr(
    body: Any = Body(default=None),
    authorization: str | None = Header(default=None),
    service: OcrJobService = Depends(get_ocr_job_service),
):
    """
    Extract text for one pending job and record the outcome.

    A 409 ``STATE_CONFLICT`` means the job already reached a final state,
    possibly through a duplicate request that won; its stored result is
    unchanged and can be read from ``GET /jobs/{job_id}``.
    """
    payload = ProcessOcrRequest.from_body(body)
    result = service.process(payload.job_id, authorization, payload.image, language=payload.language)
    return ProcessOcrResponse(success=True, text=result.text, confidence=result.confidence)

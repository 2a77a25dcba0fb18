# User value: This file fixes the response shapes so the upload and history screens can rely on them.
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from schemas.job import JobRecord


class ProcessOcrResponse(BaseModel):
    # User value: returns the extracted text right away so users do not have to wait for a history reload.
    success: bool = True
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


class JobCreatedResponse(BaseModel):
    # User value: confirms a job is registered so the client can ask for it to be processed.
    job_id: str
    status: Literal["pending"] = "pending"
    created_at: str


class JobListResponse(BaseModel):
    items: List[JobRecord] = Field(default_factory=list)
    limit: int
    count: int


class JobDeletedResponse(BaseModel):
    deleted: int = Field(ge=0)
    job_id: Optional[str] = None


class ErrorResponse(BaseModel):
    # User value: gives users one readable error message regardless of where the request failed.
    error: str
    error_code: str
    path: Optional[str] = None
    request_id: Optional[str] = None

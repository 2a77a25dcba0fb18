# User value: This file defines the stored OCR job so history entries always carry the same fields.
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from schemas.job_contract import DEFAULT_LANGUAGE, JOB_STATUS_PENDING, TERMINAL_STATUSES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRecord(BaseModel):
    """One OCR submission and its lifecycle state."""

    id: str
    owner_id: str
    image_ref: str
    language: str = DEFAULT_LANGUAGE
    status: Literal["pending", "completed", "failed"] = JOB_STATUS_PENDING
    extracted_text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_hash(self) -> dict:
        """Flatten for a Redis hash; None becomes an empty string."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "image_ref": self.image_ref,
            "language": self.language,
            "status": self.status,
            "extracted_text": self.extracted_text,
            "confidence": repr(float(self.confidence)),
            "error_message": self.error_message or "",
            "created_at": self.created_at.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else "",
        }

    @classmethod
    def from_hash(cls, data: dict) -> "JobRecord":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            image_ref=data.get("image_ref") or "",
            language=data.get("language") or DEFAULT_LANGUAGE,
            status=data.get("status") or JOB_STATUS_PENDING,
            extracted_text=data.get("extracted_text") or "",
            confidence=float(data.get("confidence") or 0.0),
            error_message=data.get("error_message") or None,
            created_at=data["created_at"],
            processed_at=data.get("processed_at") or None,
        )

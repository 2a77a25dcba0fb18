# User value: This file describes what clients send so OCR submissions are parsed the same way every time.
from pydantic import AliasChoices, BaseModel, Field
from typing import Any, Optional


class ProcessOcrRequest(BaseModel):
    # Fields are untyped here; the service checks them after the credential so an
    # anonymous caller always gets 401, whatever the body holds.
    image: Any = Field(default=None, validation_alias=AliasChoices("image", "imageData"))
    job_id: Any = Field(default=None, validation_alias=AliasChoices("jobId", "job_id", "resultId"))
    language: Any = None

    @classmethod
    def from_body(cls, body: Any) -> "ProcessOcrRequest":
        return cls.model_validate(body) if isinstance(body, dict) else cls()


class CreateJobRequest(BaseModel):
    # User value: registers the selected image so the user sees a pending entry in history right away.
    image_ref: str = Field(..., min_length=1, validation_alias=AliasChoices("image_ref", "imageRef", "image_url"))
    language: Optional[str] = Field(default=None, max_length=16)

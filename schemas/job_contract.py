# User value: This file keeps OCR job fields and statuses identical across the API, stores and history views.
CONTRACT_VERSION = "2026-10-18-ocr-jobs-1"

JOB_STATUS_PENDING = "pending"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"

JOB_STATUSES = (
    JOB_STATUS_PENDING,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
)

TERMINAL_STATUSES = (
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
)

# Provider reports only a binary parse-success flag.
CONFIDENCE_HIGH = 0.95
CONFIDENCE_LOW = 0.5

DEFAULT_LANGUAGE = "eng"
GENERIC_PROVIDER_ERROR = "OCR processing failed"

CANONICAL_FIELDS = (
    "id",
    "owner_id",
    "image_ref",
    "language",
    "status",
    "extracted_text",
    "confidence",
    "error_message",
    "created_at",
    "processed_at",
)

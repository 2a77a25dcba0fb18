# User value: This file names every way an OCR request can fail so users get a clear, stable message.


class OcrJobError(Exception):
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, job_id: str | None = None):
        self.message = message or self.default_message
        self.job_id = job_id
        super().__init__(self.message)


class Unauthorized(OcrJobError):
    status_code = 401
    error_code = "AUTH_UNAUTHORIZED"
    default_message = "Unauthorized"

    def __init__(self, message: str | None = None, *, error_code: str | None = None, job_id: str | None = None):
        super().__init__(message, job_id=job_id)
        if error_code:
            self.error_code = error_code


class BadRequest(OcrJobError):
    status_code = 400
    error_code = "INVALID_REQUEST"
    default_message = "Invalid request"


class JobNotFound(OcrJobError):
    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"
    default_message = "Job not found"


class InvalidTransition(OcrJobError):
    status_code = 409
    error_code = "STATE_CONFLICT"
    default_message = "Job is no longer pending"

    def __init__(self, message: str | None = None, *, current: str | None = None, target: str | None = None, job_id: str | None = None):
        super().__init__(message, job_id=job_id)
        self.current = current
        self.target = target


class ProviderFailure(OcrJobError):
    status_code = 502
    error_code = "OCR_PROVIDER_FAILED"
    default_message = "OCR processing failed"


class InternalError(OcrJobError):
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

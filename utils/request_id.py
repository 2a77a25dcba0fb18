import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

REQUEST_ID_HEADER = "X-Request-ID"

# Accept caller-supplied ids only when they are safe to echo into logs and headers.
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{8,128}$")
_current: ContextVar[Optional[str]] = ContextVar("ocr_request_id", default=None)


def new_request_id() -> str:
    return f"req-{uuid.uuid4().hex}"


def normalize_request_id(raw: Optional[str]) -> str:
    candidate = (raw or "").strip()
    return candidate if _SAFE_ID.match(candidate) else new_request_id()


def get_request_id() -> Optional[str]:
    return _current.get()


@contextmanager
def bound_request_id(raw: Optional[str]) -> Iterator[str]:
    """Bind a request id for the duration of one request and restore the previous one afterwards."""
    request_id = normalize_request_id(raw)
    token = _current.set(request_id)
    try:
        yield request_id
    finally:
        _current.reset(token)


def current_or_new_request_id() -> str:
    # Calls made outside an HTTP request (the upload controller) still carry a traceable id.
    return get_request_id() or new_request_id()

# User value: This file serves the OCR API: text extraction plus a private, per-user history of results.
# app.py
import logging
import os
import time

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Env must be loaded and validated before config and the routers read it.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))

from utils.json_logging import configure_json_logging

configure_json_logging(
    service="ocr-jobs-api",
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
)
logger = logging.getLogger("api.error")
access_logger = logging.getLogger("api.access")

from startup_env import validate_startup_env

validate_startup_env()

import config
from routes.contract import router as contract_router
from routes.health import router as health_router
from routes.jobs import router as jobs_router
from routes.ocr import router as ocr_router
from services.errors import InternalError, OcrJobError
from utils.metrics import incr, observe_ms
from utils.request_id import REQUEST_ID_HEADER, bound_request_id, get_request_id, normalize_request_id

# Used when an HTTPException carries no explicit error_code.
_HTTP_ERROR_CODES = {
    400: "INVALID_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "RESOURCE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "STATE_CONFLICT",
    503: "SERVICE_UNAVAILABLE",
}

app = FastAPI(title="OCR Jobs API")


def _record_request(request: Request, status_code: int, duration_ms: float) -> None:
    labels = {
        "method": request.method.upper(),
        "path": request.url.path,
        "status_class": f"{status_code // 100}xx",
    }
    incr("api_http_requests_total", status_code=status_code, **labels)
    observe_ms("api_http_request_latency_ms", duration_ms, **labels)
    access_logger.info(
        "request_completed method=%s path=%s status=%s duration_ms=%.1f",
        labels["method"],
        labels["path"],
        status_code,
        duration_ms,
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    with bound_request_id(request.headers.get(REQUEST_ID_HEADER)) as request_id:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _record_request(request, status_code, (time.perf_counter() - started) * 1000.0)


def _request_id_for(request: Request) -> str:
    # The unhandled-exception handler runs outside the middleware's context.
    return get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))


def _error_response(
    request: Request,
    *,
    status_code: int,
    error_code: str,
    message: str,
    log: bool = True,
    **extra,
) -> JSONResponse:
    body = {
        "error": message,
        "error_code": error_code,
        "path": request.url.path,
        "request_id": _request_id_for(request),
    }
    body.update({key: value for key, value in extra.items() if value is not None})
    if log:
        logger.warning(
            "request_failed status=%s path=%s request_id=%s error_code=%s error_message=%s",
            status_code,
            body["path"],
            body["request_id"],
            error_code,
            message,
        )
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(OcrJobError)
async def ocr_job_error_handler(request: Request, exc: OcrJobError):
    return _error_response(
        request,
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        # InternalError already logged its traceback where it was raised.
        log=not isinstance(exc, InternalError),
        job_id=exc.job_id,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": list(err.get("loc") or []), "msg": str(err.get("msg") or ""), "type": str(err.get("type") or "")}
        for err in exc.errors()
    ]
    return _error_response(
        request,
        status_code=422,
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        detail=detail,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or _HTTP_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}"))
        message = str(detail.get("error_message") or detail.get("message") or detail)
    else:
        error_code = _HTTP_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
        message = str(detail)
    return _error_response(request, status_code=exc.status_code, error_code=error_code.upper(), message=message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "request_failed_unhandled path=%s request_id=%s error=%s: %s",
        request.url.path,
        _request_id_for(request),
        exc.__class__.__name__,
        exc,
    )
    return _error_response(
        request,
        status_code=500,
        error_code="INTERNAL_SERVER_ERROR",
        message="Internal server error",
        log=False,
    )


logger.info(
    "cors_configured allow_origins=%s allow_origin_regex=%s",
    config.CORS_ALLOW_ORIGINS,
    config.CORS_ALLOW_ORIGIN_REGEX or "",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_origin_regex=config.CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
    expose_headers=[REQUEST_ID_HEADER],
)

app.include_router(health_router)
app.include_router(contract_router)
app.include_router(ocr_router)
app.include_router(jobs_router)

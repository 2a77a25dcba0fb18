import logging
import os
from typing import List, Optional

logger = logging.getLogger("api.startup")

STORE_BACKENDS = ("memory", "redis")
DEFAULT_PROVIDER_URL = "https://api.ocr.space/parse/image"


def _env(key: str, default: Optional[str] = None) -> str:
    return str(os.getenv(key, default) or "").strip()


def _has_scheme(value: str, *schemes: str) -> bool:
    return any(value.startswith(f"{scheme}://") for scheme in schemes)


def _check_required(errors: List[str], *keys: str) -> None:
    for key in keys:
        if not _env(key):
            errors.append(f"{key} is required")


def _check_store(errors: List[str], warnings: List[str]) -> None:
    backend = _env("JOB_STORE_BACKEND", "redis").lower()
    if backend not in STORE_BACKENDS:
        errors.append(f"JOB_STORE_BACKEND must be one of {list(STORE_BACKENDS)}")
        return
    if backend == "memory":
        warnings.append("JOB_STORE_BACKEND=memory; job history is lost on restart")
        return

    redis_url = _env("REDIS_URL")
    if not redis_url:
        errors.append("REDIS_URL is required")
    elif not _has_scheme(redis_url, "redis", "rediss"):
        errors.append("REDIS_URL must start with redis:// or rediss://")


def _check_provider(errors: List[str]) -> None:
    url = _env("OCR_PROVIDER_URL", DEFAULT_PROVIDER_URL)
    if not _has_scheme(url, "http", "https"):
        errors.append("OCR_PROVIDER_URL must start with http:// or https://")
    _check_required(errors, "OCR_PROVIDER_API_KEY")


def _check_history_limits(errors: List[str]) -> None:
    for key in ("HISTORY_DEFAULT_LIMIT", "HISTORY_MAX_LIMIT"):
        raw = _env(key)
        if not raw:
            continue
        if not raw.lstrip("-").isdigit():
            errors.append(f"{key} must be an integer")
        elif int(raw) <= 0:
            errors.append(f"{key} must be greater than zero")


def _check_cors(errors: List[str]) -> None:
    origins = [x.strip() for x in _env("CORS_ALLOW_ORIGINS").split(",") if x.strip()]
    if not origins:
        errors.append("CORS_ALLOW_ORIGINS is required")
        return
    for origin in origins:
        if origin == "*":
            errors.append("CORS_ALLOW_ORIGINS must not contain '*' in strict allowlist mode")
        elif not _has_scheme(origin, "http", "https"):
            errors.append(f"CORS origin must start with http:// or https://: {origin}")


def validate_startup_env() -> None:
    """Fail fast on a misconfigured deployment, reporting every problem at once."""
    errors: List[str] = []
    warnings: List[str] = []

    _check_required(errors, "GOOGLE_CLIENT_ID")
    _check_store(errors, warnings)
    _check_provider(errors)
    _check_history_limits(errors)
    _check_cors(errors)

    if errors:
        for err in errors:
            logger.error("startup_env_invalid %s", err)
        raise RuntimeError("Startup env validation failed: " + "; ".join(errors))

    for warning in warnings:
        logger.warning("startup_env_warning %s", warning)
    logger.info("startup_env_validated backend=%s", _env("JOB_STORE_BACKEND", "redis").lower())

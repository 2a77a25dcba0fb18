# User value: This file wires the OCR service to its store, identity check and provider in one place.
import logging
from functools import lru_cache

from fastapi import Depends, Header

import config
from services.auth import GoogleIdentityVerifier, Identity, IdentityVerifier
from services.jobs import InMemoryJobStore, JobStore, RedisJobStore
from services.ocr_jobs import OcrJobService
from services.ocr_provider import OcrProviderClient
from services.redis_client import get_redis_client

logger = logging.getLogger("api.dependencies")


@lru_cache(maxsize=1)
def get_job_store() -> JobStore:
    backend = config.JOB_STORE_BACKEND
    if backend == "memory":
        logger.warning("job_store_backend=memory; history is not persisted")
        return InMemoryJobStore()
    if backend == "redis":
        return RedisJobStore(get_redis_client())
    raise RuntimeError(f"Unknown JOB_STORE_BACKEND: {backend}")


@lru_cache(maxsize=1)
def get_identity_verifier() -> IdentityVerifier:
    return GoogleIdentityVerifier(config.GOOGLE_CLIENT_ID, clock_skew_sec=config.TOKEN_CLOCK_SKEW_SEC)


@lru_cache(maxsize=1)
def get_ocr_provider() -> OcrProviderClient:
    return OcrProviderClient(url=config.OCR_PROVIDER_URL, api_key=config.OCR_PROVIDER_API_KEY)


def get_ocr_job_service(
    store: JobStore = Depends(get_job_store),
    identity: IdentityVerifier = Depends(get_identity_verifier),
    provider: OcrProviderClient = Depends(get_ocr_provider),
) -> OcrJobService:
    return OcrJobService(
        store=store,
        identity=identity,
        provider=provider,
        default_language=config.OCR_DEFAULT_LANGUAGE,
    )


def current_identity(
    authorization: str | None = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    return verifier.verify(authorization)

import os
from dotenv import load_dotenv

load_dotenv()


def _csv(name: str) -> list[str]:
    ordered = []
    for item in os.environ.get(name, "").split(","):
        item = item.strip()
        if item and item not in ordered:
            ordered.append(item)
    return ordered


SERVICE_NAME = "ocr-jobs-api"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
JOB_STORE_BACKEND = os.environ.get("JOB_STORE_BACKEND", "redis").strip().lower()

GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
TOKEN_CLOCK_SKEW_SEC = int(os.environ.get("TOKEN_CLOCK_SKEW_SEC", "60"))

OCR_PROVIDER_URL = os.environ.get("OCR_PROVIDER_URL", "https://api.ocr.space/parse/image")
OCR_PROVIDER_API_KEY = os.environ.get("OCR_PROVIDER_API_KEY", "")
OCR_DEFAULT_LANGUAGE = os.environ.get("OCR_DEFAULT_LANGUAGE", "eng")

HISTORY_DEFAULT_LIMIT = int(os.environ.get("HISTORY_DEFAULT_LIMIT", "20"))
HISTORY_MAX_LIMIT = int(os.environ.get("HISTORY_MAX_LIMIT", "100"))

CORS_ALLOW_ORIGINS = _csv("CORS_ALLOW_ORIGINS")
CORS_ALLOW_ORIGIN_REGEX = os.environ.get("CORS_ALLOW_ORIGIN_REGEX", "").strip() or None

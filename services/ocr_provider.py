# User value: This file talks to the text-recognition provider and always hands back a clear result or error.
import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Any, Union

import httpx

from schemas.job_contract import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    DEFAULT_LANGUAGE,
    GENERIC_PROVIDER_ERROR,
)
from utils.metrics import incr, observe_ms

logger = logging.getLogger("api.ocr_provider")

MALFORMED_RESPONSE_MESSAGE = "Malformed OCR provider response"

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"\xff\xd8\xff", ".jpg"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
    (b"BM", ".bmp"),
    (b"II*\x00", ".tif"),
    (b"MM\x00*", ".tif"),
    (b"%PDF", ".pdf"),
)


@dataclass(frozen=True)
class RecognitionSuccess:
    text: str
    confidence_hint: float


@dataclass(frozen=True)
class RecognitionError:
    message: str


RecognitionOutcome = Union[RecognitionSuccess, RecognitionError]


def confidence_from_exit_code(exit_code: Any) -> float:
    """Two-tier mapping of the provider's parse-success indicator; only the integer 1 means a full parse."""
    return CONFIDENCE_HIGH if type(exit_code) is int and exit_code == 1 else CONFIDENCE_LOW


def _first_message(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        for item in value:
            text = str(item or "").strip()
            if text:
                return text
        return ""
    return str(value or "").strip()


def provider_error_message(payload: dict) -> str:
    return (
        _first_message(payload.get("ErrorMessage"))
        or _first_message(payload.get("ErrorDetails"))
        or GENERIC_PROVIDER_ERROR
    )


def parse_provider_response(payload: Any) -> RecognitionOutcome:
    if not isinstance(payload, dict):
        return RecognitionError(MALFORMED_RESPONSE_MESSAGE)

    if payload.get("IsErroredOnProcessing"):
        return RecognitionError(provider_error_message(payload))

    results = payload.get("ParsedResults")
    first = results[0] if isinstance(results, list) and results else {}
    if not isinstance(first, dict):
        return RecognitionError(MALFORMED_RESPONSE_MESSAGE)

    text = first.get("ParsedText") or ""
    return RecognitionSuccess(
        text=str(text),
        confidence_hint=confidence_from_exit_code(first.get("FileParseExitCode")),
    )


def _sniff_extension(blob: bytes) -> str:
    for signature, ext in _SIGNATURES:
        if blob.startswith(signature):
            return ext
    if blob[:4] == b"RIFF" and blob[8:12] == b"WEBP":
        return ".webp"
    return ".png"


class OcrProviderClient:
    """
    OCR.space ``parse/image`` client.

    One attempt per call, transport default timeout. Every failure mode comes
    back as ``RecognitionError``; nothing raised here reaches the caller.
    """

    def __init__(self, *, url: str, api_key: str, http_client: httpx.Client | None = None):
        self.url = url
        self.api_key = api_key
        self._client = http_client or httpx.Client()

    def close(self) -> None:
        self._client.close()

    def _build_request(self, image: bytes | str, language: str) -> tuple[dict, dict | None]:
        data = {
            "language": language or DEFAULT_LANGUAGE,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "scale": "true",
        }

        if isinstance(image, (bytes, bytearray)):
            blob = bytes(image)
            ext = _sniff_extension(blob)
            data["filetype"] = ext.lstrip(".").upper()
            return data, {"file": (f"image{ext}", blob, "application/octet-stream")}

        ref = str(image).strip()
        if ref.startswith("http://") or ref.startswith("https://"):
            data["url"] = ref
            return data, None
        if ref.startswith("data:"):
            data["base64Image"] = ref
            return data, None

        # Bare base64 without a data-URL prefix.
        blob = base64.b64decode(ref, validate=True)
        return self._build_request(blob, language)

    def recognize(self, image: bytes | str, language: str = DEFAULT_LANGUAGE) -> RecognitionOutcome:
        try:
            data, files = self._build_request(image, language)
        except (binascii.Error, ValueError):
            incr("ocr_provider_requests_total", outcome="bad_payload")
            return RecognitionError("Unsupported image payload")

        started = time.perf_counter()
        outcome = self._send(data, files)
        duration_ms = (time.perf_counter() - started) * 1000.0

        label = "success" if isinstance(outcome, RecognitionSuccess) else "error"
        incr("ocr_provider_requests_total", outcome=label)
        observe_ms("ocr_provider_latency_ms", duration_ms, outcome=label)
        logger.info("ocr_provider_call outcome=%s duration_ms=%.1f language=%s", label, duration_ms, data["language"])
        return outcome

    def _send(self, data: dict, files: dict | None) -> RecognitionOutcome:
        try:
            response = self._client.post(
                self.url,
                headers={"apikey": self.api_key},
                data=data,
                files=files,
            )
        except httpx.HTTPError as exc:
            logger.warning("ocr_provider_transport_failed error=%s: %s", exc.__class__.__name__, exc)
            return RecognitionError(f"OCR provider request failed: {exc.__class__.__name__}")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            logger.warning("ocr_provider_http_error status=%s", response.status_code)
            if isinstance(payload, dict) and (payload.get("ErrorMessage") or payload.get("ErrorDetails")):
                return RecognitionError(provider_error_message(payload))
            return RecognitionError(f"OCR provider returned HTTP {response.status_code}")

        if payload is None:
            logger.warning("ocr_provider_malformed_body status=%s", response.status_code)
            return RecognitionError(MALFORMED_RESPONSE_MESSAGE)

        return parse_provider_response(payload)

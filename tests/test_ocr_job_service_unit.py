# User value: This test proves an uploaded image ends in exactly one result, visible only to its owner.
import threading
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from services.errors import (
    BadRequest,
    InternalError,
    InvalidTransition,
    JobNotFound,
    ProviderFailure,
    Unauthorized,
)
from services.jobs import InMemoryJobStore
from services.ocr_jobs import OcrJobService
from services.ocr_provider import RecognitionSuccess
from tests.fakes import FakeIdentityVerifier, StubProvider, provider_error
from utils.status_machine import JobStateMachine

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
IMAGE = "https://example.com/receipt.png"


class OcrJobServiceUnitTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryJobStore()
        self.identity = FakeIdentityVerifier()

    def _service(self, provider):
        return OcrJobService(
            store=self.store,
            identity=self.identity,
            provider=provider,
            state_machine=JobStateMachine(clock=lambda: FIXED_NOW),
        )

    def test_success_completes_job_with_text_and_confidence(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider()

        result = self._service(provider).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(result.text, "Hello")
        self.assertEqual(result.confidence, 0.95)
        stored = self.store.get(job.id, "owner-a")
        self.assertEqual(stored.status, "completed")
        self.assertEqual(stored.extracted_text, "Hello")
        self.assertEqual(stored.confidence, 0.95)
        self.assertIsNone(stored.error_message)
        self.assertEqual(stored.processed_at, FIXED_NOW)
        self.assertEqual(provider.calls, [(IMAGE, "eng")])

    def test_explicit_language_is_forwarded_to_provider(self):
        job = self.store.insert("owner-a", IMAGE, "deu")
        provider = StubProvider()
        service = self._service(provider)

        service.process(job.id, "Bearer token-a", IMAGE)
        self.assertEqual(provider.calls[-1], (IMAGE, "deu"))

        other = self.store.insert("owner-a", IMAGE)
        service.process(other.id, "Bearer token-a", IMAGE, language="fre")
        self.assertEqual(provider.calls[-1], (IMAGE, "fre"))

    # User value: a failed read is still recorded, with the provider's reason, before the error is shown.
    def test_provider_failure_marks_job_failed_then_raises(self):
        job = self.store.insert("owner-a", IMAGE)

        with self.assertRaises(ProviderFailure) as ctx:
            self._service(provider_error("bad format")).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(ctx.exception.message, "bad format")
        self.assertEqual(ctx.exception.status_code, 502)
        stored = self.store.get(job.id, "owner-a")
        self.assertEqual(stored.status, "failed")
        self.assertEqual(stored.error_message, "bad format")
        self.assertEqual(stored.extracted_text, "")
        self.assertEqual(stored.confidence, 0.0)
        self.assertEqual(stored.processed_at, FIXED_NOW)

    def test_empty_provider_message_falls_back_to_generic(self):
        job = self.store.insert("owner-a", IMAGE)

        with self.assertRaises(ProviderFailure) as ctx:
            self._service(provider_error("")).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(ctx.exception.message, "OCR processing failed")
        self.assertEqual(self.store.get(job.id, "owner-a").error_message, "OCR processing failed")

    # User value: an anonymous caller cannot touch anyone's job or spend provider quota.
    def test_missing_or_bad_credential_is_rejected_before_any_work(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider()
        service = self._service(provider)

        for credential in (None, "", "Basic abc", "Bearer unknown"):
            with self.assertRaises(Unauthorized):
                service.process(job.id, credential, IMAGE)

        self.assertEqual(provider.calls, [])
        self.assertEqual(self.store.get(job.id, "owner-a").status, "pending")

    def test_credential_is_checked_before_payload(self):
        provider = StubProvider()
        with self.assertRaises(Unauthorized):
            self._service(provider).process(None, None, None)

    def test_missing_fields_are_bad_request(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider()
        service = self._service(provider)

        for job_id, image in ((job.id, None), (job.id, "  "), (None, IMAGE), ("", IMAGE), (job.id, b"")):
            with self.assertRaises(BadRequest) as ctx:
                service.process(job_id, "Bearer token-a", image)
            self.assertEqual(ctx.exception.message, "Missing image or jobId")

        self.assertEqual(provider.calls, [])
        self.assertEqual(self.store.get(job.id, "owner-a").status, "pending")

    def test_wrongly_typed_fields_are_bad_request_after_authentication(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider()
        service = self._service(provider)

        with self.assertRaises(Unauthorized):
            service.process(job.id, None, 5, language="x" * 40)

        with self.assertRaises(BadRequest) as ctx:
            service.process(job.id, "Bearer token-a", 5)
        self.assertEqual(ctx.exception.message, "Invalid image or jobId")

        with self.assertRaises(BadRequest) as ctx:
            service.process(["job"], "Bearer token-a", IMAGE)
        self.assertEqual(ctx.exception.message, "Invalid image or jobId")

        for language in ("x" * 40, 7):
            with self.assertRaises(BadRequest) as ctx:
                service.process(job.id, "Bearer token-a", IMAGE, language=language)
            self.assertEqual(ctx.exception.message, "Invalid language")

        self.assertEqual(provider.calls, [])
        self.assertEqual(self.store.get(job.id, "owner-a").status, "pending")

    def test_unknown_job_is_not_found(self):
        provider = StubProvider()
        with self.assertRaises(JobNotFound):
            self._service(provider).process("missing", "Bearer token-a", IMAGE)
        self.assertEqual(provider.calls, [])

    # User value: another user's job looks exactly like a missing one and stays untouched.
    def test_foreign_job_is_not_found_and_untouched(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider()

        with self.assertRaises(JobNotFound):
            self._service(provider).process(job.id, "Bearer token-b", IMAGE)

        self.assertEqual(provider.calls, [])
        self.assertEqual(self.store.get(job.id, "owner-a").status, "pending")

    def test_finished_job_is_conflict_and_result_is_kept(self):
        job = self.store.insert("owner-a", IMAGE)
        service = self._service(StubProvider())
        service.process(job.id, "Bearer token-a", IMAGE)

        second_provider = StubProvider(outcome=RecognitionSuccess(text="Other", confidence_hint=0.5))
        with self.assertRaises(InvalidTransition) as ctx:
            self._service(second_provider).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.current, "completed")
        self.assertEqual(second_provider.calls, [])
        self.assertEqual(self.store.get(job.id, "owner-a").extracted_text, "Hello")

    def test_unexpected_provider_exception_is_internal_error(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider(error=RuntimeError("socket closed"))

        with self.assertLogs("api.ocr", level="ERROR"):
            with self.assertRaises(InternalError) as ctx:
                self._service(provider).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.job_id, job.id)
        self.assertEqual(self.store.get(job.id, "owner-a").status, "pending")

    # User value: a store outage during the final write leaves the job pending for a clean resubmission.
    def test_store_unreachable_on_write_is_internal_error_and_job_stays_pending(self):
        job = self.store.insert("owner-a", IMAGE)

        with patch.object(self.store, "apply", side_effect=ConnectionError("store down")):
            with self.assertLogs("api.ocr", level="ERROR"):
                with self.assertRaises(InternalError) as ctx:
                    self._service(StubProvider()).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(ctx.exception.job_id, job.id)
        stored = self.store.get(job.id, "owner-a")
        self.assertEqual(stored.status, "pending")
        self.assertEqual(stored.extracted_text, "")
        self.assertIsNone(stored.processed_at)

    def test_store_unreachable_on_read_skips_provider(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider()

        with patch.object(self.store, "get", side_effect=ConnectionError("store down")):
            with self.assertLogs("api.ocr", level="ERROR"):
                with self.assertRaises(InternalError):
                    self._service(provider).process(job.id, "Bearer token-a", IMAGE)

        self.assertEqual(provider.calls, [])
        self.assertEqual(self.store.get(job.id, "owner-a").status, "pending")

    # User value: two racing requests for one image never produce two different results.
    def test_concurrent_processing_applies_exactly_one_result(self):
        job = self.store.insert("owner-a", IMAGE)
        provider = StubProvider(barrier=threading.Barrier(2))
        service = self._service(provider)
        outcomes = []
        lock = threading.Lock()

        def worker():
            try:
                result = service.process(job.id, "Bearer token-a", IMAGE)
                value = ("ok", result.text)
            except InvalidTransition as exc:
                value = ("conflict", exc.message)
            with lock:
                outcomes.append(value)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        self.assertEqual(len(provider.calls), 2)
        self.assertEqual(
            sorted(outcomes),
            [("conflict", "Job was already processed by another request"), ("ok", "Hello")],
        )
        self.assertEqual(self.store.get(job.id, "owner-a").status, "completed")


if __name__ == "__main__":
    unittest.main()

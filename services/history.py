# User value: This file keeps the user's list of past OCR results current and lets them prune it.
import logging
from typing import Callable, List, Optional

from schemas.job import JobRecord
from services.errors import JobNotFound
from services.jobs import JobStore
from services.upload_controller import HistoryRefresh, HistoryRefreshNotifier

logger = logging.getLogger("client.history")

DEFAULT_HISTORY_LIMIT = 20


class HistoryView:
    """Owner-scoped history; reloads whenever the upload flow reports a finished submission."""

    def __init__(
        self,
        *,
        store: JobStore,
        owner_id: str,
        notifier: Optional[HistoryRefreshNotifier] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.store = store
        self.owner_id = owner_id
        self.limit = limit
        self.results: List[JobRecord] = []
        self.loading = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        if notifier is not None:
            self._unsubscribe = notifier.subscribe(self.on_refresh)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_refresh(self, event: HistoryRefresh) -> None:
        logger.info("history_refresh job_id=%s status=%s", event.job_id, event.status)
        self.load()

    def load(self) -> List[JobRecord]:
        self.loading = True
        try:
            self.results = self.store.list_by_owner(self.owner_id, self.limit)
        finally:
            self.loading = False
        return self.results

    def delete(self, job_id: str) -> None:
        if not self.store.delete(job_id, self.owner_id):
            raise JobNotFound(job_id=job_id)
        self.results = [r for r in self.results if r.id != job_id]

    def clear_all(self) -> int:
        deleted = self.store.delete_all_by_owner(self.owner_id)
        self.results = []
        return deleted

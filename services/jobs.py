# User value: This file persists OCR jobs per user so history survives reloads and stays private to its owner.
import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from schemas.job import JobRecord, utcnow
from schemas.job_contract import DEFAULT_LANGUAGE, JOB_STATUS_PENDING
from utils.status_machine import TerminalTransition

logger = logging.getLogger("api.store")

JOB_KEY_PREFIX = "job_status:"
OWNER_INDEX_PREFIX = "user_jobs:"


def job_key(job_id: str) -> str:
    return f"{JOB_KEY_PREFIX}{job_id}"


def owner_index_key(owner_id: str) -> str:
    return f"{OWNER_INDEX_PREFIX}{owner_id}"


class JobStore:
    """
    Record store contract for OCR jobs.

    Every read and write is scoped by owner; a record owned by someone else
    behaves exactly like a missing one.
    """

    def insert(self, owner_id: str, image_ref: str, language: str = DEFAULT_LANGUAGE) -> JobRecord:
        raise NotImplementedError

    def get(self, job_id: str, owner_id: str) -> Optional[JobRecord]:
        raise NotImplementedError

    def conditional_update_terminal(
        self,
        job_id: str,
        owner_id: str,
        *,
        expected_status: str,
        new_status: str,
        extracted_text: str,
        confidence: float,
        error_message: Optional[str],
        processed_at: datetime,
    ) -> int:
        raise NotImplementedError

    def list_by_owner(self, owner_id: str, limit: int) -> List[JobRecord]:
        raise NotImplementedError

    def delete(self, job_id: str, owner_id: str) -> int:
        raise NotImplementedError

    def delete_all_by_owner(self, owner_id: str) -> int:
        raise NotImplementedError

    def ping(self) -> bool:
        return True

    def apply(self, transition: TerminalTransition) -> int:
        return self.conditional_update_terminal(
            transition.job_id,
            transition.owner_id,
            expected_status=transition.expected_status,
            new_status=transition.new_status,
            extracted_text=transition.extracted_text,
            confidence=transition.confidence,
            error_message=transition.error_message,
            processed_at=transition.processed_at,
        )


class InMemoryJobStore(JobStore):
    # Single-process store for local development and tests.

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._jobs: Dict[str, JobRecord] = {}
        self._owner_index: Dict[str, List[str]] = {}

    def insert(self, owner_id: str, image_ref: str, language: str = DEFAULT_LANGUAGE) -> JobRecord:
        record = JobRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            image_ref=image_ref,
            language=language or DEFAULT_LANGUAGE,
            status=JOB_STATUS_PENDING,
            created_at=self._clock(),
        )
        with self._lock:
            self._jobs[record.id] = record
            self._owner_index.setdefault(owner_id, []).insert(0, record.id)
        return record.model_copy()

    def get(self, job_id: str, owner_id: str) -> Optional[JobRecord]:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None or record.owner_id != owner_id:
                return None
            return record.model_copy()

    def conditional_update_terminal(
        self,
        job_id: str,
        owner_id: str,
        *,
        expected_status: str,
        new_status: str,
        extracted_text: str,
        confidence: float,
        error_message: Optional[str],
        processed_at: datetime,
    ) -> int:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None or record.owner_id != owner_id or record.status != expected_status:
                return 0
            self._jobs[job_id] = record.model_copy(
                update={
                    "status": new_status,
                    "extracted_text": extracted_text,
                    "confidence": confidence,
                    "error_message": error_message,
                    "processed_at": processed_at,
                }
            )
            return 1

    def list_by_owner(self, owner_id: str, limit: int) -> List[JobRecord]:
        with self._lock:
            ids = list(self._owner_index.get(owner_id, []))[: max(0, limit)]
            return [self._jobs[job_id].model_copy() for job_id in ids if job_id in self._jobs]

    def delete(self, job_id: str, owner_id: str) -> int:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None or record.owner_id != owner_id:
                return 0
            del self._jobs[job_id]
            self._owner_index[owner_id].remove(job_id)
            return 1

    def delete_all_by_owner(self, owner_id: str) -> int:
        with self._lock:
            ids = self._owner_index.pop(owner_id, [])
            deleted = 0
            for job_id in ids:
                if self._jobs.pop(job_id, None) is not None:
                    deleted += 1
            return deleted


# KEYS[1]=job hash  ARGV: owner, expected, new status, text, confidence, error, processed_at
_CONDITIONAL_UPDATE_LUA = """
local owner = redis.call('HGET', KEYS[1], 'owner_id')
if not owner or owner ~= ARGV[1] then
  return 0
end
if redis.call('HGET', KEYS[1], 'status') ~= ARGV[2] then
  return 0
end
redis.call('HSET', KEYS[1],
  'status', ARGV[3],
  'extracted_text', ARGV[4],
  'confidence', ARGV[5],
  'error_message', ARGV[6],
  'processed_at', ARGV[7])
return 1
"""

# KEYS[1]=job hash KEYS[2]=owner index  ARGV: owner, job id
_CONDITIONAL_DELETE_LUA = """
local owner = redis.call('HGET', KEYS[1], 'owner_id')
if not owner or owner ~= ARGV[1] then
  return 0
end
redis.call('DEL', KEYS[1])
redis.call('LREM', KEYS[2], 0, ARGV[2])
return 1
"""

# KEYS[1]=owner index  ARGV: job key prefix, owner
_DELETE_ALL_LUA = """
local ids = redis.call('LRANGE', KEYS[1], 0, -1)
local deleted = 0
for _, id in ipairs(ids) do
  local key = ARGV[1] .. id
  if redis.call('HGET', key, 'owner_id') == ARGV[2] then
    deleted = deleted + redis.call('DEL', key)
  end
end
redis.call('DEL', KEYS[1])
return deleted
"""


class RedisJobStore(JobStore):
    """
    Redis-backed store.

    One hash per job under ``job_status:<id>`` and a newest-first list of ids
    per owner under ``user_jobs:<owner>``. Conditional writes run as Lua
    scripts so the predicate check and the write are atomic on the server.
    """

    def __init__(self, client, clock: Callable[[], datetime] = utcnow):
        self.r = client
        self._clock = clock
        self._update_script = client.register_script(_CONDITIONAL_UPDATE_LUA)
        self._delete_script = client.register_script(_CONDITIONAL_DELETE_LUA)
        self._delete_all_script = client.register_script(_DELETE_ALL_LUA)

    def insert(self, owner_id: str, image_ref: str, language: str = DEFAULT_LANGUAGE) -> JobRecord:
        record = JobRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            image_ref=image_ref,
            language=language or DEFAULT_LANGUAGE,
            status=JOB_STATUS_PENDING,
            created_at=self._clock(),
        )
        pipe = self.r.pipeline(transaction=True)
        pipe.hset(job_key(record.id), mapping=record.to_hash())
        pipe.lpush(owner_index_key(owner_id), record.id)
        pipe.execute()
        logger.info("job_inserted job_id=%s owner=%s", record.id, owner_id)
        return record

    def get(self, job_id: str, owner_id: str) -> Optional[JobRecord]:
        data = self.r.hgetall(job_key(job_id))
        if not data or data.get("owner_id") != owner_id:
            return None
        return JobRecord.from_hash(data)

    def conditional_update_terminal(
        self,
        job_id: str,
        owner_id: str,
        *,
        expected_status: str,
        new_status: str,
        extracted_text: str,
        confidence: float,
        error_message: Optional[str],
        processed_at: datetime,
    ) -> int:
        affected = self._update_script(
            keys=[job_key(job_id)],
            args=[
                owner_id,
                expected_status,
                new_status,
                extracted_text or "",
                repr(float(confidence)),
                error_message or "",
                processed_at.isoformat(),
            ],
        )
        return int(affected or 0)

    def list_by_owner(self, owner_id: str, limit: int) -> List[JobRecord]:
        if limit <= 0:
            return []
        job_ids = self.r.lrange(owner_index_key(owner_id), 0, limit - 1)
        if not job_ids:
            return []

        pipe = self.r.pipeline(transaction=False)
        for job_id in job_ids:
            pipe.hgetall(job_key(job_id))
        rows = pipe.execute()

        records = []
        for data in rows:
            if not data or data.get("owner_id") != owner_id:
                continue
            records.append(JobRecord.from_hash(data))
        return records

    def delete(self, job_id: str, owner_id: str) -> int:
        affected = self._delete_script(
            keys=[job_key(job_id), owner_index_key(owner_id)],
            args=[owner_id, job_id],
        )
        return int(affected or 0)

    def delete_all_by_owner(self, owner_id: str) -> int:
        affected = self._delete_all_script(
            keys=[owner_index_key(owner_id)],
            args=[JOB_KEY_PREFIX, owner_id],
        )
        return int(affected or 0)

    def ping(self) -> bool:
        return bool(self.r.ping())

"""
Submission Store
----------------
Single source of truth for the submission state machine. Every backend keeps
one JSON document per submission and offers per-record atomic conditional
updates ("apply these changes only if these fields still hold these values"),
which is what makes duplicate/conflicting callbacks and concurrent export
marking safe without a cross-record transaction.
"""
import json
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from redis import Redis
from redis.exceptions import RedisError

from directdebit.core.errors import ConflictError, DependencyError
from directdebit.observability.logging import log_error
from directdebit.settings import settings
from directdebit.store.models import Submission
from directdebit.store.redis_conn import get_redis

# Outcomes of update_conditional()
APPLIED = "applied"
CONDITION_FAILED = "condition_failed"
MISSING = "missing"

Predicate = Callable[[Submission], bool]

_SCAN_BATCH = 200

# Compare-and-set on the stored JSON document, executed atomically inside Redis.
# ARGV[1]: JSON object of expected field values; ARGV[2]: JSON object of changes.
_CAS_SCRIPT = """
local raw = redis.call("GET", KEYS[1])
if not raw then
    return -1
end
local rec = cjson.decode(raw)
local expected = cjson.decode(ARGV[1])
for k, v in pairs(expected) do
    if rec[k] ~= v then
        return 0
    end
end
local changes = cjson.decode(ARGV[2])
for k, v in pairs(changes) do
    rec[k] = v
end
redis.call("SET", KEYS[1], cjson.encode(rec))
return 1
"""

_CAS_RESULTS = {-1: MISSING, 0: CONDITION_FAILED, 1: APPLIED}


class SubmissionStore:
    def get(self, submission_id: str) -> Optional[Submission]:
        raise NotImplementedError

    def create(self, submission: Submission) -> None:
        """Persist a new record. Raises ConflictError if the id is taken."""
        raise NotImplementedError

    def scan(self, predicate: Predicate) -> List[Submission]:
        """Every record matching predicate; each record is read atomically."""
        raise NotImplementedError

    def update_conditional(
        self, submission_id: str, expected: Dict[str, Any], changes: Dict[str, Any]
    ) -> str:
        """Apply changes iff every expected field matches. Returns APPLIED/CONDITION_FAILED/MISSING."""
        raise NotImplementedError


@contextmanager
def _redis_errors(op: str, **fields) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        log_error("submission_store_error", e, op=op, **fields)
        raise DependencyError("submission store unavailable") from e


class RedisSubmissionStore(SubmissionStore):
    def __init__(self, client: Optional[Redis] = None, prefix: Optional[str] = None):
        self._r = client if client is not None else get_redis()
        self._prefix = prefix or settings.SUBMISSION_KEY_PREFIX

    def _key(self, submission_id: str) -> str:
        return f"{self._prefix}{submission_id}"

    def get(self, submission_id: str) -> Optional[Submission]:
        with _redis_errors("get", submissionId=submission_id):
            raw = self._r.get(self._key(submission_id))
        if not raw:
            return None
        return Submission.from_dict(json.loads(raw))

    def create(self, submission: Submission) -> None:
        with _redis_errors("create", submissionId=submission.submissionId):
            ok = self._r.set(self._key(submission.submissionId), json.dumps(submission.to_dict()), nx=True)
        if not ok:
            raise ConflictError("submission already exists")

    def scan(self, predicate: Predicate) -> List[Submission]:
        out: List[Submission] = []
        batch: List[str] = []
        with _redis_errors("scan"):
            for key in self._r.scan_iter(match=f"{self._prefix}*", count=_SCAN_BATCH):
                batch.append(key)
                if len(batch) >= _SCAN_BATCH:
                    out.extend(self._load_matching(batch, predicate))
                    batch = []
            if batch:
                out.extend(self._load_matching(batch, predicate))
        return out

    def _load_matching(self, keys: List[str], predicate: Predicate) -> List[Submission]:
        matched = []
        for raw in self._r.mget(keys):
            # Key may have vanished between SCAN and MGET
            if not raw:
                continue
            s = Submission.from_dict(json.loads(raw))
            if predicate(s):
                matched.append(s)
        return matched

    def update_conditional(
        self, submission_id: str, expected: Dict[str, Any], changes: Dict[str, Any]
    ) -> str:
        with _redis_errors("update_conditional", submissionId=submission_id):
            rc = self._r.eval(
                _CAS_SCRIPT, 1, self._key(submission_id), json.dumps(expected), json.dumps(changes)
            )
        return _CAS_RESULTS[int(rc)]


class InMemorySubmissionStore(SubmissionStore):
    """Process-local backend for local runs and tests. Same semantics as Redis."""

    def __init__(self):
        self._docs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, submission_id: str) -> Optional[Submission]:
        with self._lock:
            raw = self._docs.get(submission_id)
        return Submission.from_dict(json.loads(raw)) if raw else None

    def create(self, submission: Submission) -> None:
        with self._lock:
            if submission.submissionId in self._docs:
                raise ConflictError("submission already exists")
            self._docs[submission.submissionId] = json.dumps(submission.to_dict())

    def scan(self, predicate: Predicate) -> List[Submission]:
        with self._lock:
            snapshot = list(self._docs.values())
        records = [Submission.from_dict(json.loads(raw)) for raw in snapshot]
        return [s for s in records if predicate(s)]

    def update_conditional(
        self, submission_id: str, expected: Dict[str, Any], changes: Dict[str, Any]
    ) -> str:
        with self._lock:
            raw = self._docs.get(submission_id)
            if raw is None:
                return MISSING
            rec = json.loads(raw)
            if any(rec.get(k) != v for k, v in expected.items()):
                return CONDITION_FAILED
            rec.update(changes)
            self._docs[submission_id] = json.dumps(rec)
            return APPLIED

    def __len__(self) -> int:
        return len(self._docs)


def build_submission_store() -> SubmissionStore:
    if settings.STORE_BACKEND == "memory":
        return InMemorySubmissionStore()
    return RedisSubmissionStore()

import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from directdebit.core.errors import ConflictError, DependencyError
from directdebit.core.state_machine import APPROVED, PENDING
from directdebit.store.models import Submission
from directdebit.store.submission_repo import (
    APPLIED,
    CONDITION_FAILED,
    MISSING,
    InMemorySubmissionStore,
    RedisSubmissionStore,
)


def _sub(sid="sub-1", **kw):
    data = dict(submissionId=sid, customerNumber="10001234567", postcode="AB1 2CD", email="a@b.com",
                organization="council-a", createdAt="2026-10-18T09:00:00.000Z")
    data.update(kw)
    return Submission(**data)


# --- in-memory backend ---

def test_memory_create_and_get():
    store = InMemorySubmissionStore()
    store.create(_sub())
    s = store.get("sub-1")
    assert s.customerNumber == "10001234567"
    assert s.status == PENDING
    assert store.get("other") is None


def test_memory_create_rejects_duplicate_id():
    store = InMemorySubmissionStore()
    store.create(_sub())
    with pytest.raises(ConflictError):
        store.create(_sub(email="x@y.com"))
    assert store.get("sub-1").email == "a@b.com"


def test_memory_conditional_update():
    store = InMemorySubmissionStore()
    store.create(_sub())

    assert store.update_conditional("sub-1", {"status": PENDING}, {"status": APPROVED}) == APPLIED
    assert store.update_conditional("sub-1", {"status": PENDING}, {"status": "failed"}) == CONDITION_FAILED
    assert store.get("sub-1").status == APPROVED
    assert store.update_conditional("missing", {}, {"status": APPROVED}) == MISSING


def test_memory_scan_returns_copies():
    store = InMemorySubmissionStore()
    store.create(_sub("a", status=APPROVED))
    store.create(_sub("b"))

    found = store.scan(lambda s: s.status == APPROVED)
    assert [s.submissionId for s in found] == ["a"]
    found[0].exported = True
    assert store.get("a").exported is False


# --- redis backend ---

def test_redis_create_uses_set_nx():
    r = MagicMock()
    r.set.return_value = True
    RedisSubmissionStore(client=r, prefix="submission:").create(_sub())

    args, kwargs = r.set.call_args
    assert args[0] == "submission:sub-1"
    assert json.loads(args[1])["customerNumber"] == "10001234567"
    assert kwargs == {"nx": True}


def test_redis_create_existing_key_conflicts():
    r = MagicMock()
    r.set.return_value = None
    with pytest.raises(ConflictError):
        RedisSubmissionStore(client=r, prefix="submission:").create(_sub())


def test_redis_get():
    r = MagicMock()
    r.get.return_value = json.dumps({**_sub().to_dict(), "legacyField": 1})
    s = RedisSubmissionStore(client=r, prefix="submission:").get("sub-1")

    r.get.assert_called_once_with("submission:sub-1")
    assert s.submissionId == "sub-1"

    r.get.return_value = None
    assert RedisSubmissionStore(client=r, prefix="submission:").get("sub-1") is None


@pytest.mark.parametrize("rc, expected", [(1, APPLIED), (0, CONDITION_FAILED), (-1, MISSING)])
def test_redis_update_conditional_runs_cas_script(rc, expected):
    r = MagicMock()
    r.eval.return_value = rc
    out = RedisSubmissionStore(client=r, prefix="submission:").update_conditional(
        "sub-1", {"status": PENDING}, {"status": APPROVED}
    )

    assert out == expected
    args = r.eval.call_args.args
    assert args[1:] == (1, "submission:sub-1", json.dumps({"status": PENDING}), json.dumps({"status": APPROVED}))


def test_redis_scan_filters_and_skips_vanished_keys():
    r = MagicMock()
    r.scan_iter.return_value = iter(["submission:a", "submission:b", "submission:c"])
    r.mget.return_value = [
        json.dumps(_sub("a", status=APPROVED).to_dict()),
        None,
        json.dumps(_sub("c").to_dict()),
    ]
    found = RedisSubmissionStore(client=r, prefix="submission:").scan(lambda s: s.status == APPROVED)

    assert [s.submissionId for s in found] == ["a"]
    r.scan_iter.assert_called_once_with(match="submission:*", count=200)
    r.mget.assert_called_once_with(["submission:a", "submission:b", "submission:c"])


@pytest.mark.parametrize("exc", [RedisTimeoutError("slow"), RedisConnectionError("down")])
def test_redis_errors_become_dependency_errors(exc):
    r = MagicMock()
    r.get.side_effect = exc
    r.eval.side_effect = exc
    store = RedisSubmissionStore(client=r, prefix="submission:")

    with pytest.raises(DependencyError) as ei:
        store.get("sub-1")
    assert ei.value.retryable is True
    with pytest.raises(DependencyError):
        store.update_conditional("sub-1", {}, {})

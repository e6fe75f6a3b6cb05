from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from directdebit.core.errors import DependencyError
from directdebit.utils.lock import LockNotAcquired, named_lock


def test_acquire_and_release():
    r = MagicMock()
    r.set.return_value = True
    with named_lock("export", ttl_ms=1000, client=r):
        args, kwargs = r.set.call_args
        assert args[0] == "lock:export"
        assert kwargs == {"px": 1000, "nx": True}
        r.eval.assert_not_called()

    token = r.set.call_args.args[1]
    assert r.eval.call_args.args[1:] == (1, "lock:export", token)


def test_held_lock():
    r = MagicMock()
    r.set.return_value = None
    with pytest.raises(LockNotAcquired):
        with named_lock("export", client=r):
            pass
    r.eval.assert_not_called()


def test_redis_down_on_acquire():
    r = MagicMock()
    r.set.side_effect = RedisConnectionError("down")
    with pytest.raises(DependencyError):
        with named_lock("export", client=r):
            pass


def test_release_failure_is_ignored():
    r = MagicMock()
    r.set.return_value = True
    r.eval.side_effect = RedisConnectionError("down")
    with named_lock("export", client=r):
        pass

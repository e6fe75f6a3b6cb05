from contextlib import contextmanager
import uuid
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from directdebit.core.errors import DependencyError
from directdebit.store.redis_conn import get_redis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    pass


@contextmanager
def named_lock(name: str, ttl_ms: int = 5000, client: Optional[Redis] = None):
    """
    Distributed single-holder lock (SET NX PX). Fails fast if held elsewhere;
    the TTL frees it if the holder dies.
    """
    r = client if client is not None else get_redis()
    key = f"lock:{name}"
    token = uuid.uuid4().hex
    try:
        acquired = r.set(key, token, px=ttl_ms, nx=True)
    except RedisError as e:
        raise DependencyError("lock store unavailable") from e
    if not acquired:
        raise LockNotAcquired(f"lock {name} is held by another worker")
    try:
        yield
    finally:
        # Release only if we still own it; the TTL covers a failed release
        try:
            r.eval(_RELEASE_SCRIPT, 1, key, token)
        except RedisError:
            pass

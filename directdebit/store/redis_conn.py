from redis import Redis
from directdebit.settings import settings


def get_redis() -> Redis:
    # Bounded socket timeouts: a stalled Redis surfaces as a retryable error, never a hang
    return Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.STORE_TIMEOUT_SEC,
        socket_connect_timeout=settings.STORE_TIMEOUT_SEC,
    )

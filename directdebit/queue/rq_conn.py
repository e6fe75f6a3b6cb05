from redis import Redis
from rq import Queue
from directdebit.settings import settings


def get_queue() -> Queue:
    conn = Redis.from_url(
        settings.REDIS_URL,
        socket_timeout=settings.STORE_TIMEOUT_SEC,
        socket_connect_timeout=settings.STORE_TIMEOUT_SEC,
    )
    return Queue(settings.RQ_QUEUE_NAME, connection=conn)

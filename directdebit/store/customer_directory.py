import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional

from redis import Redis
from redis.exceptions import RedisError

from directdebit.core.errors import DependencyError
from directdebit.observability.logging import log, log_error
from directdebit.settings import settings
from directdebit.store.redis_conn import get_redis

_WRITE_BATCH = 1000


@dataclass
class CustomerRecord:
    customer_number: str
    postcode: str
    organization: str


def _squash(postcode: str) -> str:
    return (postcode or "").replace(" ", "").upper()


class CustomerDirectory:
    def validate(self, customer_number: str, postcode: str) -> bool:
        """True iff the customer exists and the postcode matches (spaces ignored)."""
        raise NotImplementedError

    def replace_all(self, records: Iterable[CustomerRecord]) -> int:
        raise NotImplementedError


@contextmanager
def _redis_errors(op: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        log_error("customer_directory_error", e, op=op)
        raise DependencyError("customer directory unavailable") from e


class RedisCustomerDirectory(CustomerDirectory):
    """
    One Redis hash: customer_number -> "postcode|organization".
    replace_all() fills a staging hash and RENAMEs it over the live one, so
    lookups see either the old directory or the new one, never a mix.
    """

    def __init__(self, client: Optional[Redis] = None, key: Optional[str] = None):
        self._r = client if client is not None else get_redis()
        self._key = key or settings.CUSTOMERS_KEY

    def validate(self, customer_number: str, postcode: str) -> bool:
        with _redis_errors("validate"):
            raw = self._r.hget(self._key, customer_number)
        if not raw:
            return False
        stored_pc = raw.split("|", 1)[0]
        return _squash(stored_pc) == _squash(postcode)

    def replace_all(self, records: Iterable[CustomerRecord]) -> int:
        staging = f"{self._key}:staging"
        total = 0
        with _redis_errors("replace_all"):
            self._r.delete(staging)
            batch: Dict[str, str] = {}
            for rec in records:
                batch[rec.customer_number] = f"{rec.postcode}|{rec.organization}"
                if len(batch) >= _WRITE_BATCH:
                    self._r.hset(staging, mapping=batch)
                    total += len(batch)
                    log(event="customer_batch_written", written=total)
                    batch = {}
            if batch:
                self._r.hset(staging, mapping=batch)
                total += len(batch)
            if total:
                self._r.rename(staging, self._key)
            else:
                self._r.delete(self._key)
        return total


class InMemoryCustomerDirectory(CustomerDirectory):
    def __init__(self, records: Optional[Iterable[CustomerRecord]] = None):
        self._rows: Dict[str, CustomerRecord] = {}
        self._lock = threading.Lock()
        if records:
            self.replace_all(records)

    def validate(self, customer_number: str, postcode: str) -> bool:
        rec = self._rows.get(customer_number)
        return rec is not None and _squash(rec.postcode) == _squash(postcode)

    def replace_all(self, records: Iterable[CustomerRecord]) -> int:
        rows = {r.customer_number: r for r in records}
        with self._lock:
            self._rows = rows
        return len(rows)


def build_customer_directory() -> CustomerDirectory:
    if settings.STORE_BACKEND == "memory":
        return InMemoryCustomerDirectory()
    return RedisCustomerDirectory()

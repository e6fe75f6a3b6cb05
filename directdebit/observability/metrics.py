"""
Lifecycle counters backed by Redis (INCR / capped LPUSH), read by /admin/stats.
Recording is best-effort: a Redis hiccup is logged and never fails the
request that produced the metric.
"""
from __future__ import annotations
import time
from typing import List

from redis.exceptions import RedisError

from directdebit.observability.logging import log
from directdebit.settings import settings
from directdebit.store.redis_conn import get_redis

K_HANDOFF_CREATED = "metrics:handoff:created"
K_CB_APPROVED = "metrics:callback:approved"
K_CB_FAILED = "metrics:callback:failed"
K_CB_DUPLICATE = "metrics:callback:duplicate"
K_CB_CONFLICT = "metrics:callback:conflict"
K_EXPORT_RUNS = "metrics:export:runs"
K_EXPORT_RECORDS = "metrics:export:records"
K_EXPORT_LAT = "metrics:export:latencies"   # LPUSH ms

COUNTERS = {
    "handoffsCreated": K_HANDOFF_CREATED,
    "callbacksApproved": K_CB_APPROVED,
    "callbacksFailed": K_CB_FAILED,
    "callbacksDuplicate": K_CB_DUPLICATE,
    "callbacksConflict": K_CB_CONFLICT,
    "exportRuns": K_EXPORT_RUNS,
    "recordsExported": K_EXPORT_RECORDS,
}

_MAX_SAMPLES = 100

def _enabled() -> bool:
    # The memory backend runs without Redis; counters are not kept there
    return settings.STORE_BACKEND != "memory"

def _incr(key: str, amount: int = 1) -> None:
    if not _enabled():
        return
    try:
        get_redis().incr(key, amount)
    except RedisError as e:
        log(event="metrics_write_failed", key=key, errorType=type(e).__name__)

def increment_handoff_created() -> None:
    _incr(K_HANDOFF_CREATED)

def increment_callback(status: str) -> None:
    _incr(K_CB_APPROVED if status == "approved" else K_CB_FAILED)

def increment_callback_duplicate() -> None:
    _incr(K_CB_DUPLICATE)

def increment_callback_conflict() -> None:
    _incr(K_CB_CONFLICT)

def record_export(count: int, duration_ms: int) -> None:
    if not _enabled():
        return
    _incr(K_EXPORT_RUNS)
    if count:
        _incr(K_EXPORT_RECORDS, int(count))
    try:
        r = get_redis()
        r.lpush(K_EXPORT_LAT, int(duration_ms))
        r.ltrim(K_EXPORT_LAT, 0, _MAX_SAMPLES - 1)
    except RedisError as e:
        log(event="metrics_write_failed", key=K_EXPORT_LAT, errorType=type(e).__name__)

def _percentile(data: List[float], p: float) -> float:
    """Nearest-rank percentile on sorted data."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def get_stats_snapshot() -> dict:
    if _enabled():
        r = get_redis()
        counters = {name: int(r.get(key) or 0) for name, key in COUNTERS.items()}
        samples = r.lrange(K_EXPORT_LAT, 0, _MAX_SAMPLES - 1) or []
    else:
        counters = {name: 0 for name in COUNTERS}
        samples = []
    lat_s = []
    for x in samples:
        try:
            lat_s.append(float(x) / 1000.0)
        except (TypeError, ValueError):
            continue
    return {
        **counters,
        "p50_export_duration": round(_percentile(lat_s, 0.50), 3),
        "p95_export_duration": round(_percentile(lat_s, 0.95), 3),
        "snapshot_at": int(time.time()),
    }

from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from directdebit.observability import metrics
from directdebit.settings import settings


@pytest.fixture(autouse=True)
def redis_backend():
    with patch.object(settings, "STORE_BACKEND", "redis"):
        yield


def test_callback_counters():
    r = MagicMock()
    with patch("directdebit.observability.metrics.get_redis", return_value=r):
        metrics.increment_callback("approved")
        metrics.increment_callback("failed")
        metrics.increment_callback_duplicate()
        metrics.increment_handoff_created()

    assert [c.args for c in r.incr.call_args_list] == [
        (metrics.K_CB_APPROVED, 1),
        (metrics.K_CB_FAILED, 1),
        (metrics.K_CB_DUPLICATE, 1),
        (metrics.K_HANDOFF_CREATED, 1),
    ]


def test_record_export():
    r = MagicMock()
    with patch("directdebit.observability.metrics.get_redis", return_value=r):
        metrics.record_export(5, 1200)

    assert [c.args for c in r.incr.call_args_list] == [(metrics.K_EXPORT_RUNS, 1), (metrics.K_EXPORT_RECORDS, 5)]
    r.lpush.assert_called_once_with(metrics.K_EXPORT_LAT, 1200)
    r.ltrim.assert_called_once_with(metrics.K_EXPORT_LAT, 0, 99)


def test_metric_write_failure_is_swallowed():
    r = MagicMock()
    r.incr.side_effect = RedisConnectionError("down")
    r.lpush.side_effect = RedisConnectionError("down")
    with patch("directdebit.observability.metrics.get_redis", return_value=r), \
            patch("directdebit.observability.metrics.log") as log:
        metrics.increment_handoff_created()
        metrics.record_export(1, 10)
    assert {c.kwargs["event"] for c in log.call_args_list} == {"metrics_write_failed"}


def test_stats_snapshot():
    r = MagicMock()
    r.get.side_effect = lambda key: {metrics.K_HANDOFF_CREATED: "7", metrics.K_CB_APPROVED: "4"}.get(key)
    r.lrange.return_value = ["1000", "3000", "2000", "bad"]
    with patch("directdebit.observability.metrics.get_redis", return_value=r):
        snap = metrics.get_stats_snapshot()

    assert snap["handoffsCreated"] == 7
    assert snap["callbacksApproved"] == 4
    assert snap["callbacksConflict"] == 0
    assert snap["p50_export_duration"] == 2.0
    assert snap["p95_export_duration"] == 3.0
    assert isinstance(snap["snapshot_at"], int)


def test_memory_backend_never_touches_redis():
    with patch.object(settings, "STORE_BACKEND", "memory"), \
            patch("directdebit.observability.metrics.get_redis") as get_redis:
        metrics.increment_handoff_created()
        metrics.increment_callback("approved")
        metrics.record_export(3, 100)
        snap = metrics.get_stats_snapshot()

    get_redis.assert_not_called()
    assert snap["handoffsCreated"] == 0
    assert snap["p95_export_duration"] == 0.0

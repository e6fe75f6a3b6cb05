import threading
from contextlib import contextmanager

from directdebit.api.deps import build_export_encoder, get_blob_store, get_submission_store
from directdebit.observability.logging import log, log_error
from directdebit.settings import settings
from directdebit.utils.lock import LockNotAcquired, named_lock
import directdebit.observability.metrics as metrics

EXPORT_LOCK = "export"

_local_export_lock = threading.Lock()


@contextmanager
def export_lock():
    """Only one export run at a time: Redis lock, or a process lock for the memory backend."""
    if settings.STORE_BACKEND == "memory":
        if not _local_export_lock.acquire(blocking=False):
            raise LockNotAcquired("export already running in this process")
        try:
            yield
        finally:
            _local_export_lock.release()
        return
    with named_lock(EXPORT_LOCK, ttl_ms=settings.EXPORT_LOCK_TTL_MS):
        yield


def run_export_job() -> dict:
    """
    Background (RQ / cron) export run. A run that finds the lock taken is
    skipped; the running one covers the same records.
    """
    log(event="export_job_start")
    try:
        with export_lock():
            encoder = build_export_encoder(get_submission_store(), get_blob_store())
            result = encoder.run_export()
    except LockNotAcquired:
        log(event="export_job_skipped", reason="lock_held")
        return {"success": True, "skipped": True, "recordsExported": 0}
    except Exception as e:
        log_error("export_job_exception", e, limit=500)
        raise

    metrics.record_export(result.count, int(result.durationSeconds * 1000))
    log(event="export_job_done", recordsExported=result.count, fileName=result.fileKey or "")
    return {
        "success": True,
        "recordsExported": result.count,
        "fileName": result.fileKey,
        "fileSize": result.fileSize,
        "duration": f"{result.durationSeconds} seconds",
    }

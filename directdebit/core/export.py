"""
Export Encoder
--------------
Collects approved, not-yet-exported submissions, writes them as one
fixed-width file for the ERP and only then marks them exported.

Failure model:
- upload fails -> nothing is marked, the next run picks up the same set
- a mark fails after a good upload -> that record is exported again next run
  (the ERP de-duplicates; a duplicate file is acceptable, a lost record is not)
"""
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from directdebit.core.errors import DependencyError
from directdebit.core.fixed_width import encode_record
from directdebit.core.state_machine import APPROVED, is_exportable
from directdebit.observability.logging import log
from directdebit.store.blob_store import BlobStore
from directdebit.store.models import Submission
from directdebit.store.submission_repo import APPLIED, SubmissionStore
from directdebit.utils.time import date_stamp, parse_iso, to_iso, utc_now

EXPORT_FILE_PREFIX = "DIRECT_DEBIT_EXPORT_"
RECORD_SEPARATOR = "\n"


@dataclass
class ExportResult:
    count: int
    fileKey: Optional[str] = None
    fileSize: int = 0
    durationSeconds: float = 0.0
    exportedIds: List[str] = field(default_factory=list)


def export_file_key(run_at: datetime) -> str:
    return f"{EXPORT_FILE_PREFIX}{date_stamp(run_at)}.txt"


def submission_date_stamp(s: Submission, fallback: datetime) -> str:
    try:
        return date_stamp(parse_iso(s.createdAt))
    except (TypeError, ValueError):
        log(event="export_bad_created_at", submissionId=s.submissionId, createdAt=s.createdAt)
        return date_stamp(fallback)


def encode_submission(s: Submission, fallback: datetime) -> str:
    return encode_record(
        s.customerNumber,
        s.email,
        submission_date_stamp(s, fallback),
        record_id=s.submissionId,
    )


def _select(s: Submission) -> bool:
    return is_exportable(s.status, s.exported)


class ExportEncoder:
    def __init__(
        self,
        store: SubmissionStore,
        blobs: BlobStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        mark_concurrency: int = 8,
    ):
        self._store = store
        self._blobs = blobs
        self._clock = clock or utc_now
        self._mark_concurrency = max(1, int(mark_concurrency or 1))

    def run_export(self) -> ExportResult:
        t0 = time.monotonic()
        run_at = self._clock()

        records = self._store.scan(_select)
        log(event="export_selected", count=len(records))
        if not records:
            return ExportResult(count=0, durationSeconds=round(time.monotonic() - t0, 3))

        # Stable file order regardless of store iteration order
        records.sort(key=lambda s: (s.createdAt or "", s.submissionId))
        body = RECORD_SEPARATOR.join(encode_submission(s, run_at) for s in records)
        data = body.encode("utf-8")

        file_key = self._blobs.put(export_file_key(run_at), data, content_type="text/plain")
        log(event="export_uploaded", fileKey=file_key, records=len(records), bytes=len(data))

        marked = self._mark_exported([s.submissionId for s in records], to_iso(self._clock()))

        duration = round(time.monotonic() - t0, 3)
        log(event="export_completed", fileKey=file_key, records=len(records), marked=len(marked), durationSec=duration)
        return ExportResult(
            count=len(records),
            fileKey=file_key,
            fileSize=len(data),
            durationSeconds=duration,
            exportedIds=marked,
        )

    def _mark_one(self, submission_id: str, exported_at: str) -> bool:
        result = self._store.update_conditional(
            submission_id,
            expected={"status": APPROVED, "exported": False},
            changes={"exported": True, "exportedAt": exported_at},
        )
        if result != APPLIED:
            # Already marked by an overlapping run, or the record changed under us
            log(event="export_mark_skipped", submissionId=submission_id, result=result)
        return result == APPLIED

    def _mark_exported(self, ids: List[str], exported_at: str) -> List[str]:
        marked: List[str] = []
        failures = 0
        with ThreadPoolExecutor(max_workers=min(self._mark_concurrency, len(ids))) as pool:
            futures = {sid: pool.submit(self._mark_one, sid, exported_at) for sid in ids}
            for sid, fut in futures.items():
                try:
                    if fut.result():
                        marked.append(sid)
                except DependencyError:
                    failures += 1
        if failures:
            log(event="export_mark_failed", failed=failures, marked=len(marked))
            raise DependencyError("export file written but some records could not be marked exported")
        return marked

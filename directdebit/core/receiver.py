"""
Verification Receiver
---------------------
Applies the verification service's asynchronous result to a submission.

The service does not guarantee its callback encoding, so the body is parsed
as JSON first and as application/x-www-form-urlencoded second. Delivery is
at-least-once: a repeated callback with the same outcome is acknowledged
without a write, a callback contradicting an already-terminal status is
rejected with ConflictError and leaves the record untouched.
"""
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import parse_qsl

from directdebit.core.errors import ConflictError, NotFound, ValidationError
from directdebit.core.handoff import CORRELATION_FIELD
from directdebit.core.state_machine import APPROVED, FAILED, PENDING
from directdebit.observability.logging import log
from directdebit.store.submission_repo import APPLIED, MISSING, SubmissionStore
from directdebit.utils.time import to_iso, utc_now

STATUS_FIELD = "VerificationStatus"


@dataclass
class ReceiveOutcome:
    submissionId: str
    status: str
    duplicate: bool = False


def parse_callback_body(raw: Union[str, bytes, None]) -> Dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    text = (raw or "").strip()
    if not text:
        raise ValidationError("missing request body")

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except ValueError:
        pass

    data = dict(parse_qsl(text, keep_blank_values=True))
    if not data:
        raise ValidationError("unparseable request body")
    return data


def outcome_for(data: Dict[str, Any]) -> str:
    flag = data.get(STATUS_FIELD)
    if flag is True:
        return APPROVED
    if isinstance(flag, str) and flag.strip().lower() == "true":
        return APPROVED
    return FAILED


class VerificationReceiver:
    def __init__(self, store: SubmissionStore, clock: Optional[Callable[[], datetime]] = None):
        self._store = store
        self._clock = clock or utc_now

    def receive(self, raw_payload: Union[str, bytes, None]) -> ReceiveOutcome:
        data = parse_callback_body(raw_payload)

        submission_id = str(data.get(CORRELATION_FIELD) or "").strip()
        if not submission_id:
            log(event="callback_missing_token", fields=sorted(data.keys()))
            raise NotFound("missing correlation token", status_code=400)

        existing = self._store.get(submission_id)
        if existing is None:
            log(event="callback_unknown_submission", submissionId=submission_id)
            raise NotFound("unknown submission")

        status = outcome_for(data)
        if existing.status != PENDING:
            return self._settle_terminal(submission_id, existing.status, status)

        raw_text = raw_payload.decode("utf-8", errors="replace") if isinstance(raw_payload, (bytes, bytearray)) else raw_payload
        result = self._store.update_conditional(
            submission_id,
            expected={"status": PENDING},
            changes={
                "status": status,
                "verificationPayload": raw_text,
                "updatedAt": to_iso(self._clock()),
            },
        )
        if result == APPLIED:
            log(event="submission_verified", submissionId=submission_id, status=status)
            return ReceiveOutcome(submissionId=submission_id, status=status)
        if result == MISSING:
            raise NotFound("unknown submission")

        # Lost the race to a concurrent callback; judge against what it wrote
        current = self._store.get(submission_id)
        if current is None:
            raise NotFound("unknown submission")
        return self._settle_terminal(submission_id, current.status, status)

    def _settle_terminal(self, submission_id: str, current: str, incoming: str) -> ReceiveOutcome:
        if current == incoming:
            log(event="callback_duplicate", submissionId=submission_id, status=current)
            return ReceiveOutcome(submissionId=submission_id, status=current, duplicate=True)
        log(event="callback_conflict", submissionId=submission_id, current=current, incoming=incoming)
        raise ConflictError("submission already has a terminal status")

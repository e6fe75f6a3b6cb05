from fastapi import APIRouter, Depends

from directdebit.api.auth import require_admin
from directdebit.api.deps import get_submission_store
from directdebit.core.errors import NotFound
from directdebit.store.submission_repo import SubmissionStore
import directdebit.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])


def _mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def _mask_postcode(postcode: str) -> str:
    pc = (postcode or "").strip()
    return f"{pc[:2]}***" if pc else ""


@router.get("/submission/{submission_id}")
def get_submission_snapshot(
    submission_id: str,
    store: SubmissionStore = Depends(get_submission_store),
    _=Depends(require_admin),
):
    """Lifecycle snapshot for support staff, with customer PII masked."""
    s = store.get(submission_id)
    if s is None:
        raise NotFound("unknown submission")
    return {
        "submissionId": s.submissionId,
        "customerNumber": s.customerNumber,
        "postcode": _mask_postcode(s.postcode),
        "email": _mask_email(s.email),
        "formVariant": s.formVariant,
        "organization": s.organization,
        "status": s.status,
        "exported": bool(s.exported),
        "createdAt": s.createdAt,
        "updatedAt": s.updatedAt,
        "exportedAt": s.exportedAt,
        "hasVerificationPayload": bool(s.verificationPayload),
    }


@router.get("/stats")
def get_stats(_=Depends(require_admin)):
    return metrics.get_stats_snapshot()

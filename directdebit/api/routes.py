from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from directdebit.api.auth import require_api_key
from directdebit.api.deps import (
    build_export_encoder,
    build_handoff_builder,
    build_receiver,
    get_blob_store,
    get_customer_directory,
    get_secret_store,
    get_submission_store,
)
from directdebit.api.normalize import merge_params, normalize_handoff_params
from directdebit.api.schemas import (
    CallbackResponse,
    CustomerCheckResponse,
    EnqueueResponse,
    ErrorResponse,
    ExportResponse,
    HandoffResponse,
)
from directdebit.core.errors import ConflictError, ValidationError
from directdebit.core.export import ExportEncoder
from directdebit.core.handoff import HandoffBuilder, HandoffRequest
from directdebit.core.receiver import VerificationReceiver
from directdebit.core.validation import sanitize_customer_number, sanitize_postcode
from directdebit.observability.logging import log
from directdebit.queue.jobs import export_lock, run_export_job
from directdebit.queue.rq_conn import get_queue
from directdebit.store.blob_store import BlobStore
from directdebit.store.customer_directory import CustomerDirectory
from directdebit.store.secret_store import SecretStore
from directdebit.store.submission_repo import SubmissionStore
from directdebit.utils.lock import LockNotAcquired
import directdebit.observability.metrics as metrics

router = APIRouter()

ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_handoff_builder(
    store: SubmissionStore = Depends(get_submission_store),
    secrets: SecretStore = Depends(get_secret_store),
) -> HandoffBuilder:
    return build_handoff_builder(store, secrets)


def get_receiver(store: SubmissionStore = Depends(get_submission_store)) -> VerificationReceiver:
    return build_receiver(store)


def get_export_encoder(
    store: SubmissionStore = Depends(get_submission_store),
    blobs: BlobStore = Depends(get_blob_store),
) -> ExportEncoder:
    return build_export_encoder(store, blobs)


# ---------------------------------------------------------------------------
# Handoff: customer form -> encrypted redirect to the verification service
# ---------------------------------------------------------------------------
def _build_handoff(builder: HandoffBuilder, req: HandoffRequest):
    result = builder.build(req)
    metrics.increment_handoff_created()
    return result


@router.api_route("/handoff", methods=["GET", "POST"], response_model=HandoffResponse, responses=ERRORS)
async def handoff(request: Request, builder: HandoffBuilder = Depends(get_handoff_builder)):
    body = await request.body() if request.method == "POST" else b""
    req = normalize_handoff_params(merge_params(request.query_params, body))
    log(event="handoff_request", formVariant=req.formVariant or "", organization=req.organization or "")

    result = await run_in_threadpool(_build_handoff, builder, req)
    return HandoffResponse(
        submissionId=result.submissionId,
        redirectUrl=result.redirectUrl,
        encryptedData=result.encryptedData,
        formVariant=result.formVariant,
        organization=result.organization,
    )


# ---------------------------------------------------------------------------
# Verification callback from the external service
# ---------------------------------------------------------------------------
def _receive(receiver: VerificationReceiver, body: bytes):
    try:
        outcome = receiver.receive(body)
    except ConflictError:
        metrics.increment_callback_conflict()
        raise
    if outcome.duplicate:
        metrics.increment_callback_duplicate()
    else:
        metrics.increment_callback(outcome.status)
    return outcome


@router.post("/webhook/verification", response_model=CallbackResponse, responses=ERRORS)
async def verification_callback(request: Request, receiver: VerificationReceiver = Depends(get_receiver)):
    body = await request.body()
    outcome = await run_in_threadpool(_receive, receiver, body)
    return CallbackResponse(
        submissionId=outcome.submissionId,
        status=outcome.status,
        message=f"Submission {outcome.submissionId} updated with status: {outcome.status}",
    )


# ---------------------------------------------------------------------------
# ERP export (scheduler calls this once a day)
# ---------------------------------------------------------------------------
def _run_export(encoder: ExportEncoder):
    try:
        with export_lock():
            result = encoder.run_export()
    except LockNotAcquired:
        raise ConflictError("export already running") from None
    metrics.record_export(result.count, int(result.durationSeconds * 1000))
    return result


@router.post("/export", response_model=ExportResponse, responses=ERRORS, dependencies=[Depends(require_api_key)])
async def export(encoder: ExportEncoder = Depends(get_export_encoder)):
    result = await run_in_threadpool(_run_export, encoder)
    if result.count == 0:
        return ExportResponse(recordsExported=0, message="No records to export")
    return ExportResponse(
        recordsExported=result.count,
        fileName=result.fileKey,
        fileSize=result.fileSize,
        duration=f"{result.durationSeconds} seconds",
    )


@router.post(
    "/export/enqueue",
    status_code=202,
    response_model=EnqueueResponse,
    responses=ERRORS,
    dependencies=[Depends(require_api_key)],
)
def export_enqueue():
    job = get_queue().enqueue(run_export_job)
    log(event="export_enqueued", rq_job_id=getattr(job, "id", "") or "")
    return EnqueueResponse(jobId=str(getattr(job, "id", "") or ""))


# ---------------------------------------------------------------------------
# Customer pre-check used by the council forms before the handoff
# ---------------------------------------------------------------------------
@router.get("/validate-customer", response_model=CustomerCheckResponse, responses=ERRORS)
def validate_customer(
    customer_number: str = "",
    postcode: str = "",
    directory: CustomerDirectory = Depends(get_customer_directory),
):
    cn = sanitize_customer_number(customer_number.strip())
    pc = sanitize_postcode(postcode.strip())
    if not directory.validate(cn, pc):
        log(event="customer_no_match", organizationPrefix=cn[:4])
        raise ValidationError("No match for customer number and postcode")
    return CustomerCheckResponse(message="Valid customer and postcode")

"""
Handoff Builder
---------------
Turns a validated enrollment request into a pending Submission and the
redirect that sends the customer to the external verification form.

The outbound payload is a flat query string, encrypted with the
organization's shared secret and attached as the single `eData` parameter.
The submission id rides along as `CustomData`; the verification service
echoes it back in its callback (correlation token).
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from urllib.parse import quote

from directdebit.core import crypto
from directdebit.core.organizations import endpoint_url
from directdebit.core.state_machine import PENDING
from directdebit.core.validation import ValidatedCustomer, validate_handoff_input
from directdebit.observability.logging import log
from directdebit.store.models import Submission
from directdebit.store.secret_store import SecretStore
from directdebit.store.submission_repo import SubmissionStore
from directdebit.utils.time import to_iso, utc_now

CORRELATION_FIELD = "CustomData"
ENCRYPTED_PARAM = "eData"


@dataclass
class HandoffRequest:
    customerNumber: Optional[str] = None
    postcode: Optional[str] = None
    email: Optional[str] = None
    formVariant: Optional[str] = None
    organization: Optional[str] = None


@dataclass
class HandoffResult:
    submissionId: str
    redirectUrl: str
    encryptedData: str
    formVariant: str
    organization: str


def build_query_string(pairs: List[Tuple[str, str]]) -> str:
    # Values go in raw: the receiving form parses the decrypted string literally
    return "&".join(f"{k}={v}" for k, v in pairs)


def build_payload_fields(customer: ValidatedCustomer, submission_id: str, callback_url: str) -> List[Tuple[str, str]]:
    cn, pc, email = customer.customer_number, customer.postcode, customer.email
    fields = [
        ("customer_number", cn),
        ("postcode", pc),
        ("CurrentPostcode", pc),
        ("Email", email),
        ("EmailRetype", email),
        (CORRELATION_FIELD, submission_id),
        ("CallbackURL", callback_url),
    ]
    fields.extend(customer.organization.variant(customer.form_variant).flags_for(cn))
    return fields


class HandoffBuilder:
    def __init__(
        self,
        store: SubmissionStore,
        secrets: SecretStore,
        *,
        callback_url: str,
        verification_base_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self._store = store
        self._secrets = secrets
        self._callback_url = callback_url
        self._base_url = verification_base_url
        self._clock = clock or utc_now
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    def build(self, request: HandoffRequest) -> HandoffResult:
        customer = validate_handoff_input(
            request.customerNumber,
            request.postcode,
            request.email,
            form_variant=request.formVariant,
            organization=request.organization,
        )
        org = customer.organization

        # Secret and ciphertext first: a failure in either must not leave an orphan pending record
        shared_secret = self._secrets.get_secret(org.secret_path())

        submission_id = self._new_id()
        plaintext = build_query_string(build_payload_fields(customer, submission_id, self._callback_url))
        encrypted = crypto.encrypt(plaintext, shared_secret)

        now = to_iso(self._clock())
        submission = Submission(
            submissionId=submission_id,
            customerNumber=customer.customer_number,
            postcode=customer.postcode,
            email=customer.email,
            formVariant=customer.form_variant,
            organization=org.organization,
            status=PENDING,
            exported=False,
            createdAt=now,
            updatedAt=now,
        )
        self._store.create(submission)
        log(
            event="submission_created",
            submissionId=submission_id,
            organization=org.organization,
            formVariant=customer.form_variant,
        )

        base = endpoint_url(org, customer.form_variant, self._base_url)
        redirect_url = f"{base}?{ENCRYPTED_PARAM}={quote(encrypted, safe='')}"
        log(event="handoff_built", submissionId=submission_id, endpoint=base, encryptedLength=len(encrypted))

        return HandoffResult(
            submissionId=submission_id,
            redirectUrl=redirect_url,
            encryptedData=encrypted,
            formVariant=customer.form_variant,
            organization=org.organization,
        )

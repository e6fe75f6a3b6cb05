import re
from dataclasses import dataclass
from typing import Optional

from directdebit.core.errors import ValidationError
from directdebit.core.organizations import (
    CUSTOMER_NUMBER_PREFIXES,
    DEFAULT_FORM_VARIANT,
    FORM_VARIANTS,
    OrganizationSpec,
    organization_for,
)

CUSTOMER_NUMBER_RE = re.compile(r"^(%s)\d{7}$" % "|".join(CUSTOMER_NUMBER_PREFIXES))
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NON_DIGITS_RE = re.compile(r"[^0-9]")
_POSTCODE_STRIP_RE = re.compile(r"[^A-Z0-9 ]")

POSTCODE_MAX_LEN = 10
POSTCODE_MIN_CHARS = 5

MISSING_PARAMS = "Missing required parameters: customer-number, postcode, and email"


@dataclass
class ValidatedCustomer:
    customer_number: str
    postcode: str
    email: str
    form_variant: str
    organization: OrganizationSpec


def sanitize_customer_number(raw: str) -> str:
    cn = _NON_DIGITS_RE.sub("", raw or "")
    if not CUSTOMER_NUMBER_RE.match(cn):
        raise ValidationError("invalid customer number")
    return cn


def sanitize_postcode(raw: str) -> str:
    """Uppercase, keep A-Z/0-9/space, cap at 10 chars; needs 5+ non-space chars."""
    pc = _POSTCODE_STRIP_RE.sub("", (raw or "").upper())[:POSTCODE_MAX_LEN]
    if len(pc.replace(" ", "")) < POSTCODE_MIN_CHARS:
        raise ValidationError("invalid postcode")
    return pc


def validate_email(raw: str) -> str:
    email = (raw or "").strip()
    if not EMAIL_RE.match(email):
        raise ValidationError("invalid email")
    return email


def normalize_form_variant(raw: Optional[str]) -> str:
    if not raw:
        return DEFAULT_FORM_VARIANT
    fv = raw.strip().lower()
    if fv not in FORM_VARIANTS:
        raise ValidationError("invalid form variant")
    return fv


def resolve_organization(customer_number: str, requested: Optional[str] = None) -> OrganizationSpec:
    spec = organization_for(customer_number)
    if spec is None:
        raise ValidationError("unrecognized customer number prefix")
    if requested and requested.strip() and requested.strip() != spec.organization:
        raise ValidationError("organization mismatch")
    return spec


def validate_handoff_input(
    customer_number: Optional[str],
    postcode: Optional[str],
    email: Optional[str],
    form_variant: Optional[str] = None,
    organization: Optional[str] = None,
) -> ValidatedCustomer:
    if not customer_number or not postcode or not email:
        raise ValidationError(MISSING_PARAMS)

    cn = sanitize_customer_number(customer_number)
    pc = sanitize_postcode(postcode)
    em = validate_email(email)
    fv = normalize_form_variant(form_variant)
    spec = resolve_organization(cn, organization)
    return ValidatedCustomer(customer_number=cn, postcode=pc, email=em, form_variant=fv, organization=spec)

from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl

from directdebit.core.handoff import HandoffRequest


def _first(params: Mapping[str, str], *names: str) -> Optional[str]:
    for n in names:
        v = params.get(n)
        if v is not None and str(v).strip() != "":
            return str(v)
    return None


def merge_params(query: Mapping[str, str], body: bytes) -> Dict[str, str]:
    """
    Form-encoded body wins over query parameters; a GET (or an empty POST)
    falls back to the query string.
    """
    params = dict(query or {})
    text = (body or b"").decode("utf-8", errors="replace").strip()
    if text:
        params.update(dict(parse_qsl(text, keep_blank_values=True)))
    return params


def normalize_handoff_params(params: Mapping[str, str]) -> HandoffRequest:
    """
    Accepts the field spellings the council forms have used over time and maps
    them onto HandoffRequest:

      customer-number | customer_number | customerNumber
      form_type | formVariant | form_variant
      service | organization
    """
    return HandoffRequest(
        customerNumber=_first(params, "customer-number", "customer_number", "customerNumber"),
        postcode=_first(params, "postcode"),
        email=_first(params, "email"),
        formVariant=_first(params, "form_type", "formVariant", "form_variant"),
        organization=_first(params, "service", "organization"),
    )

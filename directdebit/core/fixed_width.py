"""
ERP direct-debit instruction record (606 columns)
-------------------------------------------------
Positions are 1-based and inclusive:

  1-2     record type                 "2", right-justified
  3-27    customer number             right-justified
  28-31   filler
  32-66   bank account (placeholder)  right-justified
  67-192  filler
  193-447 reference                   "AR_40_DDI_<YYYYMMDD> ##<email>## ", left-justified
  448-529 filler
  530-531 transaction type            "DD"
  532-559 filler
  560     status flag                 "W"
  561-606 filler

The account field has no data source yet; the ERP expects the span filled
with the fixed placeholder below until one exists.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from directdebit.observability.logging import log

RECORD_LENGTH = 606
RECORD_TYPE = "2"
ACCOUNT_PLACEHOLDER = "1234567890123456789012345"
REFERENCE_PREFIX = "AR_40_DDI_"
TRANSACTION_TYPE = "DD"
STATUS_FLAG = "W"

LEFT = "left"
RIGHT = "right"


@dataclass(frozen=True)
class Field:
    name: str
    width: int
    justify: str = LEFT
    # None means filler (all spaces)
    source: Optional[Callable[[Dict[str, str]], str]] = None


def _const(value: str) -> Callable[[Dict[str, str]], str]:
    return lambda _values: value


def reference_field(date_stamp: str, email: str) -> str:
    return f"{REFERENCE_PREFIX}{date_stamp} ##{email}## "


LAYOUT: List[Field] = [
    Field("record_type", 2, RIGHT, _const(RECORD_TYPE)),
    Field("customer_number", 25, RIGHT, lambda v: v["customer_number"]),
    Field("filler_1", 4),
    Field("bank_account", 35, RIGHT, _const(ACCOUNT_PLACEHOLDER)),
    Field("filler_2", 126),
    Field("reference", 255, LEFT, lambda v: reference_field(v["date_stamp"], v["email"])),
    Field("filler_3", 82),
    Field("transaction_type", 2, LEFT, _const(TRANSACTION_TYPE)),
    Field("filler_4", 28),
    Field("status_flag", 1, LEFT, _const(STATUS_FLAG)),
    Field("filler_5", 46),
]

_LAYOUT_WIDTH = sum(f.width for f in LAYOUT)
if _LAYOUT_WIDTH != RECORD_LENGTH:
    raise RuntimeError(f"export layout is {_LAYOUT_WIDTH} columns, expected {RECORD_LENGTH}")


def render_field(field: Field, value: str, record_id: str = "") -> str:
    if len(value) > field.width:
        log(
            event="export_field_truncated",
            submissionId=record_id,
            field=field.name,
            width=field.width,
            length=len(value),
        )
        value = value[: field.width]
    if field.justify == RIGHT:
        return value.rjust(field.width)
    return value.ljust(field.width)


def encode_record(customer_number: str, email: str, date_stamp: str, record_id: str = "") -> str:
    values = {"customer_number": customer_number or "", "email": email or "", "date_stamp": date_stamp}
    parts = []
    for field in LAYOUT:
        value = field.source(values) if field.source else ""
        parts.append(render_field(field, value, record_id))
    record = "".join(parts)

    if len(record) != RECORD_LENGTH:
        log(
            event="export_record_length_mismatch",
            submissionId=record_id,
            expected=RECORD_LENGTH,
            actual=len(record),
        )
        record = record[:RECORD_LENGTH].ljust(RECORD_LENGTH)
    return record

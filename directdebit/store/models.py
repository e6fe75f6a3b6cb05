import inspect
from dataclasses import dataclass, asdict
from typing import Optional

from directdebit.core.state_machine import PENDING

@dataclass
class Submission:
    # Core identifiers (immutable once stored)
    submissionId: str = ""
    customerNumber: str = ""
    postcode: str = ""
    email: str = ""

    # Which verification form the customer was sent to
    formVariant: str = "advisor"     # user/advisor
    organization: str = ""           # council-a/council-b

    # Lifecycle
    status: str = PENDING            # pending/approved/failed
    exported: bool = False

    # ISO-8601 UTC timestamps, set at the corresponding transition
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    exportedAt: Optional[str] = None

    # Raw verification callback body, stored verbatim for audit
    verificationPayload: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        # Drop unknown fields so Submission(**kwargs) never explodes on older records
        allowed = set(inspect.signature(cls).parameters.keys())
        kwargs = {k: v for k, v in (data or {}).items() if k in allowed}
        kwargs["exported"] = bool(kwargs.get("exported", False))
        return cls(**kwargs)

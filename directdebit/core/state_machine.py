# Submission status constants

# Created by the handoff; waiting for the verification service
PENDING = "pending"

# Verification service confirmed the customer (terminal)
APPROVED = "approved"

# Verification service rejected or returned anything else (terminal)
FAILED = "failed"

STATUSES = (PENDING, APPROVED, FAILED)
TERMINAL_STATUSES = (APPROVED, FAILED)

# pending -> approved | failed, nothing leaves a terminal status
ALLOWED_TRANSITIONS = {
    PENDING: (APPROVED, FAILED),
    APPROVED: (),
    FAILED: (),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, ())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_exportable(status: str, exported: bool) -> bool:
    """Export selection predicate: approved and not yet exported."""
    return status == APPROVED and not exported

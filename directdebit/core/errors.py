"""
Error taxonomy for the enrollment lifecycle.

Every failure a component can raise derives from GatewayError and carries the
HTTP status the API layer answers with. The message is short and safe to show
to a caller; anything more detailed goes to the log only.
"""


class GatewayError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(GatewayError):
    """Malformed or inconsistent input. Never retried by the system."""
    status_code = 400


class NotFound(GatewayError):
    """Unknown submission or missing correlation token."""
    status_code = 404


class ConflictError(GatewayError):
    """Attempted re-transition of a submission that is already terminal."""
    status_code = 409


class CryptoError(GatewayError):
    """Key derivation or randomness failure. Fatal for the request."""
    status_code = 500


class DependencyError(GatewayError):
    """Secret store, submission store or blob store unavailable or timed out."""
    status_code = 500
    retryable = True

"""
Structured event log: one JSON object per line on stdout.

With ENABLE_PII_REDACTION on, customer PII and handoff material are replaced
by a length marker before the line is written, also inside dict-valued fields.
"""
import json
import time
from typing import Any, Dict

from directdebit.settings import settings

SENSITIVE_KEYS = frozenset({"email", "postcode", "payload", "plaintext", "encryptedData", "redirectUrl"})
ERROR_TEXT_LIMIT = 300


def _mask(value):
    if isinstance(value, str) and value:
        return f"[REDACTED:{len(value)}chars]"
    if isinstance(value, dict):
        return {k: _mask(v) for k, v in value.items()}
    return value


def redact(fields: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in fields.items():
        if key in SENSITIVE_KEYS:
            out[key] = _mask(value)
        elif isinstance(value, dict):
            # one level deep
            out[key] = {k: (_mask(v) if k in SENSITIVE_KEYS else v) for k, v in value.items()}
        else:
            out[key] = value
    return out


def log(event: str, **fields):
    line = {"ts": int(time.time()), "event": event}
    line.update(redact(fields) if settings.ENABLE_PII_REDACTION else fields)
    print(json.dumps(line, ensure_ascii=False, default=str))


def log_error(event: str, exc: BaseException, limit: int = ERROR_TEXT_LIMIT, **fields):
    """log() for a caught exception: its type name plus a truncated message."""
    log(event=event, errorType=type(exc).__name__, error=str(exc)[:limit], **fields)

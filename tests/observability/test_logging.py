import json
from unittest.mock import patch

from directdebit.observability.logging import log
from directdebit.settings import settings


def _last_line(capsys):
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def test_log_is_one_json_line(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", False):
        log(event="submission_created", submissionId="sub-1", email="a@b.com")
    line = _last_line(capsys)
    assert line["event"] == "submission_created"
    assert line["submissionId"] == "sub-1"
    assert line["email"] == "a@b.com"
    assert isinstance(line["ts"], int)


def test_pii_is_redacted(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(event="x", submissionId="sub-1", email="a@b.com", ctx={"postcode": "AB1 2CD", "status": "pending"})
    line = _last_line(capsys)
    assert line["submissionId"] == "sub-1"
    assert line["email"] == "[REDACTED:7chars]"
    assert line["ctx"] == {"postcode": "[REDACTED:7chars]", "status": "pending"}


def test_log_error_truncates_message(capsys):
    from directdebit.observability.logging import log_error

    log_error("blob_store_error", OSError("x" * 400), op="put")
    line = _last_line(capsys)
    assert line["errorType"] == "OSError"
    assert len(line["error"]) == 300
    assert line["op"] == "put"

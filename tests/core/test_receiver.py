import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from directdebit.core.errors import ConflictError, NotFound, ValidationError
from directdebit.core.receiver import VerificationReceiver, outcome_for, parse_callback_body
from directdebit.core.state_machine import APPROVED, FAILED, PENDING
from directdebit.store.models import Submission
from directdebit.store.submission_repo import CONDITION_FAILED, InMemorySubmissionStore

CREATED = "2026-10-18T09:00:00.000Z"
FIXED = datetime(2026, 10, 18, 9, 45, 0, tzinfo=timezone.utc)


def _submission(sid="sub-1", status=PENDING, **kw):
    data = dict(
        submissionId=sid,
        customerNumber="10001234567",
        postcode="AB1 2CD",
        email="a@b.com",
        formVariant="advisor",
        organization="council-a",
        status=status,
        createdAt=CREATED,
        updatedAt=CREATED,
    )
    data.update(kw)
    return Submission(**data)


@pytest.fixture
def store():
    s = InMemorySubmissionStore()
    s.create(_submission())
    return s


@pytest.fixture
def receiver(store):
    return VerificationReceiver(store, clock=lambda: FIXED)


def test_json_true_approves(store, receiver):
    body = json.dumps({"CustomData": "sub-1", "VerificationStatus": "True"})
    out = receiver.receive(body)

    assert out.submissionId == "sub-1"
    assert out.status == APPROVED
    assert out.duplicate is False
    s = store.get("sub-1")
    assert s.status == APPROVED
    assert s.verificationPayload == body
    assert s.updatedAt == "2026-10-18T09:45:00.000Z"
    assert s.exported is False


def test_json_boolean_true_approves(store, receiver):
    receiver.receive(json.dumps({"CustomData": "sub-1", "VerificationStatus": True}))
    assert store.get("sub-1").status == APPROVED


def test_form_encoded_false_fails(store, receiver):
    body = b"CustomData=sub-1&VerificationStatus=False&Reason=declined"
    out = receiver.receive(body)

    assert out.status == FAILED
    s = store.get("sub-1")
    assert s.status == FAILED
    assert s.verificationPayload == body.decode()


@pytest.mark.parametrize("flag", ["false", "no", "", "1", None, False])
def test_anything_but_true_fails(flag):
    assert outcome_for({"VerificationStatus": flag}) == FAILED


def test_missing_flag_fails():
    assert outcome_for({"CustomData": "x"}) == FAILED


def test_same_outcome_twice_is_a_duplicate(store, receiver):
    first = json.dumps({"CustomData": "sub-1", "VerificationStatus": "True"})
    receiver.receive(first)
    out = receiver.receive("CustomData=sub-1&VerificationStatus=true")

    assert out.duplicate is True
    assert out.status == APPROVED
    # First payload is kept
    assert store.get("sub-1").verificationPayload == first


def test_contradicting_outcome_is_a_conflict(store, receiver):
    receiver.receive(json.dumps({"CustomData": "sub-1", "VerificationStatus": "True"}))
    before = store.get("sub-1").to_dict()

    with pytest.raises(ConflictError) as ei:
        receiver.receive(json.dumps({"CustomData": "sub-1", "VerificationStatus": "False"}))
    assert ei.value.status_code == 409
    assert store.get("sub-1").to_dict() == before


def test_unknown_submission(store, receiver):
    with pytest.raises(NotFound) as ei:
        receiver.receive(json.dumps({"CustomData": "nope", "VerificationStatus": "True"}))
    assert ei.value.status_code == 404
    assert store.get("sub-1").status == PENDING


def test_missing_token_is_a_bad_request(store, receiver):
    with pytest.raises(NotFound) as ei:
        receiver.receive(json.dumps({"VerificationStatus": "True"}))
    assert ei.value.status_code == 400
    assert store.get("sub-1").status == PENDING


@pytest.mark.parametrize("body", ["", "   ", None, b""])
def test_empty_body_rejected(receiver, body):
    with pytest.raises(ValidationError):
        receiver.receive(body)


def test_parse_prefers_json_then_form():
    assert parse_callback_body('{"CustomData": "a"}') == {"CustomData": "a"}
    assert parse_callback_body("CustomData=a&VerificationStatus=True") == {
        "CustomData": "a",
        "VerificationStatus": "True",
    }
    # JSON that is not an object falls through to form parsing
    assert parse_callback_body("[1, 2]") == {"[1, 2]": ""}


def test_lost_race_is_settled_against_the_winner():
    store = MagicMock()
    store.get.side_effect = [_submission(), _submission(status=APPROVED)]
    store.update_conditional.return_value = CONDITION_FAILED
    receiver = VerificationReceiver(store, clock=lambda: FIXED)

    out = receiver.receive("CustomData=sub-1&VerificationStatus=True")
    assert out.duplicate is True
    assert out.status == APPROVED

    store.get.side_effect = [_submission(), _submission(status=FAILED)]
    with pytest.raises(ConflictError):
        receiver.receive("CustomData=sub-1&VerificationStatus=True")


def test_transition_is_conditional_on_pending():
    store = MagicMock()
    store.get.return_value = _submission()
    store.update_conditional.return_value = "applied"

    VerificationReceiver(store, clock=lambda: FIXED).receive("CustomData=sub-1&VerificationStatus=True")

    args, kwargs = store.update_conditional.call_args
    assert args == ("sub-1",)
    assert kwargs["expected"] == {"status": PENDING}
    assert kwargs["changes"]["status"] == APPROVED

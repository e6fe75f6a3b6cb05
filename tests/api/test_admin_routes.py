from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from directdebit.api.deps import get_submission_store
from directdebit.main import app
from directdebit.settings import settings
from directdebit.store.models import Submission
from directdebit.store.submission_repo import InMemorySubmissionStore


@pytest.fixture
def client():
    store = InMemorySubmissionStore()
    store.create(Submission(
        submissionId="sub-1",
        customerNumber="10001234567",
        postcode="AB1 2CD",
        email="alice@example.com",
        organization="council-a",
        createdAt="2026-10-18T09:00:00.000Z",
        updatedAt="2026-10-18T09:00:00.000Z",
    ))
    app.dependency_overrides[get_submission_store] = lambda: store
    with patch.object(settings, "ADMIN_RBAC_ENABLED", True), patch.object(settings, "ADMIN_API_KEY", "adm"):
        yield TestClient(app)
    app.dependency_overrides.clear()


def test_submission_snapshot_masks_pii(client):
    r = client.get("/admin/submission/sub-1", headers={"x-admin-key": "adm"})
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "a***@example.com"
    assert body["postcode"] == "AB***"
    assert body["status"] == "pending"
    assert body["exported"] is False
    assert body["hasVerificationPayload"] is False


def test_submission_snapshot_unknown(client):
    r = client.get("/admin/submission/nope", headers={"x-admin-key": "adm"})
    assert r.status_code == 404
    assert r.json() == {"error": "unknown submission"}


def test_admin_key_required(client):
    assert client.get("/admin/submission/sub-1").status_code == 403
    assert client.get("/admin/submission/sub-1", headers={"x-admin-key": "wrong"}).status_code == 403


def test_admin_disabled_without_configured_key(client):
    with patch.object(settings, "ADMIN_API_KEY", ""):
        r = client.get("/admin/submission/sub-1", headers={"x-admin-key": "adm"})
    assert r.status_code == 403


def test_stats(client):
    with patch("directdebit.api.admin_routes.metrics.get_stats_snapshot", return_value={"handoffsCreated": 3}):
        r = client.get("/admin/stats", headers={"x-admin-key": "adm"})
    assert r.status_code == 200
    assert r.json() == {"handoffsCreated": 3}

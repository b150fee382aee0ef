"""
API tests through FastAPI's TestClient with an injected container.
"""

import time

import pytest
from fastapi.testclient import TestClient

from docseal.api.main import create_app
from tests.fakes import tampered_payloads

OWNER = {"X-User-Id": "owner-1"}
BANK = {"X-User-Id": "bank-1"}
REVIEWER = {"X-User-Id": "reviewer-1", "X-User-Role": "REVIEWER"}

SCAN = b"\xff\xd8\xff\xe0api-passport-scan"


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as c:
        yield c


def _upload(client, content=SCAN, document_type="PASSPORT", headers=OWNER, mime="image/jpeg"):
    return client.post(
        "/api/v1/documents",
        files={"file": ("passport.jpg", content, mime)},
        data={"document_type": document_type, "title": "My passport"},
        headers=headers,
    )


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["database"] == "SQLite"

    def test_cache_stats(self, client):
        _upload(client)
        stats = client.get("/api/v1/cache/stats").json()
        assert stats["backend"] == "memory"
        assert stats["entries"] == 1


class TestSubmission:

    def test_requires_identity(self, client):
        response = _upload(client, headers={})
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"

    def test_approved_upload_is_issued(self, client):
        response = _upload(client)
        assert response.status_code == 201
        data = response.json()
        assert data["decision"] == "APPROVED"
        assert data["status"] == "ISSUED"
        assert data["overall_score"] == 93
        assert data["issuance"]["issued"] is True
        assert data["issuance"]["attestation_ref"].startswith("att_")

    def test_reupload_is_deduplicated(self, client):
        first = _upload(client).json()
        second = _upload(client).json()
        assert second["deduplicated"] is True
        assert second["document_id"] == first["document_id"]

    def test_unknown_document_type(self, client):
        response = _upload(client, document_type="LIBRARY_CARD")
        assert response.status_code == 400
        assert "allowed" in response.json()["context"]

    def test_rejects_non_image_upload(self, client):
        response = _upload(client, mime="text/plain")
        assert response.status_code == 400

    def test_audit_history(self, client):
        document_id = _upload(client).json()["document_id"]
        actions = [e["action"] for e in client.get(f"/api/v1/documents/{document_id}/audit", headers=OWNER).json()]
        assert actions[0] == "document.submitted"
        assert "issuance.completed" in actions
        assert client.get(f"/api/v1/documents/{document_id}/audit", headers=BANK).status_code == 403


class TestAccess:

    def test_stranger_needs_a_grant(self, client):
        document_id = _upload(client).json()["document_id"]
        assert client.get(f"/api/v1/documents/{document_id}", headers=BANK).status_code == 403

        grant = client.post(
            "/api/v1/permissions",
            json={"document_id": document_id, "grantee_id": "bank-1", "access_type": "READ"},
            headers=OWNER,
        )
        assert grant.status_code == 201
        response = client.get(f"/api/v1/documents/{document_id}", headers=BANK)
        assert response.status_code == 200
        assert response.json()["status"] == "ISSUED"

        # READ does not imply VERIFY
        assert client.get(f"/api/v1/documents/{document_id}/forensic", headers=BANK).status_code == 403

    def test_revoked_grant_denies(self, client):
        document_id = _upload(client).json()["document_id"]
        permission = client.post(
            "/api/v1/permissions",
            json={"document_id": document_id, "grantee_id": "bank-1", "access_type": "VERIFY"},
            headers=OWNER,
        ).json()

        ownership = client.get(f"/api/v1/documents/{document_id}/verify-ownership", headers=BANK)
        assert ownership.status_code == 200
        assert ownership.json()["owned"] is True

        assert client.delete(f"/api/v1/permissions/{permission['id']}", headers=BANK).status_code == 403
        revoked = client.delete(f"/api/v1/permissions/{permission['id']}", headers=OWNER)
        assert revoked.json()["is_active"] is False

        check = client.get(
            "/api/v1/permissions/check",
            params={"document_id": document_id, "access_type": "VERIFY"},
            headers=BANK,
        )
        assert check.json()["granted"] is False

    def test_zero_lifetime_grant(self, client):
        document_id = _upload(client).json()["document_id"]
        client.post(
            "/api/v1/permissions",
            json={"document_id": document_id, "grantee_id": "bank-1", "access_type": "READ", "expires_in": 0},
            headers=OWNER,
        )
        check = client.get(
            "/api/v1/permissions/check",
            params={"document_id": document_id, "access_type": "READ"},
            headers=BANK,
        )
        assert check.json()["granted"] is False

    def test_shared_with_me(self, client):
        document_id = _upload(client).json()["document_id"]
        client.post(
            "/api/v1/permissions",
            json={"document_id": document_id, "grantee_id": "bank-1", "access_type": "READ"},
            headers=OWNER,
        )
        shared = client.get("/api/v1/permissions", headers=BANK).json()
        assert [p["document_id"] for p in shared] == [document_id]

    def test_cleanup_needs_reviewer(self, client):
        assert client.post("/api/v1/permissions/cleanup", headers=OWNER).status_code == 403
        assert client.post("/api/v1/permissions/cleanup", headers=REVIEWER).json() == {"count": 0}


class TestReview:

    def test_review_flow(self, client, analysis):
        analysis.payloads = tampered_payloads()
        document_id = _upload(client).json()["document_id"]

        assert client.get("/api/v1/review-queue", headers=OWNER).status_code == 403
        queue = client.get("/api/v1/review-queue", headers=REVIEWER).json()
        assert [d["id"] for d in queue] == [document_id]

        missing_comments = client.post(
            f"/api/v1/documents/{document_id}/review", json={"action": "REJECT"}, headers=REVIEWER
        )
        assert missing_comments.status_code == 400

        approved = client.post(
            f"/api/v1/documents/{document_id}/review", json={"action": "APPROVE"}, headers=REVIEWER
        ).json()
        assert approved["decision"]["state"] == "APPROVED"
        assert approved["issuance"]["issuance_pending"] is True

        retried = client.post(
            f"/api/v1/documents/{document_id}/issuance/retry",
            files={"file": ("passport.jpg", SCAN, "image/jpeg")},
            headers=OWNER,
        ).json()
        assert retried["issued"] is True
        assert retried["stages_run"] == ["ARCHIVE"]

    def test_batch_review(self, client, analysis):
        analysis.payloads = tampered_payloads()
        document_id = _upload(client).json()["document_id"]

        response = client.post(
            "/api/v1/review-queue/batch",
            json={"actions": [
                {"document_id": document_id, "action": "REJECT", "comments": "forged seal"},
                {"document_id": "missing", "action": "APPROVE"},
            ]},
            headers=REVIEWER,
        ).json()
        assert (response["total"], response["processed"], response["failed"]) == (2, 1, 1)
        assert response["results"][0]["status"] == "REJECTED"


class TestBatches:

    def test_batch_upload(self, client):
        files = [("files", (f"scan-{i}.jpg", f"scan-{i}".encode(), "image/jpeg")) for i in range(2)]
        started = client.post("/api/v1/batches", files=files, data={"document_type": "PASSPORT"}, headers=OWNER)
        assert started.status_code == 202
        batch_id = started.json()["batch_id"]

        for _ in range(100):
            status = client.get(f"/api/v1/batches/{batch_id}", headers=OWNER).json()
            if status["state"] == "COMPLETED":
                break
            time.sleep(0.02)
        assert status["state"] == "COMPLETED"
        assert status["completed"] == 2
        assert all(item["decision"] == "APPROVED" for item in status["items"])

        assert client.get(f"/api/v1/batches/{batch_id}", headers=BANK).status_code == 404

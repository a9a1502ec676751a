"""Integration tests for /admin/legal/policies endpoints."""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from policyhub.app.api.dependencies import get_policy_service
from policyhub.app.lifecycle.service import PolicyService
from policyhub.app.main import app

BASE = "/admin/legal/policies"
AUTH = {"Authorization": "Bearer legal@example.com"}


@pytest.fixture
def client(service: PolicyService) -> Generator[TestClient, None, None]:
    """Test client wired to an in-memory service."""
    app.dependency_overrides[get_policy_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_terms(client: TestClient) -> dict[str, Any]:
    response = client.post(
        BASE,
        json={"title": "Terms of Service", "slug": "terms", "category": "terms"},
        headers=AUTH,
    )
    assert response.status_code == 201
    return response.json()["document"]


def create_version(client: TestClient, document_id: str, content: str = "Body") -> str:
    response = client.post(f"{BASE}/{document_id}/versions", json={"content": content}, headers=AUTH)
    assert response.status_code == 201
    versions = response.json()["versions"]
    return max(versions, key=lambda v: (v["locale"] == "en", v["version"]))["id"]


def publish(client: TestClient, document_id: str, content: str = "Body") -> str:
    version_id = create_version(client, document_id, content)
    for action in ("submit", "approve", "publish"):
        response = client.post(f"{BASE}/{document_id}/versions/{version_id}/{action}", headers=AUTH)
        assert response.status_code == 200, response.json()
    return version_id


class TestDocumentEndpoints:
    """Test document CRUD endpoints."""

    def test_create_and_get_by_slug(self, client: TestClient) -> None:
        document = create_terms(client)

        response = client.get(f"{BASE}/terms")

        assert response.status_code == 200
        data = response.json()
        assert data["document"]["id"] == document["id"]
        assert data["document"]["status"] == "draft"
        assert data["versions"] is None
        assert data["from_cache"] is False

    def test_get_with_versions_and_audit(self, client: TestClient) -> None:
        document = create_terms(client)
        create_version(client, document["id"])

        response = client.get(
            f"{BASE}/terms", params={"include_versions": "true", "include_audit": "true"}
        )

        data = response.json()
        assert len(data["versions"]) == 1
        assert [event["action"] for event in data["audit_events"]] == [
            "version.created",
            "document.created",
        ]
        assert data["audit_events"][0]["actor_id"] == "legal@example.com"

    def test_list_and_summary(self, client: TestClient) -> None:
        create_terms(client)
        client.post(BASE, json={"title": "Privacy Policy", "category": "privacy", "region": "EU"})

        listing = client.get(BASE).json()
        summary = client.get(f"{BASE}/summary").json()

        assert [view["document"]["slug"] for view in listing["documents"]] == [
            "privacy-policy",
            "terms",
        ]
        assert summary["total"] == 2
        assert summary["active"] == 0
        assert sorted(summary["categories"]) == ["privacy", "terms"]

    def test_patch_document(self, client: TestClient) -> None:
        document = create_terms(client)

        response = client.patch(
            f"{BASE}/{document['id']}", json={"tags": ["Marketplace"]}, headers=AUTH
        )

        assert response.status_code == 200
        assert response.json()["document"]["tags"] == ["Marketplace"]

    def test_no_header_uses_dev_actor(self, client: TestClient) -> None:
        document = create_terms(client)
        client.patch(f"{BASE}/{document['id']}", json={"summary": "Platform rules"})

        events = client.get(f"{BASE}/{document['id']}/audit").json()["events"]

        assert events[0]["action"] == "document.updated"
        assert events[0]["actor_id"] == "admin@policyhub.local"


class TestVersionEndpoints:
    """Test version lifecycle endpoints."""

    def test_full_lifecycle_to_active(self, client: TestClient) -> None:
        document = create_terms(client)
        version_id = publish(client, document["id"])

        response = client.post(
            f"{BASE}/{document['id']}/versions/{version_id}/activate", headers=AUTH
        )

        assert response.status_code == 200
        data = response.json()
        assert data["document"]["status"] == "active"
        assert data["document"]["active_version_id"] == version_id
        assert data["versions"][0]["published_at"] is not None

    def test_activate_with_stale_revision_conflicts(self, client: TestClient) -> None:
        document = create_terms(client)
        version_id = publish(client, document["id"])
        revision = client.get(f"{BASE}/terms").json()["locale_revisions"]["en"]

        response = client.post(
            f"{BASE}/{document['id']}/versions/{version_id}/activate",
            json={"expected_revision": revision - 1},
            headers=AUTH,
        )

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "conflict"

    def test_patch_version(self, client: TestClient) -> None:
        document = create_terms(client)
        version_id = create_version(client, document["id"], "Old")

        response = client.patch(
            f"{BASE}/{document['id']}/versions/{version_id}",
            json={"content": "New", "external_url": "https://example.com/terms.pdf"},
            headers=AUTH,
        )

        assert response.status_code == 200
        version = response.json()["versions"][0]
        assert version["content"] == "New"
        assert version["external_url"] == "https://example.com/terms.pdf"

    def test_archive_endpoint(self, client: TestClient) -> None:
        document = create_terms(client)
        version_id = create_version(client, document["id"])

        response = client.post(
            f"{BASE}/{document['id']}/versions/{version_id}/archive", headers=AUTH
        )

        assert response.status_code == 200
        assert response.json()["versions"][0]["status"] == "archived"

    def test_audit_pagination(self, client: TestClient) -> None:
        document = create_terms(client)
        publish(client, document["id"])

        first = client.get(f"{BASE}/{document['id']}/audit", params={"limit": 3}).json()
        second = client.get(
            f"{BASE}/{document['id']}/audit", params={"limit": 3, "cursor": first["next_cursor"]}
        ).json()

        assert [e["action"] for e in first["events"]] == [
            "version.published",
            "version.approved",
            "version.submitted",
        ]
        assert [e["action"] for e in second["events"]] == ["version.created", "document.created"]
        assert second["next_cursor"] is None


class TestErrorMapping:
    """Test domain errors render as {"error": {...}} with the right status."""

    def test_validation_error_422(self, client: TestClient) -> None:
        response = client.post(BASE, json={"title": "Terms", "category": "marketing"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["kind"] == "validation_error"
        assert error["details"] == {"category": "marketing"}

    def test_non_ascii_cadence_422(self, client: TestClient) -> None:
        response = client.post(
            BASE, json={"title": "Terms", "metadata": {"reviewCadenceDays": "²"}}
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"] == {"field": "reviewCadenceDays"}

    def test_summary_slug_reserved_422(self, client: TestClient) -> None:
        response = client.post(BASE, json={"title": "Summary"})

        assert response.status_code == 422
        assert response.json()["error"]["details"] == {"slug": "summary"}

    def test_malformed_body_422_same_shape(self, client: TestClient) -> None:
        response = client.post(BASE, json={"slug": "no-title"})

        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "validation_error"

    def test_illegal_transition_409(self, client: TestClient) -> None:
        document = create_terms(client)
        version_id = create_version(client, document["id"])

        response = client.post(f"{BASE}/{document['id']}/versions/{version_id}/publish")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["kind"] == "illegal_transition"
        assert error["details"]["current"] == "draft"
        assert error["details"]["attempted"] == "published"

    def test_invalid_state_409(self, client: TestClient) -> None:
        document = create_terms(client)
        version_id = create_version(client, document["id"])

        response = client.post(f"{BASE}/{document['id']}/versions/{version_id}/activate")

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "invalid_state"

    def test_duplicate_slug_409(self, client: TestClient) -> None:
        create_terms(client)

        response = client.post(BASE, json={"title": "Terms again", "slug": "terms"})

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "conflict"

    def test_not_found_404(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/missing")

        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "not_found"

    def test_bad_cursor_422(self, client: TestClient) -> None:
        document = create_terms(client)

        response = client.get(f"{BASE}/{document['id']}/audit", params={"cursor": "garbage"})

        assert response.status_code == 422

    def test_bad_auth_header_401(self, client: TestClient) -> None:
        response = client.post(
            BASE, json={"title": "Terms"}, headers={"Authorization": "Token abc"}
        )

        assert response.status_code == 401

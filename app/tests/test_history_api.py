"""HTTP tests for the history endpoints."""
import pytest
from fastapi.testclient import TestClient

from app.main import app
from auth.service import create_session, create_user


def _login(name, email):
    user = create_user(name=name, email=email, password="secret123")
    session = create_session(user.id)
    return {"Authorization": f"Bearer {session.id}"}


def _save_body(final="AI", ai=85.42, real=14.58, url="https://img.test/a.jpg"):
    return {
        "imageType": "url",
        "imageUrl": url,
        "result": {
            "aiProbability": ai,
            "realProbability": real,
            "final": final,
            "processingTime": 1288.52,
            "metaInfo": {"filename": "a.jpg", "format": "JPEG", "width": 800, "height": 1066},
        },
    }


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def alice():
    return _login("Alice", "alice@example.com")


@pytest.fixture
def bob():
    return _login("Bob", "bob@example.com")


class TestAuthRequired:
    """Every history route rejects anonymous callers."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/history"),
            ("get", "/api/history"),
            ("get", "/history/stats"),
            ("get", "/history/some-id"),
            ("delete", "/history?id=some-id"),
        ],
    )
    def test_anonymous_is_401(self, client, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_anonymous_save_is_401(self, client):
        response = client.post("/history", json=_save_body())
        assert response.status_code == 401

    def test_unknown_token_is_401(self, client):
        response = client.get("/history", headers={"Authorization": "Bearer not-a-session"})
        assert response.status_code == 401


class TestSaveAndList:
    """POST /history then GET /history."""

    def test_save_returns_201_with_record(self, client, alice):
        response = client.post("/history", json=_save_body(), headers=alice)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["userEmail"] == "alice@example.com"
        assert data["userName"] == "Alice"
        assert data["finalResult"] == "AI"
        assert data["imageMetadata"]["height"] == 1066

    def test_owner_fields_in_body_ignored(self, client, alice):
        body = _save_body()
        body["userId"] = "someone-else"
        body["userEmail"] = "victim@example.com"

        data = client.post("/history", json=body, headers=alice).json()["data"]
        assert data["userEmail"] == "alice@example.com"

    def test_read_your_writes(self, client, alice):
        saved = client.post("/history", json=_save_body(), headers=alice).json()["data"]
        listed = client.get("/history", headers=alice).json()

        assert listed["success"] is True
        assert listed["data"][0]["_id"] == saved["_id"]
        assert listed["pagination"]["total"] == 1

    def test_invalid_body_is_400(self, client, alice):
        response = client.post("/history", json=_save_body(ai=150), headers=alice)

        assert response.status_code == 400
        assert "aiProbability" in response.json()["details"]

    def test_invalid_final_is_400(self, client, alice):
        response = client.post("/history", json=_save_body(final="MAYBE"), headers=alice)
        assert response.status_code == 400

    def test_url_type_without_url_is_400(self, client, alice):
        body = _save_body()
        body["imageUrl"] = None
        response = client.post("/history", json=body, headers=alice)
        assert response.status_code == 400

    def test_pagination_params(self, client, alice):
        for _ in range(3):
            client.post("/history", json=_save_body(), headers=alice)

        page = client.get("/history?limit=2&skip=0", headers=alice).json()
        assert len(page["data"]) == 2
        assert page["pagination"] == {"total": 3, "limit": 2, "skip": 0, "hasMore": True}

    def test_non_numeric_limit_defaults(self, client, alice):
        page = client.get("/history?limit=abc&skip=xyz", headers=alice).json()

        assert page["pagination"]["limit"] == 50
        assert page["pagination"]["skip"] == 0

    def test_limit_capped(self, client, alice):
        page = client.get("/history?limit=100000", headers=alice).json()
        assert page["pagination"]["limit"] == 100

    def test_users_see_only_their_own(self, client, alice, bob):
        client.post("/history", json=_save_body(), headers=alice)
        client.post("/history", json=_save_body(), headers=bob)
        client.post("/history", json=_save_body(), headers=bob)

        alice_page = client.get("/history", headers=alice).json()
        assert alice_page["pagination"]["total"] == 1
        assert {r["userEmail"] for r in alice_page["data"]} == {"alice@example.com"}


class TestGetOne:
    """GET /history/{id}."""

    def test_own_record(self, client, alice):
        saved = client.post("/history", json=_save_body(), headers=alice).json()["data"]
        response = client.get(f"/history/{saved['id']}", headers=alice)

        assert response.status_code == 200
        assert response.json()["data"]["id"] == saved["id"]

    def test_foreign_record_is_404(self, client, alice, bob):
        saved = client.post("/history", json=_save_body(), headers=alice).json()["data"]
        response = client.get(f"/history/{saved['id']}", headers=bob)

        assert response.status_code == 404
        assert response.json()["error"] == "History not found or unauthorized"


class TestStats:
    """GET /history/stats."""

    def test_counts(self, client, alice):
        client.post("/history", json=_save_body(final="AI"), headers=alice)
        client.post("/history", json=_save_body(final="REAL", ai=10, real=90), headers=alice)

        data = client.get("/history/stats", headers=alice).json()["data"]
        assert data == {"total": 2, "ai": 1, "real": 1}


class TestDelete:
    """DELETE /history?id=..."""

    def test_missing_id_is_400(self, client, alice):
        response = client.delete("/history", headers=alice)

        assert response.status_code == 400
        assert response.json()["details"] == "History ID is required"

    def test_delete_own(self, client, alice):
        saved = client.post("/history", json=_save_body(), headers=alice).json()["data"]
        response = client.delete(f"/history?id={saved['id']}", headers=alice)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "History deleted successfully"}
        assert client.get("/history", headers=alice).json()["pagination"]["total"] == 0

    def test_delete_twice_is_404(self, client, alice):
        saved = client.post("/history", json=_save_body(), headers=alice).json()["data"]

        assert client.delete(f"/history?id={saved['id']}", headers=alice).status_code == 200
        assert client.delete(f"/history?id={saved['id']}", headers=alice).status_code == 404

    def test_cross_user_delete_is_404_and_record_survives(self, client, alice, bob):
        saved = client.post("/history", json=_save_body(), headers=alice).json()["data"]

        response = client.delete(f"/history?id={saved['id']}", headers=bob)
        assert response.status_code == 404

        page = client.get("/history", headers=alice).json()
        assert [r["id"] for r in page["data"]] == [saved["id"]]

    def test_api_prefix_alias(self, client, alice):
        saved = client.post("/api/history", json=_save_body(), headers=alice).json()["data"]
        assert client.delete(f"/api/history?id={saved['id']}", headers=alice).status_code == 200

"""
HTTP Tests for the Wallet API

Tests cover:
1. Sign up / sign in / sign out
2. Authenticated transaction submission and account summary
3. Error category to status code mapping
4. Storage lifecycle tied to application startup and shutdown
"""

import pytest
from fastapi.testclient import TestClient

from wallet.api import create_app, extract_token
from wallet.config import Settings
from wallet.storage import InMemoryStorage


SETTINGS = Settings(bcrypt_rounds=4, log_json=False, log_level="WARNING")


@pytest.fixture
def client():
    with TestClient(create_app(SETTINGS)) as test_client:
        yield test_client


def sign_up_and_in(client: TestClient, name: str = "maria") -> dict:
    email = f"{name}@example.com"
    response = client.post("/signup", json={"name": name, "email": email, "password": "pass-123"})
    assert response.status_code == 201
    response = client.post("/signin", json={"email": email, "password": "pass-123"})
    assert response.status_code == 200
    return {"Authorization": response.json()["token"]}


class TestAuthEndpoints:
    """Tests for the signup / signin / signout routes."""

    def test_health(self, client):
        """Test that the health check answers."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_signup_conflict(self, client):
        """Test that a taken name is a 409."""
        sign_up_and_in(client)

        response = client.post(
            "/signup", json={"name": "maria", "email": "new@example.com", "password": "pass-123"}
        )

        assert response.status_code == 409

    def test_signup_invalid_email(self, client):
        """Test that a malformed email is rejected by request validation."""
        response = client.post("/signup", json={"name": "x", "email": "not-an-email", "password": "p"})

        assert response.status_code == 422

    def test_signin_errors(self, client):
        """Test unknown email (404) and wrong password (401)."""
        sign_up_and_in(client)

        unknown = client.post("/signin", json={"email": "nobody@example.com", "password": "p"})
        wrong = client.post("/signin", json={"email": "maria@example.com", "password": "wrong"})

        assert unknown.status_code == 404
        assert wrong.status_code == 401

    def test_signin_returns_name(self, client):
        """Test that sign in returns the display name and a token."""
        email = "joao@example.com"
        client.post("/signup", json={"name": "joao", "email": email, "password": "pass-123"})

        body = client.post("/signin", json={"email": email, "password": "pass-123"}).json()

        assert body["name"] == "joao"
        assert body["token"]

    def test_signout(self, client):
        """Test that a signed-out token is refused afterwards."""
        headers = sign_up_and_in(client)

        assert client.post("/signout", headers=headers).status_code == 204
        assert client.get("/account", headers=headers).status_code == 401


class TestLedgerEndpoints:
    """Tests for the authenticated ledger routes."""

    def test_requires_token(self, client):
        """Test that ledger routes reject missing or unknown tokens."""
        assert client.get("/account").status_code == 401
        assert client.get("/account", headers={"Authorization": "bogus"}).status_code == 401
        response = client.post(
            "/transactions", json={"kind": "credit", "magnitude": 1, "description": "x"}
        )
        assert response.status_code == 401

    def test_new_account_is_empty(self, client):
        """Test that a new account reports zero balance and no transactions."""
        headers = sign_up_and_in(client)

        body = client.get("/account", headers=headers).json()

        assert body["balance"] == 0
        assert body["transactions"] == []

    def test_salary_and_groceries(self, client):
        """Test the summary after a credit of 100 and a debit of 30."""
        headers = sign_up_and_in(client)

        first = client.post(
            "/transactions", headers=headers,
            json={"kind": "credit", "magnitude": 100, "description": "salary"},
        )
        second = client.post(
            "/transactions", headers=headers,
            json={"kind": "debit", "magnitude": 30, "description": "groceries"},
        )
        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json()["kind"] == "credit"

        body = client.get("/account", headers=headers).json()
        assert body == {
            "balance": 70,
            "transactions": [
                {"kind": "credit", "magnitude": 100, "description": "salary"},
                {"kind": "debit", "magnitude": 30, "description": "groceries"},
            ],
        }

    def test_money_is_sent_as_json_numbers(self, client):
        """Test that balances and magnitudes are JSON numbers, not strings."""
        headers = sign_up_and_in(client)

        created = client.post(
            "/transactions", headers=headers,
            json={"kind": "credit", "magnitude": 12.5, "description": "refund"},
        ).json()
        summary = client.get("/account", headers=headers).json()
        history = client.get("/account/history", headers=headers).json()

        assert created["magnitude"] == 12.5
        assert isinstance(summary["balance"], (int, float))
        assert summary["balance"] + 1 == 13.5
        assert isinstance(summary["transactions"][0]["magnitude"], (int, float))
        assert isinstance(history["current_balance"], (int, float))
        assert history["entries"][0]["magnitude"] == 12.5

    def test_bearer_token_accepted(self, client):
        """Test that a Bearer-prefixed token is accepted."""
        headers = sign_up_and_in(client)
        bearer = {"Authorization": f"Bearer {headers['Authorization']}"}

        assert client.get("/account", headers=bearer).status_code == 200

    def test_invalid_kind_is_400(self, client):
        """Test that a kind outside credit / debit is a 400."""
        headers = sign_up_and_in(client)

        response = client.post(
            "/transactions", headers=headers,
            json={"kind": "entrada", "magnitude": 10, "description": "x"},
        )

        assert response.status_code == 400

    @pytest.mark.parametrize("payload", [
        {"kind": "credit", "magnitude": 0, "description": "x"},
        {"kind": "debit", "magnitude": -5, "description": "x"},
        {"kind": "credit", "magnitude": 5, "description": "   "},
        {"kind": "credit", "magnitude": "abc", "description": "x"},
        {"kind": "credit", "description": "x"},
    ])
    def test_validation_failures_are_422(self, client, payload):
        """Test that invalid transactions are 422 and leave the balance alone."""
        headers = sign_up_and_in(client)

        response = client.post("/transactions", headers=headers, json=payload)

        assert response.status_code == 422
        body = client.get("/account", headers=headers).json()
        assert body["balance"] == 0

    def test_history(self, client):
        """Test history ordering, limit and the query parameter bounds."""
        headers = sign_up_and_in(client)
        for description in ["a", "b", "c"]:
            client.post(
                "/transactions", headers=headers,
                json={"kind": "credit", "magnitude": 1, "description": description},
            )

        body = client.get("/account/history?limit=2", headers=headers).json()

        assert body["total_count"] == 3
        assert [e["description"] for e in body["entries"]] == ["c", "b"]
        assert client.get("/account/history?limit=0", headers=headers).status_code == 422
        assert client.get("/account/history?offset=-1", headers=headers).status_code == 422

    def test_users_are_isolated(self, client):
        """Test that one user never sees another user's transactions."""
        maria = sign_up_and_in(client, "maria")
        joao = sign_up_and_in(client, "joao")

        client.post(
            "/transactions", headers=maria,
            json={"kind": "credit", "magnitude": 10, "description": "gift"},
        )

        body = client.get("/account", headers=joao).json()
        assert body["transactions"] == []


class TestLifecycle:
    """Tests for storage startup and shutdown."""

    def test_storage_opened_and_closed_with_app(self):
        """Test that storage opens at startup and closes at shutdown."""
        storage = InMemoryStorage()
        app = create_app(SETTINGS, storage=storage)

        with TestClient(app) as client:
            assert storage.is_open
            assert client.app.state.storage is storage

        assert not storage.is_open


class TestExtractToken:
    @pytest.mark.parametrize("header,expected", [
        (None, None),
        ("", None),
        ("abc", "abc"),
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
    ])
    def test_extract_token(self, header, expected):
        """Test raw and Bearer forms of the Authorization header."""
        assert extract_token(header) == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

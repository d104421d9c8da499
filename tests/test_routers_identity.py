class TestCreateKey:
    def test_creates_key(self, api_client):
        resp = api_client.post("/identity/keys", json={"email": "a@b.com"})
        assert resp.status_code == 201
        data = resp.json()
        assert len(data["apiKey"]) == 64
        assert data["email"] == "a@b.com"
        assert "createdAt" in data

    def test_reports_backend(self, api_client):
        resp = api_client.post("/identity/keys", json={"email": "a@b.com"})
        assert resp.headers["X-Identity-Backend"] == "fallback"

    def test_missing_email_returns_400(self, api_client):
        resp = api_client.post("/identity/keys", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Email is required"

    def test_missing_body_returns_400(self, api_client):
        resp = api_client.post("/identity/keys")
        assert resp.status_code == 400

    def test_two_calls_same_email_give_distinct_keys(self, api_client):
        first = api_client.post("/identity/keys", json={"email": "a@b.com"}).json()["apiKey"]
        second = api_client.post("/identity/keys", json={"email": "a@b.com"}).json()["apiKey"]
        assert first != second


class TestAddTokens:
    def _key(self, api_client, email="x@y.com"):
        return api_client.post("/identity/keys", json={"email": email}).json()["apiKey"]

    def test_adds_tokens(self, api_client, services):
        key = self._key(api_client)
        resp = api_client.post(
            "/identity/tokens",
            headers={"X-API-Key": key},
            json={"accessToken": "access", "refreshToken": "refresh"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Provider tokens added successfully"
        assert data["user"]["email"] == "x@y.com"
        assert "apiKey" not in data["user"]

    def test_missing_api_key_returns_401(self, api_client):
        resp = api_client.post("/identity/tokens", json={"accessToken": "a", "refreshToken": "r"})
        assert resp.status_code == 401

    def test_unknown_api_key_returns_403(self, api_client):
        resp = api_client.post(
            "/identity/tokens", headers={"X-API-Key": "nope"}, json={"accessToken": "a", "refreshToken": "r"}
        )
        assert resp.status_code == 403

    def test_empty_tokens_return_400(self, api_client):
        key = self._key(api_client)
        resp = api_client.post(
            "/identity/tokens", headers={"X-API-Key": key}, json={"accessToken": "", "refreshToken": ""}
        )
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_missing_refresh_token_returns_400(self, api_client):
        key = self._key(api_client)
        resp = api_client.post("/identity/tokens", headers={"X-API-Key": key}, json={"accessToken": "a"})
        assert resp.status_code == 400

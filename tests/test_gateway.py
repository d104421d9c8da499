import asyncio

import pytest

from drivegate.gateway import bearer_token, extract_api_key


class _FakeRequest:
    def __init__(self, headers=None, query_params=None):
        self.headers = headers or {}
        self.query_params = query_params or {}


class TestExtraction:
    def test_header_wins(self):
        request = _FakeRequest({"X-API-Key": "from-header"}, {"apiKey": "from-query"})
        assert extract_api_key(request) == "from-header"

    def test_api_key_query_param(self):
        assert extract_api_key(_FakeRequest(query_params={"apiKey": "q1"})) == "q1"

    def test_key_query_param(self):
        assert extract_api_key(_FakeRequest(query_params={"key": "q2"})) == "q2"

    def test_missing(self):
        assert extract_api_key(_FakeRequest()) is None

    def test_bearer_token(self):
        assert bearer_token(_FakeRequest({"Authorization": "Bearer tok"})) == "tok"

    def test_bearer_scheme_is_case_insensitive(self):
        assert bearer_token(_FakeRequest({"Authorization": "bearer tok"})) == "tok"

    def test_other_schemes_ignored(self):
        assert bearer_token(_FakeRequest({"Authorization": "Basic abc"})) is None
        assert bearer_token(_FakeRequest({"Authorization": "Bearer "})) is None
        assert bearer_token(_FakeRequest()) is None


class TestRequireUser:
    def test_missing_key_returns_401(self, api_client):
        resp = api_client.get("/embed/file/file123")
        assert resp.status_code == 401
        assert "error" in resp.json()

    def test_unknown_key_returns_403(self, api_client):
        resp = api_client.get("/embed/file/file123", headers={"X-API-Key": "unknown"})
        assert resp.status_code == 403
        assert "error" in resp.json()

    def test_slow_lookup_returns_504(self, api_client, services, mocker):
        async def slow_lookup(api_key):
            await asyncio.sleep(5)

        services.settings.auth_timeout = 0.05
        mocker.patch.object(services.identity, "get_user_by_api_key", new=slow_lookup)
        resp = api_client.get("/embed/file/file123", headers={"X-API-Key": "whatever"})
        assert resp.status_code == 504
        assert resp.json()["error_code"] == "timeout"

    def test_valid_key_in_query_param(self, api_client):
        key = api_client.post("/identity/keys", json={"email": "a@b.com"}).json()["apiKey"]
        resp = api_client.get(f"/embed/file/file123?apiKey={key}")
        assert resp.status_code == 200

    @pytest.mark.parametrize("param", ["apiKey", "key"])
    def test_both_query_param_names(self, api_client, param):
        key = api_client.post("/identity/keys", json={"email": "a@b.com"}).json()["apiKey"]
        resp = api_client.get(f"/embed/file/file123?{param}={key}")
        assert resp.status_code == 200

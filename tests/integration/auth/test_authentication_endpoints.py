"""
Integration tests for authentication through API endpoints.

Tests authentication using FastAPI TestClient.
"""

from typing import Any, Callable, Dict

from fastapi.testclient import TestClient

from conftest import OTHER_TOKEN, VALID_TOKEN, RecordingSink, auth_headers, wait_until
from logjam.config import Settings


class TestAuthenticationEndpoints:
    """Test authentication through API endpoints."""

    def test_valid_token_authentication(
        self,
        test_client: TestClient,
        recording_sink: RecordingSink,
        valid_log_entry: Dict[str, Any],
    ) -> None:
        """Test API endpoint with valid authentication."""
        response = test_client.post("/log", json=valid_log_entry, headers=auth_headers(VALID_TOKEN))

        assert response.status_code == 200
        assert response.text == "ok\n"
        assert wait_until(lambda: len(recording_sink.records) == 1)

    def test_every_configured_token_is_accepted(self, test_client: TestClient) -> None:
        """Test each token of the comma-separated list authenticates."""
        for token in (VALID_TOKEN, OTHER_TOKEN):
            response = test_client.put("/log?a=1", headers=auth_headers(token))
            assert response.status_code == 200

    def test_invalid_token_authentication(
        self,
        test_client: TestClient,
        recording_sink: RecordingSink,
        valid_log_entry: Dict[str, Any],
    ) -> None:
        """Test API endpoint with invalid authentication."""
        response = test_client.post("/log", json=valid_log_entry, headers=auth_headers("invalid_token_123"))

        assert response.status_code == 401

        response_data = response.json()
        assert response_data["error"] == "authentication_error"
        assert "Invalid" in response_data["message"]
        assert recording_sink.records == []

    def test_missing_token_header(self, test_client: TestClient, valid_log_entry: Dict[str, Any]) -> None:
        """Test API endpoint with missing authentication."""
        response = test_client.post("/log", json=valid_log_entry)

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"
        assert "Missing" in response.json()["message"]

    def test_every_ingest_route_requires_token(self, test_client: TestClient) -> None:
        """Test PUT /log, POST /log and POST /multi all reject anonymous callers."""
        assert test_client.put("/log?a=1").status_code == 401
        assert test_client.post("/log", json={"a": 1}).status_code == 401
        assert test_client.post("/multi", json=[{"a": 1}]).status_code == 401

    def test_auth_checked_before_body(self, test_client: TestClient) -> None:
        """Test an unauthenticated request is refused before decoding."""
        response = test_client.post(
            "/log",
            content=b"x" * 5000,
            headers={"content-type": "application/xml", "x-logjam-token": "nope"},
        )

        assert response.status_code == 401

    def test_token_is_case_sensitive(self, test_client: TestClient) -> None:
        """Test token comparison is exact."""
        response = test_client.put("/log?a=1", headers=auth_headers(VALID_TOKEN.upper()))

        assert response.status_code == 401


class TestEmptyTokenConfiguration:
    """Test the empty-configuration edge case over HTTP."""

    def test_empty_config_rejects_empty_token(
        self,
        make_client: Callable[..., TestClient],
        recording_sink: RecordingSink,
    ) -> None:
        """Test an empty token list does not admit an empty token."""
        client = make_client(Settings(tokens=""), recording_sink)

        response = client.put("/log?a=1", headers=auth_headers(""))

        assert response.status_code == 401

    def test_allow_empty_token_admits_empty_token(
        self,
        make_client: Callable[..., TestClient],
        recording_sink: RecordingSink,
    ) -> None:
        """Test the reference behavior can be restored explicitly."""
        client = make_client(Settings(tokens="", allow_empty_token=True), recording_sink)

        assert client.put("/log?a=1", headers=auth_headers("")).status_code == 200
        assert client.put("/log?a=1", headers=auth_headers("other")).status_code == 401
        assert client.put("/log?a=1").status_code == 401

    def test_custom_token_header(
        self,
        make_client: Callable[..., TestClient],
        recording_sink: RecordingSink,
    ) -> None:
        """Test the token header name is configurable."""
        client = make_client(Settings(tokens="alpha", token_header="x-api-token"), recording_sink)

        assert client.put("/log?a=1", headers={"x-api-token": "alpha"}).status_code == 200
        assert client.put("/log?a=1", headers={"x-logjam-token": "alpha"}).status_code == 401

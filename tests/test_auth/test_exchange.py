"""Tests for the token exchange client and response classification."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from tokenkeep.auth.exchange import TokenExchangeClient, parse_token_response
from tokenkeep.exceptions import (
    EmptyTokenError,
    InvalidResponseError,
    NoRefreshTokenError,
    TokenEndpointError,
    TransportError,
)
from tokenkeep.exit_codes import EXIT_AUTH_FAILURE, EXIT_CONNECTION_ERROR, EXIT_SERVER_ERROR
from tokenkeep.models import MAX_EXPIRES_IN

from conftest import TOKEN_URL, make_site, token_response

POST = "tokenkeep.auth.exchange.httpx.post"


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------


class TestExchangeCode:
    def test_posts_authorization_code_grant(self) -> None:
        site = make_site()
        with patch(POST, return_value=token_response()) as mock_post:
            result = TokenExchangeClient().exchange_code(site, "the-code")

        assert result.access_token == "T1"
        assert result.refresh_token == "R1"
        assert result.expires_in == 3600

        mock_post.assert_called_once()
        call = mock_post.call_args
        assert call.args[0] == TOKEN_URL
        assert call.kwargs["data"] == {
            "client_id": "client-1",
            "client_secret": "secret-1",
            "code": "the-code",
            "redirect_uri": "urn:ietf:wg:oauth:2.0:oob",
            "grant_type": "authorization_code",
        }
        assert call.kwargs["headers"] == {"Accept": "application/json"}

    def test_does_not_touch_site(self) -> None:
        site = make_site()
        before = site.model_dump()
        with patch(POST, return_value=token_response()):
            TokenExchangeClient().exchange_code(site, "code")
        assert site.model_dump() == before


class TestRefresh:
    def test_posts_refresh_token_grant(self) -> None:
        site = make_site(refresh_token="R0")
        with patch(POST, return_value=token_response({"access_token": "T2", "expires_in": 600})) as mock_post:
            result = TokenExchangeClient().refresh(site)

        assert result.access_token == "T2"
        assert result.refresh_token is None
        assert mock_post.call_args.kwargs["data"] == {
            "client_id": "client-1",
            "client_secret": "secret-1",
            "refresh_token": "R0",
            "grant_type": "refresh_token",
        }

    def test_no_refresh_token_sends_nothing(self) -> None:
        with patch(POST) as mock_post:
            with pytest.raises(NoRefreshTokenError):
                TokenExchangeClient().refresh(make_site(refresh_token=""))
        mock_post.assert_not_called()

    def test_timeout_passed_through(self) -> None:
        with patch(POST, return_value=token_response()) as mock_post:
            TokenExchangeClient(timeout=7.5).refresh(make_site(refresh_token="R0"))
        assert mock_post.call_args.kwargs["timeout"] == 7.5


class TestTransportFailures:
    def test_connect_error(self) -> None:
        with patch(POST, side_effect=httpx.ConnectError("connection refused")):
            with pytest.raises(TransportError, match="connection refused") as excinfo:
                TokenExchangeClient().refresh(make_site(refresh_token="R0"))
        assert excinfo.value.exit_code == EXIT_CONNECTION_ERROR

    def test_timeout(self) -> None:
        with patch(POST, side_effect=httpx.ReadTimeout("timed out")):
            with pytest.raises(TransportError):
                TokenExchangeClient().exchange_code(make_site(), "code")


# ---------------------------------------------------------------------------
# Response classification
# ---------------------------------------------------------------------------


class TestParseTokenResponse:
    def test_success(self) -> None:
        result = parse_token_response(token_response())
        assert result.access_token == "T1"

    def test_endpoint_error(self) -> None:
        response = token_response(
            {"error": "invalid_grant", "error_description": "Token has been revoked."},
            status_code=400,
        )
        with pytest.raises(TokenEndpointError) as excinfo:
            parse_token_response(response)
        assert excinfo.value.code == "invalid_grant"
        assert excinfo.value.description == "Token has been revoked."
        assert "invalid_grant" in str(excinfo.value)
        assert excinfo.value.exit_code == EXIT_AUTH_FAILURE

    def test_error_field_wins_even_on_200(self) -> None:
        with pytest.raises(TokenEndpointError) as excinfo:
            parse_token_response(token_response({"error": "invalid_client", "access_token": "T"}))
        assert excinfo.value.code == "invalid_client"
        assert excinfo.value.description == ""

    def test_empty_error_field_ignored(self) -> None:
        result = parse_token_response(token_response({"error": "", "access_token": "T"}))
        assert result.access_token == "T"

    def test_http_error_without_error_field(self) -> None:
        with pytest.raises(TokenEndpointError) as excinfo:
            parse_token_response(token_response({"message": "nope"}, status_code=503))
        assert excinfo.value.code == "http_503"

    def test_empty_access_token(self) -> None:
        with pytest.raises(EmptyTokenError) as excinfo:
            parse_token_response(token_response({"access_token": "", "expires_in": 10}))
        assert excinfo.value.exit_code == EXIT_SERVER_ERROR

    def test_missing_access_token(self) -> None:
        with pytest.raises(EmptyTokenError):
            parse_token_response(token_response({"token_type": "Bearer"}))

    def test_non_json_body(self) -> None:
        response = token_response(content=b"<html>Bad Gateway</html>", status_code=502)
        with pytest.raises(InvalidResponseError) as excinfo:
            parse_token_response(response)
        assert excinfo.value.status_code == 502

    def test_json_array_body(self) -> None:
        with pytest.raises(InvalidResponseError, match="expected an object"):
            parse_token_response(token_response(["access_token"]))

    def test_wrong_access_token_type(self) -> None:
        with pytest.raises(InvalidResponseError, match="Malformed"):
            parse_token_response(token_response({"access_token": {"nested": True}}))

    def test_expires_in_out_of_range(self) -> None:
        response = token_response({"access_token": "T", "expires_in": 10**12})
        with pytest.raises(InvalidResponseError, match="Malformed") as excinfo:
            parse_token_response(response)
        assert excinfo.value.exit_code == EXIT_SERVER_ERROR

    def test_expires_in_at_cap_accepted(self) -> None:
        result = parse_token_response(
            token_response({"access_token": "T", "expires_in": MAX_EXPIRES_IN})
        )
        assert result.expires_in == MAX_EXPIRES_IN

"""Tests for cdev.platform.http module."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

from cdev.core.result import Err, Ok
from cdev.platform.http import HttpClient, HttpError, MockHttpClient, UrllibHttpClient


class _Response(io.BytesIO):
    def __enter__(self) -> _Response:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class TestHttpError:
    def test_str_with_status(self) -> None:
        error = HttpError(url="https://x/y", status=404, message="Not Found")
        assert str(error) == "HTTP 404: Not Found (https://x/y)"

    def test_str_without_status(self) -> None:
        error = HttpError(url="https://x/y", status=0, message="refused")
        assert str(error) == "refused (https://x/y)"

    def test_classification(self) -> None:
        assert HttpError("u", 404, "").is_not_found
        assert HttpError("u", 401, "").is_auth_failure
        assert HttpError("u", 403, "").is_auth_failure
        assert not HttpError("u", 500, "").is_auth_failure
        assert not HttpError("u", 500, "").is_not_found


class TestUrllibHttpClient:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(UrllibHttpClient(), HttpClient)

    @patch("urllib.request.urlopen")
    def test_get_with_params(self, mock_open: MagicMock) -> None:
        mock_open.return_value = _Response(b'{"login": "octo"}')

        result = UrllibHttpClient().request_json(
            "GET", "https://api.example/user", params={"access_token": "t k"}
        )

        assert result == Ok({"login": "octo"})
        req = mock_open.call_args.args[0]
        assert req.full_url == "https://api.example/user?access_token=t+k"
        assert req.get_method() == "GET"

    @patch("urllib.request.urlopen")
    def test_post_json_body(self, mock_open: MagicMock) -> None:
        mock_open.return_value = _Response(b'{"name": "demo"}')

        UrllibHttpClient().request_json("POST", "https://api.example/repos", body={"name": "demo"})

        req = mock_open.call_args.args[0]
        assert json.loads(req.data) == {"name": "demo"}
        assert req.get_header("Content-type") == "application/json"

    @patch("urllib.request.urlopen")
    def test_empty_body_is_none(self, mock_open: MagicMock) -> None:
        mock_open.return_value = _Response(b"  ")
        assert UrllibHttpClient().request_json("GET", "https://x") == Ok(None)

    @patch("urllib.request.urlopen")
    def test_http_error_keeps_status(self, mock_open: MagicMock) -> None:
        mock_open.side_effect = urllib.error.HTTPError(
            "https://x", 401, "Unauthorized", hdrs=None, fp=None  # type: ignore[arg-type]
        )

        result = UrllibHttpClient().request_json("GET", "https://x")

        assert isinstance(result, Err)
        assert result.error.status == 401
        assert result.error.is_auth_failure

    @patch("urllib.request.urlopen")
    def test_network_error_has_no_status(self, mock_open: MagicMock) -> None:
        mock_open.side_effect = urllib.error.URLError("connection refused")

        result = UrllibHttpClient().request_json("GET", "https://x")

        assert isinstance(result, Err)
        assert result.error.status == 0
        assert "connection refused" in result.error.message

    @patch("urllib.request.urlopen")
    def test_invalid_json(self, mock_open: MagicMock) -> None:
        mock_open.return_value = _Response(b"<html>")

        result = UrllibHttpClient().request_json("GET", "https://x")

        assert isinstance(result, Err)
        assert "JSON parse error" in result.error.message


class TestMockHttpClient:
    def test_unknown_url_is_404(self) -> None:
        client = MockHttpClient()
        result = client.request_json("GET", "https://x/none")
        assert isinstance(result, Err)
        assert result.error.is_not_found

    def test_canned_response_and_recording(self) -> None:
        client = MockHttpClient()
        client.respond("POST", "https://x/repos", {"name": "demo"})

        result = client.request_json("POST", "https://x/repos", body={"name": "demo"})

        assert result == Ok({"name": "demo"})
        assert len(client.calls_to("POST")) == 1
        assert client.calls_to("GET") == []
        assert client.calls[0].body == {"name": "demo"}

    def test_canned_error(self) -> None:
        client = MockHttpClient()
        client.respond("GET", "https://x/user", HttpError("https://x/user", 500, "boom"))
        result = client.request_json("GET", "https://x/user")
        assert isinstance(result, Err)
        assert result.error.status == 500

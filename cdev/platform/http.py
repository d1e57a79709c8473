"""JSON-over-HTTP client abstraction.

This module provides:
- HttpClient: Protocol for JSON requests (injectable for tests)
- UrllibHttpClient: Real implementation using urllib
- MockHttpClient: Canned responses for testing

Host adapters and the relay API only need "send a request, get JSON back, or
an error with the HTTP status". The status is kept on the error so callers can
tell a 404 (resource absent) from everything else.
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

from cdev.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpMethod",
    "MockHttpClient",
    "RecordedRequest",
    "UrllibHttpClient",
]

HttpMethod = Literal["GET", "POST"]

_DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_auth_failure(self) -> bool:
        return self.status in (401, 403)


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for JSON HTTP requests."""

    def request_json(
        self,
        method: HttpMethod,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        """Send a request and decode the JSON response body.

        Args:
            method: HTTP method
            url: Absolute URL without query string
            headers: Extra request headers
            params: Query string parameters
            body: JSON request body (POST)

        Returns:
            Ok with the decoded JSON (None for an empty body), or Err with HttpError
        """
        ...


class UrllibHttpClient:
    """Real HTTP client using urllib.

    Handles:
    - HTTPS with system certificates
    - JSON request bodies and responses
    - Timeout handling
    """

    def __init__(
        self,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = "cdev-cli",
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def request_json(
        self,
        method: HttpMethod,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        full_url = url
        if params:
            full_url = f"{url}?{urllib.parse.urlencode(params)}"

        all_headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        all_headers.update(headers or {})
        data: bytes | None = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            all_headers["Content-Type"] = "application/json"

        try:
            req = urllib.request.Request(full_url, data=data, headers=all_headers, method=method)
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                raw: bytes = response.read()
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

        if not raw.strip():
            return Ok(None)
        try:
            return Ok(json.loads(raw.decode("utf-8")))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))


@dataclass(frozen=True, slots=True)
class RecordedRequest:
    """A request seen by MockHttpClient."""

    method: HttpMethod
    url: str
    headers: dict[str, str]
    params: dict[str, str]
    body: dict[str, object] | None


def _empty_requests() -> list[RecordedRequest]:
    return []


def _empty_responses() -> dict[tuple[str, str], object | HttpError]:
    return {}


@dataclass
class MockHttpClient:
    """Mock HTTP client for testing.

    Responses are keyed by (method, url); unknown keys answer 404.

    Usage:
        client = MockHttpClient()
        client.respond("GET", "https://api.github.com/user", {"login": "octo"})
        result = client.request_json("GET", "https://api.github.com/user")
        assert result == Ok({"login": "octo"})
    """

    responses: dict[tuple[str, str], object | HttpError] = field(default_factory=_empty_responses)
    calls: list[RecordedRequest] = field(default_factory=_empty_requests)

    def respond(self, method: HttpMethod, url: str, response: object | HttpError) -> None:
        """Set the response for (method, url)."""
        self.responses[(method, url)] = response

    def request_json(
        self,
        method: HttpMethod,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        self.calls.append(
            RecordedRequest(
                method=method,
                url=url,
                headers=dict(headers or {}),
                params=dict(params or {}),
                body=body,
            )
        )
        key = (method, url)
        if key not in self.responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = self.responses[key]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def calls_to(self, method: HttpMethod) -> list[RecordedRequest]:
        """Recorded calls with the given method."""
        return [c for c in self.calls if c.method == method]

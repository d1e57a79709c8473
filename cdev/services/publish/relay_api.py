"""Build relay REST lookups.

The relay answers ``{"code": 0, "data": [...]}``; a non-zero code means the
lookup itself failed.
"""

from __future__ import annotations

from cdev.core.result import Err, Ok, Result
from cdev.core.structured import as_obj_list, as_str_dict, get_int
from cdev.platform.http import HttpClient
from cdev.services.publish.errors import PublishError

OSS_PATH = "/project/oss"


def list_published_files(
    http: HttpClient,
    relay_url: str,
    name: str,
    *,
    production: bool,
) -> Result[list[object], PublishError]:
    """Artifacts already published for ``name`` (empty when none)."""
    url = f"{relay_url.rstrip('/')}{OSS_PATH}"
    result = http.request_json(
        "GET",
        url,
        params={"name": name, "type": "prod" if production else "dev"},
    )
    if isinstance(result, Err):
        return Err(
            PublishError(
                kind="network",
                message="could not query published artifacts",
                hint=str(result.error),
            )
        )

    payload = as_str_dict(result.value)
    if payload is None:
        return Err(PublishError(kind="network", message=f"unexpected response from {url}"))
    code = get_int(payload, "code")
    if code != 0:
        return Err(
            PublishError(
                kind="network",
                message=f"relay lookup failed (code {code})",
                hint=str(payload.get("message") or "") or None,
            )
        )
    return Ok(as_obj_list(payload.get("data")) or [])

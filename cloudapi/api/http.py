"""Helpers for inspecting responses returned by CloudClient."""

from typing import Any

import requests

from cloudapi.core.exceptions import AuthorizationFailure, CloudAPIError


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def is_redirect(response: requests.Response) -> bool:
    return response.status_code in (301, 302, 303, 307, 308)


def location(response: requests.Response) -> str | None:
    return response.headers.get("Location") or None


def etag(response: requests.Response) -> str | None:
    """Return the response's entity tag, quotes included, or None."""
    return response.headers.get("ETag") or None


def get_json(response: requests.Response) -> Any:
    """
    Decode a response body as JSON.

    Raises:
        CloudAPIError: If the body is not valid JSON.
    """
    try:
        return response.json()
    except ValueError as e:
        raise CloudAPIError(
            f"Response is not valid JSON (status {response.status_code})",
            details={
                "url": response.url,
                "status_code": response.status_code,
                "content_type": response.headers.get("Content-Type"),
                "original_error": str(e),
            },
        ) from e


def check_authorized(response: requests.Response) -> requests.Response:
    """
    Raise AuthorizationFailure for 401/403 responses, else return the response.

    CloudClient returns unauthorized responses instead of raising; this is
    for callers who prefer an exception.
    """
    if response.status_code in (401, 403):
        reason = "unauthorized" if response.status_code == 401 else "forbidden"
        raise AuthorizationFailure(
            f"Request {reason} ({response.status_code}): {response.url}",
            details={"url": response.url, "status_code": response.status_code},
            status_code=response.status_code,
        )
    return response

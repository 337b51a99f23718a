"""
Permalink and stream URL resolution.

The Resolver is layered on CloudClient: it issues ordinary authenticated
calls and only interprets their responses. Redirect targets carry the
answers, which is why the client never follows redirects.

Resolution Flow:
    resolve(permalink):
        GET /resolve?url=<permalink> -> 302 Location .../tracks/<id>(.json)
    resolve_stream_url(stream_url):
        1. HEAD <stream_url> (authenticated)   -> 302 Location <signed url>
        2. HEAD <signed url> (anonymous)       -> 200 ETag, Content-Length, Last-Modified
        3. GET  <stream_url> (authenticated)   -> 302 Location <final signed url>

A 404 at any step raises ResolverFailure(status_code=404).
"""

import time
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import requests

from cloudapi.api.endpoints import Endpoints, Params
from cloudapi.api.http import etag, get_json, is_redirect, location
from cloudapi.api.request import Request
from cloudapi.core.exceptions import CloudAPIError, ResolverFailure
from cloudapi.core.logger import get_logger
from cloudapi.resolve.stream import DEFAULT_STREAM_TTL, Stream, expiry_from_url, parse_http_date

if TYPE_CHECKING:
    from cloudapi.api.client import CloudClient

logger = get_logger(__name__)


class Resolver:
    """Translates permalinks into ids and stream URLs into signed Streams."""

    def __init__(self, client: "CloudClient") -> None:
        self._client = client

    def resolve(self, url: str) -> int:
        """
        Resolve a permalink URL to the numeric id of the resource behind it.

        Args:
            url: Public permalink, e.g. 'http://soundcloud.com/user/track'.

        Returns:
            The resource id.

        Raises:
            ResolverFailure: If the permalink is unknown (status_code 404) or
                             the answer carries no usable id.
        """
        response = self._client.get(Request.to(Endpoints.RESOLVE).with_params(url=url))
        try:
            _check_found(response, url)

            if is_redirect(response):
                target = location(response)
                if target is None:
                    raise _failure(response, url, "Resolve redirect without Location")
                resource_id = _id_from_location(target)
            elif response.status_code == 200:
                try:
                    payload = get_json(response)
                except CloudAPIError as e:
                    raise _failure(response, url, e.message) from e
                resource_id = _to_id(payload.get("id") if isinstance(payload, dict) else None)
            else:
                raise _failure(response, url, "Unexpected resolve response")

            if resource_id is None:
                raise _failure(response, url, "Resolve answer has no numeric id")
        finally:
            response.close()

        logger.debug(f"Resolved {url} -> {resource_id}")
        return resource_id

    def resolve_stream_url(self, url: str, skip_playcount: bool = False) -> Stream:
        """
        Resolve an API stream URL to a signed, time-limited streaming URL.

        Args:
            url: API stream URL, e.g. 'https://api.soundcloud.com/tracks/1/stream'.
            skip_playcount: Ask the service not to count this as a playback.

        Returns:
            Stream whose expires lies in the future.

        Raises:
            ResolverFailure: On 404 (status_code 404), a missing redirect,
                             or a signed URL that is already expired.
        """
        signed_url = self._follow(self._client.head(Request.to(url)), url)

        response = self._client.fetch(Request(resource=signed_url), "HEAD")
        try:
            _check_found(response, url)
            if response.status_code != 200:
                raise _failure(response, url, "Unexpected response for signed stream URL")
            content_length = response.headers.get("Content-Length")
            stream = Stream(
                url=url,
                stream_url=signed_url,
                etag=etag(response),
                content_length=int(content_length) if content_length and content_length.isdigit() else None,
                last_modified=parse_http_date(response.headers.get("Last-Modified")),
                expires=_expiry(signed_url, response),
            )
            expires_header = parse_http_date(response.headers.get("Expires"))
        finally:
            response.close()

        request = Request.to(url)
        if skip_playcount:
            request = request.with_param(Params.Stream.SKIP_LOGGING, "1")
        response = self._client.get(request)
        status_code = response.status_code
        final_url = self._follow(response, url)

        expires = expiry_from_url(final_url) or expires_header or time.time() + DEFAULT_STREAM_TTL
        if expires <= time.time():
            raise ResolverFailure(
                f"Signed stream URL for {url} is already expired",
                details={"url": url, "stream_url": final_url, "expires": expires,
                         "status_code": status_code},
                status_code=status_code,
            )

        logger.debug(f"Resolved stream {url} (skip_playcount={skip_playcount})")
        return stream.with_new_stream_url(final_url, expires)

    def _follow(self, response: requests.Response, url: str) -> str:
        """Return the Location of a redirect response, closing it."""
        try:
            _check_found(response, url)
            target = location(response) if is_redirect(response) else None
            if target is None:
                raise _failure(response, url, "Expected a redirect to the signed stream URL")
            return target
        finally:
            response.close()


def _check_found(response: requests.Response, url: str) -> None:
    if response.status_code == 404:
        raise _failure(response, url, "Could not resolve")


def _failure(response: requests.Response, url: str, reason: str) -> ResolverFailure:
    return ResolverFailure(
        f"{reason}: {url} ({response.status_code})",
        details={"url": url, "status_code": response.status_code},
        status_code=response.status_code,
    )


def _id_from_location(target: str) -> int | None:
    # '.../tracks/1234.json?client_id=x' -> 1234
    segment = urlsplit(target).path.rstrip("/").rsplit("/", 1)[-1]
    return _to_id(segment.split(".", 1)[0])


def _to_id(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _expiry(signed_url: str, response: requests.Response) -> float:
    return (
        expiry_from_url(signed_url)
        or parse_http_date(response.headers.get("Expires"))
        or time.time() + DEFAULT_STREAM_TTL
    )

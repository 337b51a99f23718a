"""
Resolved stream descriptor.

A Stream pairs the API stream URL a caller asked for with the signed,
time-limited CDN URL that actually serves the audio, plus the metadata
the CDN reported for it.
"""

import time
from dataclasses import dataclass, replace
from email.utils import parsedate_to_datetime
from urllib.parse import parse_qsl, urlsplit

from cloudapi.api.request import Request


# Lifetime assumed when neither the signed URL nor the response says
DEFAULT_STREAM_TTL = 300


@dataclass(frozen=True)
class Stream:
    """
    A signed streaming URL with its metadata.

    Attributes:
        url: The API stream URL that was resolved.
        stream_url: Signed CDN URL serving the audio.
        etag: Entity tag reported by the CDN, quotes included.
        content_length: Size of the audio in bytes, if reported.
        last_modified: Epoch seconds of the last modification, if reported.
        expires: Epoch seconds after which stream_url stops working.
    """
    url: str
    stream_url: str
    etag: str | None
    content_length: int | None
    last_modified: float | None
    expires: float

    def stream_request(self) -> Request:
        """A Request for the signed URL, to be sent with CloudClient.fetch()."""
        return Request(resource=self.stream_url)

    def with_new_stream_url(self, stream_url: str, expires: float | None = None) -> "Stream":
        """Copy with a freshly signed URL; expiry is re-read from it when not given."""
        if expires is None:
            expires = expiry_from_url(stream_url) or time.time() + DEFAULT_STREAM_TTL
        return replace(self, stream_url=stream_url, expires=expires)

    def is_expired(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) >= self.expires


def expiry_from_url(url: str) -> float | None:
    """Read the 'Expires' epoch seconds query parameter of a signed URL."""
    for name, value in parse_qsl(urlsplit(url).query):
        if name.lower() == "expires":
            try:
                return float(value)
            except ValueError:
                return None
    return None


def parse_http_date(value: str | None) -> float | None:
    """Parse an RFC 7231 date header into epoch seconds."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        return None

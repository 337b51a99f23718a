"""
Immutable description of an API call.

A Request names the target resource and carries everything the client
needs to build the HTTP call: parameters, an optional file attachment or
raw body, conditional and range headers, and an optional per-request
credential. Every builder method returns a new Request, so partially
built requests can be shared and reused safely.

Usage:
    from cloudapi.api.request import Request
    from cloudapi.api.endpoints import Endpoints, Params

    upload = (
        Request.to(Endpoints.TRACKS)
        .with_params(Params.Track.TITLE, "Hello", Params.Track.SHARING, "private")
        .with_file(Params.Track.ASSET_DATA, Path("hello.aiff"))
    )
    response = client.post(upload)
"""

import io
import os
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from cloudapi.api.token import Credential


# Called with (bytes_sent, total_bytes) while an upload is in progress
ProgressCallback = Callable[[int, int], None]

DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Attachment:
    """
    A file sent as one part of a multipart body.

    Attributes:
        name: Form field name (e.g. 'track[asset_data]').
        source: A filesystem path, a bytes-like buffer, or a binary file object.
        filename: File name reported to the server.
        content_type: MIME type of the part.
    """
    name: str
    source: Path | bytes | BinaryIO
    filename: str
    content_type: str = DEFAULT_ATTACHMENT_TYPE

    @contextmanager
    def opened(self) -> Iterator[BinaryIO]:
        """
        Yield a readable binary stream positioned at the start of the data.

        Paths are opened here and closed on exit, so a replayed request
        reads the file again. Caller-supplied file objects are rewound
        when seekable and left open.
        """
        if isinstance(self.source, Path):
            with open(self.source, "rb") as f:
                yield f
        elif isinstance(self.source, (bytes, bytearray, memoryview)):
            yield io.BytesIO(bytes(self.source))
        else:
            if self.source.seekable():
                self.source.seek(0)
            yield self.source


@dataclass(frozen=True)
class Request:
    """
    An API call description.

    Attributes:
        resource: Absolute URL or path relative to the API base URL.
        params: Ordered (name, value) pairs; names may repeat.
        attachment: Optional file to send as multipart.
        content: Optional raw body; excludes params and attachment.
        content_type: MIME type of the raw body.
        byte_range: Inclusive (start, end) byte range to request.
        etag: Entity tag for an If-None-Match conditional request.
        token: Credential to use instead of the client's current one.
               Requests pinned to a token never trigger a refresh.
        progress: Upload progress callback.
    """
    resource: str
    params: tuple[tuple[str, str], ...] = ()
    attachment: Attachment | None = None
    content: bytes | None = None
    content_type: str | None = None
    byte_range: tuple[int, int] | None = None
    etag: str | None = None
    token: Credential | None = None
    progress: ProgressCallback | None = field(default=None, compare=False)

    @classmethod
    def to(cls, resource: str, *args: Any) -> "Request":
        """
        Create a request for a resource.

        Args:
            resource: Path or URL, optionally with %-style placeholders
                      ('/tracks/%d') and an existing query string.
            *args: Values substituted into the placeholders.

        Returns:
            A Request whose params hold any query parameters found in
            the resource string.

        Example:
            Request.to(Endpoints.TRACK_DETAILS, 1234)
            Request.to("/tracks?order=hotness")
        """
        if args:
            resource = resource % args
        parts = urlsplit(resource)
        params: tuple[tuple[str, str], ...] = ()
        if parts.query:
            params = tuple(parse_qsl(parts.query, keep_blank_values=True))
            resource = urlunsplit(parts._replace(query=""))
        return cls(resource=resource, params=params)

    def with_params(self, *pairs: Any, **kwargs: Any) -> "Request":
        """
        Add parameters.

        Accepts alternating name/value positional arguments (for names that
        are not identifiers, like 'track[title]') and keyword arguments.
        List or tuple values add the name once per element. None values
        are skipped.

        Raises:
            ValueError: On an odd number of positional arguments, or if
                        the request already carries a raw body.
        """
        if len(pairs) % 2 != 0:
            raise ValueError("with_params() needs name/value pairs")

        items = list(zip(pairs[::2], pairs[1::2])) + list(kwargs.items())
        added: list[tuple[str, str]] = []
        for name, value in items:
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                added.extend((str(name), _param_value(v)) for v in value)
            else:
                added.append((str(name), _param_value(value)))

        if added and self.content is not None:
            raise ValueError("A request with a raw body cannot carry form parameters")
        return replace(self, params=self.params + tuple(added))

    def with_param(self, name: str, value: Any) -> "Request":
        return self.with_params(name, value)

    def with_file(
        self,
        name: str,
        source: str | os.PathLike | bytes | bytearray | memoryview | BinaryIO,
        filename: str | None = None,
        content_type: str = DEFAULT_ATTACHMENT_TYPE,
    ) -> "Request":
        """
        Attach a file, sent as a multipart body together with the params.

        Args:
            name: Form field name for the file part.
            source: Path (str or PathLike), bytes-like buffer, or binary file object.
            filename: Name reported to the server. Defaults to the path's
                      file name; required for buffers and anonymous streams.
            content_type: MIME type of the part.

        Raises:
            ValueError: If a file or raw body is already set, or no
                        filename can be determined.
        """
        if self.attachment is not None:
            raise ValueError("Only one file can be attached to a request")
        if self.content is not None:
            raise ValueError("A request with a raw body cannot carry a file")

        if isinstance(source, (str, os.PathLike)):
            source = Path(source)
            filename = filename or source.name
        elif isinstance(source, (bytes, bytearray, memoryview)):
            source = bytes(source)
        elif filename is None:
            stream_name = getattr(source, "name", None)
            filename = os.path.basename(stream_name) if isinstance(stream_name, str) else None

        if not filename:
            raise ValueError(f"A filename is required for attachment '{name}'")

        return replace(
            self,
            attachment=Attachment(name=name, source=source, filename=filename, content_type=content_type),
        )

    def with_content(self, content: bytes | str, content_type: str) -> "Request":
        """
        Send a raw body (e.g. a JSON or XML document).

        Raises:
            ValueError: If the request already has params or a file.
        """
        if self.params or self.attachment is not None:
            raise ValueError("A request with form parameters or a file cannot carry a raw body")
        if isinstance(content, str):
            content = content.encode("utf-8")
        return replace(self, content=content, content_type=content_type)

    def with_range(self, start: int, end: int) -> "Request":
        """
        Request bytes start..end (both inclusive).

        Raises:
            ValueError: If start is negative or end is before start.
        """
        if start < 0 or end < start:
            raise ValueError(f"Invalid byte range: {start}-{end}")
        return replace(self, byte_range=(start, end))

    def if_none_match(self, etag: str) -> "Request":
        return replace(self, etag=etag)

    def using_token(self, token: Credential) -> "Request":
        return replace(self, token=token)

    def with_progress(self, callback: ProgressCallback) -> "Request":
        return replace(self, progress=callback)

    @property
    def range_header(self) -> str | None:
        if self.byte_range is None:
            return None
        start, end = self.byte_range
        return f"bytes={start}-{end}"

    def query_string(self) -> str:
        return urlencode(self.params)

    def to_url(self, base: str | None = None) -> str:
        """
        Render the full URL with params in the query string.

        Args:
            base: Base URL for relative resources; ignored for absolute ones.
        """
        url = self.resource
        if base is not None and not is_absolute(url):
            url = join_url(base, url)
        if self.params:
            url = f"{url}?{self.query_string()}"
        return url


def is_absolute(resource: str) -> bool:
    return bool(urlsplit(resource).scheme)


def join_url(base: str, resource: str) -> str:
    """Join a relative resource ('me', '/me') onto a base URL."""
    return f"{base.rstrip('/')}/{resource.lstrip('/')}"


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

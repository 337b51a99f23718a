"""
HTTP transport for cloudapi.

The transport is the only component that touches the network. It wraps a
requests.Session and knows nothing about credentials or refresh: it takes
a fully formed call and returns the requests.Response.

Behavior:
    - Redirects are never followed; callers see 3xx responses as-is.
    - Response bodies are streamed (stream=True); read response.content
      or iterate response.iter_content() as needed, and close() responses
      you do not consume.
    - File attachments are sent with a streaming multipart encoder, so
      large uploads are never buffered in memory.
    - Network errors (requests.RequestException) propagate unchanged.
"""

from contextlib import ExitStack
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from requests_toolbelt import MultipartEncoder, MultipartEncoderMonitor

from cloudapi import __version__
from cloudapi.api.request import Attachment, ProgressCallback
from cloudapi.core.logger import get_logger

logger = get_logger(__name__)


DEFAULT_USER_AGENT = f"cloudapi-python/{__version__}"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONNECTIONS = 10


class Transport:
    """
    Blocking HTTP transport backed by a pooled requests.Session.

    Thread Safety:
        A single Transport may be shared by many threads; the connection
        pool holds up to max_connections connections per host.

    Attributes:
        session: The underlying requests.Session.
        timeout: Connect/read timeout in seconds for every call.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        user_agent: str = DEFAULT_USER_AGENT,
        session: requests.Session | None = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

        adapter = HTTPAdapter(pool_connections=max_connections, pool_maxsize=max_connections)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers["User-Agent"] = user_agent

    def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: list[tuple[str, str]] | None = None,
        data: list[tuple[str, str]] | None = None,
        attachment: Attachment | None = None,
        content: bytes | None = None,
        progress: ProgressCallback | None = None,
    ) -> requests.Response:
        """
        Perform one HTTP call.

        Args:
            method: HTTP verb.
            url: Absolute URL, without the query params.
            headers: Extra request headers.
            params: Query string parameters.
            data: Form fields (url-encoded, or multipart with attachment).
            attachment: Optional file to send as a multipart part.
            content: Raw body; mutually exclusive with data/attachment.
            progress: Called with (bytes_sent, total) during multipart uploads.

        Returns:
            requests.Response with an unread, streamed body.

        Raises:
            requests.RequestException: On any network-level failure.
        """
        headers = dict(headers or {})
        body: Any = None

        with ExitStack() as stack:
            if attachment is not None:
                fileobj = stack.enter_context(attachment.opened())
                fields = list(data or [])
                fields.append((attachment.name, (attachment.filename, fileobj, attachment.content_type)))
                encoder = MultipartEncoder(fields=fields)
                headers["Content-Type"] = encoder.content_type
                if progress is not None:
                    body = MultipartEncoderMonitor(
                        encoder, lambda monitor: progress(monitor.bytes_read, monitor.len)
                    )
                else:
                    body = encoder
            elif content is not None:
                body = content
            elif data:
                body = data

            logger.debug(f"{method} {url}")
            return self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                data=body,
                timeout=self.timeout,
                allow_redirects=False,
                stream=True,
            )

    def close(self) -> None:
        self.session.close()

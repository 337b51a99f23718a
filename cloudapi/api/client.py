"""
Authenticating API client for cloudapi.

CloudClient owns the session state (environment, application credentials,
current Credential) and performs every API call through a Transport. It
attaches the current credential to each call and, when the service
answers 401, refreshes the credential once and replays the call.

Refresh Semantics (per call):
    INITIAL -> DISPATCHED -> SUCCESS
                          -> NEEDS_REFRESH -> REFRESHING -> DISPATCHED_RETRY -> SUCCESS | FAILED

    - NEEDS_REFRESH is entered only on 401 with a refreshable credential.
    - A credential that is already invalidated or expired before dispatch
      is refreshed up front; that uses up the call's one refresh.
    - If the refresh fails, the original 401 response is returned.
    - Every other status is returned untouched. Redirects are not followed.

Thread Safety:
    Any number of threads may share one CloudClient. The credential slot is
    guarded by a condition variable; at most one refresh is in flight at a
    time. Threads that hit a 401 while a refresh is running wait for it and
    reuse its result. The lock is never held during network I/O.

Usage:
    from cloudapi.api.client import CloudClient
    from cloudapi.api.request import Request
    from cloudapi.api.endpoints import Endpoints

    client = CloudClient(client_id, client_secret)
    client.login("username", "password")
    response = client.get(Request.to(Endpoints.MY_DETAILS))
"""

import threading
from dataclasses import replace
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit

import requests

from cloudapi.api.endpoints import Endpoints, Env, GrantType
from cloudapi.api.request import Request, is_absolute, join_url
from cloudapi.api.token import Credential, TokenListener
from cloudapi.api.transport import Transport
from cloudapi.core.exceptions import AuthenticationFailure, InvalidGrantType
from cloudapi.core.logger import get_logger
from cloudapi.resolve.resolver import Resolver
from cloudapi.resolve.stream import Stream

if TYPE_CHECKING:
    from cloudapi.core.config import Config

logger = get_logger(__name__)


DEFAULT_CONTENT_TYPE = "application/json"

# Methods whose params travel in the request body
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class CloudClient:
    """
    API client with OAuth2 grants and transparent token refresh.

    Attributes:
        client_id: Application client identifier.
        client_secret: Application client secret.
        redirect_uri: Callback URL for the authorization code flow, if any.
        env: Deployment the client talks to.
        transport: The Transport performing network I/O.
        token_listener: Optional hooks notified on invalidation and refresh.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str | None = None,
        token: Credential | None = None,
        env: Env | str = Env.LIVE,
        default_content_type: str = DEFAULT_CONTENT_TYPE,
        transport: Transport | None = None,
        token_listener: TokenListener | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.env = Env.from_name(env)
        self.transport = transport or Transport()
        self.token_listener = token_listener

        self._default_content_type = default_content_type
        self._credential = token
        self._lock = threading.Condition()
        self._refreshing = False
        # Credential whose refresh was rejected; not retried
        self._failed_refresh: Credential | None = None

        self._resolver = Resolver(self)

    @classmethod
    def from_config(
        cls,
        config: "Config",
        token: Credential | None = None,
        token_listener: TokenListener | None = None,
    ) -> "CloudClient":
        """Create a client from a loaded Config."""
        transport = Transport(
            timeout=config.api.timeout,
            max_connections=config.api.max_connections,
        )
        return cls(
            client_id=config.credentials.client_id,
            client_secret=config.credentials.client_secret,
            redirect_uri=config.credentials.redirect_uri,
            token=token,
            env=config.api.env,
            default_content_type=config.api.default_content_type,
            transport=transport,
            token_listener=token_listener,
        )

    def __enter__(self) -> "CloudClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    # =========================================================================
    # Session state
    # =========================================================================

    @property
    def token(self) -> Credential | None:
        """The current credential, or None if not logged in."""
        with self._lock:
            return self._credential

    def set_token(self, credential: Credential | None) -> None:
        """Replace the current credential outright."""
        with self._lock:
            self._credential = credential
            self._failed_refresh = None

    def invalidate_token(self) -> Credential | None:
        """
        Mark the current credential as needing a refresh on next use.

        The token listener, if any, may supply a substitute credential,
        which then becomes current.

        Returns:
            The substitute credential, or None if the listener supplied
            none or there was no credential to invalidate.
        """
        with self._lock:
            current = self._credential
            if current is None:
                return None
            self._credential = current.invalidated()

        logger.debug("Current token invalidated")
        if self.token_listener is None:
            return None

        alternative = self.token_listener.on_token_invalid(current)
        if alternative is not None:
            self.set_token(alternative)
        return alternative

    @property
    def default_content_type(self) -> str:
        return self._default_content_type

    @default_content_type.setter
    def default_content_type(self, content_type: str) -> None:
        self._default_content_type = content_type

    @staticmethod
    def oauth_header(credential: Credential | None) -> str:
        """Authorization header value for a credential."""
        if credential is None or credential.access_token is None:
            return "OAuth invalidated"
        return f"OAuth {credential.access_token}"

    # =========================================================================
    # Grants
    # =========================================================================

    def login(self, username: str, password: str, *scopes: str) -> Credential:
        """
        Exchange a username and password for a credential (password grant).

        Args:
            username: Account login.
            password: Account password.
            *scopes: Scopes to request, e.g. Scope.NON_EXPIRING.

        Returns:
            The new credential, which also becomes the current one.

        Raises:
            AuthenticationFailure: If the token endpoint rejects the grant.
            requests.RequestException: On network failure.
        """
        return self._grant(GrantType.PASSWORD, scopes, username=username, password=password)

    def authorization_code(self, code: str, *scopes: str) -> Credential:
        """
        Exchange an authorization code from the /connect redirect for a credential.

        Raises:
            ValueError: If the client has no redirect_uri.
            AuthenticationFailure: If the token endpoint rejects the grant.
        """
        if not self.redirect_uri:
            raise ValueError("authorization_code() requires a redirect_uri")
        return self._grant(
            GrantType.AUTHORIZATION_CODE, scopes, code=code, redirect_uri=self.redirect_uri
        )

    def client_credentials(self, *scopes: str) -> Credential:
        """Obtain a credential for the application itself (no user)."""
        return self._grant(GrantType.CLIENT_CREDENTIALS, scopes)

    def extension_grant_type(self, grant_type: str, *scopes: str) -> Credential:
        """
        Exchange a credential using an extension grant.

        Extension grants are absolute URIs. Provider parameters may be
        appended query-style, as in GrantType.FACEBOOK + facebook_token;
        they are sent as separate form fields.

        Raises:
            InvalidGrantType: If grant_type is empty or not an absolute URI.
            AuthenticationFailure: If the token endpoint rejects the grant.
        """
        grant, _, extra = (grant_type or "").partition("&")
        grant = grant.strip()
        if grant in GrantType.BUILTIN:
            raise InvalidGrantType(
                f"'{grant}' is a built-in grant type, not an extension grant",
                details={"grant_type": grant_type},
            )
        if not grant or not urlsplit(grant).scheme:
            raise InvalidGrantType(
                f"Unsupported grant type: {grant_type!r}",
                details={"grant_type": grant_type},
            )
        return self._grant(grant, scopes, **dict(parse_qsl(extra, keep_blank_values=True)))

    def refresh_token(self) -> Credential:
        """
        Refresh the current credential explicitly.

        Returns:
            The new credential, which also becomes the current one.

        Raises:
            AuthenticationFailure: If there is no credential, it has no
                                   refresh token, or the endpoint rejects it.
        """
        current = self.token
        if current is None:
            raise AuthenticationFailure("No credential to refresh")
        return self._refresh(current)

    def authorization_url(
        self,
        *scopes: str,
        state: str | None = None,
        display: str | None = None,
    ) -> str:
        """
        Build the URL users visit to authorize this application.

        After consent, the service redirects to redirect_uri with a code
        for authorization_code().

        Raises:
            ValueError: If the client has no redirect_uri.
        """
        if not self.redirect_uri:
            raise ValueError("authorization_url() requires a redirect_uri")

        params = [
            ("client_id", self.client_id),
            ("redirect_uri", self.redirect_uri),
            ("response_type", "code"),
        ]
        if scopes:
            params.append(("scope", " ".join(scopes)))
        if state:
            params.append(("state", state))
        if display:
            params.append(("display", display))
        return f"{self.env.web_base}{Endpoints.CONNECT}?{urlencode(params)}"

    def _grant(self, grant_type: str, scopes: tuple[str, ...], **fields: str) -> Credential:
        credential = self._request_token(grant_type, scopes, **fields)
        with self._lock:
            self._credential = credential
            self._failed_refresh = None
        logger.info(
            f"Obtained token via '{grant_type}' grant "
            f"(scope: {' '.join(sorted(credential.scope)) or 'default'})"
        )
        return credential

    def _request_token(self, grant_type: str, scopes: tuple[str, ...] = (), **fields: str) -> Credential:
        """
        POST a grant to the token endpoint and parse the credential.

        Raises:
            AuthenticationFailure: On any non-200 answer or malformed payload.
            requests.RequestException: On network failure.
        """
        data = [
            ("grant_type", grant_type),
            ("client_id", self.client_id),
            ("client_secret", self.client_secret),
        ]
        data.extend((name, value) for name, value in fields.items() if value is not None)
        if scopes:
            data.append(("scope", " ".join(scopes)))

        url = join_url(self.env.api_base, Endpoints.TOKEN)
        response = self.transport.send(
            "POST", url, headers={"Accept": "application/json"}, data=data
        )
        try:
            if response.status_code != 200:
                error = _oauth_error(response)
                raise AuthenticationFailure(
                    f"Token request rejected ({response.status_code}"
                    f"{': ' + error if error else ''})",
                    details={"grant_type": grant_type, "status_code": response.status_code},
                    status_code=response.status_code,
                    error=error,
                )
            try:
                return Credential.from_response(response.json())
            except ValueError as e:
                raise AuthenticationFailure(
                    f"Malformed token response: {e}",
                    details={"grant_type": grant_type, "original_error": str(e)},
                    status_code=response.status_code,
                ) from e
        finally:
            response.close()

    # =========================================================================
    # Refresh
    # =========================================================================

    def _refresh(self, rejected: Credential) -> Credential:
        """
        Replace a rejected credential with a refreshed one.

        Only one refresh runs at a time. Callers arriving while one is in
        flight wait for it; if the rejected credential has been superseded
        in the meantime, the newer credential is returned without any
        network call.

        Raises:
            AuthenticationFailure: If the credential cannot be refreshed,
                                   or its refresh was already rejected.
        """
        with self._lock:
            while self._refreshing:
                self._lock.wait()

            current = self._credential
            if current is None:
                raise AuthenticationFailure("No credential to refresh")
            if current is not rejected and current.access_token is not None:
                return current
            if current is self._failed_refresh:
                raise AuthenticationFailure("Refresh was already rejected for this credential")
            if not current.refreshable:
                raise AuthenticationFailure("Credential has no refresh token")

            self._refreshing = True
            target = current

        refreshed: Credential | None = None
        rejected_by_service = False
        installed = False
        try:
            refreshed = self._request_token(GrantType.REFRESH_TOKEN, refresh_token=target.refresh_token)
            if refreshed.refresh_token is None:
                refreshed = replace(refreshed, refresh_token=target.refresh_token)
        except AuthenticationFailure:
            rejected_by_service = True
            raise
        finally:
            with self._lock:
                if refreshed is not None and _same_grant(self._credential, target):
                    self._credential = refreshed
                    installed = True
                elif rejected_by_service:
                    self._failed_refresh = target
                self._refreshing = False
                self._lock.notify_all()

        if not installed:
            logger.debug("Credential replaced during refresh, keeping the replacement")
            return refreshed

        logger.info("Access token refreshed")
        if self.token_listener is not None:
            self.token_listener.on_token_refreshed(refreshed)
        return refreshed

    def _try_refresh(self, rejected: Credential) -> Credential | None:
        try:
            return self._refresh(rejected)
        except AuthenticationFailure as e:
            logger.warning(f"Token refresh failed: {e.message}")
            return None

    # =========================================================================
    # Requests
    # =========================================================================

    def execute(self, request: Request, method: str = "GET") -> requests.Response:
        """
        Perform an authenticated call, refreshing the credential at most once.

        Args:
            request: What to call.
            method: HTTP verb.

        Returns:
            The service's response, whatever its status. A 401 is returned
            when the refresh was impossible or failed.

        Raises:
            ValueError: If a file is attached to a non-body method.
            requests.RequestException: On network failure (never retried).
        """
        method = method.upper()

        if request.token is not None:
            return self._dispatch(request, method, request.token)

        credential = self.token
        refreshed = False
        if credential is not None and credential.needs_refresh and credential.refreshable:
            logger.debug("Current token needs refresh before dispatch")
            refreshed = True
            credential = self._try_refresh(credential) or credential

        response = self._dispatch(request, method, credential)
        if response.status_code != 401:
            return response

        if refreshed or credential is None or not credential.refreshable:
            logger.debug(f"401 for {method} {request.resource}, not refreshing")
            return response

        try:
            new_credential = self._try_refresh(credential)
        except requests.RequestException:
            response.close()
            raise
        if new_credential is None:
            return response

        response.close()
        logger.debug(f"Replaying {method} {request.resource} with refreshed token")
        return self._dispatch(request, method, new_credential)

    def fetch(self, request: Request, method: str = "GET") -> requests.Response:
        """
        Perform a call without any credential or Accept header.

        Used for signed URLs (e.g. a Stream's stream_url) that must not
        see the API's Authorization header.
        """
        return self._dispatch(request, method.upper(), None, authenticate=False)

    def get(self, request: Request) -> requests.Response:
        return self.execute(request, "GET")

    def post(self, request: Request) -> requests.Response:
        return self.execute(request, "POST")

    def put(self, request: Request) -> requests.Response:
        return self.execute(request, "PUT")

    def delete(self, request: Request) -> requests.Response:
        return self.execute(request, "DELETE")

    def head(self, request: Request) -> requests.Response:
        return self.execute(request, "HEAD")

    def _dispatch(
        self,
        request: Request,
        method: str,
        credential: Credential | None,
        authenticate: bool = True,
    ) -> requests.Response:
        url = self.absolute_url(request.resource)
        has_body = method in BODY_METHODS

        if request.attachment is not None and not has_body:
            raise ValueError(f"File attachments cannot be sent with {method}")

        headers: dict[str, str] = {}
        if authenticate:
            headers["Accept"] = self._default_content_type
            if credential is not None:
                headers["Authorization"] = self.oauth_header(credential)
        if request.etag:
            headers["If-None-Match"] = request.etag
        if request.range_header:
            headers["Range"] = request.range_header
        if request.content is not None:
            headers["Content-Type"] = request.content_type or "application/octet-stream"

        params = list(request.params)
        response = self.transport.send(
            method,
            url,
            headers=headers,
            params=None if has_body or not params else params,
            data=params if has_body and params else None,
            attachment=request.attachment,
            content=request.content,
            progress=request.progress,
        )
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def absolute_url(self, resource: str) -> str:
        """Resolve a resource path against the environment's API base URL."""
        if is_absolute(resource):
            return resource
        return join_url(self.env.api_base, resource)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, url: str) -> int:
        """Resolve a permalink URL to a numeric resource id. See Resolver.resolve()."""
        return self._resolver.resolve(url)

    def resolve_stream_url(self, url: str, skip_playcount: bool = False) -> Stream:
        """Resolve a stream URL to a signed streaming URL. See Resolver.resolve_stream_url()."""
        return self._resolver.resolve_stream_url(url, skip_playcount)


def _oauth_error(response: requests.Response) -> str | None:
    """Extract the OAuth2 'error' code from an error response body, if any."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        error = payload.get("error")
        return str(error) if error else None
    return None


def _same_grant(current: Credential | None, target: Credential) -> bool:
    """True if current is target, or target with its access token invalidated."""
    if current is target:
        return True
    return (
        current is not None
        and current.access_token is None
        and current.refresh_token == target.refresh_token
    )

"""
Exception classes for cloudapi.

This module defines all custom exceptions used throughout the library.
Each exception carries a human-readable message plus a ``details``
dictionary, so callers can log context without parsing messages.

Exception Hierarchy:
    CloudAPIError (base)
        ConfigError - Configuration file or environment issues
        AuthenticationFailure - Grant exchange rejected by the token endpoint
            InvalidGrantType - Unsupported grant type string
        AuthorizationFailure - 401/403 surfaced to callers that ask for it
        ResolverFailure - Permalink or stream URL could not be resolved

    TransportFailure is not part of the hierarchy: it is an alias of
    requests.RequestException. Network errors propagate unchanged from
    the transport and are never wrapped or retried.
"""

from typing import Any

import requests


class CloudAPIError(Exception):
    """
    Base exception for all cloudapi errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every library error with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g. URLs, status codes).

    Example:
        try:
            client.login(username, password)
        except CloudAPIError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'url': URL that caused the error
                     - 'status_code': HTTP status returned by the service
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(CloudAPIError):
    """
    Raised when there's an issue with the configuration.

    Common causes:
        - cloudapi.yaml has invalid YAML syntax
        - client_id or client_secret missing from both file and environment
        - Invalid field values (e.g. unknown environment name, negative timeout)

    Example:
        raise ConfigError(
            "'credentials.client_id' must be a non-empty string",
            details={'field': 'credentials.client_id'}
        )
    """
    pass


class AuthenticationFailure(CloudAPIError):
    """
    Raised when the token endpoint rejects a grant exchange.

    This covers bad user credentials, a bad client secret, a revoked or
    unknown refresh token, and extension grants the service does not
    recognise.

    Attributes:
        status_code: HTTP status returned by the token endpoint, or None
                     if the grant was rejected before any request was sent.
        error: OAuth2 error code from the response body (e.g. 'invalid_grant'),
               or None if the body carried none.

    Example:
        try:
            client.login("user", "wrong-password")
        except AuthenticationFailure as e:
            if e.status_code == 401:
                print("Check your username and password")
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        error: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.error = error


class InvalidGrantType(AuthenticationFailure):
    """
    Raised when a grant type string is not supported.

    Extension grants must be absolute URIs (RFC 6749, section 4.5).
    Anything else is rejected locally without contacting the service.
    """
    pass


class AuthorizationFailure(CloudAPIError):
    """
    Raised on request for a response that was not authorized.

    CloudClient.execute() never raises this: a 401 that survives the
    refresh attempt is returned as an ordinary response so callers can
    inspect it. Use cloudapi.api.http.check_authorized() to turn such a
    response into this exception.

    Attributes:
        status_code: 401 (unauthorized) or 403 (forbidden, e.g. missing scope).
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class ResolverFailure(CloudAPIError):
    """
    Raised when a permalink or stream URL cannot be resolved.

    A 404 from the service means the resource does not exist; other status
    codes mean the response had an unexpected shape (no redirect, no
    Location header, a non-numeric id).

    Attributes:
        status_code: HTTP status of the response that failed resolution.

    Example:
        try:
            track_id = client.resolve("https://soundcloud.com/no-such-user")
        except ResolverFailure as e:
            if e.status_code == 404:
                print("Not found")
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


TransportFailure = requests.RequestException

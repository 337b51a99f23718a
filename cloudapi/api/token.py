"""
OAuth2 credential value and token listener hooks.

A Credential is immutable. Logging in, refreshing, or invalidating never
mutates one; the client swaps its current credential for a new value.

Expiry:
    A credential with expires_in set expires at issued_at + expires_in.
    A credential without expires_in (e.g. obtained with the 'non-expiring'
    scope) never expires on time alone and is never refreshed proactively.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any

from cloudapi.api.endpoints import Scope


@dataclass(frozen=True)
class Credential:
    """
    An access/refresh token pair with scope and expiry metadata.

    Attributes:
        access_token: Opaque bearer token sent with every request.
                      None once the credential has been invalidated.
        refresh_token: Opaque token for the refresh_token grant, or None
                       if the credential cannot be refreshed.
        scope: Scopes granted to this credential.
        issued_at: Epoch seconds at which the credential was obtained.
        expires_in: Lifetime in seconds, or None for non-expiring credentials.

    Example:
        credential = Credential.from_response(token_endpoint_json)
        if credential.scoped(Scope.NON_EXPIRING):
            ...
    """
    access_token: str | None
    refresh_token: str | None = None
    scope: frozenset[str] = field(default_factory=frozenset)
    issued_at: float = field(default_factory=time.time)
    expires_in: int | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any], issued_at: float | None = None) -> "Credential":
        """
        Build a credential from a token endpoint JSON payload.

        Args:
            data: Decoded body with 'access_token' and optionally
                  'refresh_token', 'scope' (space separated) and 'expires_in'.
            issued_at: Override for the issue timestamp (defaults to now).

        Raises:
            ValueError: If the payload has no access_token.
        """
        access_token = data.get("access_token")
        if not access_token:
            raise ValueError("Token response does not contain an access_token")

        expires_in = data.get("expires_in")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            scope=parse_scope(data.get("scope")),
            issued_at=time.time() if issued_at is None else issued_at,
            expires_in=int(expires_in) if expires_in is not None else None,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credential":
        """Inverse of to_dict()."""
        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            scope=parse_scope(data.get("scope")),
            issued_at=float(data.get("issued_at", time.time())),
            expires_in=data.get("expires_in"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "scope": " ".join(sorted(self.scope)),
            "issued_at": self.issued_at,
            "expires_in": self.expires_in,
        }

    @property
    def expires_at(self) -> float | None:
        """Epoch seconds at which the access token expires, or None."""
        if self.expires_in is None:
            return None
        return self.issued_at + self.expires_in

    @property
    def refreshable(self) -> bool:
        return self.refresh_token is not None

    @property
    def non_expiring(self) -> bool:
        return self.expires_in is None or self.scoped(Scope.NON_EXPIRING)

    @property
    def needs_refresh(self) -> bool:
        """True if the access token is gone or has expired."""
        return self.access_token is None or self.is_expired()

    def scoped(self, scope: str) -> bool:
        """Check whether the credential was granted the given scope."""
        return scope in self.scope

    def is_expired(self, now: float | None = None) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (time.time() if now is None else now) >= expires_at

    def valid(self) -> bool:
        """A credential is valid while it has an access token that has not expired."""
        return self.access_token is not None and not self.is_expired()

    def invalidated(self) -> "Credential":
        """Return a copy without access token, forcing a refresh on next use."""
        return replace(self, access_token=None)

    def __repr__(self) -> str:
        # Tokens are secrets; only show whether they are present
        return (
            f"Credential(access_token={'***' if self.access_token else None}, "
            f"refresh_token={'***' if self.refresh_token else None}, "
            f"scope={sorted(self.scope)}, expires_in={self.expires_in})"
        )


def parse_scope(raw: str | list[str] | frozenset[str] | None) -> frozenset[str]:
    """Normalise a space separated scope string (or iterable) into a frozenset."""
    if not raw:
        return frozenset()
    if isinstance(raw, str):
        return frozenset(raw.split())
    return frozenset(raw)


class TokenListener:
    """
    Hooks called by CloudClient around credential changes.

    Subclass and override what you need; the defaults do nothing.
    """

    def on_token_invalid(self, credential: Credential) -> Credential | None:
        """
        Called when the current credential is invalidated.

        Returns:
            A substitute credential to use instead (e.g. one cached
            elsewhere), or None to go through the refresh path.
        """
        return None

    def on_token_refreshed(self, credential: Credential) -> None:
        """Called after a refresh replaced the current credential."""

"""
Service endpoints, environments, grant types and resource parameter names.

These are plain constants. Resource paths are relative and get joined to
the environment's API base URL by CloudClient; parameter names use the
service's nested form-field syntax (``track[title]``).
"""

from enum import Enum


class Env(Enum):
    """
    Deployments of the service.

    Each member carries the API host (resources, token endpoint) and the
    web host (authorization page for the authorization code flow).
    """

    LIVE = ("live", "api.soundcloud.com", "soundcloud.com")
    SANDBOX = ("sandbox", "api.sandbox-soundcloud.com", "sandbox-soundcloud.com")

    def __init__(self, label: str, api_host: str, web_host: str) -> None:
        self.label = label
        self.api_host = api_host
        self.web_host = web_host

    @property
    def api_base(self) -> str:
        """Base URL every relative resource path is joined to."""
        return f"https://{self.api_host}"

    @property
    def web_base(self) -> str:
        return f"https://{self.web_host}"

    @classmethod
    def from_name(cls, name: "str | Env") -> "Env":
        """
        Look up an environment by its label ('live', 'sandbox').

        Raises:
            ValueError: If no environment has that label.
        """
        if isinstance(name, cls):
            return name
        if isinstance(name, str):
            for member in cls:
                if member.label == name.strip().lower():
                    return member
        raise ValueError(f"Unknown environment: {name!r}")


class Endpoints:
    """Resource paths, relative to Env.api_base."""

    TOKEN = "/oauth2/token"
    CONNECT = "/connect"
    RESOLVE = "/resolve"

    TRACKS = "/tracks"
    TRACK_DETAILS = "/tracks/%d"
    TRACK_COMMENTS = "/tracks/%d/comments"
    TRACK_STREAM = "/tracks/%d/stream"

    USERS = "/users"
    USER_DETAILS = "/users/%d"
    PLAYLISTS = "/playlists"

    MY_DETAILS = "/me"
    MY_TRACKS = "/me/tracks"
    MY_FAVORITES = "/me/favorites"
    MY_FOLLOWINGS = "/me/followings"
    MY_FOLLOWERS = "/me/followers"
    MY_ACTIVITIES = "/me/activities"
    MY_CONNECTIONS = "/me/connections"


class GrantType:
    """OAuth2 grant types understood by the token endpoint."""

    PASSWORD = "password"
    AUTHORIZATION_CODE = "authorization_code"
    REFRESH_TOKEN = "refresh_token"
    CLIENT_CREDENTIALS = "client_credentials"
    OAUTH1_TOKEN = "oauth1_token"

    # Extension grant; the provider's access token is appended
    FACEBOOK = "urn:soundcloud:oauth2:grant-type:facebook&access_token="

    BUILTIN = frozenset({
        PASSWORD,
        AUTHORIZATION_CODE,
        REFRESH_TOKEN,
        CLIENT_CREDENTIALS,
        OAUTH1_TOKEN,
    })


class Scope:
    """Named permission buckets a credential can carry."""

    DEFAULT = "*"
    SIGNUP = "signup"
    PLAYCOUNT = "playcount"
    NON_EXPIRING = "non-expiring"


class Params:
    """Form field names for resource create/update calls."""

    class Track:
        TITLE = "track[title]"
        DESCRIPTION = "track[description]"
        ASSET_DATA = "track[asset_data]"
        ARTWORK_DATA = "track[artwork_data]"
        SHARING = "track[sharing]"
        PUBLIC = "public"
        PRIVATE = "private"
        STREAMABLE = "track[streamable]"
        DOWNLOADABLE = "track[downloadable]"
        TAG_LIST = "track[tag_list]"
        GENRE = "track[genre]"
        POST_TO = "track[post_to][][id]"
        POST_TO_EMPTY = "track[post_to][]"
        SHARED_EMAILS = "track[shared_to][emails][][address]"

    class User:
        NAME = "user[username]"
        PERMALINK = "user[permalink]"
        FULL_NAME = "user[full_name]"
        WEBSITE = "user[website]"
        WEBSITE_TITLE = "user[website_title]"
        DESCRIPTION = "user[description]"
        AVATAR = "user[avatar_data]"

    class Comment:
        BODY = "comment[body]"
        TIMESTAMP = "comment[timestamp]"
        REPLY_TO = "comment[reply_to]"

    class Stream:
        SKIP_LOGGING = "skip_logging"

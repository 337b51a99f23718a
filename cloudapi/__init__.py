"""
cloudapi: Python client for a music-hosting service's REST API.

This package wraps the service's HTTP API: OAuth2 grants, authenticated
requests with transparent token refresh, multipart uploads, conditional
and range requests, and permalink/stream URL resolution.

Architecture:
    Leaves first:

    api/token.py      - Credential value and TokenListener hooks
    api/request.py    - Immutable Request builder
    api/transport.py  - requests.Session wrapper (the only network I/O)
    api/client.py     - CloudClient: grants, dispatch, at-most-once refresh
    resolve/          - Resolver and Stream, built on CloudClient

Modules:
    core/       - Configuration, logging, exceptions
    api/        - Credentials, requests, transport, client, token store
    resolve/    - Permalink and stream URL resolution
    cli.py      - Command-line interface

Usage:
    Command Line:
        cloudapi login --username me@example.com
        cloudapi get /me
        cloudapi resolve "https://soundcloud.com/user/track"
        cloudapi upload song.mp3 --title "My Song"

    Python API:
        from cloudapi import CloudClient, Request, Endpoints, load_config

        config = load_config()
        with CloudClient.from_config(config) as client:
            client.login("username", "password")
            response = client.get(Request.to(Endpoints.MY_DETAILS))
            print(response.json())

Dependencies:
    - requests: HTTP sessions and connection pooling
    - requests-toolbelt: Streaming multipart uploads
    - click / rich-click: CLI framework and colors
    - tqdm: Upload progress bars
    - colorama: Colored console logging
    - pyyaml: Configuration file parsing
    - python-dotenv: .env support for secrets
"""

__version__ = "0.1.0"
__author__ = "cloudapi"
__license__ = "MIT"

# Convenience imports for common usage
from cloudapi.core import (
    AuthenticationFailure,
    AuthorizationFailure,
    CloudAPIError,
    Config,
    ConfigError,
    InvalidGrantType,
    ResolverFailure,
    get_logger,
    load_config,
    setup_logging,
)
from cloudapi.api import (
    CloudClient,
    Credential,
    Endpoints,
    Env,
    GrantType,
    Params,
    Request,
    Scope,
    TokenListener,
    TokenStore,
)
from cloudapi.resolve import Resolver, Stream

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "CloudAPIError",
    "ConfigError",
    "AuthenticationFailure",
    "InvalidGrantType",
    "AuthorizationFailure",
    "ResolverFailure",
    # Client
    "CloudClient",
    "Credential",
    "TokenListener",
    "TokenStore",
    "Request",
    "Endpoints",
    "Env",
    "GrantType",
    "Params",
    "Scope",
    # Resolution
    "Resolver",
    "Stream",
]

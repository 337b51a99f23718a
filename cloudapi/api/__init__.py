"""
API access for cloudapi.

    - token: Credential value and TokenListener hooks
    - request: Immutable Request builder
    - transport: HTTP transport over requests.Session
    - client: CloudClient with grants and automatic token refresh
    - token_store: JSON persistence of the current credential
    - endpoints: Environments, endpoint paths, grant types, scopes, params
    - http: Response inspection helpers
"""

from cloudapi.api.client import CloudClient
from cloudapi.api.endpoints import Endpoints, Env, GrantType, Params, Scope
from cloudapi.api.request import Attachment, Request
from cloudapi.api.token import Credential, TokenListener
from cloudapi.api.token_store import TokenStore
from cloudapi.api.transport import Transport

__all__ = [
    "CloudClient",
    "Credential",
    "TokenListener",
    "TokenStore",
    "Request",
    "Attachment",
    "Transport",
    "Endpoints",
    "Env",
    "GrantType",
    "Params",
    "Scope",
]

"""
Core module for cloudapi.

This module provides the foundational components used throughout the library:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with console and file outputs

Usage:
    from cloudapi.core import (
        Config, load_config,
        setup_logging, get_logger,
        CloudAPIError, ConfigError, AuthenticationFailure
    )
"""

from cloudapi.core.config import (
    ApiConfig,
    Config,
    CredentialsConfig,
    TokenConfig,
    load_config,
)
from cloudapi.core.exceptions import (
    AuthenticationFailure,
    AuthorizationFailure,
    CloudAPIError,
    ConfigError,
    InvalidGrantType,
    ResolverFailure,
    TransportFailure,
)
from cloudapi.core.logger import (
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "CredentialsConfig",
    "ApiConfig",
    "TokenConfig",
    "load_config",
    # Exceptions
    "CloudAPIError",
    "ConfigError",
    "AuthenticationFailure",
    "InvalidGrantType",
    "AuthorizationFailure",
    "ResolverFailure",
    "TransportFailure",
    # Logging
    "setup_logging",
    "get_logger",
    "shutdown_logging",
]

"""
Configuration management for cloudapi.

This module handles loading, validating, and providing access to the
client configuration stored in cloudapi.yaml and/or environment variables.

The configuration contains:
    - Application credentials (client_id, client_secret, optional redirect_uri)
    - API settings (environment, default response content type, timeout,
      connection pool size)
    - Where the CLI stores the current token

Precedence:
    Environment variables (including those loaded from a .env file) override
    values from the YAML file, so secrets never have to be written to disk.

        CLOUDAPI_CLIENT_ID
        CLOUDAPI_CLIENT_SECRET
        CLOUDAPI_REDIRECT_URI
        CLOUDAPI_ENV

Example cloudapi.yaml:
    credentials:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: null

    api:
      env: live                  # live | sandbox
      default_content_type: "application/json"
      timeout: 30
      max_connections: 10

    token:
      file: "~/.cloudapi/token.json"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from cloudapi.api.endpoints import Env
from cloudapi.core.exceptions import ConfigError


# Default configuration file name (looked up in the current working directory)
CONFIG_FILENAME = "cloudapi.yaml"

DEFAULT_TOKEN_FILE = "~/.cloudapi/token.json"

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "CLOUDAPI_CLIENT_ID": ("credentials", "client_id"),
    "CLOUDAPI_CLIENT_SECRET": ("credentials", "client_secret"),
    "CLOUDAPI_REDIRECT_URI": ("credentials", "redirect_uri"),
    "CLOUDAPI_ENV": ("api", "env"),
}


@dataclass(frozen=True)
class CredentialsConfig:
    """
    Application credentials, as registered with the service.

    Attributes:
        client_id: The application's client identifier.
        client_secret: The application's client secret.
        redirect_uri: Callback URL for the authorization code flow.
                      Only needed when using authorization_code().
    """
    client_id: str
    client_secret: str
    redirect_uri: str | None = None


@dataclass(frozen=True)
class ApiConfig:
    """
    API access settings.

    Attributes:
        env: Which deployment of the service to talk to.
        default_content_type: Sent as the Accept header on every request.
        timeout: Seconds to wait for connect/read before giving up.
        max_connections: Size of the connection pool, i.e. how many calls
                         may be in flight concurrently without queuing.
    """
    env: Env = Env.LIVE
    default_content_type: str = "application/json"
    timeout: float = 30.0
    max_connections: int = 10


@dataclass(frozen=True)
class TokenConfig:
    """
    Token persistence settings (used by the CLI).

    Attributes:
        file: Absolute path of the JSON file holding the current credential.
    """
    file: Path


@dataclass(frozen=True)
class Config:
    """
    Complete configuration.

    Created by load_config() and immutable afterwards.

    Example:
        config = load_config()
        client = CloudClient.from_config(config)
    """
    credentials: CredentialsConfig
    api: ApiConfig
    token: TokenConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from cloudapi.yaml and the environment.

    Args:
        config_path: Optional explicit path to the config file. If None,
                     cloudapi.yaml in the current working directory is used
                     when present. An explicit path must exist.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is missing, the YAML is
                     invalid, or a value is missing or invalid after
                     environment overrides have been applied.

    Behavior:
        1. Load .env from the working directory (if any) into os.environ
        2. Read and parse the YAML file (if any)
        3. Apply CLOUDAPI_* environment overrides
        4. Validate each section and build the frozen Config
    """
    load_dotenv(find_dotenv(usecwd=True))

    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)
    elif explicit:
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    _apply_env_overrides(raw_config)

    return Config(
        credentials=_parse_credentials_config(raw_config.get("credentials")),
        api=_parse_api_config(raw_config.get("api")),
        token=_parse_token_config(raw_config.get("token")),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file parses as None
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    for section in ("credentials", "api", "token"):
        if section in raw_config and not isinstance(raw_config[section], dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    return raw_config


def _apply_env_overrides(raw_config: dict[str, Any]) -> None:
    for env_var, (section, field) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            raw_config.setdefault(section, {})[field] = value


def _parse_credentials_config(section: dict[str, Any] | None) -> CredentialsConfig:
    """
    Parse and validate the credentials section.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    section = section or {}
    client_id = section.get("client_id", "")
    client_secret = section.get("client_secret", "")
    redirect_uri = section.get("redirect_uri")

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'credentials.client_id' must be a non-empty string "
            "(or set CLOUDAPI_CLIENT_ID)",
            details={"field": "credentials.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'credentials.client_secret' must be a non-empty string "
            "(or set CLOUDAPI_CLIENT_SECRET)",
            details={"field": "credentials.client_secret"}
        )

    if redirect_uri is not None and (not isinstance(redirect_uri, str) or not redirect_uri.strip()):
        raise ConfigError(
            "'credentials.redirect_uri' must be a non-empty string or null",
            details={"field": "credentials.redirect_uri"}
        )

    return CredentialsConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        redirect_uri=redirect_uri.strip() if redirect_uri else None,
    )


def _parse_api_config(section: dict[str, Any] | None) -> ApiConfig:
    """
    Parse and validate the api section, applying defaults.

    Raises:
        ConfigError: If env is unknown, timeout is not a positive number,
                     max_connections is not a positive integer, or
                     default_content_type is empty.
    """
    defaults = ApiConfig()
    if not section:
        return defaults

    raw_env = section.get("env", defaults.env.label)
    try:
        env = Env.from_name(raw_env)
    except ValueError as e:
        raise ConfigError(
            f"'api.env' must be one of: {', '.join(member.label for member in Env)}",
            details={"field": "api.env", "value": raw_env}
        ) from e

    content_type = section.get("default_content_type", defaults.default_content_type)
    if not isinstance(content_type, str) or not content_type.strip():
        raise ConfigError(
            "'api.default_content_type' must be a non-empty string",
            details={"field": "api.default_content_type"}
        )

    timeout = section.get("timeout", defaults.timeout)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(
            "'api.timeout' must be a positive number",
            details={"field": "api.timeout", "value": timeout}
        )

    max_connections = section.get("max_connections", defaults.max_connections)
    if isinstance(max_connections, bool) or not isinstance(max_connections, int) or max_connections < 1:
        raise ConfigError(
            "'api.max_connections' must be a positive integer",
            details={"field": "api.max_connections", "value": max_connections}
        )

    return ApiConfig(
        env=env,
        default_content_type=content_type.strip(),
        timeout=float(timeout),
        max_connections=max_connections,
    )


def _parse_token_config(section: dict[str, Any] | None) -> TokenConfig:
    raw_file = (section or {}).get("file", DEFAULT_TOKEN_FILE)
    if not isinstance(raw_file, str) or not raw_file.strip():
        raise ConfigError(
            "'token.file' must be a non-empty string",
            details={"field": "token.file"}
        )
    return TokenConfig(file=Path(raw_file.strip()).expanduser().resolve())

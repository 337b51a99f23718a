"""
Command-line interface for cloudapi.

This module implements the CLI using Click, exposing the client's main
operations for quick manual use and scripting.
rich-click is used for the output colors.

Commands:
    cloudapi login                       Log in (password grant), store the token
    cloudapi logout                      Delete the stored token
    cloudapi token                       Show the stored token's scope and expiry
    cloudapi get <resource> [-p k=v]     Authenticated GET, print the body
    cloudapi resolve <permalink>         Print the numeric id behind a permalink
    cloudapi stream <stream-url>         Resolve a signed streaming URL
    cloudapi upload <file> --title <t>   Upload a track with a progress bar

Options:
    --config <path>                      Use this cloudapi.yaml
    --verbose                            Log at DEBUG level

Usage:
    cloudapi login --username me@example.com --scope non-expiring
    cloudapi get /me
    cloudapi get /tracks -p q=ambient -p limit=5
    cloudapi resolve "https://soundcloud.com/user/track"
    cloudapi stream "https://api.soundcloud.com/tracks/1234/stream" --skip-playcount
    cloudapi upload song.mp3 --title "My Song"

Exit Codes:
    0    Success
    1    Configuration error (or unexpected error)
    3    Authentication or authorization failure
    4    Resolver failure or other API error
    5    Network error
    130  Interrupted by user
"""

import sys
import time
from pathlib import Path
from typing import Callable

import requests
import rich_click as click
from tqdm import tqdm

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.MAX_WIDTH = 100

from cloudapi import __version__
from cloudapi.api.client import CloudClient
from cloudapi.api.endpoints import Endpoints, Params
from cloudapi.api.http import check_authorized, get_json, is_success
from cloudapi.api.request import Request
from cloudapi.api.token import Credential
from cloudapi.api.token_store import TokenStore
from cloudapi.core.config import Config, load_config
from cloudapi.core.exceptions import (
    AuthenticationFailure,
    AuthorizationFailure,
    CloudAPIError,
    ConfigError,
)
from cloudapi.core.logger import get_logger, setup_logging, shutdown_logging

logger = get_logger(__name__)


# Signature of a command body run by _run()
Action = Callable[[CloudClient, TokenStore], None]


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<cloudapi.yaml>",
    help="Configuration file (default: ./cloudapi.yaml)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug output"
)
@click.version_option(__version__, prog_name="cloudapi")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """
    cloudapi: command-line access to the music-hosting API.

    \b
    Log in once, then call any endpoint:
        cloudapi login --username me@example.com
        cloudapi get /me
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--username", prompt=True, help="Account login")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.option(
    "--scope", "scopes",
    multiple=True,
    metavar="<scope>",
    help="Scope to request (repeatable), e.g. non-expiring"
)
@click.pass_context
def login(ctx: click.Context, username: str, password: str, scopes: tuple[str, ...]) -> None:
    """Log in with username and password and store the token."""
    def action(client: CloudClient, store: TokenStore) -> None:
        credential = client.login(username, password, *scopes)
        store.save(credential)
        click.echo(f"Logged in. {_describe(credential)}")

    _run(ctx, action)


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Delete the stored token."""
    def action(client: CloudClient, store: TokenStore) -> None:
        if store.delete():
            click.echo("Logged out.")
        else:
            click.echo("No stored token.")

    _run(ctx, action)


@cli.command()
@click.pass_context
def token(ctx: click.Context) -> None:
    """Show the stored token's scope and expiry."""
    def action(client: CloudClient, store: TokenStore) -> None:
        credential = client.token
        if credential is None:
            raise AuthenticationFailure("Not logged in. Run 'cloudapi login' first.")
        click.echo(_describe(credential))

    _run(ctx, action)


@cli.command()
@click.argument("resource")
@click.option(
    "--param", "-p", "params",
    multiple=True,
    metavar="<key=value>",
    help="Query parameter (repeatable)"
)
@click.pass_context
def get(ctx: click.Context, resource: str, params: tuple[str, ...]) -> None:
    """Perform an authenticated GET and print the response body."""
    pairs = _parse_params(params)

    def action(client: CloudClient, store: TokenStore) -> None:
        response = client.get(Request.to(resource).with_params(*pairs))
        try:
            _check_response(response)
            click.echo(response.text)
        finally:
            response.close()

    _run(ctx, action)


@cli.command()
@click.argument("url")
@click.pass_context
def resolve(ctx: click.Context, url: str) -> None:
    """Print the numeric id of the resource behind a permalink."""
    def action(client: CloudClient, store: TokenStore) -> None:
        click.echo(client.resolve(url))

    _run(ctx, action)


@cli.command()
@click.argument("url")
@click.option(
    "--skip-playcount",
    is_flag=True,
    help="Do not count this as a playback"
)
@click.pass_context
def stream(ctx: click.Context, url: str, skip_playcount: bool) -> None:
    """Resolve an API stream URL to a signed streaming URL."""
    def action(client: CloudClient, store: TokenStore) -> None:
        resolved = client.resolve_stream_url(url, skip_playcount)
        click.echo(resolved.stream_url)
        click.echo(f"  etag:           {resolved.etag or '-'}")
        click.echo(f"  content length: {resolved.content_length if resolved.content_length is not None else '-'}")
        click.echo(f"  expires:        {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(resolved.expires))}")

    _run(ctx, action)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", required=True, help="Track title")
@click.option(
    "--sharing",
    type=click.Choice(["public", "private"]),
    default="private",
    show_default=True,
    help="Track visibility"
)
@click.pass_context
def upload(ctx: click.Context, file: Path, title: str, sharing: str) -> None:
    """Upload an audio file as a new track."""
    def action(client: CloudClient, store: TokenStore) -> None:
        with tqdm(
            total=file.stat().st_size,
            desc="Uploading",
            unit="B",
            unit_scale=True,
            colour="cyan",
        ) as bar:
            def on_progress(sent: int, total: int) -> None:
                bar.total = total
                bar.update(sent - bar.n)

            request = (
                Request.to(Endpoints.TRACKS)
                .with_params(Params.Track.TITLE, title, Params.Track.SHARING, sharing)
                .with_file(Params.Track.ASSET_DATA, file)
                .with_progress(on_progress)
            )
            response = client.post(request)

        try:
            _check_response(response)
            track = get_json(response)
        finally:
            response.close()
        click.echo(f"Uploaded '{title}' (id {track.get('id')}).")

    _run(ctx, action)


def _run(ctx: click.Context, action: Action) -> None:
    """
    Set up logging, config and client, run a command body, and map errors.

    Errors are reported on stderr and turned into the exit codes listed
    in the module docstring.

    Raises:
        SystemExit: On any failure (with the appropriate exit code).
    """
    setup_logging("DEBUG" if ctx.obj["verbose"] else "INFO")

    try:
        config = _load_configuration(ctx.obj["config_path"])
        store = TokenStore(config.token.file)
        with CloudClient.from_config(config, token=store.load(), token_listener=store) as client:
            action(client, store)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except (AuthenticationFailure, AuthorizationFailure) as e:
        click.echo(f"Authentication error: {e.message}", err=True)
        logger.debug(f"Details: {e.details}")
        sys.exit(3)

    except CloudAPIError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.debug(f"Details: {e.details}")
        sys.exit(4)

    except requests.RequestException as e:
        click.echo(f"Network error: {e}", err=True)
        logger.debug("Network error", exc_info=True)
        sys.exit(5)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _load_configuration(config_path: Path | None) -> Config:
    """
    Load and validate configuration from cloudapi.yaml and the environment.

    Raises:
        ConfigError: If configuration is invalid or missing.
    """
    return load_config(config_path)


def _parse_params(params: tuple[str, ...]) -> list[str]:
    """Turn ('a=1', 'b=2') into the flat ['a', '1', 'b', '2'] Request.with_params() takes."""
    pairs: list[str] = []
    for param in params:
        name, sep, value = param.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected key=value, got '{param}'", param_hint="--param")
        pairs.extend((name, value))
    return pairs


def _check_response(response: requests.Response) -> None:
    check_authorized(response)
    if not is_success(response):
        raise CloudAPIError(
            f"Request failed ({response.status_code}): {response.url}",
            details={"url": response.url, "status_code": response.status_code},
        )


def _describe(credential: Credential) -> str:
    scope = " ".join(sorted(credential.scope)) or "default"
    if credential.expires_at is None:
        expiry = "never expires"
    elif credential.is_expired():
        expiry = "expired" + (" (refreshable)" if credential.refreshable else "")
    else:
        expiry = f"expires {time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(credential.expires_at))}"
    return f"Scope: {scope}, {expiry}"


if __name__ == "__main__":
    cli()

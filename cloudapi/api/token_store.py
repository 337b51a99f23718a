"""
On-disk persistence of the current credential.

The token file is plain JSON (Credential.to_dict() plus a saved_at
timestamp) readable only by its owner. TokenStore doubles as a
TokenListener, so a client built with it keeps the file in sync with
every automatic refresh.

Usage:
    store = TokenStore(config.token.file)
    client = CloudClient.from_config(config, token=store.load(), token_listener=store)
"""

import json
from datetime import datetime
from pathlib import Path

from cloudapi.api.token import Credential, TokenListener
from cloudapi.core.exceptions import CloudAPIError
from cloudapi.core.logger import get_logger

logger = get_logger(__name__)


class TokenStore(TokenListener):
    """
    JSON file holding one credential.

    Attributes:
        path: Location of the token file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Credential | None:
        """
        Read the stored credential.

        Returns:
            The credential, or None if there is no file or it is unreadable.
            An unreadable file is reported as a warning; the caller simply
            has to log in again.
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load stored token from {self.path}: {e}")
            return None

        if not isinstance(data, dict) or "access_token" not in data:
            logger.warning(f"Invalid token structure in {self.path}, log in again")
            return None

        return Credential.from_dict(data)

    def save(self, credential: Credential) -> None:
        """
        Write the credential, creating parent directories as needed.

        Raises:
            CloudAPIError: If the file cannot be written.
        """
        data = {**credential.to_dict(), "saved_at": datetime.now().isoformat()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            # Owner read/write only
            self.path.chmod(0o600)
        except OSError as e:
            raise CloudAPIError(
                f"Failed to save token: {e}",
                details={"file_path": str(self.path), "original_error": str(e)},
            ) from e
        logger.debug(f"Token saved to {self.path}")

    def delete(self) -> bool:
        """Remove the token file. Returns True if a file was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.debug(f"Token file {self.path} removed")
        return True

    def on_token_refreshed(self, credential: Credential) -> None:
        # A failed write must not fail the request that triggered the refresh
        try:
            self.save(credential)
        except CloudAPIError as e:
            logger.warning(e.message)

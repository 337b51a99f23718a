"""Tests for TokenStore"""

import json
import os
import stat
import sys

import pytest

from cloudapi.api.token import Credential
from cloudapi.api.token_store import TokenStore
from cloudapi.core.exceptions import CloudAPIError


@pytest.fixture
def store(tmp_path):
    return TokenStore(tmp_path / "nested" / "token.json")


class TestTokenStore:
    """Test credential persistence"""

    def test_save_and_load(self, store):
        credential = Credential("abc", "def", frozenset({"*"}), issued_at=1000.0, expires_in=3600)

        store.save(credential)

        assert store.load() == credential

    def test_saved_file_contents(self, store):
        store.save(Credential("abc"))

        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data["access_token"] == "abc"
        assert "saved_at" in data

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_private(self, store):
        store.save(Credential("abc"))
        assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600

    def test_load_missing(self, store):
        assert store.load() is None

    def test_load_corrupt(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")
        assert store.load() is None

    def test_load_wrong_structure(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text('["a"]', encoding="utf-8")
        assert store.load() is None

    def test_delete(self, store):
        store.save(Credential("abc"))
        assert store.delete() is True
        assert not store.path.exists()
        assert store.delete() is False

    def test_save_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = TokenStore(blocker / "token.json")

        with pytest.raises(CloudAPIError):
            store.save(Credential("abc"))

    def test_refresh_persists(self, store):
        """Test the store acts as a listener that saves refreshed credentials"""
        store.on_token_refreshed(Credential("refreshed", "r"))
        assert store.load().access_token == "refreshed"

    def test_refresh_persist_failure_is_not_raised(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        store = TokenStore(blocker / "token.json")

        store.on_token_refreshed(Credential("abc"))

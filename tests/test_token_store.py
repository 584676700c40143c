import json
import os
import stat
from unittest import mock

import pytest

from fit2bsky.errors import TokenStoreCorrupt, TokenStoreUnreadable, TokenStoreUnwritable
from fit2bsky.token_store import CredentialRecord, TokenStore


def _record(access="A1", refresh="R1"):
    return CredentialRecord(access_token=access, refresh_token=refresh, expires_in=28800,
                            token_type="Bearer", user_id="ABC123")


class TestLoad:

    def test_missing_file_is_absent(self, token_path):
        assert TokenStore(token_path).load() is None

    def test_invalid_json_is_corrupt(self, token_path):
        token_path.write_text('{"access_token": "A1", "refresh_')
        with pytest.raises(TokenStoreCorrupt):
            TokenStore(token_path).load()

    def test_missing_refresh_token_is_corrupt(self, token_path):
        token_path.write_text(json.dumps({"access_token": "A1"}))
        with pytest.raises(TokenStoreCorrupt, match="refresh_token"):
            TokenStore(token_path).load()

    def test_non_object_is_corrupt(self, token_path):
        token_path.write_text("[1, 2, 3]")
        with pytest.raises(TokenStoreCorrupt):
            TokenStore(token_path).load()

    def test_bad_expires_in_is_corrupt(self, token_path):
        token_path.write_text(json.dumps({"access_token": "A1", "refresh_token": "R1", "expires_in": "soon"}))
        with pytest.raises(TokenStoreCorrupt):
            TokenStore(token_path).load()

    def test_invalid_utf8_is_corrupt(self, token_path):
        token_path.write_bytes(b'{"access_token": "A\xff\xfe", "refresh_token": "R1"}')
        with pytest.raises(TokenStoreCorrupt):
            TokenStore(token_path).load()

    def test_overflowing_expires_in_is_corrupt(self, token_path):
        token_path.write_text('{"access_token": "A1", "refresh_token": "R1", "expires_in": 1e400}')
        with pytest.raises(TokenStoreCorrupt):
            TokenStore(token_path).load()

    def test_unreadable_path(self, tmp_path):
        # A directory where the file should be cannot be read as a record.
        with pytest.raises(TokenStoreUnreadable):
            TokenStore(tmp_path).load()

    def test_optional_fields_default(self, token_path):
        token_path.write_text(json.dumps({"access_token": "A1", "refresh_token": ""}))
        record = TokenStore(token_path).load()
        assert record == CredentialRecord(access_token="A1", refresh_token="")


class TestSave:

    def test_round_trip(self, token_path):
        store = TokenStore(token_path)
        store.save(_record())
        assert store.load() == _record()

    def test_file_uses_field_names(self, token_path):
        TokenStore(token_path).save(_record())
        assert json.loads(token_path.read_text()) == {
            "access_token": "A1",
            "refresh_token": "R1",
            "expires_in": 28800,
            "token_type": "Bearer",
            "user_id": "ABC123",
        }

    def test_replaces_existing_record(self, token_path):
        store = TokenStore(token_path)
        store.save(_record())
        store.save(_record("A2", "R2"))
        assert store.load() == _record("A2", "R2")

    def test_owner_only_permissions(self, token_path):
        TokenStore(token_path).save(_record())
        assert stat.S_IMODE(os.stat(token_path).st_mode) == 0o600

    def test_failed_rename_keeps_previous_record(self, token_path):
        store = TokenStore(token_path)
        store.save(_record())

        with mock.patch("fit2bsky.token_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(TokenStoreUnwritable):
                store.save(_record("A2", "R2"))

        assert store.load() == _record()
        assert [p.name for p in token_path.parent.iterdir()] == [".token"]

    def test_interrupted_write_keeps_previous_record(self, token_path):
        store = TokenStore(token_path)
        store.save(_record())

        with mock.patch("fit2bsky.token_store.json.dump", side_effect=KeyboardInterrupt):
            with pytest.raises(KeyboardInterrupt):
                store.save(_record("A2", "R2"))

        assert store.load() == _record()
        assert [p.name for p in token_path.parent.iterdir()] == [".token"]

    def test_interrupted_first_write_leaves_absent(self, token_path):
        store = TokenStore(token_path)

        with mock.patch("fit2bsky.token_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(TokenStoreUnwritable):
                store.save(_record())

        assert store.load() is None

    def test_missing_directory_is_unwritable(self, tmp_path):
        with pytest.raises(TokenStoreUnwritable):
            TokenStore(tmp_path / "missing" / ".token").save(_record())


def test_record_update_ignores_unknown_fields():
    record = _record()
    record.update({"errors": [{"errorType": "invalid_grant"}], "success": False})
    assert record == _record()

"""
Token Store and client state storage.
"""
from __future__ import annotations

import json
import os
import stat

from backend.client.storage import FileClientStorage, MemoryClientStorage, default_state_path
from backend.client.token_store import TOKEN_KEY, SessionCredential, TokenStore


def test_save_load_clear_round_trip():
    storage = MemoryClientStorage()
    store = TokenStore(storage)
    cred = SessionCredential(access_token="a", refresh_token="r", expires_at_ms=1_000)

    store.save(cred)
    assert store.load() == cred
    assert json.loads(storage.get_item(TOKEN_KEY)) == {"accessToken": "a", "refreshToken": "r", "expiresAt": 1000}

    store.clear()
    assert store.load() is None


def test_last_save_wins():
    store = TokenStore(MemoryClientStorage())
    store.save(SessionCredential("a1", "r1", 1))
    store.save(SessionCredential("a2", "r2", 2))
    assert store.load().access_token == "a2"


def test_unreadable_data_loads_as_absent():
    for raw in ("not json", "[]", json.dumps({"refreshToken": "r"})):
        store = TokenStore(MemoryClientStorage({TOKEN_KEY: raw}))
        assert store.load() is None


def test_missing_refresh_token_and_expiry_are_tolerated():
    store = TokenStore(MemoryClientStorage({TOKEN_KEY: json.dumps({"accessToken": "a"})}))
    assert store.load() == SessionCredential("a", "", 0)


def test_file_storage_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "state.json"
    TokenStore(FileClientStorage(path)).save(SessionCredential("a", "r", 5))

    assert TokenStore(FileClientStorage(path)).load() == SessionCredential("a", "r", 5)
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_file_storage_remove_and_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    storage = FileClientStorage(path)
    storage.set_item("user", "{}")
    storage.set_item("other", "x")
    storage.remove_item("user")
    assert storage.get_item("user") is None
    assert storage.get_item("other") == "x"

    path.write_text("{broken", encoding="utf-8")
    assert storage.get_item("other") is None


def test_default_state_path_honours_env(monkeypatch, tmp_path):
    assert default_state_path().name == "state.json"
    monkeypatch.setenv("PORTAL_STATE_FILE", str(tmp_path / "s.json"))
    assert default_state_path() == tmp_path / "s.json"

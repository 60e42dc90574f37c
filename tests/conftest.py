import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

import importlib
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from authgate.auth import passwords
from authgate.auth.flow import AuthFlow
from authgate.auth.session import SessionStore
from authgate.auth.users import StoreError, UserStore


@pytest.fixture(autouse=True)
def secret_key(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.delenv("AUTHGATE_SECRET_KEY", raising=False)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    # Full cost is covered in test_passwords; keep the rest of the suite quick.
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


@pytest.fixture()
def users_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "users.yml"


@pytest.fixture()
def store(users_path: Path) -> UserStore:
    return UserStore(users_path)


@pytest.fixture()
def sessions() -> SessionStore:
    return SessionStore(max_age=3600)


@pytest.fixture()
def flow(store: UserStore, sessions: SessionStore) -> AuthFlow:
    return AuthFlow(store, sessions)


class BrokenStore(UserStore):
    """User store whose backing file is unusable."""

    def get_user(self, username):
        raise StoreError("disk on fire")

    def list_users(self):
        raise StoreError("disk on fire")

    def insert_user(self, username, password_hash):
        raise StoreError("disk on fire")


class SpyStore(UserStore):
    def __init__(self, path):
        super().__init__(path)
        self.calls = []

    def get_user(self, username):
        self.calls.append(("get_user", username))
        return super().get_user(username)

    def insert_user(self, username, password_hash):
        self.calls.append(("insert_user", username))
        return super().insert_user(username, password_hash)


@pytest.fixture()
def broken_store(users_path: Path) -> BrokenStore:
    return BrokenStore(users_path)


@pytest.fixture()
def spy_store(users_path: Path) -> SpyStore:
    return SpyStore(users_path)


@pytest.fixture()
def app_module(users_path: Path, monkeypatch):
    monkeypatch.setenv("AUTHGATE_USERS_PATH", str(users_path))

    import authgate.app as app_module
    importlib.reload(app_module)
    return app_module


@pytest.fixture()
def client(app_module) -> TestClient:
    return TestClient(app_module.app)

# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# IMPORTANT: do not rely on current working directory.
# Anchor the default users.yml path to the project root (works well with editable installs).
BASE_DIR = Path(__file__).resolve().parents[3]
DEFAULT_USERS_PATH = Path(
    os.getenv("AUTHGATE_USERS_PATH", str(BASE_DIR / "data" / "users.yml"))
).resolve()

FILE_VERSION = 1


class StoreError(Exception):
    """The users file could not be read or written."""


class UserExistsError(StoreError):
    def __init__(self, username: str):
        super().__init__(f"User {username} already exists")
        self.username = username


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    password_hash: str

    def to_public(self) -> dict:
        """Listing representation; the hash is never exposed."""
        return {"id": self.id, "username": self.username}


def _load_users_file(path: Path) -> Dict[str, UserRecord]:
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise StoreError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise StoreError(f"Malformed {path}: expected a mapping at top level")
    users = raw.get("users") or {}
    if not isinstance(users, dict):
        raise StoreError(f"Malformed {path}: 'users' must be a mapping")
    out: Dict[str, UserRecord] = {}
    for uname, udata in users.items():
        if not isinstance(udata, dict):
            continue
        username = str(uname)
        if not username:
            continue
        try:
            uid = int(udata.get("id") or 0)
        except (TypeError, ValueError):
            uid = 0
        out[username] = UserRecord(
            id=uid,
            username=username,
            password_hash=str(udata.get("password_hash") or "").strip(),
        )
    return out


def _dump_users_file(path: Path, users: Dict[str, UserRecord]) -> None:
    raw = {
        "version": FILE_VERSION,
        "users": {
            u.username: {"id": u.id, "password_hash": u.password_hash}
            for u in sorted(users.values(), key=lambda r: r.id)
        },
    }
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(yaml.safe_dump(raw, sort_keys=False, allow_unicode=True), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        raise StoreError(f"Cannot write {path}: {exc}") from exc


class UserStore:
    """Users keyed by username, persisted in a YAML file.

    Reads are served from a cache invalidated by the file's mtime/size.
    ``insert_user`` re-reads the file and checks absence under a lock, so the
    check-then-insert is atomic for every writer going through this process.
    """

    def __init__(self, path: Path = DEFAULT_USERS_PATH):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._cache: Tuple[Tuple[int, int], Dict[str, UserRecord]] = ((0, 0), {})

    def _stamp(self) -> Tuple[int, int]:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return (0, 0)
        except OSError as exc:
            raise StoreError(f"Cannot stat {self.path}: {exc}") from exc
        return (st.st_mtime_ns, st.st_size)

    def get_users(self) -> Dict[str, UserRecord]:
        with self._lock:
            stamp = self._stamp()
            cached_stamp, cached_users = self._cache
            if stamp != (0, 0) and stamp == cached_stamp:
                return cached_users

            users = _load_users_file(self.path)
            self._cache = (stamp, users)
            return users

    def get_user(self, username: str) -> Optional[UserRecord]:
        if not username:
            return None
        return self.get_users().get(username)

    def list_users(self) -> List[UserRecord]:
        return sorted(self.get_users().values(), key=lambda r: r.id)

    def insert_user(self, username: str, password_hash: str) -> UserRecord:
        if not username:
            raise StoreError("Username is required")
        with self._lock:
            users = _load_users_file(self.path)
            if username in users:
                raise UserExistsError(username)
            next_id = max((u.id for u in users.values()), default=0) + 1
            record = UserRecord(id=next_id, username=username, password_hash=password_hash)
            users[username] = record
            _dump_users_file(self.path, users)
            self._cache = (self._stamp(), users)
        logger.debug(f"Stored user {username} with id {next_id}")
        return record

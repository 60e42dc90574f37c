# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

logger = logging.getLogger(__name__)

COOKIE_NAME = os.getenv("AUTHGATE_COOKIE_NAME", "authgate_session")
DEFAULT_MAX_AGE_SECONDS = int(os.getenv("AUTHGATE_SESSION_MAX_AGE", "28800"))  # 8 hours


def _serializer() -> URLSafeTimedSerializer:
    secret = os.getenv("SECRET_KEY") or os.getenv("AUTHGATE_SECRET_KEY")
    if not secret:
        raise RuntimeError("Missing SECRET_KEY (or AUTHGATE_SECRET_KEY) in environment")
    salt = os.getenv("AUTHGATE_SESSION_SALT", "authgate.session.v1")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


def sign_session_id(session_id: str) -> str:
    return _serializer().dumps({"sid": session_id})


def unsign_session_id(token: str, *, max_age: int = DEFAULT_MAX_AGE_SECONDS) -> Optional[str]:
    if not token:
        return None
    s = _serializer()
    try:
        data = s.loads(token, max_age=max_age)
    except (BadSignature, BadTimeSignature):
        return None
    sid = str((data or {}).get("sid") or "").strip() if isinstance(data, dict) else ""
    return sid or None


class SessionError(Exception):
    pass


@dataclass
class Session:
    """Per-client session bag. ``username`` is set iff the client is logged in."""

    id: str
    username: Optional[str] = None
    is_new: bool = True
    modified: bool = False
    destroyed: bool = False

    def set_username(self, username: str) -> None:
        self.username = username
        self.modified = True


class SessionStore:
    """In-process session storage with expiry refreshed on save."""

    def __init__(self, max_age: int = DEFAULT_MAX_AGE_SECONDS):
        self.max_age = max_age
        self._lock = threading.Lock()
        # sid -> (username, expires_at)
        self._sessions: Dict[str, Tuple[Optional[str], float]] = {}

    def new(self) -> Session:
        return Session(id=secrets.token_urlsafe(32))

    def get(self, session_id: str) -> Optional[Session]:
        now = time.time()
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            username, expires_at = entry
            if expires_at <= now:
                del self._sessions[session_id]
                return None
        return Session(id=session_id, username=username, is_new=False)

    def load(self, token: str) -> Session:
        """Session for a cookie value; a fresh one when missing, forged or expired."""
        sid = unsign_session_id(token, max_age=self.max_age)
        if sid:
            found = self.get(sid)
            if found is not None:
                return found
        return self.new()

    def save(self, session: Session) -> None:
        if session.destroyed:
            raise SessionError("Cannot save a destroyed session")
        now = time.time()
        with self._lock:
            self._purge_expired(now)
            self._sessions[session.id] = (session.username, now + self.max_age)
        session.is_new = False
        session.modified = False

    def _purge_expired(self, now: float) -> int:
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")
        return len(expired)

    def purge_expired(self) -> int:
        """Drop every expired session; returns how many were removed."""
        with self._lock:
            return self._purge_expired(time.time())

    def destroy(self, session: Session) -> None:
        with self._lock:
            self._sessions.pop(session.id, None)
        session.username = None
        session.destroyed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
